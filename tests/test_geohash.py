"""Tests for geohash encoding and disc-covering bounds."""
import math

import pytest

from nearby.data.geo import EARTH_RADIUS_M, haversine_distance_m
from nearby.data.geohash import (
    BASE32,
    GEOHASH_PRECISION,
    WHOLE_WORLD,
    Bound,
    decode,
    encode,
    query_bits,
    query_bounds,
    wrap_longitude,
)


def _destination(lat: float, lng: float, bearing_deg: float, distance_m: float) -> tuple[float, float]:
    """Point reached from (lat, lng) along a great circle; inverse of haversine."""
    d = distance_m / EARTH_RADIUS_M
    b = math.radians(bearing_deg)
    p1 = math.radians(lat)
    l1 = math.radians(lng)
    p2 = math.asin(math.sin(p1) * math.cos(d) + math.cos(p1) * math.sin(d) * math.cos(b))
    l2 = l1 + math.atan2(math.sin(b) * math.sin(d) * math.cos(p1), math.cos(d) - math.sin(p1) * math.sin(p2))
    return math.degrees(p2), wrap_longitude(math.degrees(l2))


def _covered(bounds: list[Bound], key: str) -> bool:
    return any(b.low <= key <= b.high for b in bounds)


def test_encode_known_values():
    assert encode(57.64911, 10.40744, 11) == "u4pruydqqvj"
    assert encode(57.64911, 10.40744) == "u4pruydqqv"
    assert encode(40.6892, -74.0445, 7) == "dr5r7p4"


def test_encode_uses_base32_and_requested_precision():
    key = encode(10.0, -66.0, 8)
    assert len(key) == 8
    assert set(key) <= set(BASE32)


def test_encode_rejects_invalid_input():
    with pytest.raises(ValueError):
        encode(91.0, 0.0)
    with pytest.raises(ValueError):
        encode(0.0, 181.0)
    with pytest.raises(ValueError):
        encode(0.0, 0.0, 0)


def test_decode_returns_point_inside_cell():
    lat, lng = decode(encode(10.0, -66.0))
    # 10 characters -> cells under a meter across
    assert haversine_distance_m(10.0, -66.0, lat, lng) < 2.0


def test_decode_rejects_bad_characters():
    with pytest.raises(ValueError):
        decode("abc")  # "a" is not in the geohash alphabet
    with pytest.raises(ValueError):
        decode("")


def test_wrap_longitude():
    assert wrap_longitude(10.0) == 10.0
    assert wrap_longitude(181.0) == pytest.approx(-179.0)
    assert wrap_longitude(-181.0) == pytest.approx(179.0)


def test_bounds_are_sorted_and_unique():
    bounds = query_bounds((10.0, -66.0), 5000)
    assert bounds == sorted(set(bounds))
    assert all(b.low <= b.high for b in bounds)
    assert 1 <= len(bounds) <= 9


@pytest.mark.parametrize("radius_m", [0.0, 1e-6, 0.5])
def test_tiny_radius_still_yields_a_bound_covering_the_center(radius_m):
    bounds = query_bounds((10.0, -66.0), radius_m)
    assert len(bounds) >= 1
    assert _covered(bounds, encode(10.0, -66.0))


def test_query_bits_never_finer_than_stored_keys():
    assert query_bits((10.0, -66.0), 0.0) == GEOHASH_PRECISION * 5
    assert query_bits((10.0, -66.0), 0.0, key_precision=6) == 30


def test_larger_radius_uses_coarser_cells():
    assert query_bits((10.0, -66.0), 100_000) < query_bits((10.0, -66.0), 1_000)


@pytest.mark.parametrize(
    "center",
    [
        (10.0, -66.0),
        (40.1164, -88.2434),
        (-33.8688, 151.2093),
        (0.0, 179.995),
        (0.0, -179.995),
        (64.1466, -21.9426),
        (-77.85, 166.67),
    ],
)
@pytest.mark.parametrize("radius_m", [300.0, 5_000.0, 48_000.0, 100_000.0])
def test_bounds_cover_every_point_in_the_disc(center, radius_m):
    bounds = query_bounds(center, radius_m)
    for bearing in range(0, 360, 10):
        for fraction in (0.3, 0.7, 0.999):
            lat, lng = _destination(center[0], center[1], bearing, radius_m * fraction)
            assert _covered(bounds, encode(lat, lng)), (center, radius_m, bearing, fraction)


def test_bounds_cover_across_the_antimeridian():
    bounds = query_bounds((0.0, 179.999), 5000)
    assert _covered(bounds, encode(0.0, -179.99))
    assert _covered(bounds, encode(0.0, 179.97))


def test_disc_touching_a_pole_reads_every_key():
    assert query_bounds((89.9, 45.0), 50_000) == [WHOLE_WORLD]
    assert query_bounds((-90.0, 0.0), 1_000) == [WHOLE_WORLD]


def test_query_bounds_rejects_invalid_center_and_radius():
    with pytest.raises(ValueError):
        query_bounds((91.0, 0.0), 1000)
    with pytest.raises(ValueError):
        query_bounds((0.0, 0.0), -1)
