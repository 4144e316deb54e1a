"""
Geohash spatial keys and the key intervals ("bounds") that cover a search disc.

A geohash interleaves longitude and latitude bits (longitude first) and packs
them five at a time into base32 characters, so sorting keys as strings walks a
Z-order curve. A disc maps to a handful of contiguous key ranges; every entity
inside the disc falls in one of them, plus some entities outside it that the
caller must drop by exact distance.
"""
import math
from typing import NamedTuple

from nearby.data.geo import EARTH_RADIUS_M, LAT_MAX, LAT_MIN, LNG_MAX, LNG_MIN

BASE32 = "0123456789bcdefghjkmnpqrstuvwxyz"
BITS_PER_CHAR = 5
# Precision of the keys written next to each stored entity
GEOHASH_PRECISION = 10
MAX_PRECISION = 22
MAX_BITS = MAX_PRECISION * BITS_PER_CHAR
# Sorts after every base32 character
HIGH_SENTINEL = "~"

_DECODE = {ch: i for i, ch in enumerate(BASE32)}


class Bound(NamedTuple):
    low: str
    high: str


WHOLE_WORLD = Bound(BASE32[0], HIGH_SENTINEL)


def _validate_location(lat: float, lng: float) -> None:
    if not (LAT_MIN <= lat <= LAT_MAX):
        raise ValueError(f"latitude must be between {LAT_MIN} and {LAT_MAX}, got {lat}")
    if not (LNG_MIN <= lng <= LNG_MAX):
        raise ValueError(f"longitude must be between {LNG_MIN} and {LNG_MAX}, got {lng}")


def encode(lat: float, lng: float, precision: int = GEOHASH_PRECISION) -> str:
    """Geohash of (lat, lng) with `precision` characters."""
    _validate_location(lat, lng)
    if not (1 <= precision <= MAX_PRECISION):
        raise ValueError(f"precision must be between 1 and {MAX_PRECISION}")
    lat_lo, lat_hi = LAT_MIN, LAT_MAX
    lng_lo, lng_hi = LNG_MIN, LNG_MAX
    chars: list[str] = []
    value = 0
    bits = 0
    even = True
    while len(chars) < precision:
        if even:
            mid = (lng_lo + lng_hi) / 2
            if lng > mid:
                value = (value << 1) | 1
                lng_lo = mid
            else:
                value <<= 1
                lng_hi = mid
        else:
            mid = (lat_lo + lat_hi) / 2
            if lat > mid:
                value = (value << 1) | 1
                lat_lo = mid
            else:
                value <<= 1
                lat_hi = mid
        even = not even
        bits += 1
        if bits == BITS_PER_CHAR:
            chars.append(BASE32[value])
            bits = 0
            value = 0
    return "".join(chars)


def decode(key: str) -> tuple[float, float]:
    """Center (lat, lng) of the cell named by `key`."""
    if not key:
        raise ValueError("geohash must not be empty")
    lat_lo, lat_hi = LAT_MIN, LAT_MAX
    lng_lo, lng_hi = LNG_MIN, LNG_MAX
    even = True
    for ch in key:
        if ch not in _DECODE:
            raise ValueError(f"invalid geohash character {ch!r} in {key!r}")
        value = _DECODE[ch]
        for shift in range(BITS_PER_CHAR - 1, -1, -1):
            bit = (value >> shift) & 1
            if even:
                mid = (lng_lo + lng_hi) / 2
                if bit:
                    lng_lo = mid
                else:
                    lng_hi = mid
            else:
                mid = (lat_lo + lat_hi) / 2
                if bit:
                    lat_lo = mid
                else:
                    lat_hi = mid
            even = not even
    return (lat_lo + lat_hi) / 2, (lng_lo + lng_hi) / 2


def wrap_longitude(lng: float) -> float:
    if LNG_MIN <= lng <= LNG_MAX:
        return lng
    adjusted = lng + 180
    if adjusted > 0:
        return (adjusted % 360) - 180
    return 180 - (-adjusted % 360)


def _box_deltas(lat: float, radius_m: float) -> tuple[float, float]:
    """
    Half-height and half-width (degrees) of a lat/lng box holding the disc.
    Half-width is 360 when the disc touches a pole: every longitude is in play.
    """
    angular = radius_m / EARTH_RADIUS_M
    lat_delta = math.degrees(angular)
    if lat + lat_delta >= LAT_MAX or lat - lat_delta <= LAT_MIN:
        return lat_delta, 360.0
    # Widest longitude span reached by a great circle disc of this radius
    ratio = math.sin(angular) / math.cos(math.radians(lat))
    lng_delta = math.degrees(math.asin(min(1.0, ratio)))
    return lat_delta, lng_delta


def _bits_for_extent(span_deg: float, extent_deg: float) -> int:
    """Largest bit depth whose cells along one axis are still at least extent_deg wide."""
    if extent_deg <= 0:
        return MAX_BITS
    if extent_deg >= span_deg:
        return 0
    return int(math.floor(math.log2(span_deg / extent_deg)))


def query_bits(center: tuple[float, float], radius_m: float, key_precision: int = GEOHASH_PRECISION) -> int:
    """Total interleaved bits used for the bound cells of a disc."""
    lat_delta, lng_delta = _box_deltas(center[0], radius_m)
    lat_bits = _bits_for_extent(LAT_MAX - LAT_MIN, lat_delta)
    lng_bits = _bits_for_extent(LNG_MAX - LNG_MIN, lng_delta)
    # Longitude takes the odd bit: b total bits -> ceil(b/2) lng bits, floor(b/2) lat bits.
    # Cells finer than the stored keys would sort after them and miss matches.
    return max(0, min(2 * lat_bits + 1, 2 * lng_bits, key_precision * BITS_PER_CHAR, MAX_BITS))


def _key_range(key: str, bits: int) -> Bound:
    """Interval of every key inside the `bits`-deep cell that contains `key`."""
    precision = math.ceil(bits / BITS_PER_CHAR)
    key = key[:precision]
    base = key[:-1]
    last = _DECODE[key[-1]]
    unused = BITS_PER_CHAR - (bits - len(base) * BITS_PER_CHAR)
    start = (last >> unused) << unused
    end = start + (1 << unused)
    if end >= len(BASE32):
        return Bound(base + BASE32[start], base + HIGH_SENTINEL)
    return Bound(base + BASE32[start], base + BASE32[end])


def query_bounds(
    center: tuple[float, float],
    radius_m: float,
    key_precision: int = GEOHASH_PRECISION,
) -> list[Bound]:
    """
    Key intervals whose union contains every point within radius_m of center.

    Cells are chosen at least as large as the box spacing, so the cells under
    the center, the four edge midpoints and the four corners of the box tile it
    without gaps. Result is sorted by low key and free of duplicates.
    """
    lat, lng = center
    _validate_location(lat, lng)
    if radius_m < 0:
        raise ValueError("radius_m must not be negative")

    bits = query_bits(center, radius_m, key_precision)
    if bits == 0:
        return [WHOLE_WORLD]

    lat_delta, lng_delta = _box_deltas(lat, radius_m)
    north = min(LAT_MAX, lat + lat_delta)
    south = max(LAT_MIN, lat - lat_delta)
    west = wrap_longitude(lng - lng_delta)
    east = wrap_longitude(lng + lng_delta)
    precision = math.ceil(bits / BITS_PER_CHAR)

    bounds: set[Bound] = set()
    for row in (lat, north, south):
        for col in (lng, west, east):
            bounds.add(_key_range(encode(row, col, precision), bits))
    return sorted(bounds)
