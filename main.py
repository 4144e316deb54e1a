import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from settings import get_settings
from nearby.data.businesses_repo import SQLiteBusinessStore, init_db
from nearby.errors import QueryValidationError, StorageError
from nearby.middleware import RequestLoggingMiddleware
from nearby.monitoring import get_metrics, record_search
from nearby.search.models import NearbyRequest, NearbyResponse, SearchMeta
from nearby.search.service import ProximitySearch

settings = get_settings()
PROJECT_ROOT = Path(__file__).resolve().parent
BUSINESSES_DB = PROJECT_ROOT / settings.businesses_db_path

# Structured logging: include module and level; handlers can add JSON later
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])


def build_search(db_path: Path) -> ProximitySearch:
    """Search service over the SQLite store; created once per process in lifespan."""
    return ProximitySearch(
        SQLiteBusinessStore(db_path),
        strategy=settings.nearby_strategy,
        max_radius_km=settings.nearby_max_radius_km,
        two_pass_threshold_km=settings.nearby_two_pass_threshold_km,
        wide_margin=settings.nearby_wide_margin,
        narrow_margin=settings.nearby_narrow_margin,
        timeout_seconds=settings.nearby_timeout_seconds,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db(BUSINESSES_DB)
    app.state.search = build_search(BUSINESSES_DB)
    yield
    app.state.search = None


app = FastAPI(title=settings.app_name, debug=settings.debug, lifespan=lifespan)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(Exception)
def unhandled_exception_handler(request: Request, exc: Exception):
    """Return consistent JSON error for unhandled exceptions (500). Skip validation/HTTP errors."""
    from fastapi.exceptions import RequestValidationError
    if isinstance(exc, (HTTPException, RequestValidationError)):
        raise exc
    logger.exception("telemetry unhandled_exception path=%s", request.url.path)
    return JSONResponse(
        status_code=500,
        content={"detail": "An unexpected error occurred. Please try again later."},
    )


# Order: last added = innermost. So RequestLogging runs first (outermost), then rate limiting, then CORS.
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.cors_origins.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(SlowAPIMiddleware)
app.add_middleware(RequestLoggingMiddleware)


@app.get("/favicon.ico", include_in_schema=False)
@limiter.exempt
def favicon(request: Request):
    """Return 204 so browser favicon requests don't log 404."""
    return Response(status_code=204)


@app.get("/health")
@limiter.exempt
def health(request: Request):
    return {"status": "ok"}


@app.get("/metrics")
@limiter.exempt
def metrics(request: Request):
    """Request and search counters for monitoring. Production: use Prometheus exporter if needed."""
    return get_metrics()


# --- Nearby businesses ---


@app.get("/api/nearby")
def nearby_status(request: Request):
    return {"ok": True, "message": "Nearby API is running"}


@app.post("/api/nearby", response_model=NearbyResponse)
async def post_nearby(request: Request, body: NearbyRequest):
    """
    Businesses within radiusKm of (lat, lng), nearest first.
    Optional filters: hasDelivery, isOpen (exact match), category (case-insensitive tag match).
    """
    search: ProximitySearch | None = getattr(request.app.state, "search", None)
    if search is None:
        raise HTTPException(status_code=503, detail="Search service is not ready.")
    try:
        result = await search.search(body.to_query())
    except QueryValidationError as e:
        record_search("invalid")
        logger.info("telemetry nearby_invalid field=%s", e.field)
        raise HTTPException(status_code=400, detail=e.message) from e
    except StorageError as e:
        record_search("storage_error")
        logger.error("telemetry nearby_storage_error error=%s", str(e))
        raise HTTPException(
            status_code=500,
            detail="Internal error while searching nearby businesses.",
        ) from e
    record_search("ok", result.elapsed_ms)
    return NearbyResponse(businesses=result.businesses, meta=SearchMeta(**result.meta()))
