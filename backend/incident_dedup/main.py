import hmac
import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from incident_dedup.api.routes import router
from incident_dedup.config import settings
from incident_dedup.modules.dedup_orchestrator import FetchError
from incident_dedup.modules.record_store import ConfigurationError
from incident_dedup.modules.scoring_config import get_scoring_config

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load and validate the scoring config once at startup."""
    config = get_scoring_config()
    logger.info(
        "Scoring weights: temporal=%.2f spatial=%.2f vessel=%.2f textual=%.2f",
        config.weights.temporal, config.weights.spatial, config.weights.vessel, config.weights.textual,
    )
    yield


app = FastAPI(
    title="incident-dedup",
    description="Cross-source deduplication of maritime security incident reports.",
    version="0.1.0",
    lifespan=lifespan,
)


class APIKeyMiddleware(BaseHTTPMiddleware):
    """Simple API key check. If DEDUP_API_KEY is unset, all requests pass."""

    async def dispatch(self, request: Request, call_next):
        if settings.DEDUP_API_KEY is not None:
            # Allow health check and OpenAPI docs without auth
            if request.url.path not in ("/health", "/docs", "/openapi.json", "/redoc"):
                api_key = request.headers.get("X-API-Key")
                if not hmac.compare_digest(api_key or "", settings.DEDUP_API_KEY):
                    return JSONResponse(
                        status_code=401,
                        content={"success": False, "error": "Invalid or missing API key"},
                    )
        return await call_next(request)


app.add_middleware(APIKeyMiddleware)

app.include_router(router, prefix="/api/v1")


# ── Run-level error envelopes ─────────────────────────────────────────────────

@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    logger.error("Configuration error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"success": False, "error": str(exc)})


@app.exception_handler(FetchError)
async def fetch_error_handler(request: Request, exc: FetchError):
    logger.error("Fetch failed on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"success": False, "error": str(exc)})


@app.exception_handler(Exception)
async def general_error_handler(request: Request, exc: Exception):
    logger.error("Unhandled exception on %s %s:\n%s", request.method, request.url.path, traceback.format_exc())
    return JSONResponse(status_code=500, content={"success": False, "error": "An unexpected error occurred."})


@app.get("/health")
def health() -> dict:
    return {"status": "ok", "version": "0.1.0"}
