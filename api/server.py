"""
Freetime OS API Server - REST API for the free-time inventory.
"""
# ruff: noqa: S104
# S104: Development server binding (guarded by __name__ check)

import logging
from datetime import datetime

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from api.gaps_router import router as gaps_router
from api.response_models import HealthResponse
from freetime import config
from freetime import db as db_module
from freetime.gap_truth.errors import GapError
from freetime.observability import REGISTRY, CorrelationIdMiddleware, RequestMetricsMiddleware, api_errors

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Freetime OS API",
    description="Free-time gaps: generation, task scheduling, preference reconciliation",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestMetricsMiddleware)
app.add_middleware(CorrelationIdMiddleware)

app.include_router(gaps_router, prefix="/api")


# ==== Error mapping ====


@app.exception_handler(GapError)
async def gap_error_handler(request: Request, exc: GapError):
    """Every gap-core error carries its own HTTP status."""
    api_errors.inc()
    if exc.http_status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s rejected (%s): %s", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse(status_code=exc.http_status, content=exc.to_dict())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    api_errors.inc()
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"error": "internal_error", "message": "Internal server error", "details": {}},
    )


# ==== DB Startup & Migrations ====


@app.on_event("startup")
async def run_db_migrations_on_startup():
    """Converge the schema before the first request."""
    db_path = db_module.get_db_path()
    logger.info("=== Freetime OS Startup ===")
    logger.info("DB path: %s (exists: %s)", db_path, db_path.exists())
    db_module.ensure_migrations()


# ==== Health / Metrics ====


@app.get("/api/health", response_model=HealthResponse)
async def health():
    with db_module.get_connection() as conn:
        version = db_module.get_schema_version(conn)
    return {"status": "healthy", "schema_version": version, "timestamp": datetime.now().isoformat()}


@app.get("/api/metrics", response_class=PlainTextResponse)
async def metrics():
    """Prometheus text format."""
    return REGISTRY.to_prometheus()


def main():
    from freetime.observability import configure_logging

    configure_logging(config.LOG_LEVEL, json_format=config.LOG_FORMAT == "json")
    uvicorn.run(app, host="0.0.0.0", port=8420)


if __name__ == "__main__":
    main()
