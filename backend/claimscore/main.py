import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from claimscore.config import settings
from claimscore.database import create_schema, engine
from claimscore.middleware.logging_config import configure_logging

configure_logging(settings.log_level, settings.log_format)

from claimscore.api.admin import router as admin_router  # noqa: E402
from claimscore.api.claims import router as claims_router  # noqa: E402
from claimscore.api.dashboard import router as dashboard_router  # noqa: E402
from claimscore.api.deps import get_db  # noqa: E402
from claimscore.middleware.metrics import PrometheusMiddleware  # noqa: E402
from claimscore.middleware.request_context import (  # noqa: E402
    RequestContextMiddleware, get_request_id,
)

logger = logging.getLogger("claimscore")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: create any missing tables
    await create_schema()
    logger.info("Database ready (ruleset=%s)", settings.scoring_ruleset)
    yield
    # Shutdown
    await engine.dispose()


app = FastAPI(
    title="Claim Fraud Scoring",
    description="Explainable fraud-likelihood scoring for insurance claim batches",
    version="0.1.0",
    lifespan=lifespan,
)

# ── CORS ─────────────────────────────────────────────────────────────────────
origins = [o.strip() for o in settings.allowed_origins.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "X-Request-ID"],
)

app.add_middleware(RequestContextMiddleware)
app.add_middleware(PrometheusMiddleware)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Log the failure with its request id; expose the cause only in development."""
    logger.error(
        "Unhandled %s on %s %s", type(exc).__name__, request.method, request.url.path,
        exc_info=exc,
    )
    content = {"detail": "Internal Server Error", "request_id": get_request_id()}
    if settings.environment == "development":
        content["detail"] = f"{type(exc).__name__}: {exc}"
        content["traceback"] = traceback.format_exception(exc)[-3:]
    return JSONResponse(status_code=500, content=content)


# Register API routers
app.include_router(claims_router)
app.include_router(dashboard_router)
app.include_router(admin_router)


@app.get("/metrics", include_in_schema=False)
async def prometheus_metrics():
    """Expose Prometheus metrics in text format."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.get("/api/health")
async def health_check(db: AsyncSession = Depends(get_db)):
    try:
        await db.execute(text("SELECT 1"))
        database = {"status": "connected"}
    except Exception as exc:
        database = {"status": "disconnected", "error": str(exc)}

    return {
        "status": "healthy" if database["status"] == "connected" else "unhealthy",
        "environment": settings.environment,
        "scoring_ruleset": settings.scoring_ruleset,
        "components": {"database": database},
    }
