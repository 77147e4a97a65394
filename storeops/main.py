import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from sentry_sdk.integrations.asgi import SentryAsgiMiddleware

from storeops.api.v1 import resilience as resilience_routes
from storeops.core.config import settings
from storeops.utils.logger import configure_logging, get_logger
from storeops.utils.resilience.circuit_breaker.registry import breaker_registry
from storeops.utils.resilience.monitoring.alerts import AlertManager

# Configure logging before anything else
configure_logging()
logger = get_logger(__name__)

app = FastAPI(
    title="Store Operations Service",
    description="Retail operations backend with resilient access to downstream services",
    version="1.0.0",
)

# Initialize Sentry if DSN is provided
if settings.SENTRY_DSN:
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.APP_ENV,
        traces_sample_rate=0.1,
    )
    app.add_middleware(SentryAsgiMiddleware)
    logger.info("sentry_initialized", environment=settings.APP_ENV)
else:
    logger.info("sentry_not_configured")

allowed_origins = settings.CORS_ALLOW_ORIGINS or ["http://localhost:3000"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(resilience_routes.router, prefix="/api/v1")

# Initialize Prometheus metrics
instrumentator = Instrumentator(
    should_group_status_codes=False,
    excluded_handlers=["/metrics"],
)
instrumentator.instrument(app).expose(app)

alert_manager = AlertManager()
breaker_registry.add_listener(alert_manager.on_circuit_event)


@app.on_event("startup")
async def startup_event():
    """Application startup event"""
    logger.info(
        "application_startup",
        app_name=settings.APP_NAME,
        environment=settings.APP_ENV,
        sentry_enabled=bool(settings.SENTRY_DSN),
        dlq_enabled=settings.DLQ_ENABLED,
    )


@app.get("/health")
async def health_check() -> dict:
    """Liveness probe; resilience detail lives under /api/v1/resilience/health"""
    return {"status": "ok"}
