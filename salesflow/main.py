from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from sqlalchemy.exc import IntegrityError

from salesflow.api.errors import integrity_error_handler, pipeline_error_handler
from salesflow.api.routes import router as api_router
from salesflow.core.config import get_settings
from salesflow.core.context import RequestContextMiddleware
from salesflow.core.errors import PipelineError
from salesflow.events import InternalEvent, event_bus
from salesflow.logging import configure_logging
from salesflow.middleware.correlation_id import CorrelationIdMiddleware
from salesflow.middleware.request_logging import RequestLoggingMiddleware
from salesflow.otel import get_fastapi_server_request_hook, setup_otel


configure_logging()
logger = logging.getLogger("salesflow.lifecycle")
_subscriptions_registered = False

_pipeline_event_types = [
    "pipeline.opportunity.created",
    "pipeline.quotation.created",
    "pipeline.quotation.sent",
    "pipeline.quotation.accepted",
    "pipeline.quotation.rejected",
    "pipeline.invoice.generated",
    "pipeline.opportunity.purged",
]


def _on_system_started(event: InternalEvent) -> None:
    logger.info("system_event", extra={"action": event.name})


def _on_pipeline_event(event: InternalEvent) -> None:
    payload = event.payload.get("payload", {}) if isinstance(event.payload, dict) else {}
    entity_id = next((value for key, value in payload.items() if key.endswith("_id") and value), None)
    logger.info("domain_event", extra={"action": event.name, "entity_id": entity_id})


@asynccontextmanager
async def lifespan(app: FastAPI):
    global _subscriptions_registered
    if not _subscriptions_registered:
        event_bus.subscribe("system.started", _on_system_started)
        for event_name in _pipeline_event_types:
            event_bus.subscribe(event_name, _on_pipeline_event)
        _subscriptions_registered = True
    event_bus.publish("system.started", {"service": "api"})
    yield


settings = get_settings()

app = FastAPI(title=settings.app_name, version="0.1.0", lifespan=lifespan)
app.add_middleware(RequestContextMiddleware)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(CorrelationIdMiddleware)
app.add_exception_handler(PipelineError, pipeline_error_handler)  # type: ignore[arg-type]
app.add_exception_handler(IntegrityError, integrity_error_handler)  # type: ignore[arg-type]
app.include_router(api_router)

if settings.otel_enabled:
    setup_otel("salesflow-api", True)

if not getattr(app, "_is_instrumented_by_opentelemetry", False):
    FastAPIInstrumentor().instrument_app(app, server_request_hook=get_fastapi_server_request_hook())
