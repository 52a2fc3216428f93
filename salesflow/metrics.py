from __future__ import annotations

import re

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.requests import Request


http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)

pipeline_stage_transitions_total = Counter(
    "pipeline_stage_transitions_total",
    "Stage transitions by entity, action and outcome",
    ["entity", "action", "outcome"],
)

pipeline_workflow_duration_seconds = Histogram(
    "pipeline_workflow_duration_seconds",
    "Pipeline workflow duration in seconds",
    ["workflow"],
)

invoice_number_collisions_total = Counter(
    "invoice_number_collisions_total",
    "Invoice number candidates rejected by the uniqueness check",
)

notification_failures_total = Counter(
    "notification_failures_total",
    "Notifications that could not be dispatched",
    ["kind"],
)


_UUID_RE = re.compile(
    r"\b[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[1-5][0-9a-fA-F]{3}-[89abAB][0-9a-fA-F]{3}-[0-9a-fA-F]{12}\b"
)
_INT_RE = re.compile(r"/\d+\b")
_PATH_PARAM_RE = re.compile(r"\{[^{}]+\}")


def _sanitize_path(path: str) -> str:
    without_uuids = _UUID_RE.sub("{id}", path)
    return _INT_RE.sub("/{id}", without_uuids)


def resolve_http_path_label(request: Request) -> str:
    route = request.scope.get("route")
    if route is not None:
        path_format = getattr(route, "path_format", None) or getattr(route, "path", None)
        if isinstance(path_format, str) and path_format:
            return _PATH_PARAM_RE.sub("{id}", path_format)
    return _sanitize_path(request.url.path)


def observe_http_request(method: str, path: str, status: int, duration: float) -> None:
    http_requests_total.labels(method=method, path=path, status=str(status)).inc()
    http_request_duration_seconds.labels(method=method, path=path).observe(duration)


def observe_stage_transition(entity: str, action: str, outcome: str) -> None:
    pipeline_stage_transitions_total.labels(entity=entity, action=action, outcome=outcome).inc()


def observe_workflow(workflow: str, duration: float) -> None:
    pipeline_workflow_duration_seconds.labels(workflow=workflow).observe(duration)


def observe_invoice_number_collision() -> None:
    invoice_number_collisions_total.inc()


def observe_notification_failure(kind: str) -> None:
    notification_failures_total.labels(kind=kind).inc()


def generate_metrics_payload() -> bytes:
    return generate_latest()


def metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
