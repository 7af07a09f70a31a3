"""
Single entrypoint Lambda that routes HTTP API requests to thin handler modules.

One function keeps the database pool and clients warm across routes. After
each request the router waits briefly for queued operator notifications,
since Lambda freezes background threads once the handler returns.
"""

from typing import Callable, Dict, Tuple

from handlers import ai_test, health_check, payments, raffle, tickets, uploads
from utils.http import CORS_HEADERS, json_response
from utils.logging_config import get_logger

logger = get_logger(__name__)

NOTIFICATION_FLUSH_SECONDS = 8.0


def _route_key(event: Dict) -> Tuple[str, str]:
    http = event.get("requestContext", {}).get("http", {})
    method = http.get("method", "").upper()
    path = http.get("path") or event.get("rawPath") or "/"
    if len(path) > 1:
        path = path.rstrip("/")
    return method, path


def _flush_notifications() -> None:
    from services.container import current_container

    container = current_container()
    if container is not None:
        container.dispatcher.flush(timeout=NOTIFICATION_FLUSH_SECONDS)


def lambda_handler(event, context):
    """
    Entry point invoked by API Gateway HTTP API.

    Route lookups resolve the handler attribute at call time so each module
    stays independently replaceable.
    """
    method, path = _route_key(event)

    if method == "OPTIONS":
        return {"statusCode": 204, "headers": dict(CORS_HEADERS), "body": ""}

    route_table: Dict[Tuple[str, str], Callable] = {
        ("GET", "/"): health_check.index_handler,
        ("GET", "/health"): health_check.lambda_handler,
        ("GET", "/raffle"): raffle.lambda_handler,
        ("GET", "/tickets/count"): tickets.count_handler,
        ("POST", "/tickets/purchase"): tickets.purchase_handler,
        ("POST", "/upload"): uploads.lambda_handler,
        ("POST", "/validate-payment"): payments.lambda_handler,
        ("POST", "/test-ai"): ai_test.lambda_handler,
    }

    handler = route_table.get((method, path))
    if handler is None:
        return json_response(404, {"message": "Route not found", "route": f"{method} {path}"})

    try:
        return handler(event, context)
    finally:
        _flush_notifications()
