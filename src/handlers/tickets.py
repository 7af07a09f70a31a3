"""
Handlers for GET /tickets/count and POST /tickets/purchase.

The purchase route predates screenshot validation: it only forwards the
buyer's details to the operator chat and stores nothing.
"""

from __future__ import annotations

import uuid

from pydantic import ValidationError

from models.payment import PurchaseNotice
from utils.error_handling import AppError, InternalError, InvalidRequest
from utils.http import (
    describe_validation_error,
    error_response,
    json_response,
    parse_json_body,
    run_with_container,
)
from utils.logging_config import get_logger

logger = get_logger(__name__)


def _get_container():
    """Lazy-load the service container."""
    from services.container import get_container
    return get_container()


def count_handler(event, context):
    return run_with_container(handle_count, event, _get_container)


def purchase_handler(event, context):
    return run_with_container(handle_purchase, event, _get_container)


def handle_count(event, container):
    """Number of tickets with paid status."""
    try:
        return json_response(200, {"count": container.tickets.count_sold_tickets()})
    except Exception:
        logger.exception("Ticket count failed")
        return error_response(InternalError("Could not fetch ticket count"))


def handle_purchase(event, container):
    correlation_id = str(uuid.uuid4())
    try:
        notice = PurchaseNotice.model_validate(parse_json_body(event))
        container.tickets.record_purchase_notice(notice)
        logger.info("Purchase processed", extra={"correlation_id": correlation_id})
        return json_response(
            200,
            {
                "success": True,
                "message": "Purchase processed",
                "ticketNum": notice.ticket_num,
            },
        )
    except ValidationError as exc:
        return error_response(InvalidRequest(describe_validation_error(exc)))
    except AppError as exc:
        return error_response(exc)
    except Exception:
        logger.exception("Purchase failed", extra={"correlation_id": correlation_id})
        return error_response(InternalError("Could not process purchase"))
