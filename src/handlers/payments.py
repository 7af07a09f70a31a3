"""
Handler for POST /validate-payment.

Business rejections (duplicate reference, failed validation, sold out) are
answered with HTTP 200 and ``success: false`` because the frontend shows the
message to the buyer; only malformed input and internal failures change the
status code.
"""

from __future__ import annotations

import uuid
from typing import Dict

from pydantic import ValidationError

from models.payment import PaymentProof
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


def lambda_handler(event, context) -> Dict:
    return run_with_container(handle, event, _get_container)


def handle(event, container) -> Dict:
    correlation_id = str(uuid.uuid4())
    try:
        proof = PaymentProof.model_validate(parse_json_body(event))
    except ValidationError as exc:
        return error_response(InvalidRequest(describe_validation_error(exc)))
    except AppError as exc:
        return error_response(exc)

    try:
        result = container.tickets.submit_payment(proof)
    except AppError as exc:
        logger.info(
            "Payment not accepted",
            extra={
                "correlation_id": correlation_id,
                "reason": type(exc).__name__,
                "reference": proof.reference,
            },
        )
        return error_response(exc)
    except Exception:
        logger.exception("Payment validation failed", extra={"correlation_id": correlation_id})
        return error_response(InternalError())

    return json_response(200, result.model_dump(by_alias=True))
