"""Handler for GET /raffle."""

from utils.error_handling import InternalError, NotFoundError
from utils.http import error_response, json_response, run_with_container
from utils.logging_config import get_logger

logger = get_logger(__name__)


def _get_container():
    """Lazy-load the service container."""
    from services.container import get_container
    return get_container()


def lambda_handler(event, context):
    return run_with_container(handle, event, _get_container)


def handle(event, container):
    """Active raffle configuration with sold/remaining counts."""
    try:
        status = container.raffle.status(sold=container.tickets.count_sold_tickets())
    except Exception:
        logger.exception("Raffle lookup failed")
        return error_response(InternalError("Could not load raffle"))
    if status is None:
        return error_response(NotFoundError("No raffle configured"))
    return json_response(200, status.model_dump(mode="json"))
