"""Lightweight health and info handlers."""

import json
import os
from datetime import datetime, timezone

from utils.http import CORS_HEADERS, html_response


def index_handler(event, context):
    """GET / - human readable banner used by uptime checks."""
    name = os.environ.get("SERVICE_NAME", "raffle-tickets")
    return html_response(
        200,
        f"<h1>{name} is running</h1><p>Ticket sales API is up.</p>",
    )


def lambda_handler(event, context):
    """Return a simple 200 response to verify the stack is alive."""
    return {
        "statusCode": 200,
        "headers": {"Content-Type": "application/json", **CORS_HEADERS},
        "body": json.dumps(
            {
                "status": "ok",
                "environment": os.environ.get("ENVIRONMENT", "dev"),
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
        ),
    }
