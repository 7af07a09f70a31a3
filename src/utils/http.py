"""Helpers for API Gateway HTTP API (payload v2) events and responses."""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass, field
from email import policy
from email.parser import BytesParser
from typing import Any, Callable, Dict, Optional

from pydantic import ValidationError

from utils.error_handling import (
    AppError,
    InternalError,
    InvalidRequest,
    PayloadTooLarge,
    to_response,
)
from utils.logging_config import get_logger

logger = get_logger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET,POST,PUT,DELETE,OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type,Authorization",
}


def json_response(status: int, body: Any) -> Dict:
    """Format a JSON API Gateway HTTP API response."""
    return {
        "statusCode": status,
        "headers": {"Content-Type": "application/json", **CORS_HEADERS},
        "body": json.dumps(body, default=str),
    }


def html_response(status: int, html: str) -> Dict:
    return {
        "statusCode": status,
        "headers": {"Content-Type": "text/html; charset=utf-8", **CORS_HEADERS},
        "body": html,
    }


def get_header(event: Dict, name: str) -> Optional[str]:
    """Case-insensitive header lookup."""
    wanted = name.lower()
    for key, value in (event.get("headers") or {}).items():
        if key.lower() == wanted:
            return value
    return None


def raw_body(event: Dict) -> bytes:
    """Return the request body as bytes, decoding base64 when API Gateway did."""
    body = event.get("body") or ""
    if event.get("isBase64Encoded"):
        try:
            return base64.b64decode(body)
        except binascii.Error as exc:
            raise InvalidRequest("Request body is not valid base64") from exc
    return body.encode("utf-8") if isinstance(body, str) else body


def parse_json_body(event: Dict) -> Dict[str, Any]:
    """Decode a JSON object body; anything else is an InvalidRequest."""
    data = raw_body(event)
    if not data.strip():
        return {}
    try:
        payload = json.loads(data)
    except (ValueError, UnicodeDecodeError) as exc:
        raise InvalidRequest("Request body must be valid JSON") from exc
    if not isinstance(payload, dict):
        raise InvalidRequest("Request body must be a JSON object")
    return payload


@dataclass
class UploadedFile:
    """One file part of a multipart/form-data request."""

    field_name: str
    filename: str
    content_type: str
    content: bytes


@dataclass
class MultipartForm:
    fields: Dict[str, str] = field(default_factory=dict)
    files: Dict[str, UploadedFile] = field(default_factory=dict)


def parse_multipart(event: Dict, max_file_bytes: Optional[int] = None) -> MultipartForm:
    """
    Parse a multipart/form-data body with the stdlib MIME parser.

    Raises InvalidRequest for other content types and PayloadTooLarge when a
    file part exceeds ``max_file_bytes``.
    """
    content_type = get_header(event, "content-type") or ""
    if not content_type.lower().startswith("multipart/form-data"):
        raise InvalidRequest("Expected multipart/form-data")

    envelope = f"Content-Type: {content_type}\r\nMIME-Version: 1.0\r\n\r\n".encode()
    message = BytesParser(policy=policy.default).parsebytes(envelope + raw_body(event))
    if not message.is_multipart():
        raise InvalidRequest("Malformed multipart body")

    form = MultipartForm()
    for part in message.iter_parts():
        name = part.get_param("name", header="content-disposition")
        if not name:
            continue
        payload = part.get_payload(decode=True) or b""
        filename = part.get_filename()
        if filename is None:
            charset = part.get_content_charset() or "utf-8"
            form.fields[name] = payload.decode(charset, errors="replace")
            continue
        if max_file_bytes is not None and len(payload) > max_file_bytes:
            raise PayloadTooLarge(f"File exceeds the {max_file_bytes // (1024 * 1024)}MB limit")
        form.files[name] = UploadedFile(
            field_name=name,
            filename=filename,
            content_type=part.get_content_type(),
            content=payload,
        )
    return form


def error_response(error: AppError) -> Dict:
    """AppError -> JSON response carrying the CORS headers."""
    return to_response(error, headers={"Content-Type": "application/json", **CORS_HEADERS})


def run_with_container(
    handle: Callable[[Dict, Any], Dict], event: Dict, load: Callable[[], Any]
) -> Dict:
    """Build the service container inside the guarded path, then call ``handle``."""
    try:
        container = load()
    except Exception:
        logger.exception("Service container unavailable")
        return error_response(InternalError())
    return handle(event, container)


def describe_validation_error(exc: ValidationError) -> str:
    """Turn a pydantic error into the short message returned to the browser."""
    missing = sorted(
        {str(err["loc"][0]) for err in exc.errors() if err["type"] == "missing" and err["loc"]}
    )
    if missing:
        return f"Missing required data: {', '.join(missing)}"
    fields = sorted({str(err["loc"][0]) for err in exc.errors() if err["loc"]})
    return f"Invalid data: {', '.join(fields)}" if fields else "Invalid data"
