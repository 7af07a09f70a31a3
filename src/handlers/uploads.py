"""Handler for POST /upload (payment screenshots, multipart ``file`` field)."""

from __future__ import annotations

from utils.error_handling import AppError, InternalError, InvalidRequest
from utils.http import error_response, json_response, parse_multipart, run_with_container
from utils.logging_config import get_logger

logger = get_logger(__name__)


def _get_container():
    """Lazy-load the service container."""
    from services.container import get_container
    return get_container()


def lambda_handler(event, context):
    return run_with_container(handle, event, _get_container)


def handle(event, container):
    try:
        form = parse_multipart(event, max_file_bytes=container.settings.upload_max_bytes)
        upload = form.files.get("file")
        if upload is None:
            raise InvalidRequest("No file was sent")
        body = container.storage.upload(upload.filename, upload.content, upload.content_type)
        return json_response(200, body)
    except AppError as exc:
        return error_response(exc)
    except Exception:
        logger.exception("Upload failed")
        return error_response(InternalError("Could not upload file"))
