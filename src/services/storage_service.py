"""
Screenshot storage.

With STORAGE_BUCKET set, uploads go to S3 and callers get a presigned link.
Without it the service runs inline: the file comes back base64-encoded and the
client sends it again with /validate-payment.
"""

from __future__ import annotations

import base64
import binascii
import re
import time
import uuid
from dataclasses import dataclass
from typing import Dict, Optional

import requests
from botocore.exceptions import BotoCoreError, ClientError

from repositories.s3_repo import S3Repository
from utils.error_handling import InvalidRequest, PayloadTooLarge
from utils.logging_config import get_logger

logger = get_logger(__name__)

_SAFE_NAME = re.compile(r"[^A-Za-z0-9._-]+")
_DATA_URI = re.compile(r"^data:(?P<mime>[\w/+.-]+);base64,(?P<data>.*)$", re.DOTALL)

FORMAT_MIME_TYPES = {
    "png": "image/png",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
    "webp": "image/webp",
}


class ImageLoadError(Exception):
    """The payment screenshot could not be read."""


def detect_image_format(data: bytes) -> Optional[str]:
    """Identify png/jpeg/gif/webp from magic bytes."""
    if data.startswith(b"\x89PNG\r\n\x1a\n"):
        return "png"
    if data.startswith(b"\xff\xd8\xff"):
        return "jpeg"
    if data[:6] in (b"GIF87a", b"GIF89a"):
        return "gif"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "webp"
    return None


@dataclass
class LoadedImage:
    content: bytes
    format: str

    @property
    def mime_type(self) -> str:
        return FORMAT_MIME_TYPES[self.format]


class StorageService:
    """Upload screenshots and load them back for validation."""

    def __init__(
        self,
        s3: Optional[S3Repository] = None,
        max_bytes: int = 5 * 1024 * 1024,
        presigned_url_ttl_seconds: int = 7 * 24 * 3600,
        http_timeout_seconds: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        self.s3 = s3
        self.max_bytes = max_bytes
        self.presigned_url_ttl_seconds = presigned_url_ttl_seconds
        self.http_timeout_seconds = http_timeout_seconds
        self.session = session or requests.Session()

    @property
    def inline_mode(self) -> bool:
        return self.s3 is None

    def upload(self, filename: str, content: bytes, content_type: str) -> Dict:
        """Store an uploaded screenshot and describe where it lives."""
        if not content:
            raise InvalidRequest("No file was sent")
        if len(content) > self.max_bytes:
            raise PayloadTooLarge()

        mime = content_type or "application/octet-stream"
        if self.inline_mode:
            encoded = base64.b64encode(content).decode("ascii")
            logger.info("Upload kept inline", extra={"size": len(content)})
            return {
                "success": True,
                "url": f"data:{mime};base64,{encoded}",
                "inlineData": {"mimeType": mime, "data": encoded},
            }

        key = self._object_key(filename)
        self.s3.upload_bytes(key, content, mime)
        logger.info("Upload stored", extra={"key": key, "size": len(content)})
        return {"url": self.s3.presigned_url(key, self.presigned_url_ttl_seconds)}

    def load_image(
        self, screenshot_url: Optional[str] = None, inline_image: Optional[str] = None
    ) -> LoadedImage:
        """Resolve a screenshot reference (inline data, S3 or HTTP URL) into bytes."""
        if inline_image:
            content = self._decode_inline(inline_image)
        elif screenshot_url and screenshot_url.startswith("data:"):
            content = self._decode_inline(screenshot_url)
        elif screenshot_url:
            content = self._fetch(screenshot_url)
        else:
            raise ImageLoadError("No payment screenshot was provided")

        if len(content) > self.max_bytes:
            raise ImageLoadError("Payment screenshot is too large")
        image_format = detect_image_format(content)
        if image_format is None:
            raise ImageLoadError("Payment screenshot is not a supported image")
        return LoadedImage(content=content, format=image_format)

    def _object_key(self, filename: str) -> str:
        safe = _SAFE_NAME.sub("-", filename or "screenshot").strip("-") or "screenshot"
        return f"screenshots/{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}-{safe[-80:]}"

    def _decode_inline(self, value: str) -> bytes:
        match = _DATA_URI.match(value.strip())
        data = match.group("data") if match else value.strip()
        try:
            return base64.b64decode(data, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ImageLoadError("Inline image is not valid base64") from exc

    def _fetch(self, url: str) -> bytes:
        if url.startswith("s3://"):
            if self.s3 is None:
                raise ImageLoadError("S3 screenshots require STORAGE_BUCKET")
            key = self.s3.owns_url(url)
            if not key:
                raise ImageLoadError("Unsupported screenshot URL")
            return self._read_s3(key)

        if self.s3 is not None:
            key = self.s3.owns_url(url)
            if key:
                return self._read_s3(key)

        # Public links only over TLS; no redirects into other hosts.
        if not url.startswith("https://"):
            raise ImageLoadError("Unsupported screenshot URL")
        try:
            with self.session.get(
                url, timeout=self.http_timeout_seconds, stream=True, allow_redirects=False
            ) as response:
                response.raise_for_status()
                content = bytearray()
                for chunk in response.iter_content(chunk_size=64 * 1024):
                    content.extend(chunk)
                    if len(content) > self.max_bytes:
                        raise ImageLoadError("Payment screenshot is too large")
                return bytes(content)
        except requests.RequestException as exc:
            logger.warning(
                "Screenshot download failed",
                extra={"error_type": type(exc).__name__, "error": str(exc)},
            )
            raise ImageLoadError("Could not download screenshot") from exc

    def _read_s3(self, key: str) -> bytes:
        try:
            return self.s3.get_bytes(key)
        except (BotoCoreError, ClientError) as exc:
            logger.warning(
                "Screenshot read from S3 failed",
                extra={"key": key, "error_type": type(exc).__name__, "error": str(exc)},
            )
            raise ImageLoadError("Could not read screenshot from S3") from exc
