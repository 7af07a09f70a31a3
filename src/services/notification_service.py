"""
Operator notifications over the Telegram Bot API.

Notifications are not part of the success contract: they are dispatched after
the response is decided, run on a worker thread and only ever log failures.
"""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor, wait
from threading import Lock
from typing import Iterable, List, Optional

import requests

from models.payment import PaymentProof, PurchaseNotice, Verdict
from utils.logging_config import get_logger
from utils.settings import AppSettings

logger = get_logger(__name__)

TELEGRAM_API_URL = "https://api.telegram.org"


class NullNotifier:
    """Used when no bot token or chat id is configured."""

    def notify(self, text: str) -> None:
        logger.debug("Notification skipped; Telegram not configured")


class TelegramNotifier:
    """Send Markdown messages to one operator chat."""

    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        timeout_seconds: float = 5.0,
        session: Optional[requests.Session] = None,
    ):
        self.chat_id = chat_id
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()
        self._url = f"{TELEGRAM_API_URL}/bot{bot_token}/sendMessage"

    def notify(self, text: str) -> None:
        """Best effort: never raises past this method."""
        try:
            response = self.session.post(
                self._url,
                json={"chat_id": self.chat_id, "text": text, "parse_mode": "Markdown"},
                timeout=self.timeout_seconds,
            )
            if not response.ok:
                logger.error(
                    "Telegram rejected notification",
                    extra={"status_code": response.status_code, "response": response.text[:200]},
                )
        except requests.RequestException as exc:
            # The exception text embeds the URL, which carries the bot token.
            logger.error("Telegram notification failed", extra={"error": type(exc).__name__})


class NotificationDispatcher:
    """Run notifier calls off the request path."""

    def __init__(self, notifier, max_workers: int = 2):
        self.notifier = notifier
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="notify")
        self._pending: List[Future] = []
        self._lock = Lock()

    def dispatch(self, text: str) -> Future:
        future = self._executor.submit(self.notifier.notify, text)
        future.add_done_callback(self._on_done)
        with self._lock:
            self._pending.append(future)
        return future

    def flush(self, timeout: Optional[float] = None) -> None:
        """Wait for in-flight notifications; Lambda freezes threads after return."""
        with self._lock:
            pending, self._pending = self._pending, []
        if pending:
            _, not_done = wait(pending, timeout=timeout)
            if not_done:
                logger.warning("Notifications still pending after flush", extra={"count": len(not_done)})

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)

    @staticmethod
    def _on_done(future: Future) -> None:
        exc = future.exception()
        if exc is not None:
            logger.error("Notification task failed", extra={"error": repr(exc)})


def build_notifier(settings: AppSettings):
    if not settings.notifications_enabled:
        logger.info("Telegram not configured; operator notifications disabled")
        return NullNotifier()
    return TelegramNotifier(
        settings.telegram_bot_token,
        settings.telegram_chat_id,
        timeout_seconds=settings.notify_timeout_seconds,
    )


def _md(value) -> str:
    """Escape legacy Markdown control characters in user-provided text."""
    text = "N/A" if value in (None, "") else str(value)
    for char in ("_", "*", "`", "["):
        text = text.replace(char, f"\\{char}")
    return text


def format_submission_message(
    proof: PaymentProof, ticket_numbers: Iterable[int], verdict: Verdict
) -> str:
    numbers = ", ".join(str(number) for number in ticket_numbers)
    lines = [
        "🎫 *Nueva Participación*",
        "",
        f"👤 {_md(proof.name)}",
        f"🪪 {_md(proof.national_id)}",
        f"📱 {_md(proof.phone)}",
        f"📧 {_md(proof.email)}",
        "",
        f"💰 Bs. {proof.amount_paid:.2f}",
        f"🏦 {_md(proof.bank_from)}",
        f"🔢 Ref: ...{_md(proof.reference)}",
        "",
        f"🎰 Números: {numbers}",
        f"✅ Confianza IA: {verdict.confidence * 100:.0f}%",
    ]
    if verdict.provider == "stub":
        lines.append("⚠️ Validación automática (sin IA configurada)")
    return "\n".join(lines)


def format_purchase_message(notice: PurchaseNotice) -> str:
    return "\n".join(
        [
            "🎫 *Nueva Participación*",
            "",
            f"👤 *Nombre:* {_md(notice.name)}",
            f"📱 *Teléfono:* {_md(notice.phone)}",
            f"🪪 *Cédula:* {_md(notice.national_id)}",
            f"📧 *Email:* {_md(notice.email)}",
            f"🎫 *Boleto:* {_md(notice.ticket_num)}",
            f"💳 *Referencia:* {_md(notice.reference)}",
            f"💵 *Monto:* Bs. {notice.amount:.2f}",
        ]
    )
