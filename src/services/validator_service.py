"""
Payment proof validation.

A multimodal Bedrock model reads the transfer screenshot and compares it with
the amount, reference, bank and phone the buyer typed in. When no model is
configured a stub approves every proof so sales keep flowing; that degraded
mode is logged on every call and flagged in the operator notification.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectTimeoutError,
    ReadTimeoutError,
)
from pydantic import ValidationError

from models.payment import ExpectedPayment, Verdict
from services.storage_service import LoadedImage
from utils.logging_config import get_logger
from utils.settings import AppSettings

logger = get_logger(__name__)

TIMEOUT_DETAILS = "validation timed out"
STUB_PROVIDER = "stub"


class StubPaymentValidator:
    """Approves every proof with a fixed medium confidence."""

    provider = STUB_PROVIDER
    requires_image = False

    def __init__(self, confidence: float = 0.7):
        self.confidence = confidence

    def validate(self, image: Optional[LoadedImage], expected: ExpectedPayment) -> Verdict:
        logger.warning(
            "Payment validator not configured; approving automatically",
            extra={"reference": expected.reference, "amount": expected.amount},
        )
        return Verdict(
            valid=True,
            confidence=self.confidence,
            details="Automatic approval: payment validator is not configured",
            provider=self.provider,
        )


@dataclass
class BedrockPaymentValidator:
    """Ask a Bedrock vision model whether the screenshot matches the payment."""

    requires_image = True

    model_id: str
    region: Optional[str] = None
    timeout_seconds: float = 20.0
    max_tokens: int = 400
    client: Any = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if self.client is None:
            self.client = boto3.client(
                "bedrock-runtime",
                region_name=self.region,
                config=Config(
                    connect_timeout=min(self.timeout_seconds, 5),
                    read_timeout=self.timeout_seconds,
                    retries={"max_attempts": 1, "mode": "standard"},
                ),
            )

    @property
    def provider(self) -> str:
        return f"bedrock:{self.model_id}"

    def validate(self, image: LoadedImage, expected: ExpectedPayment) -> Verdict:
        """Return a structured verdict; provider failures never raise."""
        start = time.perf_counter()
        try:
            response = self.client.converse(
                modelId=self.model_id,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {"image": {"format": image.format, "source": {"bytes": image.content}}},
                            {"text": self._build_prompt(expected)},
                        ],
                    }
                ],
                inferenceConfig={"maxTokens": self.max_tokens, "temperature": 0},
            )
            text = response["output"]["message"]["content"][0]["text"]
            verdict = Verdict.model_validate_json(text.strip())
            return verdict.model_copy(update={"provider": self.provider})
        except (ReadTimeoutError, ConnectTimeoutError):
            logger.warning("Payment validation timed out", extra={"reference": expected.reference})
            return Verdict.failure(TIMEOUT_DETAILS, provider=self.provider)
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code", "ClientError")
            logger.error("Payment validator call failed", extra={"error_code": code})
            return Verdict.failure(f"validator error: {code}", provider=self.provider)
        except BotoCoreError as exc:
            logger.error("Payment validator unavailable", extra={"error": type(exc).__name__})
            return Verdict.failure("validator unavailable", provider=self.provider)
        except (ValidationError, KeyError, IndexError, TypeError) as exc:
            logger.error("Payment validator returned malformed output", extra={"error": str(exc)})
            return Verdict.failure("validator returned malformed output", provider=self.provider)
        finally:
            logger.info(
                "Payment validation latency captured",
                extra={"duration_ms": int((time.perf_counter() - start) * 1000)},
            )

    def _build_prompt(self, expected: ExpectedPayment) -> str:
        return (
            "You verify bank transfer screenshots for a raffle. "
            "Compare the image with the expected data and answer with ONLY a JSON object, "
            'no markdown: {"valid": true|false, "confidence": 0-1, "details": "short reason"}. '
            "valid is true only if the amount matches and the transaction reference ends with "
            "the expected digits.\n"
            f"Expected amount: {expected.amount:.2f}\n"
            f"Expected reference ending: {expected.reference}\n"
            f"Expected origin bank: {expected.bank or 'unknown'}\n"
            f"Expected phone: {expected.phone or 'unknown'}"
        )


def build_validator(settings: AppSettings):
    """Pick the Bedrock validator when a model is configured, else the stub."""
    if not settings.validator_enabled:
        logger.warning("VALIDATOR_MODEL_ID not set; payment proofs are auto-approved")
        return StubPaymentValidator()
    return BedrockPaymentValidator(
        model_id=settings.validator_model_id,
        region=settings.bedrock_region or settings.aws_region,
        timeout_seconds=settings.validator_timeout_seconds,
    )
