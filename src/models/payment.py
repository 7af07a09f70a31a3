"""Payment proof, verdict and submission models."""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from utils.validators import clean_phone, clean_reference


class PaymentStatus(str, Enum):
    """Lifecycle of one payment row. Written once, never revised."""

    PENDING = "pending"
    VALIDATED = "validated"
    REJECTED = "rejected"


class TicketStatus(str, Enum):
    RESERVED = "reserved"
    PAID = "paid"


class PaymentProof(BaseModel):
    """
    Canonical /validate-payment payload.

    Older frontends sent camelCase or shortened names (``bankFrom``, ``bank``,
    ``amountPaid``, ``amount``, ``cedula``); they are resolved here once so the
    rest of the code only sees the snake_case fields.
    Digits sent as JSON numbers (reference, phones, cedula) are read as text.
    """

    model_config = ConfigDict(
        populate_by_name=True, str_strip_whitespace=True, coerce_numbers_to_str=True
    )

    name: str = Field(min_length=1)
    national_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("national_id", "nationalId", "cedula")
    )
    phone: str
    email: Optional[str] = None
    quantity: int = Field(ge=1)
    bank_from: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("bank_from", "bankFrom", "bank")
    )
    payment_phone: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("payment_phone", "paymentPhone")
    )
    amount_paid: float = Field(
        gt=0, validation_alias=AliasChoices("amount_paid", "amountPaid", "amount")
    )
    reference: str
    screenshot_url: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("screenshot_url", "screenshotUrl")
    )
    inline_image: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("inline_image", "inlineImage", "inlineData"),
    )

    @field_validator("reference")
    @classmethod
    def validate_reference(cls, value: str) -> str:
        return clean_reference(value)

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, value: str) -> str:
        return clean_phone(value)

    @field_validator("inline_image", mode="before")
    @classmethod
    def unwrap_inline_data(cls, value):
        """Accept the ``inlineData`` object returned by POST /upload as-is."""
        if isinstance(value, dict):
            data = value.get("data")
            mime = value.get("mimeType") or value.get("mime_type")
            if data and mime:
                return f"data:{mime};base64,{data}"
            return data
        return value

    def expected(self) -> "ExpectedPayment":
        return ExpectedPayment(
            amount=self.amount_paid,
            reference=self.reference,
            bank=self.bank_from,
            phone=self.payment_phone or self.phone,
        )


class ExpectedPayment(BaseModel):
    """Fields the validator must find in the screenshot."""

    amount: float
    reference: str
    bank: Optional[str] = None
    phone: Optional[str] = None


class Verdict(BaseModel):
    """Structured output of the payment proof validator."""

    valid: bool
    confidence: float = Field(ge=0, le=1)
    details: str = ""
    provider: Optional[str] = None

    @classmethod
    def failure(cls, details: str, provider: Optional[str] = None) -> "Verdict":
        return cls(valid=False, confidence=0.0, details=details, provider=provider)


class SubmissionResult(BaseModel):
    """Successful /validate-payment outcome."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    ticket_numbers: List[int] = Field(default_factory=list, serialization_alias="ticketNumbers")
    participant_id: Optional[int] = Field(default=None, exclude=True)
    payment_id: Optional[int] = Field(default=None, exclude=True)
    verdict: Optional[Verdict] = Field(default=None, exclude=True)


class PurchaseNotice(BaseModel):
    """Legacy /tickets/purchase payload: notify the operator about a purchase."""

    model_config = ConfigDict(
        populate_by_name=True, str_strip_whitespace=True, coerce_numbers_to_str=True
    )

    name: str = Field(min_length=1)
    phone: str = Field(min_length=1)
    national_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("national_id", "nationalId", "cedula")
    )
    email: Optional[str] = None
    ticket_num: str = Field(
        min_length=1, validation_alias=AliasChoices("ticket_num", "ticketNum")
    )
    reference: str = Field(min_length=1)
    amount: float = Field(gt=0)

    @field_validator("ticket_num", mode="before")
    @classmethod
    def coerce_ticket_num(cls, value):
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(int(value))
        if isinstance(value, list):
            return ", ".join(str(item) for item in value)
        return value
