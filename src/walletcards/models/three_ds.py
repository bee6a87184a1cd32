"""3-D Secure step-up challenge models."""
from __future__ import annotations

import json
from decimal import Decimal
from typing import Any, Optional

from pydantic import ConfigDict, Field, field_validator

from .base import WalletCardsModel

CODE_PENDING = "200"
CODE_NONE_PENDING = "422"


class ThreeDSChallenge(WalletCardsModel):
    """A step-up authentication request raised by the issuer for a card."""

    model_config = ConfigDict(frozen=True)

    id: int = 0
    event_id: str = Field(alias="eventId")
    card_id: str = Field(default="", alias="cardId")
    merchant_name: str = Field(default="", alias="merchantName")
    masked_pan: str = Field(default="", alias="maskedPan")
    merchant_amount: Decimal = Field(default=Decimal("0"), alias="merchantAmount")
    merchant_currency: str = Field(default="", alias="merchantCurrency")
    event_name: str = Field(default="", alias="eventName")
    status: str = ""
    payload: str = Field(default="", alias="json")
    created_at: str = ""
    updated_at: str = ""
    deleted_at: Optional[str] = None

    @field_validator("merchant_amount", mode="before")
    @classmethod
    def blank_amount(cls, v: Any) -> Any:
        return "0" if isinstance(v, str) and not v.strip() else v

    @field_validator("payload", mode="before")
    @classmethod
    def payload_as_text(cls, v: Any) -> Any:
        # opaque; some backends send the object instead of its JSON text
        if isinstance(v, (dict, list)):
            return json.dumps(v)
        return v


class ThreeDSResponse(WalletCardsModel):
    """Response of the check-3DS endpoint."""

    status: str
    code: str
    data: Optional[ThreeDSChallenge] = None

    @field_validator("code", mode="before")
    @classmethod
    def code_as_text(cls, v: Any) -> Any:
        return str(v) if isinstance(v, int) and not isinstance(v, bool) else v
