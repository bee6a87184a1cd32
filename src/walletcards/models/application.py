"""Card application and sub-user registration models."""
from __future__ import annotations

from decimal import Decimal
from typing import Optional

from pydantic import Field

from .base import WalletCardsModel


class ApplyCardRequest(WalletCardsModel):
    """KYC record submitted once per application attempt."""

    user_email: str = Field(alias="useremail")
    first_name: str = Field(alias="firstname")
    last_name: str = Field(alias="lastname")
    dob: str
    address1: str
    postal_code: str = Field(alias="postalcode")
    city: str
    country: str
    state: str = ""
    country_code: str = Field(alias="countrycode")
    phone: str


class SubUserRequest(WalletCardsModel):
    """Links an identity-provider account to the card platform."""

    user_email: str = Field(alias="useremail")
    pin: str
    firebase_uid: str = Field(alias="firebaseuid")


class ApplyCardResponse(WalletCardsModel):
    """Generic action response (apply, add sub-user, block, unblock)."""

    code: int = 0
    status: str = ""
    message: str = ""
    deposit_address: Optional[str] = Field(default=None, alias="depositaddress")
    subuser_fee: Optional[Decimal] = Field(default=None, alias="subuserfee")

    @property
    def is_success(self) -> bool:
        return self.status == "success"

    @property
    def is_failure(self) -> bool:
        return self.status == "failure"
