"""Card models for the WalletCards backend."""
from __future__ import annotations

import logging
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import ConfigDict, Field, SecretStr, ValidationError, field_validator, model_validator

from ..formatting import format_timestamp, format_usd, strip_address_prefix
from .base import WalletCardsModel

logger = logging.getLogger(__name__)

DEPOSIT_UNIT_SCALE = Decimal(10) ** 6

# (display label, attribute) in display order; stored values carry "<label>-"
DEPOSIT_ADDRESS_FIELDS: tuple[tuple[str, str], ...] = (
    ("USDC-POLYGON", "deposit_address"),
    ("BTC", "btc_deposit_address"),
    ("ETH", "eth_deposit_address"),
    ("USDT-BSC|BEP20", "usdt_deposit_address"),
    ("SOL", "sol_deposit_address"),
    ("BNB-BSC", "bnb_deposit_address"),
    ("XRP-BSC", "xrp_deposit_address"),
    ("PAXG", "paxg_deposit_address"),
)


class CardState(str, Enum):
    """Where a card sits in its issuance lifecycle."""
    PENDING = "pending"
    ISSUED = "issued"


class CardStatus(str, Enum):
    """Block state of an issued card."""
    ACTIVE = "active"
    BLOCKED = "blocked"

    @classmethod
    def from_wire(cls, value: Any) -> "CardStatus":
        if isinstance(value, CardStatus):
            return value
        if isinstance(value, str) and value.strip().lower() == cls.ACTIVE.value:
            return cls.ACTIVE
        return cls.BLOCKED


class CardSummary(WalletCardsModel):
    """One entry of the user's card collection.

    Either a payment-pending placeholder (no card id, unpaid, with the address
    to pay to) or an issued card (card id, no deposit address).
    """

    model_config = ConfigDict(frozen=True)

    card_id: Optional[str] = Field(default=None, alias="cardid")
    name_on_card: str = Field(default="", alias="nameoncard")
    user_email: str = Field(default="", alias="useremail")
    last_four: str = Field(default="", alias="lastfour")
    brand: str = ""
    card_type: str = Field(default="virtual", alias="type")
    paid_flag: int = Field(default=1, alias="paidcard")
    deposit_address: Optional[str] = Field(default=None, alias="depositaddress")

    @model_validator(mode="before")
    @classmethod
    def drop_address_from_issued(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        key = "cardid" if "cardid" in data else "card_id"
        card_id = data.get(key)
        if isinstance(card_id, str) and not card_id.strip():
            data = {**data, key: None}
            card_id = None
        if card_id:
            data = {
                k: v for k, v in data.items()
                if k not in ("depositaddress", "deposit_address")
            }
        return data

    @model_validator(mode="after")
    def check_lifecycle(self) -> "CardSummary":
        if self.card_id:
            return self
        if self.paid_flag == 0 and self.deposit_address:
            return self
        raise ValueError(
            "card without an id must be an unpaid placeholder with a deposit address"
        )

    @property
    def state(self) -> CardState:
        return CardState.ISSUED if self.card_id else CardState.PENDING

    @property
    def is_pending(self) -> bool:
        return self.state is CardState.PENDING

    @property
    def is_issued(self) -> bool:
        return self.state is CardState.ISSUED

    @property
    def masked_number(self) -> str:
        if self.is_pending:
            return "**** **** **** ****"
        return f"**** **** **** {self.last_four}"


class CardListResponse(WalletCardsModel):
    """Response of the list-cards endpoint."""

    code: int = 0
    status: str = ""
    message: str = ""
    data: list[CardSummary]
    subuser_fee: Optional[Decimal] = Field(default=None, alias="subuserfee")

    @field_validator("data", mode="before")
    @classmethod
    def skip_invalid_cards(cls, v: Any) -> Any:
        if not isinstance(v, list):
            return v
        cards = []
        for item in v:
            try:
                cards.append(CardSummary.model_validate(item))
            except ValidationError as exc:
                logger.warning("Skipping card entry that is neither pending nor issued: %s", exc)
        return cards


class Merchant(WalletCardsModel):
    name: str = ""
    city: str = ""
    country: str = ""


class TransactionRecord(WalletCardsModel):
    """A card transaction, in the order the backend returned it."""

    model_config = ConfigDict(frozen=True)

    id: str
    amount: Decimal = Decimal("0")
    currency: str = ""
    status: str = ""
    payment_date_time: str = Field(default="", alias="paymentDateTime")
    merchant: Merchant = Field(default_factory=Merchant)
    type: str = ""

    @field_validator("id", mode="before")
    @classmethod
    def id_as_text(cls, v: Any) -> Any:
        return str(v) if isinstance(v, int) else v

    @property
    def is_debit(self) -> bool:
        return self.type.lower() == "payment"

    @property
    def display_amount(self) -> str:
        return format_usd(abs(self.amount), "-" if self.is_debit else "+")

    @property
    def display_date(self) -> str:
        return format_timestamp(self.payment_date_time)


class DepositRecord(WalletCardsModel):
    """An on-chain funding event. Amounts arrive in base units (1e-6)."""

    model_config = ConfigDict(frozen=True)

    transaction_hash: str = Field(default="", alias="transactionHash")
    amount: Decimal = Decimal("0")
    created_at: str = Field(default="", alias="createdAt")

    @property
    def units(self) -> Decimal:
        return self.amount / DEPOSIT_UNIT_SCALE

    @property
    def display_amount(self) -> str:
        return format_usd(abs(self.units), "+")

    @property
    def display_date(self) -> str:
        return format_timestamp(self.created_at)


class CardDetail(WalletCardsModel):
    """Full state of one issued card."""

    model_config = ConfigDict(frozen=True)

    card_number: SecretStr = SecretStr("")
    expiry_month: str = ""
    expiry_year: str = ""
    cvv: SecretStr = SecretStr("")
    name_on_card: str = Field(default="", alias="nameoncard")
    address1: Optional[str] = None
    postal_code: Optional[str] = Field(default=None, alias="postalcode")
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None

    balance: Decimal = Decimal("0")
    status: CardStatus = CardStatus.BLOCKED
    transactions: list[TransactionRecord] = Field(default_factory=list)
    deposits: list[DepositRecord] = Field(default_factory=list)

    deposit_address: Optional[str] = Field(default=None, alias="depositaddress")
    btc_deposit_address: Optional[str] = Field(default=None, alias="btcdepositaddress")
    eth_deposit_address: Optional[str] = Field(default=None, alias="ethdepositaddress")
    usdt_deposit_address: Optional[str] = Field(default=None, alias="usdtdepositaddress")
    sol_deposit_address: Optional[str] = Field(default=None, alias="soldepositaddress")
    bnb_deposit_address: Optional[str] = Field(default=None, alias="bnbdepositaddress")
    xrp_deposit_address: Optional[str] = Field(default=None, alias="xrpdepositaddress")
    paxg_deposit_address: Optional[str] = Field(default=None, alias="paxgdepositaddress")

    @field_validator("card_number", "cvv", "expiry_month", "expiry_year", mode="before")
    @classmethod
    def numbers_as_text(cls, v: Any) -> Any:
        return str(v) if isinstance(v, int) else v

    @field_validator("status", mode="before")
    @classmethod
    def parse_status(cls, v: Any) -> CardStatus:
        return CardStatus.from_wire(v)

    @field_validator("transactions", mode="before")
    @classmethod
    def unwrap_transactions(cls, v: Any) -> Any:
        # {"response": {"items": [...]}}
        if isinstance(v, dict):
            response = v.get("response") or {}
            return response.get("items") or []
        return v

    @property
    def is_active(self) -> bool:
        return self.status is CardStatus.ACTIVE

    @property
    def last_four(self) -> str:
        return self.card_number.get_secret_value()[-4:]

    @property
    def masked_number(self) -> str:
        return f"**** **** **** {self.last_four}"

    @property
    def expiry(self) -> str:
        return f"{self.expiry_month}/{self.expiry_year}"

    @property
    def display_balance(self) -> str:
        return format_usd(self.balance)

    def deposit_addresses(self) -> dict[str, str]:
        """Deposit addresses by chain label, prefixes stripped, blanks omitted."""
        addresses: dict[str, str] = {}
        for label, attr in DEPOSIT_ADDRESS_FIELDS:
            address = strip_address_prefix(f"{label}-", getattr(self, attr))
            if address and address.strip():
                addresses[label] = address
        return addresses


class CardDetailResponse(WalletCardsModel):
    """Response of the card-detail endpoint."""

    code: int = 0
    status: str = ""
    message: str = ""
    data: CardDetail
