"""New-card application workflow.

Collects the KYC record one field at a time, submits it, and classifies the
backend's answer into an explicit outcome.

Application States:
    COLLECTING → SUBMITTING → ISSUED
                           ↓→ PENDING_PAYMENT
                           ↓→ REJECTED → COLLECTING (retry)
                           ↓→ FAILED   → COLLECTING (retry)

PENDING_PAYMENT is closed outside this workflow: once the deposit lands the
issued card shows up on the next ledger refresh.

Usage:
    workflow = ApplicationWorkflow(client, "jane@example.com")
    while (field := workflow.current_field) is not None:
        try:
            workflow.answer(input(field.prompt + ": "))
        except ValidationError as exc:
            print(exc.message)
    outcome = await workflow.submit()
    if outcome.payment:
        print(outcome.payment.label, outcome.payment.deposit_address)
"""
from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Callable, Optional

from .client import AsyncWalletCardsClient
from .exceptions import InvalidTransitionError, ValidationError
from .logging_config import LogContext
from .models.application import ApplyCardRequest, ApplyCardResponse

logger = logging.getLogger(__name__)

# Added to the quoted sub-user fee before it is shown as the amount to pay.
# Kept as observed in production; pending confirmation of what it covers.
PAYMENT_SURCHARGE = Decimal("5")
PAYMENT_NETWORK = "USDC-POLYGON"

GENERIC_FAILURE_MESSAGE = "Application failed. Please try again."


class ApplicationState(str, Enum):
    """Application lifecycle states."""
    COLLECTING = "collecting"
    SUBMITTING = "submitting"
    ISSUED = "issued"
    PENDING_PAYMENT = "pending_payment"
    REJECTED = "rejected"
    FAILED = "failed"


VALID_TRANSITIONS: dict[ApplicationState, set[ApplicationState]] = {
    ApplicationState.COLLECTING: {ApplicationState.SUBMITTING},
    ApplicationState.SUBMITTING: {
        ApplicationState.ISSUED,
        ApplicationState.PENDING_PAYMENT,
        ApplicationState.REJECTED,
        ApplicationState.FAILED,
    },
    ApplicationState.ISSUED: set(),  # Terminal state
    ApplicationState.PENDING_PAYMENT: set(),  # Closed by a ledger refresh
    ApplicationState.REJECTED: {ApplicationState.COLLECTING},
    ApplicationState.FAILED: {ApplicationState.COLLECTING},
}


@dataclass(frozen=True)
class PaymentInstruction:
    """What the user must pay, and where, before a pending card is issued."""

    deposit_address: str
    quoted_fee: Decimal
    amount_due: Decimal
    network: str = PAYMENT_NETWORK

    @classmethod
    def quote(cls, deposit_address: str, fee: Decimal) -> "PaymentInstruction":
        fee = Decimal(fee)
        return cls(
            deposit_address=deposit_address,
            quoted_fee=fee,
            amount_due=fee + PAYMENT_SURCHARGE,
        )

    @property
    def label(self) -> str:
        return f"Pay {self.network}"


@dataclass(frozen=True)
class ApplicationOutcome:
    """Result of one submission."""

    state: ApplicationState
    message: str
    payment: Optional[PaymentInstruction] = None
    response: Optional[ApplyCardResponse] = None


# ---------------------------------------------------------------------------
# Field rules
# ---------------------------------------------------------------------------

_COUNTRY_CALLING_CODE = re.compile(r"^\+?(\d{1,4})$")
_DIGITS = re.compile(r"^\d+$")


def _required(label: str, value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError(f"{label} is required.")
    return value


def _optional(label: str, value: str) -> str:
    return value.strip()


def _date_of_birth(label: str, value: str) -> str:
    value = _required(label, value)
    try:
        parsed = datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise ValueError(f"{label} must be a date in YYYY-MM-DD format.") from None
    if parsed >= date.today():
        raise ValueError(f"{label} must be in the past.")
    return parsed.isoformat()


def _country(label: str, value: str) -> str:
    value = _required(label, value)
    if len(value) != 2 or not value.isalpha():
        raise ValueError(f"{label} must be a two-letter code such as GB.")
    return value.upper()


def _calling_code(label: str, value: str) -> str:
    match = _COUNTRY_CALLING_CODE.match(_required(label, value))
    if not match:
        raise ValueError(f"{label} must be 1 to 4 digits, e.g. +44.")
    return match.group(1)


def _phone(label: str, value: str) -> str:
    value = _required(label, value)
    if not _DIGITS.match(value):
        raise ValueError(f"{label} must contain digits only.")
    return value


@dataclass(frozen=True)
class FormField:
    """One prompt of the application form."""

    name: str
    label: str
    rule: Callable[[str, str], str] = _required
    optional: bool = False
    hint: str = ""

    @property
    def prompt(self) -> str:
        return f"{self.label} ({self.hint})" if self.hint else self.label

    def clean(self, value: str) -> str:
        """Return the normalized answer or raise ``ValidationError``."""
        try:
            return self.rule(self.label, value or "")
        except ValueError as exc:
            raise ValidationError(str(exc), field=self.name) from None


APPLICATION_FIELDS: tuple[FormField, ...] = (
    FormField("firstname", "First Name"),
    FormField("lastname", "Last Name"),
    FormField("dob", "Date of Birth", _date_of_birth, hint="YYYY-MM-DD"),
    FormField("address1", "Address"),
    FormField("postalcode", "Postal Code"),
    FormField("city", "City"),
    FormField("country", "Country", _country, hint="two-letter code, e.g. GB"),
    FormField("state", "State", _optional, optional=True, hint="optional"),
    FormField("countrycode", "Country Code", _calling_code),
    FormField("phone", "Phone", _phone),
)


def classify_response(response: Optional[ApplyCardResponse]) -> ApplicationOutcome:
    """Map a backend answer (or its absence) onto a terminal application state."""
    if response is None:
        return ApplicationOutcome(ApplicationState.FAILED, GENERIC_FAILURE_MESSAGE)

    if response.is_success:
        if response.deposit_address and response.subuser_fee is not None:
            return ApplicationOutcome(
                ApplicationState.PENDING_PAYMENT,
                response.message,
                payment=PaymentInstruction.quote(
                    response.deposit_address, response.subuser_fee
                ),
                response=response,
            )
        return ApplicationOutcome(ApplicationState.ISSUED, response.message, response=response)

    if response.is_failure:
        return ApplicationOutcome(ApplicationState.REJECTED, response.message, response=response)

    return ApplicationOutcome(
        ApplicationState.FAILED,
        response.message or GENERIC_FAILURE_MESSAGE,
        response=response,
    )


TransitionCallback = Callable[[ApplicationState, ApplicationState], None]


class ApplicationWorkflow:
    """
    Drives a single card application for one user.

    Answers are validated as they are given; ``submit`` sends the completed
    record once and never retries on its own.
    """

    def __init__(
        self,
        client: AsyncWalletCardsClient,
        user_email: str,
        on_transition: Optional[TransitionCallback] = None,
    ):
        self._client = client
        self._user_email = user_email
        self._state = ApplicationState.COLLECTING
        self._answers: dict[str, str] = {}
        self._cursor = 0
        self._observers: list[TransitionCallback] = []
        self.outcome: Optional[ApplicationOutcome] = None
        if on_transition:
            self._observers.append(on_transition)

    @property
    def state(self) -> ApplicationState:
        return self._state

    @property
    def user_email(self) -> str:
        return self._user_email

    @property
    def answers(self) -> dict[str, str]:
        return dict(self._answers)

    @property
    def current_field(self) -> Optional[FormField]:
        """The field awaiting an answer, or None once the form is complete."""
        if self._state is not ApplicationState.COLLECTING:
            return None
        if self._cursor >= len(APPLICATION_FIELDS):
            return None
        return APPLICATION_FIELDS[self._cursor]

    @property
    def is_complete(self) -> bool:
        return all(
            f.name in self._answers or f.optional for f in APPLICATION_FIELDS
        )

    def subscribe(self, callback: TransitionCallback) -> None:
        self._observers.append(callback)

    def _transition(self, new_state: ApplicationState) -> None:
        if new_state not in VALID_TRANSITIONS.get(self._state, set()):
            raise InvalidTransitionError(
                type(self).__name__, self._state.value, new_state.value
            )
        old_state, self._state = self._state, new_state
        logger.debug("Application %s -> %s", old_state.value, new_state.value)
        for callback in list(self._observers):
            callback(old_state, new_state)

    def _require_collecting(self) -> None:
        if self._state is not ApplicationState.COLLECTING:
            raise InvalidTransitionError(
                type(self).__name__,
                self._state.value,
                ApplicationState.COLLECTING.value,
            )

    def answer(self, value: str) -> Optional[FormField]:
        """
        Answer the current field.

        Returns:
            The next field to ask, or None when the form is complete

        Raises:
            ValidationError: The answer was rejected; the cursor does not move
        """
        self._require_collecting()
        field = self.current_field
        if field is None:
            raise ValidationError("All fields have been answered.")
        self._answers[field.name] = field.clean(value)
        self._cursor += 1
        return self.current_field

    def fill(self, **answers: str) -> None:
        """Answer any fields by name, in form order. Stops at the first error."""
        self._require_collecting()
        for field in APPLICATION_FIELDS:
            if field.name in answers:
                self._answers[field.name] = field.clean(answers[field.name])
        self._cursor = next(
            (
                i
                for i, f in enumerate(APPLICATION_FIELDS)
                if f.name not in self._answers
            ),
            len(APPLICATION_FIELDS),
        )

    def build_request(self) -> ApplyCardRequest:
        missing = [
            f.name
            for f in APPLICATION_FIELDS
            if f.name not in self._answers and not f.optional
        ]
        if missing:
            raise ValidationError(
                f"{missing[0]} has not been answered.",
                field=missing[0],
                details={"missing": missing},
            )
        return ApplyCardRequest(useremail=self._user_email, **self._answers)

    async def submit(self) -> ApplicationOutcome:
        """Submit the completed form and move to the matching terminal state."""
        self._require_collecting()
        request = self.build_request()
        self._transition(ApplicationState.SUBMITTING)

        with LogContext(user_email=self._user_email):
            try:
                response = await self._client.apply_for_card(request)
            except asyncio.CancelledError:
                self._transition(ApplicationState.FAILED)
                raise

            outcome = classify_response(response)
            logger.info("Card application finished: %s", outcome.state.value)

        self.outcome = outcome
        self._transition(outcome.state)
        return outcome

    def retry(self, clear: bool = False) -> None:
        """Return to COLLECTING after a rejection or failure.

        Answers are kept unless ``clear`` is set, so the same record can be
        corrected field by field or simply submitted again.
        """
        self._transition(ApplicationState.COLLECTING)
        self.outcome = None
        if clear:
            self._answers.clear()
            self._cursor = 0
