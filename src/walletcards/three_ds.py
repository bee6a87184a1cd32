"""3-D Secure step-up challenge handling.

``check_challenge`` asks the backend whether the issuer is waiting on the user
for a card. A pending challenge comes back as a ``ChallengeSession`` that the
user either approves (one backend call) or rejects (local only).

Session States:
    FETCHED → APPROVING → APPROVED
            ↓→ REJECTED

APPROVED means "dismissed after an approval attempt": the session ends there
whether or not the backend accepted the approval. There is no retry and no
re-check; the user can run a new check.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .client import AsyncWalletCardsClient
from .exceptions import GENERIC_ERROR_MESSAGE, InvalidTransitionError
from .logging_config import LogContext
from .models.three_ds import CODE_NONE_PENDING, CODE_PENDING, ThreeDSChallenge, ThreeDSResponse

logger = logging.getLogger(__name__)

NO_CHALLENGE_MESSAGE = "No 3DS Request"
ERROR_MESSAGE = GENERIC_ERROR_MESSAGE
APPROVED_MESSAGE = "Transaction approved"
APPROVAL_FAILED_MESSAGE = "Approval failed. Please try again."


class ChallengeKind(str, Enum):
    """Result of a challenge check."""
    NONE = "none"
    PENDING = "pending"
    ERROR = "error"


class SessionState(str, Enum):
    """Challenge session lifecycle states."""
    FETCHED = "fetched"
    APPROVING = "approving"
    APPROVED = "approved"
    REJECTED = "rejected"


VALID_TRANSITIONS: dict[SessionState, set[SessionState]] = {
    SessionState.FETCHED: {SessionState.APPROVING, SessionState.REJECTED},
    SessionState.APPROVING: {SessionState.APPROVED},
    SessionState.APPROVED: set(),  # Terminal state
    SessionState.REJECTED: set(),  # Terminal state
}


def classify_challenge(response: Optional[ThreeDSResponse]) -> ChallengeKind:
    """NONE iff code 422, PENDING iff code 200 with a challenge, else ERROR."""
    if response is None:
        return ChallengeKind.ERROR
    if response.code == CODE_NONE_PENDING:
        return ChallengeKind.NONE
    if response.code == CODE_PENDING and response.data is not None:
        return ChallengeKind.PENDING
    return ChallengeKind.ERROR


class ChallengeSession:
    """A fetched challenge awaiting the user's decision."""

    def __init__(
        self,
        handler: "ThreeDSChallengeHandler",
        user_email: str,
        card_id: str,
        challenge: ThreeDSChallenge,
    ):
        self._handler = handler
        self.user_email = user_email
        self.card_id = card_id
        self.challenge = challenge
        self.state = SessionState.FETCHED
        self.approved: Optional[bool] = None
        self.message: Optional[str] = None

    @property
    def is_dismissed(self) -> bool:
        return self.state in (SessionState.APPROVED, SessionState.REJECTED)

    def _transition(self, new_state: SessionState) -> None:
        if new_state not in VALID_TRANSITIONS.get(self.state, set()):
            raise InvalidTransitionError(
                type(self).__name__, self.state.value, new_state.value
            )
        logger.debug("3DS session %s -> %s", self.state.value, new_state.value)
        self.state = new_state

    async def approve(self) -> str:
        """
        Approve the challenge with the backend.

        Returns:
            The message to show the user. The session is dismissed afterwards
            in every case, including cancellation.
        """
        self._transition(SessionState.APPROVING)
        try:
            self.approved = await self._handler.send_approval(
                self.user_email, self.card_id, self.challenge.event_id
            )
        finally:
            self._transition(SessionState.APPROVED)

        self.message = APPROVED_MESSAGE if self.approved else APPROVAL_FAILED_MESSAGE
        return self.message

    def reject(self) -> None:
        """Dismiss the challenge. Nothing is sent to the backend."""
        self._transition(SessionState.REJECTED)
        logger.info("3DS challenge %s rejected locally", self.challenge.event_id)


@dataclass(frozen=True)
class ChallengeOutcome:
    kind: ChallengeKind
    message: str = ""
    session: Optional[ChallengeSession] = None


class ThreeDSChallengeHandler:
    """
    Fetches and answers step-up challenges.

    Approvals are serialized per card; different cards proceed independently.
    """

    def __init__(self, client: AsyncWalletCardsClient):
        self._client = client
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, card_id: str) -> asyncio.Lock:
        return self._locks.setdefault(card_id, asyncio.Lock())

    async def check_challenge(self, user_email: str, card_id: str) -> ChallengeOutcome:
        """Ask whether the issuer is waiting on a step-up for ``card_id``."""
        with LogContext(user_email=user_email, card_id=card_id):
            response = await self._client.check_3ds(user_email, card_id)
            kind = classify_challenge(response)
            logger.info("3DS check: %s", kind.value)

        if kind is ChallengeKind.NONE:
            return ChallengeOutcome(kind, NO_CHALLENGE_MESSAGE)
        if kind is ChallengeKind.ERROR:
            return ChallengeOutcome(kind, ERROR_MESSAGE)
        return ChallengeOutcome(
            kind,
            session=ChallengeSession(self, user_email, card_id, response.data),
        )

    async def send_approval(self, user_email: str, card_id: str, event_id: str) -> bool:
        """Send one approval; concurrent approvals for the same card queue up."""
        async with self._lock_for(card_id):
            with LogContext(user_email=user_email, card_id=card_id):
                approved = await self._client.approve_3ds(user_email, card_id, event_id)
                logger.info("3DS approval for event %s: %s", event_id, approved)
        return approved
