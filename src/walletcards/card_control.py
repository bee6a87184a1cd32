"""Block and unblock an issued card.

The front-end flips its switch as soon as the user asks (optimistic update)
and a ``StatusSwitch`` tracks the difference between what is displayed and
what the backend last confirmed:

Switch Phases:
    IDLE → PENDING → CONFIRMED
                   ↓→ ROLLED_BACK

CONFIRMED and ROLLED_BACK may start a new toggle (→ PENDING).
"""
from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import TYPE_CHECKING, Optional

from .client import AsyncWalletCardsClient
from .exceptions import InvalidTransitionError
from .logging_config import LogContext
from .models.application import ApplyCardResponse
from .models.card import CardDetail, CardStatus

if TYPE_CHECKING:
    from .ledger import CardLedger

logger = logging.getLogger(__name__)


class SwitchPhase(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    CONFIRMED = "confirmed"
    ROLLED_BACK = "rolled_back"


VALID_TRANSITIONS: dict[SwitchPhase, set[SwitchPhase]] = {
    SwitchPhase.IDLE: {SwitchPhase.PENDING},
    SwitchPhase.PENDING: {SwitchPhase.CONFIRMED, SwitchPhase.ROLLED_BACK},
    SwitchPhase.CONFIRMED: {SwitchPhase.PENDING},
    SwitchPhase.ROLLED_BACK: {SwitchPhase.PENDING},
}


def toggled(status: CardStatus) -> CardStatus:
    return CardStatus.BLOCKED if status is CardStatus.ACTIVE else CardStatus.ACTIVE


class StatusSwitch:
    """Displayed versus confirmed block state of one card."""

    def __init__(self, status: CardStatus):
        self.confirmed_status = status
        self.displayed_status = status
        self.phase = SwitchPhase.IDLE

    @property
    def is_pending(self) -> bool:
        return self.phase is SwitchPhase.PENDING

    def _move(self, phase: SwitchPhase) -> None:
        if phase not in VALID_TRANSITIONS.get(self.phase, set()):
            raise InvalidTransitionError(type(self).__name__, self.phase.value, phase.value)
        self.phase = phase

    def begin(self, target: CardStatus) -> None:
        self._move(SwitchPhase.PENDING)
        self.displayed_status = target

    def confirm(self, status: CardStatus) -> None:
        self._move(SwitchPhase.CONFIRMED)
        self.confirmed_status = status
        self.displayed_status = status

    def roll_back(self) -> None:
        self._move(SwitchPhase.ROLLED_BACK)
        self.displayed_status = self.confirmed_status


class CardControl:
    """
    Toggles the block state of issued cards.

    Args:
        client: Gateway used for block and unblock
        ledger: Optional ledger; after an acknowledged toggle the card detail
            is re-read and the switch settles on the status it reports
    """

    def __init__(self, client: AsyncWalletCardsClient, ledger: Optional["CardLedger"] = None):
        self._client = client
        self._ledger = ledger
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, card_id: str) -> asyncio.Lock:
        return self._locks.setdefault(card_id, asyncio.Lock())

    async def toggle(
        self,
        user_email: str,
        card_id: str,
        current_status: CardStatus,
        switch: Optional[StatusSwitch] = None,
    ) -> Optional[ApplyCardResponse]:
        """
        Block an active card, unblock anything else.

        Toggles for the same card run one at a time, in call order.

        Returns:
            The backend's answer (its message is meant for the user), or None
            if there was no usable answer; the switch is rolled back then
        """
        current_status = CardStatus.from_wire(current_status)
        target = toggled(current_status)

        async with self._lock_for(card_id):
            if switch is not None:
                switch.begin(target)

            with LogContext(user_email=user_email, card_id=card_id):
                try:
                    response, detail = await self._send(user_email, card_id, current_status)
                except asyncio.CancelledError:
                    if switch is not None and switch.is_pending:
                        switch.roll_back()
                    raise

            if response is None:
                if switch is not None:
                    switch.roll_back()
                return None

            if switch is not None:
                if detail is not None:
                    switch.confirm(detail.status)
                elif response.is_failure:
                    switch.roll_back()
                else:
                    switch.confirm(target)

        return response

    async def _send(
        self,
        user_email: str,
        card_id: str,
        current_status: CardStatus,
    ) -> tuple[Optional[ApplyCardResponse], Optional[CardDetail]]:
        target = toggled(current_status)
        if current_status is CardStatus.ACTIVE:
            response = await self._client.block_card(user_email, card_id)
        else:
            response = await self._client.unblock_card(user_email, card_id)

        if response is None:
            logger.warning("Toggle to %s failed", target.value)
            return None, None

        logger.info("Toggle to %s answered: %s", target.value, response.status)
        detail = None
        if self._ledger is not None:
            detail = await self._ledger.refresh_detail(user_email, card_id)
        return response, detail
