"""In-memory card ledger.

Holds the user's card collection and the detail of each card viewed, refreshed
from the gateway. Snapshots are immutable and replaced whole, so readers never
observe a half-applied refresh.

Refreshes are latest-wins per key (the list, or one card id): a response that
arrives after a newer refresh for the same key was started is discarded.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Optional

from .application import PaymentInstruction
from .client import AsyncWalletCardsClient
from .logging_config import LogContext
from .models.card import CardDetail, CardSummary

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CardCollection:
    """One successful list-cards read."""

    cards: tuple[CardSummary, ...] = ()
    subuser_fee: Optional[Decimal] = None
    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def pending(self) -> tuple[CardSummary, ...]:
        return tuple(c for c in self.cards if c.is_pending)

    @property
    def issued(self) -> tuple[CardSummary, ...]:
        return tuple(c for c in self.cards if c.is_issued)


SnapshotListener = Callable[[CardCollection], None]

_LIST_KEY = "__cards__"


class CardLedger:
    """
    Owns the card collection and per-card details for one client.

    Args:
        client: Gateway used for every read
    """

    def __init__(self, client: AsyncWalletCardsClient):
        self._client = client
        self._snapshot: Optional[CardCollection] = None
        self._details: dict[str, CardDetail] = {}
        self._generations: dict[str, int] = {}
        self._listeners: list[SnapshotListener] = []

    # ==================== Readers ====================

    @property
    def snapshot(self) -> Optional[CardCollection]:
        """The last successful collection, or None before the first one."""
        return self._snapshot

    @property
    def cards(self) -> tuple[CardSummary, ...]:
        return self._snapshot.cards if self._snapshot else ()

    def detail(self, card_id: str) -> Optional[CardDetail]:
        return self._details.get(card_id)

    def pending_cards(self) -> tuple[CardSummary, ...]:
        return self._snapshot.pending if self._snapshot else ()

    def issued_cards(self) -> tuple[CardSummary, ...]:
        return self._snapshot.issued if self._snapshot else ()

    def find(self, card_id: str) -> Optional[CardSummary]:
        return next((c for c in self.cards if c.card_id == card_id), None)

    def payment_instruction(self, card: CardSummary) -> Optional[PaymentInstruction]:
        """Build the "Pay Now" instruction for a payment-pending placeholder.

        Returns None for issued cards, or when the last list read carried no
        sub-user fee.
        """
        if not card.is_pending or not card.deposit_address:
            return None
        fee = self._snapshot.subuser_fee if self._snapshot else None
        if fee is None:
            return None
        return PaymentInstruction.quote(card.deposit_address, fee)

    def add_listener(self, listener: SnapshotListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: SnapshotListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # ==================== Refresh ====================

    def _next_generation(self, key: str) -> int:
        generation = self._generations.get(key, 0) + 1
        self._generations[key] = generation
        return generation

    def _is_stale(self, key: str, generation: int) -> bool:
        return self._generations.get(key) != generation

    async def refresh(self, user_email: str) -> Optional[list[CardSummary]]:
        """
        Re-read the card collection.

        Returns:
            The cards now held by the ledger, or None if the read failed (the
            previous snapshot is kept)
        """
        generation = self._next_generation(_LIST_KEY)
        with LogContext(user_email=user_email):
            response = await self._client.list_cards(user_email)
            if response is None:
                logger.warning("Card list refresh failed; keeping previous snapshot")
                return None
            if self._is_stale(_LIST_KEY, generation):
                logger.debug("Discarding superseded card list (generation %d)", generation)
                return list(self.cards)

            self._snapshot = CardCollection(
                cards=tuple(response.data),
                subuser_fee=response.subuser_fee,
            )
            logger.info(
                "Card list refreshed: %d issued, %d pending",
                len(self._snapshot.issued),
                len(self._snapshot.pending),
            )

        for listener in list(self._listeners):
            try:
                listener(self._snapshot)
            except Exception:
                logger.exception("Card list listener %r failed", listener)
        return list(self._snapshot.cards)

    async def refresh_detail(self, user_email: str, card_id: str) -> Optional[CardDetail]:
        """
        Re-read one card's detail.

        Returns:
            The detail now held for the card, or None if the read failed
        """
        generation = self._next_generation(card_id)
        with LogContext(user_email=user_email, card_id=card_id):
            response = await self._client.get_card_detail(user_email, card_id)
            if response is None:
                logger.warning("Card detail refresh failed; keeping previous snapshot")
                return None
            if self._is_stale(card_id, generation):
                logger.debug("Discarding superseded card detail (generation %d)", generation)
                return self._details.get(card_id)

            self._details[card_id] = response.data
            logger.debug("Card detail refreshed (status=%s)", response.data.status.value)
        return response.data

    def clear(self) -> None:
        """Forget everything, e.g. on sign-out."""
        self._snapshot = None
        self._details = {}
        # in-flight reads must not repopulate a cleared ledger
        for key in self._generations:
            self._generations[key] += 1
