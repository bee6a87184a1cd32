"""
Tests for CardLedger
"""
import asyncio
import logging
from decimal import Decimal

import pytest

from walletcards.ledger import CardCollection, CardLedger
from walletcards.models import CardDetailResponse, CardListResponse, CardStatus


@pytest.fixture
def ledger(fake_client):
    return CardLedger(fake_client)


@pytest.fixture
def single_card_response():
    return CardListResponse.model_validate(
        {
            "status": "success",
            "data": [{"cardid": "card_999", "lastfour": "9999", "paidcard": 1}],
        }
    )


class TestRefresh:
    """Tests for list refreshes."""

    async def test_refresh_replaces_snapshot(self, ledger, fake_client, user_email, card_list_response):
        """Should store the collection and split it into pending and issued."""
        fake_client.list_cards.return_value = card_list_response

        cards = await ledger.refresh(user_email)

        fake_client.list_cards.assert_awaited_once_with(user_email)
        assert len(cards) == 2
        assert isinstance(ledger.snapshot, CardCollection)
        assert ledger.snapshot.subuser_fee == Decimal("20")
        assert [c.card_id for c in ledger.issued_cards()] == ["card_123"]
        assert len(ledger.pending_cards()) == 1
        assert ledger.find("card_123").last_four == "1234"
        assert ledger.find("missing") is None

    async def test_failed_refresh_keeps_previous_snapshot(self, ledger, fake_client, user_email, card_list_response):
        """Should keep the last good snapshot when a read fails."""
        fake_client.list_cards.side_effect = [card_list_response, None]

        await ledger.refresh(user_email)
        before = ledger.snapshot
        result = await ledger.refresh(user_email)

        assert result is None
        assert ledger.snapshot is before

    async def test_empty_ledger(self, ledger):
        """Should expose nothing before the first refresh."""
        assert ledger.snapshot is None
        assert ledger.cards == ()
        assert ledger.pending_cards() == ()
        assert ledger.issued_cards() == ()

    async def test_listeners_receive_snapshot(self, ledger, fake_client, user_email, card_list_response):
        """Should notify listeners after a successful refresh only."""
        seen = []
        ledger.add_listener(seen.append)
        fake_client.list_cards.side_effect = [card_list_response, None]

        await ledger.refresh(user_email)
        await ledger.refresh(user_email)

        assert seen == [ledger.snapshot]

        ledger.remove_listener(seen.append)
        fake_client.list_cards.side_effect = None
        fake_client.list_cards.return_value = card_list_response
        await ledger.refresh(user_email)

        assert len(seen) == 1

    async def test_failing_listener_does_not_stop_refresh(
        self, ledger, fake_client, user_email, card_list_response, caplog
    ):
        """Should log a listener error and still notify the others."""
        def broken(snapshot):
            raise RuntimeError("listener exploded")

        seen = []
        ledger.add_listener(broken)
        ledger.add_listener(seen.append)
        fake_client.list_cards.return_value = card_list_response

        with caplog.at_level(logging.ERROR, logger="walletcards.ledger"):
            cards = await ledger.refresh(user_email)

        assert cards == list(card_list_response.data)
        assert ledger.cards == tuple(card_list_response.data)
        assert seen == [ledger.snapshot]
        assert "Card list listener" in caplog.text
        assert "listener exploded" in caplog.text

    async def test_latest_refresh_wins(self, ledger, fake_client, user_email, card_list_response, single_card_response):
        """Should discard a response that lands after a newer refresh completed."""
        gate = asyncio.Event()
        calls = []

        async def list_cards(email):
            calls.append(email)
            if len(calls) == 1:
                await gate.wait()
                return card_list_response
            return single_card_response

        fake_client.list_cards.side_effect = list_cards

        older = asyncio.create_task(ledger.refresh(user_email))
        await asyncio.sleep(0)
        newer = await ledger.refresh(user_email)
        gate.set()
        stale = await older

        assert [c.card_id for c in newer] == ["card_999"]
        assert [c.card_id for c in stale] == ["card_999"]
        assert [c.card_id for c in ledger.cards] == ["card_999"]

    async def test_clear_discards_in_flight_reads(self, ledger, fake_client, user_email, card_list_response):
        """Should not let a read started before clear() repopulate the ledger."""
        gate = asyncio.Event()

        async def list_cards(email):
            await gate.wait()
            return card_list_response

        fake_client.list_cards.side_effect = list_cards

        task = asyncio.create_task(ledger.refresh(user_email))
        await asyncio.sleep(0)
        ledger.clear()
        gate.set()
        await task

        assert ledger.snapshot is None


class TestPaymentInstruction:
    """Tests for the pay-now instruction of pending cards."""

    async def test_amount_includes_surcharge(self, ledger, fake_client, user_email, card_list_response):
        """Should quote the sub-user fee plus the surcharge."""
        fake_client.list_cards.return_value = card_list_response
        await ledger.refresh(user_email)

        pending = ledger.pending_cards()[0]
        payment = ledger.payment_instruction(pending)

        assert payment.deposit_address == "0xpending"
        assert payment.quoted_fee == Decimal("20")
        assert payment.amount_due == Decimal("25")
        assert payment.label == "Pay USDC-POLYGON"

    async def test_no_instruction_for_issued_card(self, ledger, fake_client, user_email, card_list_response):
        fake_client.list_cards.return_value = card_list_response
        await ledger.refresh(user_email)

        assert ledger.payment_instruction(ledger.issued_cards()[0]) is None

    async def test_no_instruction_without_fee(self, ledger, fake_client, user_email, card_list_payload):
        """Should not invent an amount when no fee was quoted."""
        del card_list_payload["subuserfee"]
        fake_client.list_cards.return_value = CardListResponse.model_validate(card_list_payload)
        await ledger.refresh(user_email)

        assert ledger.payment_instruction(ledger.pending_cards()[0]) is None


class TestRefreshDetail:
    """Tests for per-card detail refreshes."""

    async def test_refresh_detail(self, ledger, fake_client, user_email, card_detail_response):
        """Should store the detail under its card id."""
        fake_client.get_card_detail.return_value = card_detail_response

        detail = await ledger.refresh_detail(user_email, "card_123")

        fake_client.get_card_detail.assert_awaited_once_with(user_email, "card_123")
        assert detail.status is CardStatus.ACTIVE
        assert ledger.detail("card_123") is detail

    async def test_failed_detail_keeps_previous(self, ledger, fake_client, user_email, card_detail_response):
        fake_client.get_card_detail.side_effect = [card_detail_response, None]

        first = await ledger.refresh_detail(user_email, "card_123")
        second = await ledger.refresh_detail(user_email, "card_123")

        assert second is None
        assert ledger.detail("card_123") is first

    async def test_latest_detail_wins(self, ledger, fake_client, user_email, card_detail_payload):
        """Should keep the newer status when an older read lands last."""
        active = CardDetailResponse.model_validate(card_detail_payload)
        card_detail_payload["data"]["status"] = "blocked"
        blocked = CardDetailResponse.model_validate(card_detail_payload)
        gate = asyncio.Event()
        calls = []

        async def get_card_detail(email, card_id):
            calls.append(card_id)
            if len(calls) == 1:
                await gate.wait()
                return active
            return blocked

        fake_client.get_card_detail.side_effect = get_card_detail

        older = asyncio.create_task(ledger.refresh_detail(user_email, "card_123"))
        await asyncio.sleep(0)
        await ledger.refresh_detail(user_email, "card_123")
        gate.set()
        stale = await older

        assert stale.status is CardStatus.BLOCKED
        assert ledger.detail("card_123").status is CardStatus.BLOCKED

    async def test_keys_are_independent(self, ledger, fake_client, user_email, card_detail_response):
        """Should not treat a read of another card as newer."""
        gate = asyncio.Event()

        async def get_card_detail(email, card_id):
            if card_id == "card_a":
                await gate.wait()
            return card_detail_response

        fake_client.get_card_detail.side_effect = get_card_detail

        slow = asyncio.create_task(ledger.refresh_detail(user_email, "card_a"))
        await asyncio.sleep(0)
        await ledger.refresh_detail(user_email, "card_b")
        gate.set()
        await slow

        assert ledger.detail("card_a") is not None
        assert ledger.detail("card_b") is not None
