"""Property-based tests for the card lifecycle and deposit address helpers."""
from __future__ import annotations

from decimal import Decimal

import pydantic
import pytest

hypothesis = pytest.importorskip("hypothesis")
st = hypothesis.strategies
given = hypothesis.given
settings = hypothesis.settings
assume = hypothesis.assume

from walletcards.formatting import strip_address_prefix  # noqa: E402
from walletcards.models import CardSummary, TransactionRecord  # noqa: E402

_text = st.text(alphabet=st.characters(blacklist_categories=("Cs",)), max_size=40)
_labels = st.sampled_from(["BTC-", "ETH-", "USDC-POLYGON-", "USDT-BSC|BEP20-"])


@given(
    card_id=st.one_of(st.none(), st.just(""), st.just("  "), _text),
    paid_flag=st.integers(min_value=-1, max_value=2),
    deposit_address=st.one_of(st.none(), st.just(""), _text),
)
@settings(max_examples=200, deadline=None)
def test_summary_is_exactly_pending_or_issued(card_id, paid_flag, deposit_address) -> None:
    payload = {"cardid": card_id, "paidcard": paid_flag, "depositaddress": deposit_address}
    has_id = bool(card_id and card_id.strip())
    expected_valid = has_id or (paid_flag == 0 and bool(deposit_address))

    if not expected_valid:
        with pytest.raises(pydantic.ValidationError):
            CardSummary.model_validate(payload)
        return

    card = CardSummary.model_validate(payload)
    assert card.is_pending != card.is_issued
    assert card.is_issued == has_id
    if card.is_issued:
        assert card.deposit_address is None
    else:
        assert card.card_id is None
        assert card.deposit_address == deposit_address


@given(label=_labels, address=_text, repeats=st.integers(min_value=0, max_value=3))
@settings(max_examples=150, deadline=None)
def test_strip_address_prefix_is_idempotent(label: str, address: str, repeats: int) -> None:
    stored = label * repeats + address
    once = strip_address_prefix(label, stored)

    assert strip_address_prefix(label, once) == once
    assert not once.startswith(label)


@given(label=_labels, address=_text)
@settings(max_examples=150, deadline=None)
def test_strip_address_prefix_leaves_other_labels_alone(label: str, address: str) -> None:
    assume(not address.startswith(label))

    assert strip_address_prefix(label, address) == address


@given(
    amount=st.decimals(min_value=-10_000, max_value=10_000, places=2, allow_nan=False),
    kind=st.sampled_from(["PAYMENT", "refund", "credit"]),
)
@settings(max_examples=100, deadline=None)
def test_display_sign_follows_transaction_type(amount: Decimal, kind: str) -> None:
    tx = TransactionRecord.model_validate({"id": 1, "amount": amount, "type": kind})

    assert tx.display_amount[0] == ("-" if kind == "PAYMENT" else "+")
    assert tx.display_amount.count("-") <= 1
