"""Display helpers shared by the models and the terminal front-end."""
from __future__ import annotations

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

CENT = Decimal("0.01")


def strip_address_prefix(prefix: str, address: Optional[str]) -> Optional[str]:
    """Remove a stored ``"<LABEL>-"`` prefix from a deposit address.

    Leading repetitions of exactly ``prefix`` are removed, so applying it twice
    is the same as applying it once and a different label leaves the address
    untouched.
    """
    if address is None:
        return None
    while prefix and address.startswith(prefix):
        address = address[len(prefix):]
    return address


def format_usd(amount: Decimal, sign: str = "") -> str:
    """Format ``amount`` as dollars with two decimals, e.g. ``-$12.50``.

    An explicit ``sign`` wins over the sign of ``amount``.
    """
    quantized = Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)
    if quantized < 0:
        sign, quantized = sign or "-", -quantized
    return f"{sign}${quantized:,.2f}"


def format_timestamp(raw: str) -> str:
    """Render an ISO-8601 timestamp for display, falling back to the raw text."""
    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except (ValueError, AttributeError):
        return raw
    return parsed.strftime("%b %d, %Y %H:%M %Z").strip()
