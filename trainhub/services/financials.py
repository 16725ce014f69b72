"""Financial derivation: fee split and per-session pricing.

Pure functions only: nothing here touches the database, so the money
math can be tested on its own.
"""

import logging
from collections import namedtuple
from decimal import ROUND_HALF_UP, Decimal

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")

# Fixed package table. Never inferred from price.
PACKAGE_SESSIONS = {
    "single": 1,
    "pack3": 3,
    "pack5": 5,
}

PACKAGE_LABELS = {
    "single": "Single Session",
    "pack3": "3-Session Pack",
    "pack5": "5-Session Pack",
}

FinancialSplit = namedtuple("FinancialSplit", ["fee", "payout", "per_session_price"])


def to_money(value):
    """Coerce an int/float/str/Decimal to a Decimal rounded to cents."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def package_session_count(package_type):
    """Number of sessions bought with a package type.

    Unknown package types count as a single session.
    """
    count = PACKAGE_SESSIONS.get(package_type)
    if count is None:
        logger.warning(f"Unknown package type {package_type!r}, treating as single session")
        return 1
    return count


def derive(total, fee_percent, session_count):
    """Split a booking total into platform fee, provider payout and unit price.

        fee               = round(total * fee_percent / 100, 2)
        payout            = total - fee
        per_session_price = round(total / session_count, 2)  (total if count <= 0)

    Returns a FinancialSplit of Decimals.
    """
    total = to_money(total)
    fee_percent = Decimal(str(fee_percent))

    fee = to_money(total * fee_percent / Decimal(100))
    payout = total - fee
    if session_count > 0:
        per_session_price = to_money(total / Decimal(session_count))
    else:
        per_session_price = total

    return FinancialSplit(fee=fee, payout=payout, per_session_price=per_session_price)
