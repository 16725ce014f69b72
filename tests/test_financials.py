"""Tests for the fee split and per-session pricing."""

from decimal import Decimal

from trainhub.services.financials import (
    FinancialSplit,
    derive,
    package_session_count,
    to_money,
)


class TestDerive:
    """derive(total, fee_percent, session_count)."""

    def test_standard_split(self):
        split = derive(Decimal("100.00"), 25, 1)
        assert split == FinancialSplit(
            fee=Decimal("25.00"),
            payout=Decimal("75.00"),
            per_session_price=Decimal("100.00"),
        )

    def test_fee_rounds_half_up_and_payout_takes_remainder(self):
        split = derive(Decimal("59.99"), 25, 1)
        # 59.99 * 0.25 = 14.9975 -> 15.00
        assert split.fee == Decimal("15.00")
        assert split.payout == Decimal("44.99")
        assert split.fee + split.payout == Decimal("59.99")

    def test_per_session_price_for_package(self):
        split = derive(Decimal("150.00"), 25, 3)
        assert split.fee == Decimal("37.50")
        assert split.payout == Decimal("112.50")
        assert split.per_session_price == Decimal("50.00")

    def test_per_session_price_rounds(self):
        split = derive(Decimal("100.00"), 25, 3)
        assert split.per_session_price == Decimal("33.33")

    def test_zero_sessions_uses_total(self):
        split = derive(Decimal("80.00"), 25, 0)
        assert split.per_session_price == Decimal("80.00")

    def test_accepts_float_and_string_inputs(self):
        assert derive(100, 25.0, 1).fee == Decimal("25.00")
        assert derive("100", "10", 1).fee == Decimal("10.00")

    def test_zero_total(self):
        split = derive(Decimal("0"), 25, 1)
        assert split.fee == Decimal("0.00")
        assert split.payout == Decimal("0.00")


class TestPackageSessions:
    """Fixed package table."""

    def test_known_packages(self):
        assert package_session_count("single") == 1
        assert package_session_count("pack3") == 3
        assert package_session_count("pack5") == 5

    def test_unknown_package_is_single_session(self):
        assert package_session_count("mystery") == 1
        assert package_session_count(None) == 1


class TestToMoney:

    def test_rounds_to_cents(self):
        assert to_money("10.005") == Decimal("10.01")
        assert to_money(Decimal("10.004")) == Decimal("10.00")

    def test_float_goes_through_str(self):
        assert to_money(0.1 + 0.2) == Decimal("0.30")
