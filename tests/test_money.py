from decimal import Decimal

from hims_billing.utils.money import format_currency, money2


def test_money2_rounds_half_up():
    assert money2("2.005") == Decimal("2.01")
    assert money2(None) == Decimal("0.00")


def test_format_currency_whole_amount():
    assert format_currency(Decimal("12500")) == "Rs 12,500"


def test_format_currency_keeps_paise():
    assert format_currency(Decimal("1234.5")) == "Rs 1,234.50"


def test_format_currency_negative_and_prefix():
    assert format_currency(Decimal("-5")) == "Rs -5"
    assert format_currency(300, prefix="INR") == "INR 300"
