# automart/utils/formatters.py
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def format_price(value) -> str:
    """de-DE EUR formatting: 1234.5 -> '1.234,50 €'."""
    amount = to_money(value)
    text = f"{abs(amount):,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")
    sign = "-" if amount < 0 else ""
    return f"{sign}{text} €"


def format_date(value: datetime) -> str:
    return value.strftime("%d.%m.%Y, %H:%M")
