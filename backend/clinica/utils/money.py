"""
Fixed-point currency helpers.

All currency values are ``Decimal`` with two fractional digits. Floats are
accepted at the edges (JSON input) but converted through ``str`` so binary
representation errors never enter the arithmetic.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable, Union

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
# Largest amount a Numeric(10, 2) column holds
MAX_AMOUNT = Decimal("99999999.99")

MoneyInput = Union[Decimal, int, float, str, None]


def to_money(value: MoneyInput) -> Decimal:
    """Convert ``value`` to a Decimal quantized to cents.

    ``None`` and empty strings become zero. Comma decimal separators
    ("1,50") are accepted.

    Raises:
        ValueError: if the value is not a finite number.
    """
    if value is None or value == "":
        return ZERO
    if isinstance(value, Decimal):
        amount = value
    else:
        text = str(value).strip().replace(",", ".")
        try:
            amount = Decimal(text)
        except InvalidOperation:
            raise ValueError(f"Valor monetário inválido: {value!r}")
    if not amount.is_finite():
        raise ValueError(f"Valor monetário inválido: {value!r}")
    try:
        return amount.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValueError(f"Valor monetário inválido: {value!r}")


def to_stored_money(value: MoneyInput) -> Decimal:
    """Like ``to_money`` but also rejects amounts a ``Numeric(10, 2)``
    column cannot hold. Use it for user input that gets persisted."""
    amount = to_money(value)
    if abs(amount) > MAX_AMOUNT:
        raise ValueError(f"Valor monetário fora do limite: {value!r}")
    return amount


def line_total(quantity: int, unit_value: MoneyInput) -> Decimal:
    return to_money(Decimal(quantity) * to_money(unit_value))


def money_sum(values: Iterable[MoneyInput]) -> Decimal:
    total = ZERO
    for value in values:
        total += to_money(value)
    return total


def format_brl(value: MoneyInput) -> str:
    """Format as Brazilian Real, e.g. ``R$ 1.234,50``."""
    amount = to_money(value)
    sign = "-" if amount < 0 else ""
    integer, _, cents = f"{abs(amount):.2f}".partition(".")
    groups = []
    while len(integer) > 3:
        groups.insert(0, integer[-3:])
        integer = integer[:-3]
    groups.insert(0, integer)
    return f"{sign}R$ {'.'.join(groups)},{cents}"
