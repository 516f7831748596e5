"""
Dynamic ticket pricing.

The current price starts from the event's base price and, when dynamic
pricing is enabled, every rule whose remaining-seats threshold is at or above
the number of seats left compounds its markup onto the running price. Rules
are applied in stored order and are cumulative: a seat count that satisfies
three thresholds gets three markups.

Results are quantized to cents with ROUND_HALF_UP, which rounds half away
from zero for the non-negative prices an event can carry.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Mapping, Union

CENTS = Decimal("0.01")
HUNDRED = Decimal("100")

Number = Union[Decimal, int, float, str]


def _to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() keeps 0.1 as 0.1 instead of its binary float expansion
    return Decimal(str(value))


def _rule_field(rule: Any, field: str) -> Any:
    if isinstance(rule, Mapping):
        return rule[field]
    return getattr(rule, field)


def quantize_price(amount: Number) -> Decimal:
    return _to_decimal(amount).quantize(CENTS, rounding=ROUND_HALF_UP)


def compute_ticket_price(
    base_price: Number,
    enabled: bool,
    rules: Iterable[Any],
    remaining_seats: int,
) -> Decimal:
    """
    Price a buyer pays right now.

    Args:
        base_price: static ticket price of the event (>= 0)
        enabled: dynamic pricing toggle
        rules: ordered rules, dicts or objects with ``threshold`` and ``percentage``
        remaining_seats: total seats minus sold tickets; may be negative

    Returns:
        Decimal rounded to 2 decimal places
    """
    price = _to_decimal(base_price)
    if not enabled:
        return quantize_price(price)

    for rule in rules:
        threshold = _rule_field(rule, "threshold")
        if remaining_seats <= threshold:
            percentage = _to_decimal(_rule_field(rule, "percentage"))
            price = price * (1 + percentage / HUNDRED)

    return quantize_price(price)
