# sales_hub/services/totals.py
"""
Order totals - pure function of (lines, customer, requested redemption).

Loyalty redemption is offered in whole steps (1000 by default) and is capped
both by the customer's balance and by the amount still payable. One point is
earned per ``earn_rate`` currency units of the final payment.
"""
from __future__ import annotations
from dataclasses import dataclass, asdict
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional

from pydantic.alias_generators import to_camel

from sales_hub.models import Customer

DEFAULT_REDEMPTION_STEP = 1000
DEFAULT_EARN_RATE = 100

_ZERO = Decimal("0")


@dataclass(frozen=True)
class OrderTotals:
    subtotal: Decimal = _ZERO
    discount_total: Decimal = _ZERO
    total_after_discount: Decimal = _ZERO
    loyalty_eligible: int = 0
    applied_loyalty: int = 0
    final_total: Decimal = _ZERO
    points_earned: int = 0

    def to_dict(self) -> Dict[str, Any]:
        out = {}
        for key, value in asdict(self).items():
            out[to_camel(key)] = float(value) if isinstance(value, Decimal) else value
        return out


def _floor_to_step(amount: Decimal, step: int) -> int:
    if amount <= 0 or step <= 0:
        return 0
    return int(amount // step) * step


def redemption_ceiling(
    customer: Optional[Customer],
    total_after_discount: Decimal,
    step: int = DEFAULT_REDEMPTION_STEP,
) -> int:
    """Largest redeemable amount: a multiple of ``step`` within balance and payable total."""
    if customer is None or total_after_discount <= 0:
        return 0
    by_points = _floor_to_step(Decimal(max(customer.loyalty_points, 0)), step)
    by_total = _floor_to_step(total_after_discount, step)
    return min(by_points, by_total)


def compute_totals(
    lines: Iterable[Any],
    customer: Optional[Customer],
    requested_redeem: int,
    step: int = DEFAULT_REDEMPTION_STEP,
    earn_rate: int = DEFAULT_EARN_RATE,
) -> OrderTotals:
    subtotal = _ZERO
    discount_total = _ZERO
    for line in lines:
        gross = line.unit_price * line.quantity
        subtotal += gross
        discount_total += gross * line.lot.discount_percent

    total_after_discount = max(subtotal - discount_total, _ZERO)
    loyalty_eligible = redemption_ceiling(customer, total_after_discount, step)
    applied_loyalty = max(min(int(requested_redeem or 0), loyalty_eligible), 0)
    final_total = max(total_after_discount - applied_loyalty, _ZERO)
    points_earned = int(final_total // earn_rate) if earn_rate > 0 else 0

    return OrderTotals(
        subtotal=subtotal,
        discount_total=discount_total,
        total_after_discount=total_after_discount,
        loyalty_eligible=loyalty_eligible,
        applied_loyalty=applied_loyalty,
        final_total=final_total,
        points_earned=points_earned,
    )


def clamp_redemption(requested: int, customer: Optional[Customer], ceiling: int) -> int:
    """Re-clamp a stored request: never raised, forced to 0 without a customer."""
    if customer is None:
        return 0
    return max(min(int(requested or 0), ceiling), 0)
