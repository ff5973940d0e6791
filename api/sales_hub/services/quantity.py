# sales_hub/services/quantity.py
"""
Quantity rules per unit of measure.

Weight-sold lots (KG) carry three decimals and step by 0.1; everything else is
counted in whole units and steps by 1.
"""
from __future__ import annotations
from decimal import Decimal, InvalidOperation, ROUND_DOWN, ROUND_HALF_UP
from typing import Any, Optional

WEIGHT_UOM = "KG"

_THOUSANDTH = Decimal("0.001")
_ONE = Decimal("1")


def is_weight_unit(uom: Optional[str], weight_uom: str = WEIGHT_UOM) -> bool:
    return (uom or "").strip().upper() == weight_uom.strip().upper()


def normalize_quantity(value: Any, uom: Optional[str], weight_uom: str = WEIGHT_UOM) -> Decimal:
    """Round to 3 decimals for weight units, to a whole number otherwise."""
    qty = value if isinstance(value, Decimal) else Decimal(str(value))
    if is_weight_unit(uom, weight_uom):
        return qty.quantize(_THOUSANDTH, rounding=ROUND_HALF_UP)
    return qty.quantize(_ONE, rounding=ROUND_HALF_UP)


def quantity_step(uom: Optional[str], weight_uom: str = WEIGHT_UOM) -> Decimal:
    return Decimal("0.1") if is_weight_unit(uom, weight_uom) else _ONE


def default_quantity(uom: Optional[str], weight_uom: str = WEIGHT_UOM) -> Decimal:
    # weighed goods start empty until the scale reading is typed in
    return Decimal("0") if is_weight_unit(uom, weight_uom) else _ONE


def parse_quantity(raw: Any) -> Optional[Decimal]:
    """Parse operator input; None for anything that is not a finite number."""
    if raw is None or isinstance(raw, bool):
        return None
    try:
        qty = raw if isinstance(raw, Decimal) else Decimal(str(raw).strip().replace(",", "."))
    except (InvalidOperation, ValueError):
        return None
    if not qty.is_finite():
        return None
    return qty


def format_quantity(qty: Decimal) -> str:
    """5.000 -> '5', 0.250 -> '0.25'"""
    text = format(qty.normalize(), "f")
    return text if text != "-0" else "0"


def normalize_within(value: Any, uom: Optional[str], maximum: Decimal, weight_uom: str = WEIGHT_UOM) -> Decimal:
    """normalize_quantity, but never above ``maximum`` (rounds down instead)."""
    qty = normalize_quantity(value, uom, weight_uom)
    if qty <= maximum:
        return qty
    unit = _THOUSANDTH if is_weight_unit(uom, weight_uom) else _ONE
    return max(Decimal(maximum).quantize(unit, rounding=ROUND_DOWN), Decimal("0"))
