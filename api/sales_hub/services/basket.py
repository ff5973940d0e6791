# sales_hub/services/basket.py
"""
Basket Line Store - ordered order lines keyed by a synthetic line id.

Handles:
- add-or-merge of a sellable lot (one line per product/lot pair)
- manual quantity edits with clamping to stock on hand
- removal and reset

Every quantity written here goes through ``normalize_quantity`` and stays
within ``0 <= quantity <= qty_on_hand``.
"""
from __future__ import annotations
import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Dict, Iterator, List, Optional

from sales_hub.models import SellableLot
from sales_hub.services.quantity import (
    WEIGHT_UOM,
    default_quantity,
    format_quantity,
    normalize_quantity,
    normalize_within,
    parse_quantity,
    quantity_step,
)

logger = logging.getLogger(__name__)

# (text, severity) -> None
Notifier = Callable[[str, str], None]


@dataclass
class OrderLine:
    line_id: str
    lot: SellableLot
    quantity: Decimal

    @property
    def product_id(self) -> int:
        return self.lot.product_id

    @property
    def lot_id(self) -> int:
        return self.lot.lot_id

    @property
    def uom(self) -> str:
        return self.lot.uom

    @property
    def qty_on_hand(self) -> Decimal:
        return self.lot.qty_on_hand

    @property
    def unit_price(self) -> Decimal:
        return self.lot.unit_price

    @property
    def product_name(self) -> str:
        return self.lot.product_name or self.lot.sku_code or f"Product {self.lot.product_id}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lineId": self.line_id,
            "productId": self.product_id,
            "lotId": self.lot_id,
            "lotCode": self.lot.lot_code,
            "productName": self.product_name,
            "skuCode": self.lot.sku_code,
            "uom": self.uom,
            "qtyOnHand": float(self.qty_on_hand),
            "unitPrice": float(self.unit_price),
            "discountPercent": float(self.lot.discount_percent),
            "quantity": float(self.quantity),
        }


def _new_line_id() -> str:
    return str(uuid.uuid4())


class Basket:
    """Line store for a single register."""

    def __init__(
        self,
        notify: Optional[Notifier] = None,
        weight_uom: str = WEIGHT_UOM,
        line_id_factory: Callable[[], str] = _new_line_id,
    ):
        self._lines: Dict[str, OrderLine] = {}
        self._notify = notify
        self.weight_uom = weight_uom
        self._line_id_factory = line_id_factory

    # -------------------- read --------------------

    @property
    def lines(self) -> List[OrderLine]:
        return list(self._lines.values())

    def __len__(self) -> int:
        return len(self._lines)

    def __iter__(self) -> Iterator[OrderLine]:
        return iter(list(self._lines.values()))

    def is_empty(self) -> bool:
        return not self._lines

    def get(self, line_id: str) -> OrderLine:
        """Raises KeyError for an unknown line id."""
        return self._lines[line_id]

    def find(self, product_id: int, lot_id: int) -> Optional[OrderLine]:
        for line in self._lines.values():
            if line.product_id == product_id and line.lot_id == lot_id:
                return line
        return None

    # -------------------- write --------------------

    def add_from_lot(self, lot: SellableLot) -> Optional[OrderLine]:
        """
        Add a lot to the basket or bump the existing line for the same lot.

        Returns the created/updated line, or None when the line is already at
        the stock on hand (nothing changes, an info notice is raised).
        """
        existing = self.find(lot.product_id, lot.lot_id)
        if existing is not None:
            step = quantity_step(existing.uom, self.weight_uom)
            next_qty = normalize_within(
                min(existing.quantity + step, existing.qty_on_hand),
                existing.uom, existing.qty_on_hand, self.weight_uom,
            )
            if next_qty == existing.quantity:
                self._emit(
                    f"Only {format_quantity(existing.qty_on_hand)} {existing.uom} of {existing.product_name} available.",
                    "info",
                )
                return None
            existing.quantity = next_qty
            logger.info(f"Merged lot {lot.lot_id} into line {existing.line_id}: qty={existing.quantity}")
            return existing

        start = min(default_quantity(lot.uom, self.weight_uom), max(lot.qty_on_hand, Decimal("0")))
        line = OrderLine(
            line_id=self._line_id_factory(),
            lot=lot,
            quantity=normalize_within(start, lot.uom, max(lot.qty_on_hand, Decimal("0")), self.weight_uom),
        )
        self._lines[line.line_id] = line
        logger.info(f"Added line {line.line_id} for product {lot.product_id} lot {lot.lot_id}")
        return line

    def set_quantity(self, line_id: str, raw: Any) -> OrderLine:
        """Store an operator-typed quantity; negatives and garbage become 0."""
        line = self.get(line_id)
        qty = parse_quantity(raw)
        if qty is None or qty < 0:
            line.quantity = normalize_quantity(Decimal("0"), line.uom, self.weight_uom)
            return line
        if qty > line.qty_on_hand:
            self._emit(
                f"Only {format_quantity(line.qty_on_hand)} {line.uom} available; quantity adjusted.",
                "warning",
            )
            qty = line.qty_on_hand
        line.quantity = normalize_within(qty, line.uom, line.qty_on_hand, self.weight_uom)
        return line

    def remove(self, line_id: str) -> bool:
        return self._lines.pop(line_id, None) is not None

    def clear(self) -> None:
        self._lines.clear()

    def _emit(self, text: str, severity: str) -> None:
        if self._notify is not None:
            self._notify(text, severity)
        else:
            logger.info(text)
