# sales_hub/services/alerts.py
"""
Alert Engine - manual alerts raised by operator actions plus derived risk
alerts recomputed from the basket.

Derived alert ids are ``<line_id>:<reason>`` so each recompute is a clean
replace-by-key; manual alert ids are random and live until dismissed.
"""
from __future__ import annotations
import logging
import math
import uuid
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Literal, Optional

logger = logging.getLogger(__name__)

Severity = Literal["success", "info", "warning", "error"]
AlertOrigin = Literal["manual", "derived"]

REASON_LOW_STOCK = "low-stock"
REASON_EXPIRY = "expiry"
REASON_PRICING = "pricing"
REASON_MARGIN = "margin"

EXPIRY_WINDOW_DAYS = 3


@dataclass(frozen=True)
class AlertMessage:
    id: str
    text: str
    severity: Severity
    origin: AlertOrigin

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def derived_alert_id(line_id: str, reason: str) -> str:
    return f"{line_id}:{reason}"


def _utc(dt: datetime) -> datetime:
    return dt.replace(tzinfo=timezone.utc) if dt.tzinfo is None else dt


def days_until(expiry: datetime, now: datetime) -> int:
    seconds = (_utc(expiry) - _utc(now)).total_seconds()
    return math.ceil(seconds / 86400)


def normalize_margin_threshold(value: Decimal) -> Decimal:
    """Thresholds above 1 are whole percents (25 -> 0.25)."""
    return value / 100 if value > 1 else value


def line_alerts(line: Any, now: datetime) -> List[AlertMessage]:
    """All derived alerts for one line; each check is independent."""
    lot = line.lot
    name = line.product_name
    out: List[AlertMessage] = []

    # stock
    remaining = max(line.qty_on_hand - line.quantity, Decimal("0"))
    if lot.suggested_qty and remaining < lot.suggested_qty:
        out.append(AlertMessage(
            id=derived_alert_id(line.line_id, REASON_LOW_STOCK),
            text=f"{name} will be below suggested stock after this sale ({remaining:.2f} left).",
            severity="warning",
            origin="derived",
        ))

    # expiry
    if lot.expiry_date is not None:
        days = days_until(lot.expiry_date, now)
        if 0 <= days <= EXPIRY_WINDOW_DAYS:
            out.append(AlertMessage(
                id=derived_alert_id(line.line_id, REASON_EXPIRY),
                text=f"{name} expires in {days} day(s).",
                severity="warning",
                origin="derived",
            ))

    # pricing / margin
    if lot.has_pricing_gaps:
        out.append(AlertMessage(
            id=derived_alert_id(line.line_id, REASON_PRICING),
            text=f"Missing cost or margin data for {name}.",
            severity="info",
            origin="derived",
        ))
    elif lot.unit_cost > 0:
        margin = (lot.unit_price - lot.unit_cost) / lot.unit_cost
        threshold = normalize_margin_threshold(lot.min_margin_pct)
        if margin.is_finite() and threshold > 0 and margin < threshold:
            out.append(AlertMessage(
                id=derived_alert_id(line.line_id, REASON_MARGIN),
                text=f"{name} margin ({margin * 100:.1f}%) is below minimum target.",
                severity="warning",
                origin="derived",
            ))

    return out


def derive_alerts(lines: Iterable[Any], now: datetime) -> Dict[str, AlertMessage]:
    derived: Dict[str, AlertMessage] = {}
    for line in lines:
        for alert in line_alerts(line, now):
            derived[alert.id] = alert
    return derived


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AlertBoard:
    """Manual + derived alerts for one register."""

    def __init__(self, clock: Callable[[], datetime] = _utcnow):
        self._manual: Dict[str, AlertMessage] = {}
        self._derived: Dict[str, AlertMessage] = {}
        self._clock = clock
        # last status-banner message, separate from the alert list
        self.feedback: Optional[AlertMessage] = None

    def push(self, text: str, severity: Severity = "warning") -> AlertMessage:
        alert = AlertMessage(id=uuid.uuid4().hex, text=text, severity=severity, origin="manual")
        self._manual[alert.id] = alert
        logger.info(f"[{severity}] {text}")
        return alert

    def set_feedback(self, text: str, severity: Severity = "info") -> None:
        self.feedback = AlertMessage(id="feedback", text=text, severity=severity, origin="manual")

    def clear_feedback(self) -> None:
        self.feedback = None

    def dismiss(self, alert_id: str) -> bool:
        return self._manual.pop(alert_id, None) is not None

    def clear_manual(self) -> None:
        self._manual.clear()

    def recompute(self, lines: Iterable[Any], now: Optional[datetime] = None) -> None:
        self._derived = derive_alerts(lines, now or self._clock())

    @property
    def manual(self) -> List[AlertMessage]:
        return list(self._manual.values())

    @property
    def derived(self) -> List[AlertMessage]:
        return list(self._derived.values())

    def combined(self) -> List[AlertMessage]:
        merged: Dict[str, AlertMessage] = dict(self._manual)
        merged.update(self._derived)
        return list(merged.values())
