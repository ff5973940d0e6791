# sales_hub/services/order_desk.py
"""
Sales Order Desk - the register's single owner of basket, customer, alerts
and the pending-confirmation ticket.

State machine::

    IDLE -> SUBMITTING -> FINAL   -> IDLE   (basket cleared)
                       -> PENDING -> IDLE   (confirmed: cleared;
                                             expired/cancelled: basket kept)
                       -> IDLE              (request failed, basket kept)

All mutations run on one event loop. Backend calls are blocking and go
through ``asyncio.to_thread``; the pending poller is a task on the same loop
and reports back by calling ``check_pending`` on this object.
"""
from __future__ import annotations
import asyncio
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from sales_hub.client import SalesApiError
from sales_hub.models import (
    CreateSalesOrderLine,
    CreateSalesOrderRequest,
    Customer,
    PendingSalesOrder,
    SalesOrderContext,
    SellableLot,
    SellableLotQuery,
)
from sales_hub.services.alerts import AlertBoard
from sales_hub.services.basket import Basket, OrderLine
from sales_hub.services.customers import CustomerBinding
from sales_hub.services.poller import PendingConfirmationPoller
from sales_hub.services.quantity import WEIGHT_UOM
from sales_hub.services.totals import (
    DEFAULT_EARN_RATE,
    DEFAULT_REDEMPTION_STEP,
    OrderTotals,
    clamp_redemption,
    compute_totals,
)

logger = logging.getLogger(__name__)

STATUS_EXPIRED = "EXPIRED"
STATUS_CANCELLED = "CANCELLED"


class DeskState(str, Enum):
    IDLE = "IDLE"
    SUBMITTING = "SUBMITTING"
    PENDING = "PENDING"


class FinalizeOutcome(str, Enum):
    REJECTED = "REJECTED"   # local guard, no network call
    FAILED = "FAILED"       # backend error, basket kept
    FINAL = "FINAL"
    PENDING = "PENDING"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SalesOrderDesk:

    def __init__(
        self,
        backend,
        *,
        poll_interval: float = 5.0,
        redemption_step: int = DEFAULT_REDEMPTION_STEP,
        earn_rate: int = DEFAULT_EARN_RATE,
        weight_uom: str = WEIGHT_UOM,
        search_limit: int = 30,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.backend = backend
        self.redemption_step = redemption_step
        self.earn_rate = earn_rate
        self.search_limit = search_limit

        self.alerts = AlertBoard(clock=clock)
        self.basket = Basket(notify=self.alerts.push, weight_uom=weight_uom)
        self.customers = CustomerBinding(backend, self.alerts, on_change=self._on_customer_changed)

        self.state = DeskState.IDLE
        self.context: Optional[SalesOrderContext] = None
        self.pending: Optional[PendingSalesOrder] = None
        self.requested_redeem = 0
        self.lots: List[SellableLot] = []
        self._last_query: Optional[SellableLotQuery] = None
        self._poller = PendingConfirmationPoller(self.check_pending, interval=poll_interval)

    @classmethod
    def from_settings(cls, backend, settings) -> "SalesOrderDesk":
        return cls(
            backend,
            poll_interval=settings.PENDING_POLL_INTERVAL_SEC,
            redemption_step=settings.LOYALTY_REDEMPTION_STEP,
            earn_rate=settings.LOYALTY_EARN_RATE,
            weight_uom=settings.WEIGHT_UOM,
            search_limit=settings.LOT_SEARCH_LIMIT,
        )

    # =========================================================================
    # Derived state
    # =========================================================================

    @property
    def customer(self) -> Optional[Customer]:
        return self.customers.customer

    @property
    def totals(self) -> OrderTotals:
        return compute_totals(
            self.basket.lines,
            self.customer,
            self.requested_redeem,
            step=self.redemption_step,
            earn_rate=self.earn_rate,
        )

    @property
    def poller_running(self) -> bool:
        return self._poller.running

    @property
    def finalize_disabled(self) -> bool:
        return self.state is DeskState.SUBMITTING or self.pending is not None

    def _sync(self) -> None:
        """Restore invariants after any basket/customer change."""
        self.alerts.recompute(self.basket.lines)
        ceiling = self.totals.loyalty_eligible
        self.requested_redeem = clamp_redemption(self.requested_redeem, self.customer, ceiling)

    def _on_customer_changed(self) -> None:
        self.requested_redeem = 0
        self._sync()

    # =========================================================================
    # Basket
    # =========================================================================

    def add_lot(self, lot: SellableLot) -> Optional[OrderLine]:
        line = self.basket.add_from_lot(lot)
        self._sync()
        return line

    def set_quantity(self, line_id: str, raw: Any) -> OrderLine:
        line = self.basket.set_quantity(line_id, raw)
        self._sync()
        return line

    def remove_line(self, line_id: str) -> bool:
        removed = self.basket.remove(line_id)
        self._sync()
        return removed

    # =========================================================================
    # Loyalty redemption
    # =========================================================================

    def request_redemption(self, points: Any) -> int:
        """Store a redemption request, rounded down to the step and capped."""
        try:
            requested = int(points or 0)
        except (TypeError, ValueError):
            requested = 0
        if self.redemption_step > 0:
            requested = (max(requested, 0) // self.redemption_step) * self.redemption_step
        self.requested_redeem = clamp_redemption(requested, self.customer, self.totals.loyalty_eligible)
        return self.requested_redeem

    def apply_max_redemption(self) -> int:
        eligible = self.totals.loyalty_eligible
        if self.customer is None or eligible <= 0:
            return self.requested_redeem
        self.requested_redeem = eligible
        return eligible

    # =========================================================================
    # Customers
    # =========================================================================

    async def lookup_customer(self, phone: str) -> Optional[Customer]:
        return await self.customers.lookup(phone)

    async def create_customer(
        self,
        full_name: str,
        phone_number: str,
        email: str,
        loyalty_code: Optional[str] = None,
    ) -> Optional[Customer]:
        return await self.customers.create_or_update(full_name, phone_number, email, loyalty_code)

    def clear_customer(self) -> None:
        self.customers.clear()

    # =========================================================================
    # External data
    # =========================================================================

    async def load_context(self) -> Optional[SalesOrderContext]:
        try:
            self.context = await asyncio.to_thread(self.backend.fetch_order_context)
        except SalesApiError as e:
            logger.warning(f"Order context unavailable: {e}")
            return None
        logger.info(f"Order context loaded: {self.context.order_code}")
        return self.context

    async def search_lots(self, query: Optional[SellableLotQuery] = None) -> List[SellableLot]:
        """Run a lot search and remember it so availability refreshes can re-run it."""
        if query is None:
            query = SellableLotQuery(limit=self.search_limit)
        self._last_query = query
        self.lots = await asyncio.to_thread(self.backend.search_sellable_lots, query)
        return self.lots

    async def _refresh_external(self) -> None:
        await self.load_context()
        if self._last_query is None:
            return
        try:
            self.lots = await asyncio.to_thread(self.backend.search_sellable_lots, self._last_query)
        except SalesApiError as e:
            logger.warning(f"Lot availability refresh failed: {e}")

    # =========================================================================
    # Finalize
    # =========================================================================

    def _customer_id(self) -> Optional[int]:
        if self.customer is None:
            return None
        try:
            return int(self.customer.id)
        except ValueError:
            logger.warning(f"Non-numeric customer id {self.customer.id!r}; sending order without customer")
            return None

    def build_request(self) -> CreateSalesOrderRequest:
        return CreateSalesOrderRequest(
            order_code=self.context.order_code if self.context else None,
            customer_id=self._customer_id(),
            loyalty_points_to_redeem=self.totals.applied_loyalty,
            lines=[
                CreateSalesOrderLine(product_id=line.product_id, lot_id=line.lot_id, quantity=float(line.quantity))
                for line in self.basket.lines
            ],
        )

    async def finalize(self) -> FinalizeOutcome:
        if self.pending is not None:
            self.alerts.push("Waiting for customer confirmation before finalizing another order.", "info")
            return FinalizeOutcome.REJECTED
        if self.state is DeskState.SUBMITTING:
            return FinalizeOutcome.REJECTED
        if self.basket.is_empty():
            self.alerts.push("Add at least one product to the order before finalizing.", "error")
            return FinalizeOutcome.REJECTED
        if self.context is None:
            self.alerts.push("Unable to prepare order context. Reload the page and try again.", "error")
            return FinalizeOutcome.REJECTED

        payload = self.build_request()
        self.state = DeskState.SUBMITTING
        logger.info(f"Submitting order {payload.order_code} ({len(payload.lines)} lines, redeem={payload.loyalty_points_to_redeem})")
        try:
            result = await asyncio.to_thread(self.backend.create_sales_order, payload)
        except SalesApiError as e:
            logger.warning(f"Order {payload.order_code} failed: {e}")
            self.alerts.push("Failed to finalize the sales order. Please try again.", "error")
            return FinalizeOutcome.FAILED
        finally:
            if self.state is DeskState.SUBMITTING:
                self.state = DeskState.IDLE

        if result.is_pending:
            email = result.pending.customer_email if result.pending else None
            self.alerts.push(
                f"Customer confirmation email sent{f' to {email}' if email else ''}. Waiting for approval.",
                "info",
            )
            self.alerts.set_feedback(
                "Customer confirmation email sent. Order will be finalized after the customer confirms the redemption.",
                "info",
            )
            if result.pending is not None:
                self._enter_pending(result.pending)
            else:
                logger.warning(f"Order {payload.order_code} is pending but no ticket was returned")
            await self.load_context()
            return FinalizeOutcome.PENDING

        logger.info(f"Order {payload.order_code} finalized")
        self._leave_pending()
        self._clear_order()
        self.alerts.push("Sales order finalized successfully.", "success")
        self.alerts.set_feedback("Sales order finalized successfully.", "success")
        await self._refresh_external()
        return FinalizeOutcome.FINAL

    # =========================================================================
    # Pending confirmation
    # =========================================================================

    def _enter_pending(self, ticket: PendingSalesOrder) -> None:
        self._poller.stop()
        self.pending = ticket
        self.state = DeskState.PENDING
        logger.info(f"Order pending customer confirmation (pendingId={ticket.pending_id})")
        self._poller.start()

    def _leave_pending(self) -> None:
        self._poller.stop()
        if self.pending is not None:
            logger.info(f"Pending order {self.pending.pending_id} closed")
        self.pending = None
        if self.state is DeskState.PENDING:
            self.state = DeskState.IDLE

    async def check_pending(self) -> None:
        """One status check; called by the poller. Errors propagate to the poller."""
        ticket = self.pending
        if ticket is None:
            return
        status = await asyncio.to_thread(self.backend.get_pending_order_status, ticket.pending_id)
        if self.pending is not ticket:
            # resolved or superseded while the request was in flight
            return

        normalized = (status.status or "").strip().upper()
        if status.is_confirmed:
            self._leave_pending()
            self._clear_order()
            self.alerts.push("Customer confirmed the order.", "success")
            self.alerts.set_feedback("Customer confirmed the order.", "success")
            await self._refresh_external()
        elif normalized == STATUS_EXPIRED:
            self._leave_pending()
            self.alerts.push("Customer confirmation expired. Please finalize again.", "warning")
        elif normalized == STATUS_CANCELLED:
            self._leave_pending()
            self.alerts.push("Customer cancelled this order. Please finalize again.", "warning")

    async def cancel_pending(self) -> bool:
        """Withdraw the pending ticket at the backend; the basket is kept."""
        ticket = self.pending
        if ticket is None:
            return False
        try:
            await asyncio.to_thread(self.backend.cancel_pending_order, ticket.pending_id)
        except SalesApiError as e:
            logger.warning(f"Cancel of pending order {ticket.pending_id} failed: {e}")
            self.alerts.push("Unable to cancel the pending order. Please try again.", "error")
            return False
        if self.pending is ticket:
            self._leave_pending()
            self.alerts.push("Pending order cancelled. The basket is ready to finalize again.", "info")
        return True

    # =========================================================================
    # Reset / teardown
    # =========================================================================

    def _clear_order(self) -> None:
        self.basket.clear()
        self.customers.clear()
        self.requested_redeem = 0
        self.alerts.clear_manual()
        self.alerts.clear_feedback()
        self._sync()

    def reset(self) -> None:
        """Start over: drop lines, customer, redemption, alerts and any pending ticket."""
        self._leave_pending()
        self._clear_order()

    async def close(self) -> None:
        await self._poller.aclose()
        self._leave_pending()

    def dismiss_alert(self, alert_id: str) -> bool:
        return self.alerts.dismiss(alert_id)

    # =========================================================================
    # Snapshot (for the HTTP facade)
    # =========================================================================

    def snapshot(self) -> Dict[str, Any]:
        customer = self.customer
        return {
            "state": self.state.value,
            "context": self.context.model_dump(mode="json", by_alias=True) if self.context else None,
            "customer": customer.model_dump(mode="json", by_alias=True) if customer else None,
            "customerPhone": self.customers.phone,
            "lines": [line.to_dict() for line in self.basket.lines],
            "totals": self.totals.to_dict(),
            "requestedRedeem": self.requested_redeem,
            "pending": self.pending.model_dump(mode="json", by_alias=True) if self.pending else None,
            "alerts": [a.to_dict() for a in self.alerts.combined()],
            "feedback": self.alerts.feedback.to_dict() if self.alerts.feedback else None,
            "finalizeDisabled": self.finalize_disabled,
            "lookupInFlight": self.customers.lookup_in_flight,
        }
