from __future__ import annotations
import os
import tempfile
from decimal import Decimal
from typing import Any, Dict, List, Optional

# keep the rotating log out of the source tree
os.environ.setdefault("SALES_HUB_DATA_ROOT", tempfile.mkdtemp(prefix="sales-hub-test-"))

import pytest

from sales_hub.client import SalesApiError
from sales_hub.models import (
    CreateCustomerRequest,
    CreateSalesOrderRequest,
    CreateSalesOrderResponse,
    Customer,
    PendingSalesOrder,
    PendingSalesOrderStatus,
    SalesOrderContext,
    SellableLot,
    SellableLotQuery,
)


def make_lot(**overrides: Any) -> SellableLot:
    data: Dict[str, Any] = {
        "lot_id": 10,
        "lot_code": "L-10",
        "product_id": 1,
        "product_name": "Espresso beans",
        "sku_code": "ESP-1",
        "uom": "PCS",
        "qty_on_hand": Decimal("5"),
        "unit_price": Decimal("20000"),
        "unit_cost": Decimal("10000"),
        "min_margin_pct": Decimal("0.2"),
    }
    data.update(overrides)
    return SellableLot(**data)


def make_customer(**overrides: Any) -> Customer:
    data: Dict[str, Any] = {
        "id": "7",
        "full_name": "Jane Roe",
        "phone_number": "0901234567",
        "email": "jane@example.com",
        "loyalty_points": 3500,
    }
    data.update(overrides)
    return Customer(**data)


class FakeBackend:
    """In-memory stand-in for SalesBackendClient; records every call."""

    def __init__(self):
        self.calls: List[tuple] = []
        self.context: Optional[SalesOrderContext] = SalesOrderContext(order_code="SO-0001")
        self.lots: List[SellableLot] = [make_lot()]
        self.customers: Dict[str, Customer] = {}
        self.order_response = CreateSalesOrderResponse(status="CONFIRMED", order={"id": 1})
        self.statuses: List[PendingSalesOrderStatus] = []
        self.fail: set = set()

    def _call(self, name: str, *args: Any) -> None:
        self.calls.append((name,) + args)
        if name in self.fail:
            raise SalesApiError(f"{name} failed", status_code=500)

    def call_names(self) -> List[str]:
        return [c[0] for c in self.calls]

    def fetch_order_context(self) -> SalesOrderContext:
        self._call("fetch_order_context")
        if self.context is None:
            raise SalesApiError("no context", status_code=503)
        return self.context

    def search_sellable_lots(self, query: SellableLotQuery) -> List[SellableLot]:
        self._call("search_sellable_lots", query)
        return list(self.lots)

    def create_sales_order(self, payload: CreateSalesOrderRequest) -> CreateSalesOrderResponse:
        self._call("create_sales_order", payload)
        return self.order_response

    def get_pending_order_status(self, pending_id: int) -> PendingSalesOrderStatus:
        self._call("get_pending_order_status", pending_id)
        if self.statuses:
            return self.statuses.pop(0)
        return PendingSalesOrderStatus(pending_id=pending_id, status="PENDING")

    def cancel_pending_order(self, pending_id: int) -> None:
        self._call("cancel_pending_order", pending_id)

    def lookup_customer_by_phone(self, phone_number: str) -> Optional[Customer]:
        self._call("lookup_customer_by_phone", phone_number)
        return self.customers.get(phone_number)

    def create_customer(self, payload: CreateCustomerRequest) -> Customer:
        self._call("create_customer", payload)
        existing = self.customers.get(payload.phone_number)
        customer = Customer(
            id=existing.id if existing else "42",
            full_name=payload.full_name,
            phone_number=payload.phone_number,
            email=payload.email,
            loyalty_code=payload.loyalty_code,
            loyalty_points=existing.loyalty_points if existing else 0,
            is_updated=existing is not None,
        )
        self.customers[payload.phone_number] = customer
        return customer


def pending_response(pending_id: int = 99, email: Optional[str] = "jane@example.com") -> CreateSalesOrderResponse:
    return CreateSalesOrderResponse(
        status="PENDING",
        pending=PendingSalesOrder(pending_id=pending_id, confirmation_token="tok", customer_email=email),
    )


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()
