from __future__ import annotations
from datetime import datetime
from decimal import Decimal
from typing import Optional, Dict, Any, List
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def _decimal_or_none(v: Any) -> Any:
    # floats go through str() so 0.1 stays 0.1
    if isinstance(v, float):
        return Decimal(str(v))
    return v


class ApiModel(BaseModel):
    """Backend payloads are camelCase; python side is snake_case."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


# ---------------------------------------------------------
# Inventory lots
# ---------------------------------------------------------

class SellableLot(ApiModel):
    lot_id: int
    lot_code: str = ""
    product_id: int
    product_name: str = ""
    sku_code: str = ""
    uom: str = ""
    qty_on_hand: Decimal = Decimal("0")
    expiry_date: Optional[datetime] = None
    received_at: Optional[datetime] = None
    media_url: Optional[str] = None
    supplier_name: Optional[str] = None
    category_id: Optional[int] = None
    category_name: Optional[str] = None
    parent_category_name: Optional[str] = None
    is_perishable: bool = False
    unit_cost: Decimal = Decimal("0")
    target_margin_pct: Decimal = Decimal("0")
    min_margin_pct: Decimal = Decimal("0")
    unit_price: Decimal = Decimal("0")
    discount_percent: Decimal = Decimal("0")
    suggested_qty: Optional[Decimal] = None
    has_pricing_gaps: bool = False

    @field_validator(
        "qty_on_hand", "unit_cost", "target_margin_pct", "min_margin_pct",
        "unit_price", "discount_percent", "suggested_qty",
        mode="before",
    )
    @classmethod
    def _floats_as_decimal(cls, v: Any) -> Any:
        return _decimal_or_none(v)


class SellableLotQuery(ApiModel):
    query: Optional[str] = None
    parent_category_ids: List[int] = Field(default_factory=list)
    category_ids: List[int] = Field(default_factory=list)
    supplier_ids: List[int] = Field(default_factory=list)
    limit: int = 30

    @field_validator("query", mode="before")
    @classmethod
    def _trim_query(cls, v: Any) -> Any:
        if v is None:
            return None
        text = str(v).strip()
        return text or None

    @field_validator("parent_category_ids", "category_ids", "supplier_ids", mode="before")
    @classmethod
    def _positive_ids(cls, v: Any) -> List[int]:
        if v is None:
            return []
        if not isinstance(v, (list, tuple, set)):
            v = [v]
        out: List[int] = []
        for item in v:
            try:
                num = int(str(item).strip())
            except (TypeError, ValueError):
                continue
            if num > 0:
                out.append(num)
        return out

    def to_params(self) -> Dict[str, Any]:
        """Query-string params; lists become repeated keys, empties are dropped."""
        raw = self.model_dump(by_alias=True, exclude_none=True)
        return {k: v for k, v in raw.items() if v != []}


# ---------------------------------------------------------
# Order context
# ---------------------------------------------------------

class SalesOrderContext(ApiModel):
    order_code: str
    generated_at: Optional[datetime] = None
    cashier_id: Optional[int] = None
    cashier_name: Optional[str] = None
    loyalty_redemption_step: Optional[int] = None
    loyalty_value_per_step: Optional[int] = None
    loyalty_earn_rate: Optional[int] = None


# ---------------------------------------------------------
# Customers
# ---------------------------------------------------------

class Customer(ApiModel):
    id: str
    full_name: str
    phone_number: str
    email: Optional[str] = None
    loyalty_code: Optional[str] = None
    loyalty_points: int = 0
    created_at: Optional[datetime] = None
    is_updated: bool = False

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_str(cls, v: Any) -> Any:
        return str(v) if isinstance(v, int) else v

    @field_validator("loyalty_points", mode="before")
    @classmethod
    def _points_as_int(cls, v: Any) -> Any:
        if v is None:
            return 0
        if isinstance(v, float):
            return int(v)
        return v


class CreateCustomerRequest(ApiModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    full_name: str = Field(min_length=1)
    phone_number: str = Field(min_length=1)
    email: str = Field(min_length=1)
    loyalty_code: Optional[str] = None

    @field_validator("loyalty_code", mode="before")
    @classmethod
    def _blank_code_is_none(cls, v: Any) -> Any:
        if v is None or not str(v).strip():
            return None
        return v


# ---------------------------------------------------------
# Sales orders
# ---------------------------------------------------------

class CreateSalesOrderLine(ApiModel):
    product_id: int
    lot_id: int
    quantity: float


class CreateSalesOrderRequest(ApiModel):
    order_code: Optional[str] = None
    customer_id: Optional[int] = None
    loyalty_points_to_redeem: int = 0
    lines: List[CreateSalesOrderLine] = Field(default_factory=list)


class PendingSalesOrder(ApiModel):
    pending_id: int
    confirmation_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    customer_email: Optional[str] = None


class CreateSalesOrderResponse(ApiModel):
    status: str = "CONFIRMED"
    order: Optional[Dict[str, Any]] = None
    pending: Optional[PendingSalesOrder] = None

    @property
    def is_pending(self) -> bool:
        return (self.status or "").strip().upper() == "PENDING"


class PendingSalesOrderStatus(ApiModel):
    pending_id: Optional[int] = None
    status: str = ""
    expires_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    is_confirmed: bool = False

    @field_validator("status", mode="before")
    @classmethod
    def _status_str(cls, v: Any) -> Any:
        return "" if v is None else v
