# -*- coding: utf-8 -*-
"""
Sales backend REST client.

Every backend response is wrapped in an envelope:

    {"code": "...", "message": "...", "data": <payload>}

The client unwraps ``data`` and turns every failure (transport error, non-2xx
status, broken envelope) into ``SalesApiError`` so callers only ever catch one
type. Calls are blocking; the order desk runs them off the event loop.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import requests
from pydantic import BaseModel, ValidationError

from .models import (
    CreateCustomerRequest,
    CreateSalesOrderRequest,
    CreateSalesOrderResponse,
    Customer,
    PendingSalesOrderStatus,
    SalesOrderContext,
    SellableLot,
    SellableLotQuery,
)

logger = logging.getLogger(__name__)


class SalesApiError(RuntimeError):
    """Backend call failed; ``server_message`` is the backend's own text, if any."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
        server_message: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.server_message = server_message


class UnauthorizedError(SalesApiError):
    """HTTP 401 - token missing or expired."""


def api_error_message(error: BaseException, fallback: str) -> str:
    if isinstance(error, SalesApiError) and error.server_message:
        return error.server_message
    return fallback


class SalesBackendClient:
    """
    Thin wrapper over the sales / customers endpoints.

    One instance owns one ``requests.Session``; call ``close()`` on shutdown.
    """

    def __init__(
        self,
        base_url: str,
        token: str = "",
        token_type: str = "Bearer",
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "Content-Type": "application/json",
            "Accept": "application/json",
        })
        if token:
            self.session.headers["Authorization"] = f"{token_type or 'Bearer'} {token}"

    @classmethod
    def from_settings(cls, settings) -> "SalesBackendClient":
        return cls(
            base_url=settings.SALES_API_BASE_URL,
            token=settings.SALES_API_TOKEN,
            token_type=settings.SALES_API_TOKEN_TYPE,
            timeout=settings.SALES_API_TIMEOUT,
        )

    def close(self) -> None:
        self.session.close()

    # -------------------- transport --------------------

    def _request(self, method: str, path: str, **kw) -> Any:
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.request(method, url, timeout=self.timeout, **kw)
        except requests.RequestException as e:
            logger.warning(f"{method} {path} failed: {e}")
            raise SalesApiError(f"{method} {path} failed: {e}") from e

        body: Any = None
        if resp.content:
            try:
                body = resp.json()
            except ValueError:
                body = None

        if not resp.ok:
            server_message = body.get("message") if isinstance(body, dict) else None
            code = body.get("code") if isinstance(body, dict) else None
            logger.warning(f"{method} {path} -> HTTP {resp.status_code} {server_message or ''}".rstrip())
            error_cls = UnauthorizedError if resp.status_code == 401 else SalesApiError
            raise error_cls(
                f"{method} {path} returned HTTP {resp.status_code}",
                status_code=resp.status_code,
                code=code,
                server_message=server_message,
            )

        logger.info(f"{method} {path} -> HTTP {resp.status_code}")
        return body

    @staticmethod
    def _unwrap(body: Any) -> Any:
        if not isinstance(body, dict) or "data" not in body:
            raise SalesApiError("Malformed response envelope")
        return body["data"]

    @staticmethod
    def _parse(model: type[BaseModel], data: Any) -> Any:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise SalesApiError(f"Unexpected {model.__name__} payload: {e}") from e

    # -------------------- sales orders --------------------

    def fetch_order_context(self) -> SalesOrderContext:
        data = self._unwrap(self._request("GET", "/api/sales-orders/context"))
        return self._parse(SalesOrderContext, data)

    def search_sellable_lots(self, query: SellableLotQuery) -> List[SellableLot]:
        # requests repeats list values as key=1&key=2
        data = self._unwrap(self._request("GET", "/api/sales-orders/available-items", params=query.to_params()))
        return [self._parse(SellableLot, item) for item in (data or [])]

    def create_sales_order(self, payload: CreateSalesOrderRequest) -> CreateSalesOrderResponse:
        body = payload.model_dump(by_alias=True, exclude_none=True)
        data = self._unwrap(self._request("POST", "/api/sales-orders", json=body))
        return self._parse(CreateSalesOrderResponse, data or {})

    def get_pending_order_status(self, pending_id: int) -> PendingSalesOrderStatus:
        data = self._unwrap(self._request("GET", f"/api/sales-orders/pending/{pending_id}"))
        return self._parse(PendingSalesOrderStatus, data or {})

    def cancel_pending_order(self, pending_id: int) -> None:
        self._request("DELETE", f"/api/sales-orders/pending/{pending_id}")

    # -------------------- customers --------------------

    def lookup_customer_by_phone(self, phone_number: str) -> Optional[Customer]:
        data = self._unwrap(self._request("GET", "/api/customers/lookup", params={"phoneNumber": phone_number}))
        if not data:
            return None
        return self._parse(Customer, data)

    def create_customer(self, payload: CreateCustomerRequest) -> Customer:
        body: Dict[str, Any] = payload.model_dump(by_alias=True, exclude_none=True)
        data = self._unwrap(self._request("POST", "/api/customers", json=body))
        return self._parse(Customer, data)
