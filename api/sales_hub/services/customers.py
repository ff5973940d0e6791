# sales_hub/services/customers.py
"""
Customer Binding - at most one loyalty customer attached to the basket.

The customer directory itself lives in the backend; this only looks customers
up by phone, creates/updates them, and remembers which one is bound.
"""
from __future__ import annotations
import asyncio
import logging
from typing import Callable, Optional

from pydantic import ValidationError

from sales_hub.client import SalesApiError, api_error_message
from sales_hub.models import CreateCustomerRequest, Customer
from sales_hub.services.alerts import AlertBoard

logger = logging.getLogger(__name__)


class CustomerBinding:

    def __init__(self, backend, alerts: AlertBoard, on_change: Optional[Callable[[], None]] = None):
        self.backend = backend
        self.alerts = alerts
        self._on_change = on_change
        self.customer: Optional[Customer] = None
        self.phone: str = ""
        self.lookup_in_flight = False
        self.create_in_flight = False

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()

    def bind(self, customer: Optional[Customer]) -> None:
        self.customer = customer
        self._changed()

    def clear(self) -> None:
        """Drop the bound customer; basket lines are not touched."""
        self.customer = None
        self.phone = ""
        self._changed()

    async def lookup(self, phone: str) -> Optional[Customer]:
        """
        Exact-match lookup; an empty result unbinds and raises an info alert.

        The lookup phone is only recorded once the backend answered.
        """
        phone = (phone or "").strip()
        if not phone:
            self.alerts.push("Enter a phone number before searching.", "info")
            return None
        if self.lookup_in_flight:
            return None

        self.lookup_in_flight = True
        try:
            found = await asyncio.to_thread(self.backend.lookup_customer_by_phone, phone)
        except SalesApiError as e:
            logger.warning(f"Customer lookup failed for {phone}: {e}")
            self.alerts.push("Unable to lookup customer. Please try again.", "error")
            return None
        finally:
            self.lookup_in_flight = False

        self.phone = phone
        if found is None:
            self.bind(None)
            self.alerts.push("No customer found for that phone number.", "info")
            return None

        self.bind(found)
        self.alerts.set_feedback(f"Customer {found.full_name} loaded.", "success")
        return found

    async def create_or_update(
        self,
        full_name: str,
        phone_number: str,
        email: str,
        loyalty_code: Optional[str] = None,
    ) -> Optional[Customer]:
        """
        Create a loyalty customer, or update the existing record for that phone.

        All of full name / phone / email are required and checked before any
        network call. On failure the current binding is left as it was.
        """
        try:
            payload = CreateCustomerRequest(
                full_name=full_name or "",
                phone_number=phone_number or "",
                email=email or "",
                loyalty_code=loyalty_code,
            )
        except ValidationError:
            self.alerts.push("All loyalty card fields are required.", "warning")
            return None
        if self.create_in_flight:
            return None

        self.create_in_flight = True
        try:
            customer = await asyncio.to_thread(self.backend.create_customer, payload)
        except SalesApiError as e:
            logger.warning(f"Customer create failed for {payload.phone_number}: {e}")
            self.alerts.push(
                api_error_message(e, "Unable to create customer. Please check the form and try again."),
                "error",
            )
            return None
        finally:
            self.create_in_flight = False

        self.phone = customer.phone_number
        self.bind(customer)
        message = (
            "Existing loyalty customer updated from phone number."
            if customer.is_updated
            else "Loyalty customer created successfully."
        )
        self.alerts.push(message, "success")
        self.alerts.set_feedback(message, "success")
        return customer
