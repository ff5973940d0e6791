# sales_hub/services/__init__.py
"""
Order desk services: basket, totals, alerts, customers, finalization.
"""
from sales_hub.services.order_desk import DeskState, FinalizeOutcome, SalesOrderDesk

__all__ = [
    "DeskState",
    "FinalizeOutcome",
    "SalesOrderDesk",
]
