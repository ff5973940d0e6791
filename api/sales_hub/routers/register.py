# sales_hub/routers/register.py
"""
Register Router - HTTP facade over the single SalesOrderDesk of this process.

The desk itself owns all the rules; endpoints only translate JSON in/out and
return the full register snapshot after every mutation.
"""
from __future__ import annotations
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sales_hub.client import SalesApiError, UnauthorizedError
from sales_hub.models import ApiModel, SellableLot, SellableLotQuery
from sales_hub.services import SalesOrderDesk

router = APIRouter(prefix="/register", tags=["Register"])


def get_desk(request: Request) -> SalesOrderDesk:
    return request.app.state.desk


# All endpoints are async: the desk must only be touched from the event loop.


# ============================================================================
# Request bodies
# ============================================================================

class QuantityIn(ApiModel):
    quantity: Any = None


class RedemptionIn(ApiModel):
    points: int = 0


class LookupIn(ApiModel):
    phone_number: str = ""


class CustomerIn(ApiModel):
    full_name: str = ""
    phone_number: str = ""
    email: str = ""
    loyalty_code: Optional[str] = None


# ============================================================================
# Endpoints
# ============================================================================

@router.get("")
async def get_register(desk: SalesOrderDesk = Depends(get_desk)) -> Dict[str, Any]:
    return desk.snapshot()


@router.post("/context/refresh")
async def refresh_context(desk: SalesOrderDesk = Depends(get_desk)) -> Dict[str, Any]:
    await desk.load_context()
    return desk.snapshot()


@router.get("/lots")
async def search_lots(
    query: Optional[str] = None,
    parentCategoryIds: Optional[List[str]] = Query(None),
    categoryIds: Optional[List[str]] = Query(None),
    supplierIds: Optional[List[str]] = Query(None),
    limit: Optional[int] = None,
    desk: SalesOrderDesk = Depends(get_desk),
) -> List[Dict[str, Any]]:
    q = SellableLotQuery(
        query=query,
        parent_category_ids=parentCategoryIds,
        category_ids=categoryIds,
        supplier_ids=supplierIds,
        limit=limit or desk.search_limit,
    )
    try:
        lots = await desk.search_lots(q)
    except UnauthorizedError:
        raise HTTPException(401, detail="Sales backend rejected the credentials")
    except SalesApiError as e:
        raise HTTPException(502, detail=str(e))
    return [lot.model_dump(mode="json", by_alias=True) for lot in lots]


@router.post("/lines")
async def add_line(lot: SellableLot, desk: SalesOrderDesk = Depends(get_desk)) -> Dict[str, Any]:
    desk.add_lot(lot)
    return desk.snapshot()


@router.patch("/lines/{line_id}")
async def update_line(line_id: str, body: QuantityIn, desk: SalesOrderDesk = Depends(get_desk)) -> Dict[str, Any]:
    try:
        desk.set_quantity(line_id, body.quantity)
    except KeyError:
        raise HTTPException(404, detail="Line not found")
    return desk.snapshot()


@router.delete("/lines/{line_id}")
async def delete_line(line_id: str, desk: SalesOrderDesk = Depends(get_desk)) -> Dict[str, Any]:
    desk.remove_line(line_id)
    return desk.snapshot()


@router.put("/redemption")
async def put_redemption(body: RedemptionIn, desk: SalesOrderDesk = Depends(get_desk)) -> Dict[str, Any]:
    desk.request_redemption(body.points)
    return desk.snapshot()


@router.post("/redemption/max")
async def max_redemption(desk: SalesOrderDesk = Depends(get_desk)) -> Dict[str, Any]:
    desk.apply_max_redemption()
    return desk.snapshot()


@router.post("/customer/lookup")
async def lookup_customer(body: LookupIn, desk: SalesOrderDesk = Depends(get_desk)) -> Dict[str, Any]:
    if desk.customers.lookup_in_flight:
        raise HTTPException(409, detail="Customer lookup already in progress")
    await desk.lookup_customer(body.phone_number)
    return desk.snapshot()


@router.post("/customer")
async def create_customer(body: CustomerIn, desk: SalesOrderDesk = Depends(get_desk)) -> Dict[str, Any]:
    if desk.customers.create_in_flight:
        raise HTTPException(409, detail="Customer save already in progress")
    await desk.create_customer(body.full_name, body.phone_number, body.email, body.loyalty_code)
    return desk.snapshot()


@router.delete("/customer")
async def clear_customer(desk: SalesOrderDesk = Depends(get_desk)) -> Dict[str, Any]:
    desk.clear_customer()
    return desk.snapshot()


@router.post("/finalize")
async def finalize(desk: SalesOrderDesk = Depends(get_desk)) -> Dict[str, Any]:
    outcome = await desk.finalize()
    return {"outcome": outcome.value, "register": desk.snapshot()}


@router.post("/pending/cancel")
async def cancel_pending(desk: SalesOrderDesk = Depends(get_desk)) -> Dict[str, Any]:
    if desk.pending is None:
        raise HTTPException(404, detail="No pending order")
    await desk.cancel_pending()
    return desk.snapshot()


@router.delete("/alerts/{alert_id}")
async def dismiss_alert(alert_id: str, desk: SalesOrderDesk = Depends(get_desk)) -> Dict[str, Any]:
    desk.dismiss_alert(alert_id)
    return desk.snapshot()


@router.post("/reset")
async def reset(desk: SalesOrderDesk = Depends(get_desk)) -> Dict[str, Any]:
    desk.reset()
    return desk.snapshot()
