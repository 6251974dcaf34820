# facility_hub/routers/purchase_orders.py
"""
Purchase Orders Router - place, deliver, cancel and reschedule orders.
"""
from __future__ import annotations
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from facility_hub.database import get_session
from facility_hub.deps import get_facility_id, get_user, http_error
from facility_hub.errors import FacilityHubError
from facility_hub.models import (
    OrderStatus, PurchaseOrderIn, PurchaseOrderOut, DeliveryDateIn, DeliveryOut, ProductUnitOut,
)
from facility_hub.services import PurchaseOrderService

router = APIRouter(prefix="/purchase-orders", tags=["Purchase Orders"])


@router.get("", response_model=List[PurchaseOrderOut])
async def list_orders(
    status: Optional[OrderStatus] = Query(default=None),
    facility_id: str = Depends(get_facility_id),
    db: AsyncSession = Depends(get_session),
):
    orders = await PurchaseOrderService(db).list_orders(facility_id, status)
    return [PurchaseOrderOut.model_validate(o) for o in orders]


@router.post("", response_model=PurchaseOrderOut, status_code=201)
async def create_order(
    body: PurchaseOrderIn,
    facility_id: str = Depends(get_facility_id),
    user: str = Depends(get_user),
    db: AsyncSession = Depends(get_session),
):
    order = await PurchaseOrderService(db).create_order(facility_id, body, user)
    return PurchaseOrderOut.model_validate(order)


@router.get("/product/{name}", response_model=List[PurchaseOrderOut])
async def pending_orders_for_product(
    name: str,
    facility_id: str = Depends(get_facility_id),
    db: AsyncSession = Depends(get_session),
):
    orders = await PurchaseOrderService(db).pending_for_product(facility_id, name)
    return [PurchaseOrderOut.model_validate(o) for o in orders]


@router.get("/{order_id}", response_model=PurchaseOrderOut)
async def get_order(
    order_id: int,
    facility_id: str = Depends(get_facility_id),
    db: AsyncSession = Depends(get_session),
):
    try:
        order = await PurchaseOrderService(db).get_order(facility_id, order_id)
    except FacilityHubError as e:
        raise http_error(e)
    return PurchaseOrderOut.model_validate(order)


@router.put("/{order_id}/deliver", response_model=DeliveryOut)
async def deliver_order(
    order_id: int,
    fields: Optional[Dict[str, Any]] = Body(default=None),
    facility_id: str = Depends(get_facility_id),
    user: str = Depends(get_user),
    db: AsyncSession = Depends(get_session),
):
    """
    Receive the ordered stock as a new batch.

    The optional body holds product fields the facility requires beyond
    what the order carries (e.g. location). 422 with every validation
    problem when the receipt is refused, 409 when the order is not open.
    """
    try:
        order, units = await PurchaseOrderService(db).deliver(facility_id, order_id, fields, user)
    except FacilityHubError as e:
        raise http_error(e)
    return DeliveryOut(
        order=PurchaseOrderOut.model_validate(order),
        products=[ProductUnitOut.model_validate(u) for u in units],
    )


@router.put("/{order_id}/cancel", response_model=PurchaseOrderOut)
async def cancel_order(
    order_id: int,
    facility_id: str = Depends(get_facility_id),
    user: str = Depends(get_user),
    db: AsyncSession = Depends(get_session),
):
    try:
        order = await PurchaseOrderService(db).cancel(facility_id, order_id, user)
    except FacilityHubError as e:
        raise http_error(e)
    return PurchaseOrderOut.model_validate(order)


@router.put("/{order_id}/update-delivery-date", response_model=PurchaseOrderOut)
async def update_delivery_date(
    order_id: int,
    body: DeliveryDateIn,
    facility_id: str = Depends(get_facility_id),
    db: AsyncSession = Depends(get_session),
):
    try:
        order = await PurchaseOrderService(db).update_delivery_date(
            facility_id, order_id, body.expected_delivery_date,
        )
    except FacilityHubError as e:
        raise http_error(e)
    return PurchaseOrderOut.model_validate(order)
