# facility_hub/routers/products.py
"""
Products Router - unit records, batches, FIFO distribution, alerts.

All endpoints work inside one facility (see deps.get_facility_id).
"""
from __future__ import annotations
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from facility_hub.database import get_session
from facility_hub.deps import get_facility_id, get_user, http_error
from facility_hub.errors import FacilityHubError
from facility_hub.models import (
    UnitStatus, ValidationResult, ProductUnitOut, ProductListOut, ProductGroupOut,
    ProductDetailOut, BatchSummary, DistributionRequest, DistributionResult,
    BatchQuantityIn, BatchPriceIn, MoveBatchIn, MoveBatchItem,
    LowStockAlerts, ExpiryAlerts, AnalyticsOut,
)
from facility_hub.services import ProductService, DistributionService

router = APIRouter(prefix="/products", tags=["Products"])


# ============================================================================
# Creation / validation
# ============================================================================

@router.post("/validate", response_model=ValidationResult)
async def validate_product(
    payload: Dict[str, Any] = Body(...),
    facility_id: str = Depends(get_facility_id),
    db: AsyncSession = Depends(get_session),
):
    try:
        return ProductService(db).validate(payload, facility_id)
    except FacilityHubError as e:
        raise http_error(e)


@router.post("", response_model=List[ProductUnitOut], status_code=201)
async def create_products(
    payload: Dict[str, Any] = Body(...),
    facility_id: str = Depends(get_facility_id),
    user: str = Depends(get_user),
    db: AsyncSession = Depends(get_session),
):
    """
    Create the unit records for a product receipt.

    Batch id and SKU are generated when missing. Returns 422 with every
    validation problem when the payload does not satisfy the facility rules.
    """
    try:
        units = await ProductService(db).create_products(payload, facility_id, user)
    except FacilityHubError as e:
        raise http_error(e)
    return [ProductUnitOut.model_validate(u) for u in units]


# ============================================================================
# Read views
# ============================================================================

@router.get("", response_model=ProductListOut)
async def list_products(
    category: Optional[str] = Query(default=None),
    status: Optional[UnitStatus] = Query(default=None),
    search: Optional[str] = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=500),
    facility_id: str = Depends(get_facility_id),
    db: AsyncSession = Depends(get_session),
):
    return await ProductService(db).list_units(
        facility_id, category=category, status=status, search=search, page=page, limit=limit,
    )


@router.get("/grouped", response_model=List[ProductGroupOut])
async def grouped_products(
    facility_id: str = Depends(get_facility_id),
    db: AsyncSession = Depends(get_session),
):
    try:
        return await ProductService(db).grouped(facility_id)
    except FacilityHubError as e:
        raise http_error(e)


@router.get("/by-name/{name}", response_model=ProductDetailOut)
async def product_by_name(
    name: str,
    facility_id: str = Depends(get_facility_id),
    db: AsyncSession = Depends(get_session),
):
    try:
        return await ProductService(db).product_detail(facility_id, name)
    except FacilityHubError as e:
        raise http_error(e)


@router.get("/batches", response_model=List[BatchSummary])
async def batch_summaries(
    name: Optional[str] = Query(default=None),
    facility_id: str = Depends(get_facility_id),
    db: AsyncSession = Depends(get_session),
):
    return await ProductService(db).batch_summaries(facility_id, name)


@router.get("/alerts/low-stock", response_model=LowStockAlerts)
async def low_stock(
    threshold: Optional[int] = Query(default=None, ge=0),
    facility_id: str = Depends(get_facility_id),
    db: AsyncSession = Depends(get_session),
):
    try:
        return await ProductService(db).low_stock_alerts(facility_id, threshold)
    except FacilityHubError as e:
        raise http_error(e)


@router.get("/alerts/expiring", response_model=ExpiryAlerts)
async def expiring(
    days: Optional[int] = Query(default=None, ge=0),
    facility_id: str = Depends(get_facility_id),
    db: AsyncSession = Depends(get_session),
):
    try:
        return await ProductService(db).expiry_alerts(facility_id, days)
    except FacilityHubError as e:
        raise http_error(e)


@router.get("/analytics", response_model=AnalyticsOut)
async def analytics(
    facility_id: str = Depends(get_facility_id),
    db: AsyncSession = Depends(get_session),
):
    return await ProductService(db).analytics(facility_id)


# ============================================================================
# Distribution
# ============================================================================

@router.post("/distribute", response_model=DistributionResult)
async def distribute(
    request: DistributionRequest,
    facility_id: str = Depends(get_facility_id),
    db: AsyncSession = Depends(get_session),
):
    """FIFO distribution: oldest received units are consumed first. 409 when stock is short."""
    try:
        return await DistributionService(db).distribute(
            facility_id, request.name, request.destination, request.quantity,
        )
    except (FacilityHubError, ValueError) as e:
        raise http_error(e)


# ============================================================================
# Batches
# ============================================================================

@router.put("/batch/{batch_id}/quantity", response_model=List[ProductUnitOut])
async def change_batch_quantity(
    batch_id: str,
    body: BatchQuantityIn,
    facility_id: str = Depends(get_facility_id),
    user: str = Depends(get_user),
    db: AsyncSession = Depends(get_session),
):
    try:
        units = await ProductService(db).change_batch_quantity(
            facility_id, batch_id, body.quantity_change, body.price_per_unit, user,
        )
    except FacilityHubError as e:
        raise http_error(e)
    return [ProductUnitOut.model_validate(u) for u in units]


@router.put("/batch/{batch_id}/price", response_model=List[ProductUnitOut])
async def set_batch_price(
    batch_id: str,
    body: BatchPriceIn,
    facility_id: str = Depends(get_facility_id),
    user: str = Depends(get_user),
    db: AsyncSession = Depends(get_session),
):
    try:
        units = await ProductService(db).set_batch_price(facility_id, batch_id, body.price_per_unit, user)
    except FacilityHubError as e:
        raise http_error(e)
    return [ProductUnitOut.model_validate(u) for u in units]


@router.delete("/batch/{batch_id}")
async def delete_batch(
    batch_id: str,
    facility_id: str = Depends(get_facility_id),
    db: AsyncSession = Depends(get_session),
) -> Dict[str, Any]:
    try:
        deleted = await ProductService(db).delete_batch(facility_id, batch_id)
    except FacilityHubError as e:
        raise http_error(e)
    return {"ok": True, "batch_id": batch_id, "deleted": deleted}


@router.put("/move-batch", response_model=List[MoveBatchItem])
async def move_batch(
    body: MoveBatchIn,
    facility_id: str = Depends(get_facility_id),
    db: AsyncSession = Depends(get_session),
):
    try:
        return await ProductService(db).move_batch(facility_id, body.batch_id, body.section_id)
    except FacilityHubError as e:
        raise http_error(e)


# ============================================================================
# Single unit
# ============================================================================

@router.get("/{unit_id}", response_model=ProductUnitOut)
async def get_unit(
    unit_id: int,
    facility_id: str = Depends(get_facility_id),
    db: AsyncSession = Depends(get_session),
):
    try:
        unit = await ProductService(db).get_unit(facility_id, unit_id)
    except FacilityHubError as e:
        raise http_error(e)
    return ProductUnitOut.model_validate(unit)


@router.put("/{unit_id}", response_model=ProductUnitOut)
async def update_unit(
    unit_id: int,
    payload: Dict[str, Any] = Body(...),
    facility_id: str = Depends(get_facility_id),
    user: str = Depends(get_user),
    db: AsyncSession = Depends(get_session),
):
    try:
        unit = await ProductService(db).update_unit(facility_id, unit_id, payload, user)
    except FacilityHubError as e:
        raise http_error(e)
    return ProductUnitOut.model_validate(unit)


@router.delete("/{unit_id}")
async def delete_unit(
    unit_id: int,
    facility_id: str = Depends(get_facility_id),
    db: AsyncSession = Depends(get_session),
) -> Dict[str, Any]:
    try:
        await ProductService(db).delete_unit(facility_id, unit_id)
    except FacilityHubError as e:
        raise http_error(e)
    return {"ok": True, "id": unit_id}
