# facility_hub/services/distribution.py
"""
FIFO stock distribution.

Oldest received stock leaves first. The walk is split into a plan step,
which checks total available stock before anything is touched, and an
apply step that decrements quantities and records distribution events.
"""
from __future__ import annotations
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Iterable, List, NamedTuple, Optional
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from facility_hub.db_models import ProductUnit, UnitDistribution
from facility_hub.errors import InsufficientStockError
from facility_hub.models import Allocation, DistributionResult, UnitStatus
from facility_hub.services.locks import distribution_locks

logger = logging.getLogger(__name__)


class PlannedStep(NamedTuple):
    unit: Any
    consume: int


def _status_value(unit: Any) -> str:
    status = getattr(unit, "status", None)
    return getattr(status, "value", status) or ""


def is_eligible(unit: Any) -> bool:
    return _status_value(unit) == UnitStatus.active.value and (unit.quantity or 0) > 0


def _received_key(unit: Any):
    received = getattr(unit, "received_date", None)
    if received is None:
        return (0, datetime.min, getattr(unit, "id", None) or 0)
    if received.tzinfo is not None:
        received = received.astimezone(timezone.utc).replace(tzinfo=None)
    return (1, received, getattr(unit, "id", None) or 0)


def fifo_order(units: Iterable[Any]) -> List[Any]:
    """Ascending by received date; units without a date first, ties by id."""
    return sorted(units, key=_received_key)


def plan_distribution(units: Iterable[Any], quantity: int, product_name: str = "") -> List[PlannedStep]:
    """
    Decide how much to take from each eligible unit, oldest first.

    Raises InsufficientStockError when the eligible units together hold
    less than `quantity`. Nothing is mutated.
    """
    if quantity <= 0:
        raise ValueError("quantity must be greater than 0")

    eligible = fifo_order(u for u in units if is_eligible(u))
    available = sum(u.quantity for u in eligible)
    if available < quantity:
        raise InsufficientStockError(product_name, quantity, available)

    plan: List[PlannedStep] = []
    remaining = quantity
    for unit in eligible:
        if remaining <= 0:
            break
        take = min(remaining, unit.quantity)
        plan.append(PlannedStep(unit, take))
        remaining -= take
    return plan


def apply_distribution(plan: List[PlannedStep], destination: str, now: datetime) -> List[Allocation]:
    allocations: List[Allocation] = []
    for unit, take in plan:
        price_sent = Decimal(str(unit.price_per_unit or 0)) * take
        unit.quantity -= take
        unit.distributions.append(UnitDistribution(
            destination=destination,
            quantity=take,
            price_sent=price_sent,
            date=now,
        ))
        allocations.append(Allocation(
            product_id=getattr(unit, "id", None),
            sku=unit.sku,
            batch_id=getattr(unit, "batch_id", None),
            quantity_consumed=take,
            price_sent=float(price_sent),
            remaining_quantity=unit.quantity,
        ))
    return allocations


def distribute(
    units: Iterable[Any],
    destination: str,
    quantity: int,
    product_name: str = "",
    now: Optional[datetime] = None,
) -> DistributionResult:
    now = now or datetime.now(timezone.utc)
    plan = plan_distribution(units, quantity, product_name)
    allocations = apply_distribution(plan, destination, now)
    return DistributionResult(
        product_name=product_name,
        destination=destination,
        requested_quantity=quantity,
        distributed_at=now,
        allocations=allocations,
    )


class DistributionService:
    """Runs FIFO distribution against the store, one writer per (facility, product)."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _candidates(self, facility_id: str, product_name: str) -> List[ProductUnit]:
        stmt = (
            select(ProductUnit)
            .where(
                ProductUnit.facility_id == facility_id,
                ProductUnit.name == product_name,
                ProductUnit.status == UnitStatus.active,
                ProductUnit.quantity > 0,
            )
            .order_by(ProductUnit.received_date.asc(), ProductUnit.id.asc())
            .with_for_update()
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def distribute(
        self,
        facility_id: str,
        product_name: str,
        destination: str,
        quantity: int,
    ) -> DistributionResult:
        if quantity <= 0:
            raise ValueError("quantity must be greater than 0")

        async with distribution_locks.hold((facility_id, product_name)):
            try:
                units = await self._candidates(facility_id, product_name)
                result = distribute(units, destination, quantity, product_name=product_name)
                # commit while still holding the key so the next writer sees the new quantities
                await self.db.commit()
            except Exception:
                await self.db.rollback()
                raise

        logger.info(
            "facility=%s distributed %s x %s to %s from %d unit(s)",
            facility_id, quantity, product_name, destination, len(result.allocations),
        )
        return result
