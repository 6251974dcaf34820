# facility_hub/services/purchase_orders.py
"""
Purchase order service.

Orders are placed for a product name and stay `ordered` until they are
either cancelled or delivered. Delivery receives the ordered quantity as
a new batch through ProductService.create_products, so the facility's id
generation and validation rules apply to it like to any other receipt.
"""
from __future__ import annotations
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from facility_hub.config_resolver import ConfigResolver, resolver as default_resolver
from facility_hub.db_models import ProductUnit, PurchaseOrder
from facility_hub.errors import NotFoundError, OrderStateError
from facility_hub.models import OrderStatus, PurchaseOrderIn
from facility_hub.services.locks import order_locks
from facility_hub.services.products import ProductService

logger = logging.getLogger(__name__)


class PurchaseOrderService:
    def __init__(self, db: AsyncSession, resolver: ConfigResolver = default_resolver):
        self.db = db
        self.products = ProductService(db, resolver)

    async def list_orders(self, facility_id: str, status: Optional[OrderStatus] = None) -> List[PurchaseOrder]:
        stmt = select(PurchaseOrder).where(PurchaseOrder.facility_id == facility_id)
        if status:
            stmt = stmt.where(PurchaseOrder.status == status)
        stmt = stmt.order_by(PurchaseOrder.order_date.desc(), PurchaseOrder.id.desc())
        return list((await self.db.execute(stmt)).scalars().all())

    async def pending_for_product(self, facility_id: str, product_name: str) -> List[PurchaseOrder]:
        stmt = (
            select(PurchaseOrder)
            .where(
                PurchaseOrder.facility_id == facility_id,
                PurchaseOrder.product_name == product_name,
                PurchaseOrder.status == OrderStatus.ordered,
            )
            .order_by(PurchaseOrder.order_date, PurchaseOrder.id)
        )
        return list((await self.db.execute(stmt)).scalars().all())

    async def get_order(self, facility_id: str, order_id: int, for_update: bool = False) -> PurchaseOrder:
        stmt = select(PurchaseOrder).where(
            PurchaseOrder.facility_id == facility_id,
            PurchaseOrder.id == order_id,
        )
        if for_update:
            stmt = stmt.with_for_update()
        order = (await self.db.execute(stmt)).scalar_one_or_none()
        if order is None:
            raise NotFoundError("Purchase order", order_id)
        return order

    async def create_order(self, facility_id: str, body: PurchaseOrderIn, user: str = "system") -> PurchaseOrder:
        order = PurchaseOrder(
            facility_id=facility_id,
            product_name=body.product_name.strip(),
            category=body.category,
            quantity=body.quantity,
            price_per_unit=Decimal(str(body.price_per_unit)),
            status=OrderStatus.ordered,
            order_date=datetime.now(timezone.utc),
            expected_delivery_date=body.expected_delivery_date,
            supplier_info=body.supplier_info,
            notes=body.notes,
            created_by=user,
        )
        order.recalculate_total()
        self.db.add(order)
        await self.db.flush()
        logger.info(
            "facility=%s purchase order %s placed: %d x %s at %s by %s",
            facility_id, order.id, order.quantity, order.product_name, order.price_per_unit, user,
        )
        return order

    async def deliver(
        self,
        facility_id: str,
        order_id: int,
        fields: Optional[Dict[str, Any]] = None,
        user: str = "system",
    ) -> Tuple[PurchaseOrder, List[ProductUnit]]:
        """
        Mark an ordered purchase order delivered and receive its stock.

        `fields` carries extra product fields the facility may require
        (location, expiry date, custom fields); the order's own name,
        quantity and price always win. The status change and the new units
        are committed together, a validation failure leaves the order open.
        """
        async with order_locks.hold((facility_id, order_id)):
            try:
                order = await self.get_order(facility_id, order_id, for_update=True)
                if order.status != OrderStatus.ordered:
                    raise OrderStateError(order.id, order.status.value, "delivered")

                now = datetime.now(timezone.utc)
                order.status = OrderStatus.delivered
                order.actual_delivery_date = now

                payload: Dict[str, Any] = dict(fields or {})
                payload.update({
                    "name": order.product_name,
                    "quantity": order.quantity,
                    "pricePerUnit": order.price_per_unit,
                })
                if order.category:
                    payload.setdefault("category", order.category)
                payload.setdefault("receivedDate", now)
                payload.setdefault("origin", "Purchase Order")
                payload.setdefault("purchaseOrderId", order.id)
                if order.supplier_info:
                    payload.setdefault("supplier", order.supplier_info)

                units = await self.products.create_products(payload, facility_id, user)
            except Exception:
                await self.db.rollback()
                raise

        logger.info(
            "facility=%s purchase order %s delivered as batch %s (%d record(s)) by %s",
            facility_id, order_id, units[0].batch_id if units else "-", len(units), user,
        )
        return order, units

    async def cancel(self, facility_id: str, order_id: int, user: str = "system") -> PurchaseOrder:
        async with order_locks.hold((facility_id, order_id)):
            order = await self.get_order(facility_id, order_id, for_update=True)
            if order.status != OrderStatus.ordered:
                raise OrderStateError(order.id, order.status.value, "cancelled")
            order.status = OrderStatus.cancelled
            await self.db.commit()
        logger.info("facility=%s purchase order %s cancelled by %s", facility_id, order_id, user)
        return order

    async def update_delivery_date(
        self,
        facility_id: str,
        order_id: int,
        expected_delivery_date: Optional[datetime],
    ) -> PurchaseOrder:
        order = await self.get_order(facility_id, order_id)
        if order.status != OrderStatus.ordered:
            raise OrderStateError(order.id, order.status.value, "rescheduled")
        order.expected_delivery_date = expected_delivery_date
        await self.db.flush()
        return order
