# facility_hub/services/products.py
"""
Product unit service.

Handles:
- Creating units from raw product payloads (identifier generation,
  facility validation, one record per unit or one aggregate record)
- Unit CRUD, product detail and grouped views
- Batch level changes (quantity, price, delete, placement into sections)
- Low-stock / expiry alerts and facility analytics
"""
from __future__ import annotations
from contextlib import AsyncExitStack
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Tuple
import logging, math

from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from facility_hub.config_resolver import ConfigResolver, resolver as default_resolver, deep_get, is_missing
from facility_hub.db_models import ProductUnit, UnitPlacement, Section
from facility_hub.errors import FacilityValidationError, NotFoundError
from facility_hub.models import (
    UnitStatus, ValidationResult, ProductDetailOut, ProductGroupOut, ProductListOut,
    ProductUnitOut, BatchSummary, MoveBatchItem, StockAlertItem, LowStockAlerts,
    ExpiryAlertItem, ExpiryAlerts, CategoryStat, BatchValue, AnalyticsOut,
)
from facility_hub.services.batches import summarize, summarize_product
from facility_hub.services.distribution import plan_distribution
from facility_hub.services.identifiers import (
    BatchIdentifierService, batch_prefix, generate_sku,
)
from facility_hub.services.locks import identifier_locks
from facility_hub.settings import settings

logger = logging.getLogger(__name__)

# payload key -> column; camelCase first, snake_case accepted too
_PAYLOAD_COLUMNS = {
    "name": ("name",),
    "sku": ("sku",),
    "batch_id": ("batchId", "batch_id"),
    "category": ("category",),
    "description": ("description",),
    "quantity": ("quantity",),
    "price_per_unit": ("pricePerUnit", "price_per_unit", "price"),
    "received_date": ("receivedDate", "received_date"),
    "expiry_date": ("expiryDate", "expiry_date"),
    "status": ("status",),
    "location": ("location",),
    "custom_fields": ("customFields", "custom_fields"),
}
_KNOWN_KEYS = {k for keys in _PAYLOAD_COLUMNS.values() for k in keys} | {"id", "facilityId"}
UPDATABLE = ("name", "category", "description", "quantity", "price_per_unit",
             "expiry_date", "status", "location", "custom_fields")


def _batch_key(facility_id: str, batch_id: Any) -> Tuple[str, str, str]:
    return ("batch", facility_id, str(batch_id))


def _pick(payload: Dict[str, Any], column: str) -> Any:
    for key in _PAYLOAD_COLUMNS[column]:
        if key in payload:
            return payload[key]
    return None


def _naive_utc(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None or dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def _parse_datetime(value: Any, field: str, errors: List[str]) -> Optional[datetime]:
    if is_missing(value):
        return None
    if isinstance(value, datetime):
        return value
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        errors.append(f"{field} is not a valid date")
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _parse_decimal(value: Any, field: str, errors: List[str]) -> Decimal:
    if is_missing(value):
        return Decimal("0")
    try:
        out = Decimal(str(value))
    except InvalidOperation:
        errors.append(f"{field} must be a number")
        return Decimal("0")
    if out < 0:
        errors.append(f"{field} cannot be negative")
    return out


def _parse_int(value: Any, field: str, errors: List[str], default: int = 0) -> int:
    if is_missing(value):
        return default
    try:
        out = int(value)
    except (TypeError, ValueError):
        errors.append(f"{field} must be a whole number")
        return default
    if out < 0:
        errors.append(f"{field} cannot be negative")
    return out


def _parse_status(value: Any, errors: List[str]) -> UnitStatus:
    if is_missing(value):
        return UnitStatus.active
    try:
        return UnitStatus(value)
    except ValueError:
        errors.append(f"status must be one of {', '.join(s.value for s in UnitStatus)}")
        return UnitStatus.active


def _normalize_location(value: Any) -> Optional[Dict[str, Any]]:
    if is_missing(value):
        return None
    if isinstance(value, dict):
        return dict(value)
    return {"label": str(value)}


def _extra_fields(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Facility-defined fields outside the fixed columns end up in custom_fields."""
    custom = dict(_pick(payload, "custom_fields") or {})
    for key, value in payload.items():
        if key not in _KNOWN_KEYS and not is_missing(value):
            custom.setdefault(key, value)
    return custom


def unit_to_payload(unit: ProductUnit) -> Dict[str, Any]:
    """Stored unit as a product payload, the shape facility validation reads."""
    data: Dict[str, Any] = dict(unit.custom_fields or {})
    data.update({
        "name": unit.name,
        "sku": unit.sku,
        "batchId": unit.batch_id,
        "category": unit.category,
        "description": unit.description,
        "quantity": unit.quantity,
        "pricePerUnit": unit.price_per_unit,
        "receivedDate": unit.received_date,
        "expiryDate": unit.expiry_date,
        "status": unit.status.value if unit.status else None,
        "location": unit.location,
        "customFields": dict(unit.custom_fields or {}),
    })
    return data


class ProductService:
    def __init__(self, db: AsyncSession, resolver: ConfigResolver = default_resolver):
        self.db = db
        self.resolver = resolver
        self.ids = BatchIdentifierService(db)

    # =====================================================================
    # Creation
    # =====================================================================

    def validate(self, payload: Dict[str, Any], facility_id: str) -> ValidationResult:
        return self.resolver.validate(payload, facility_id)

    async def create_products(
        self,
        payload: Dict[str, Any],
        facility_id: str,
        user: str = "system",
    ) -> List[ProductUnit]:
        """
        Create the unit records for one product receipt.

        Missing batch id / SKU are generated per the facility configuration,
        the completed payload is validated and either one record per unit
        (trackIndividualUnits) or one aggregate record is stored.
        Raises FacilityValidationError with every problem found.
        """
        config = self.resolver.resolve(facility_id)
        rules = config["validation"]
        inventory = config["inventory"]
        data = dict(payload)
        name = str(data.get("name") or "").strip()

        async with AsyncExitStack() as held:
            await held.enter_async_context(identifier_locks.hold(("prefix", facility_id, batch_prefix(name))))
            batch_id = _pick(data, "batch_id")
            if is_missing(batch_id) and name and inventory.get("autoGenerateBatchIds", True):
                batch_id = await self.ids.next_batch_id(
                    facility_id, name,
                    batch_id_format=rules.get("batchIdFormat") or "auto",
                    sku=data.get("sku"),
                    lot_number=data.get("lotNumber") or deep_get(data, ["customFields", "lotNumber"]),
                )
                data["batchId"] = batch_id
            if not is_missing(batch_id):
                # same key change_batch_quantity takes, unit SKUs of one batch come from one counter
                await held.enter_async_context(identifier_locks.hold(_batch_key(facility_id, batch_id)))

            existing_count = await self.ids.last_unit_number(facility_id, batch_id) if not is_missing(batch_id) else 0
            explicit_sku = data.get("sku")
            auto_sku = is_missing(explicit_sku)
            if auto_sku and not is_missing(batch_id):
                data["sku"] = generate_sku(batch_id, facility_id, existing_count)

            errors = list(self.validate(data, facility_id).errors)
            if is_missing(batch_id) and "batchId is required" not in errors:
                errors.append("batchId is required")
            if is_missing(data.get("sku")) and "sku is required" not in errors:
                errors.append("sku is required")

            quantity = _parse_int(data.get("quantity"), "quantity", errors, default=1)
            price = _parse_decimal(_pick(data, "price_per_unit"), "pricePerUnit", errors)
            received = _parse_datetime(_pick(data, "received_date"), "receivedDate", errors)
            expiry = _parse_datetime(_pick(data, "expiry_date"), "expiryDate", errors)
            status = _parse_status(data.get("status"), errors)
            individual = bool(inventory.get("trackIndividualUnits", True))
            if individual and quantity == 0 and not any(e.startswith("quantity") for e in errors):
                errors.append("quantity must be at least 1 when units are tracked individually")

            if name and not rules.get("allowDuplicateNames", True):
                if await self._name_taken(facility_id, name, batch_id):
                    errors.append(f"name already exists for facility {facility_id}")

            if errors:
                raise FacilityValidationError(errors)

            if individual:
                if auto_sku:
                    skus = [generate_sku(batch_id, facility_id, existing_count + i) for i in range(quantity)]
                elif quantity == 1:
                    skus = [str(explicit_sku)]
                else:
                    skus = [f"{explicit_sku}-{i + 1:02d}" for i in range(quantity)]
                per_record = 1
            else:
                skus = [str(data["sku"])]
                per_record = quantity

            taken = await self._existing_skus(facility_id, skus)
            if taken:
                raise FacilityValidationError(
                    [f"SKU {sku} already exists for facility {facility_id}" for sku in taken]
                )

            now = datetime.now(timezone.utc)
            base = {
                "facility_id": facility_id,
                "name": name,
                "batch_id": str(batch_id),
                "category": data.get("category"),
                "description": data.get("description"),
                "price_per_unit": price,
                "received_date": received or now,
                "expiry_date": expiry,
                "status": status,
                "location": _normalize_location(data.get("location")),
                "created_by": user,
                "updated_by": user,
            }
            units = [
                ProductUnit(
                    sku=sku,
                    quantity=per_record,
                    initial_quantity=per_record,
                    custom_fields=_extra_fields(data),
                    created_at=now,
                    updated_at=now,
                    **base,
                )
                for sku in skus
            ]
            self.db.add_all(units)
            await self.db.commit()

        logger.info(
            "facility=%s created %d record(s) of %s in batch %s by %s",
            facility_id, len(units), name, batch_id, user,
        )
        return units

    async def _name_taken(self, facility_id: str, name: str, batch_id: Any) -> bool:
        stmt = select(ProductUnit.id).where(
            ProductUnit.facility_id == facility_id,
            func.lower(ProductUnit.name) == name.lower(),
        )
        if not is_missing(batch_id):
            stmt = stmt.where(ProductUnit.batch_id != str(batch_id))
        result = await self.db.execute(stmt.limit(1))
        return result.scalar_one_or_none() is not None

    async def _existing_skus(self, facility_id: str, skus: List[str]) -> List[str]:
        if not skus:
            return []
        stmt = select(ProductUnit.sku).where(
            ProductUnit.facility_id == facility_id,
            ProductUnit.sku.in_(skus),
        )
        result = await self.db.execute(stmt)
        return sorted(result.scalars().all())

    # =====================================================================
    # Units
    # =====================================================================

    async def list_units(
        self,
        facility_id: str,
        category: Optional[str] = None,
        status: Optional[UnitStatus] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 50,
    ) -> ProductListOut:
        stmt = select(ProductUnit).where(ProductUnit.facility_id == facility_id)
        if category:
            stmt = stmt.where(ProductUnit.category == category)
        if status:
            stmt = stmt.where(ProductUnit.status == status)
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(or_(
                ProductUnit.name.ilike(pattern),
                ProductUnit.sku.ilike(pattern),
                ProductUnit.batch_id.ilike(pattern),
            ))

        total = (await self.db.execute(
            select(func.count()).select_from(stmt.subquery())
        )).scalar() or 0

        stmt = stmt.order_by(ProductUnit.name, ProductUnit.received_date, ProductUnit.id)
        stmt = stmt.offset((page - 1) * limit).limit(limit)
        items = (await self.db.execute(stmt)).scalars().all()
        return ProductListOut(
            items=[ProductUnitOut.model_validate(u) for u in items],
            page=page,
            limit=limit,
            total=total,
            pages=math.ceil(total / limit) if total else 0,
        )

    async def get_unit(self, facility_id: str, unit_id: int) -> ProductUnit:
        stmt = select(ProductUnit).where(
            ProductUnit.facility_id == facility_id,
            ProductUnit.id == unit_id,
        )
        unit = (await self.db.execute(stmt)).scalar_one_or_none()
        if unit is None:
            raise NotFoundError("Product unit", unit_id)
        return unit

    async def update_unit(
        self,
        facility_id: str,
        unit_id: int,
        payload: Dict[str, Any],
        user: str = "system",
    ) -> ProductUnit:
        """Apply the given fields and re-validate the whole unit against the facility rules."""
        unit = await self.get_unit(facility_id, unit_id)
        errors: List[str] = []
        changes: Dict[str, Any] = {}

        for column in UPDATABLE:
            if not any(k in payload for k in _PAYLOAD_COLUMNS[column]):
                continue
            value = _pick(payload, column)
            if column == "quantity":
                value = _parse_int(value, "quantity", errors)
            elif column == "price_per_unit":
                value = _parse_decimal(value, "pricePerUnit", errors)
            elif column == "expiry_date":
                value = _parse_datetime(value, "expiryDate", errors)
            elif column == "status":
                value = _parse_status(value, errors)
            elif column == "location":
                value = _normalize_location(value)
            elif column == "custom_fields":
                value = {**(unit.custom_fields or {}), **(value or {})}
            changes[column] = value

        extras = {k: v for k, v in payload.items() if k not in _KNOWN_KEYS}
        if extras:
            changes["custom_fields"] = {**changes.get("custom_fields", unit.custom_fields or {}), **extras}

        candidate = unit_to_payload(unit)
        for column, value in changes.items():
            candidate[_PAYLOAD_COLUMNS[column][0]] = value
        candidate.update(changes.get("custom_fields") or {})
        # the SKU cannot change after creation, its format was checked then
        sku_error = f"SKU format is invalid for facility {facility_id}"
        errors.extend(e for e in self.validate(candidate, facility_id).errors if e != sku_error)
        if errors:
            raise FacilityValidationError(errors)

        for column, value in changes.items():
            setattr(unit, column, value)
        if unit.initial_quantity is not None and unit.quantity > unit.initial_quantity:
            unit.initial_quantity = unit.quantity
        unit.updated_by = user
        await self.db.flush()
        logger.info("facility=%s updated unit %s (%s) by %s", facility_id, unit.id, ", ".join(changes), user)
        return unit

    async def delete_unit(self, facility_id: str, unit_id: int) -> None:
        unit = await self.get_unit(facility_id, unit_id)
        await self.db.delete(unit)
        await self.db.flush()
        logger.info("facility=%s deleted unit %s (%s)", facility_id, unit_id, unit.sku)

    async def units_by_name(self, facility_id: str, name: str) -> List[ProductUnit]:
        stmt = (
            select(ProductUnit)
            .where(ProductUnit.facility_id == facility_id, ProductUnit.name == name)
            .order_by(ProductUnit.received_date, ProductUnit.id)
        )
        return list((await self.db.execute(stmt)).scalars().all())

    async def product_detail(self, facility_id: str, name: str) -> ProductDetailOut:
        units = await self.units_by_name(facility_id, name)
        if not units:
            raise NotFoundError("Product", name)
        return ProductDetailOut(
            summary=summarize_product(name, units),
            batches=summarize(units),
            units=[ProductUnitOut.model_validate(u) for u in units],
        )

    async def grouped(self, facility_id: str) -> List[ProductGroupOut]:
        """Units grouped by the facility's composite key."""
        stmt = (
            select(ProductUnit)
            .where(ProductUnit.facility_id == facility_id)
            .order_by(ProductUnit.name, ProductUnit.received_date, ProductUnit.id)
        )
        units = (await self.db.execute(stmt)).scalars().all()

        groups: Dict[str, ProductGroupOut] = {}
        for unit in units:
            key = self.resolver.generate_composite_key(unit, facility_id)
            group = groups.get(key)
            if group is None:
                group = groups[key] = ProductGroupOut(
                    key=key, name=unit.name, sku=unit.sku, category=unit.category,
                    total_quantity=0, unit_count=0, batch_ids=[],
                )
            group.total_quantity += unit.quantity
            group.unit_count += 1
            if unit.batch_id not in group.batch_ids:
                group.batch_ids.append(unit.batch_id)
        return list(groups.values())

    # =====================================================================
    # Batches
    # =====================================================================

    async def batch_units(self, facility_id: str, batch_id: str) -> List[ProductUnit]:
        stmt = (
            select(ProductUnit)
            .where(ProductUnit.facility_id == facility_id, ProductUnit.batch_id == batch_id)
            .order_by(ProductUnit.created_at, ProductUnit.id)
        )
        units = list((await self.db.execute(stmt)).scalars().all())
        if not units:
            raise NotFoundError("Batch", batch_id)
        return units

    async def batch_summaries(self, facility_id: str, name: Optional[str] = None) -> List[BatchSummary]:
        stmt = select(ProductUnit).where(ProductUnit.facility_id == facility_id)
        if name:
            stmt = stmt.where(ProductUnit.name == name)
        stmt = stmt.order_by(ProductUnit.received_date, ProductUnit.id)
        return summarize((await self.db.execute(stmt)).scalars().all())

    async def change_batch_quantity(
        self,
        facility_id: str,
        batch_id: str,
        quantity_change: int,
        price_per_unit: Optional[float] = None,
        user: str = "system",
    ) -> List[ProductUnit]:
        """
        Grow or shrink a batch.

        Individually tracked batches get new units with the next SKU numbers
        (positive change). Aggregate records have their quantity raised on
        the first record. A negative change takes stock from the active
        units in FIFO order: untouched individual units are deleted, anything
        with distribution history is only brought down so its events stay.
        """
        individual = bool(self.resolver.resolve(facility_id)["inventory"].get("trackIndividualUnits", True))

        async with identifier_locks.hold(_batch_key(facility_id, batch_id)):
            try:
                units = await self.batch_units(facility_id, batch_id)
                template = units[0]
                price = Decimal(str(price_per_unit)) if price_per_unit is not None else template.price_per_unit

                if individual and quantity_change > 0:
                    last = await self.ids.last_unit_number(facility_id, batch_id)
                    now = datetime.now(timezone.utc)
                    for i in range(quantity_change):
                        self.db.add(ProductUnit(
                            facility_id=facility_id,
                            name=template.name,
                            sku=generate_sku(batch_id, facility_id, last + i),
                            batch_id=batch_id,
                            category=template.category,
                            description=template.description,
                            quantity=1,
                            initial_quantity=1,
                            price_per_unit=price,
                            received_date=template.received_date,
                            expiry_date=template.expiry_date,
                            status=UnitStatus.active,
                            location=dict(template.location) if template.location else None,
                            custom_fields=dict(template.custom_fields or {}),
                            created_by=user,
                            updated_by=user,
                            created_at=now,
                            updated_at=now,
                        ))
                elif quantity_change > 0:
                    template.quantity += quantity_change
                    template.initial_quantity = (template.initial_quantity or 0) + quantity_change
                    template.updated_by = user
                elif quantity_change < 0:
                    removed = set()
                    for unit, take in plan_distribution(units, -quantity_change, template.name):
                        if individual and not unit.distributions:
                            await self.db.delete(unit)
                            removed.add(unit.id)
                        else:
                            unit.quantity -= take
                            unit.updated_by = user
                    units = [u for u in units if u.id not in removed]

                if price_per_unit is not None:
                    for unit in units:
                        unit.price_per_unit = price
                await self.db.commit()
            except Exception:
                await self.db.rollback()
                raise

        logger.info("facility=%s batch %s quantity changed by %+d by %s", facility_id, batch_id, quantity_change, user)
        return await self._batch_units_or_empty(facility_id, batch_id)

    async def _batch_units_or_empty(self, facility_id: str, batch_id: str) -> List[ProductUnit]:
        try:
            return await self.batch_units(facility_id, batch_id)
        except NotFoundError:
            return []

    async def set_batch_price(
        self,
        facility_id: str,
        batch_id: str,
        price_per_unit: float,
        user: str = "system",
    ) -> List[ProductUnit]:
        units = await self.batch_units(facility_id, batch_id)
        price = Decimal(str(price_per_unit))
        for unit in units:
            unit.price_per_unit = price
            unit.updated_by = user
        await self.db.flush()
        logger.info("facility=%s batch %s price set to %s by %s", facility_id, batch_id, price, user)
        return units

    async def delete_batch(self, facility_id: str, batch_id: str) -> int:
        units = await self.batch_units(facility_id, batch_id)
        for unit in units:
            await self.db.delete(unit)
        await self.db.flush()
        logger.info("facility=%s batch %s deleted (%d records)", facility_id, batch_id, len(units))
        return len(units)

    async def move_batch(self, facility_id: str, batch_id: str, section_id: int) -> List[MoveBatchItem]:
        """
        Place every unit of a batch into a section.

        Units whose category the section accepts get their placements
        replaced by one placement of their full quantity; the others are
        left where they are and reported.
        """
        section = await SectionService(self.db).get_section(facility_id, section_id)
        units = await self.batch_units(facility_id, batch_id)

        report: List[MoveBatchItem] = []
        for unit in units:
            if not section.accepts(unit.category):
                report.append(MoveBatchItem(unit_id=unit.id, sku=unit.sku, status="Categories do not match"))
                continue
            unit.placements = [UnitPlacement(
                section_id=section.id,
                section=section.name,
                quantity=unit.quantity,
            )]
            report.append(MoveBatchItem(unit_id=unit.id, sku=unit.sku, status="moved"))
        await self.db.flush()

        moved = sum(1 for r in report if r.status == "moved")
        logger.info(
            "facility=%s batch %s moved to section %s: %d moved, %d rejected",
            facility_id, batch_id, section.name, moved, len(report) - moved,
        )
        return report

    # =====================================================================
    # Alerts / analytics
    # =====================================================================

    async def _active_units(self, facility_id: str) -> List[ProductUnit]:
        stmt = (
            select(ProductUnit)
            .where(ProductUnit.facility_id == facility_id, ProductUnit.status == UnitStatus.active)
            .order_by(ProductUnit.name, ProductUnit.received_date, ProductUnit.id)
        )
        return list((await self.db.execute(stmt)).scalars().all())

    async def low_stock_alerts(self, facility_id: str, threshold: Optional[int] = None) -> LowStockAlerts:
        threshold = settings.LOW_STOCK_THRESHOLD if threshold is None else threshold
        critical = min(settings.LOW_STOCK_CRITICAL, threshold)
        out = LowStockAlerts(enabled=False, threshold=threshold, critical_threshold=critical)
        if not self.resolver.resolve(facility_id)["inventory"].get("lowStockAlerts", False):
            return out
        out.enabled = True

        products: Dict[str, StockAlertItem] = {}
        for unit in await self._active_units(facility_id):
            item = products.get(unit.name)
            if item is None:
                item = products[unit.name] = StockAlertItem(name=unit.name, category=unit.category, quantity=0)
            item.quantity += max(unit.quantity, 0)
            if unit.batch_id not in item.batch_ids:
                item.batch_ids.append(unit.batch_id)

        for item in products.values():
            if item.quantity == 0:
                out.out_of_stock.append(item)
            elif item.quantity <= critical:
                out.critical.append(item)
            elif item.quantity <= threshold:
                out.low.append(item)
        return out

    async def expiry_alerts(
        self,
        facility_id: str,
        window_days: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> ExpiryAlerts:
        window_days = settings.EXPIRY_WINDOW_DAYS if window_days is None else window_days
        out = ExpiryAlerts(enabled=False, window_days=window_days)
        if not self.resolver.resolve(facility_id)["inventory"].get("expiryTracking", False):
            return out
        out.enabled = True

        today = _naive_utc(now or datetime.now(timezone.utc))
        for unit in await self._active_units(facility_id):
            if unit.expiry_date is None or unit.quantity <= 0:
                continue
            days_left = (_naive_utc(unit.expiry_date) - today).days
            item = ExpiryAlertItem(
                unit_id=unit.id, name=unit.name, sku=unit.sku, batch_id=unit.batch_id,
                quantity=unit.quantity, expiry_date=unit.expiry_date, days_left=days_left,
            )
            if days_left < 0:
                out.expired.append(item)
            elif days_left <= 7:
                out.week.append(item)
            elif days_left <= window_days:
                out.month.append(item)
            else:
                out.future.append(item)
        return out

    async def analytics(self, facility_id: str, top: int = 5) -> AnalyticsOut:
        stmt = select(ProductUnit).where(ProductUnit.facility_id == facility_id)
        units = (await self.db.execute(stmt)).scalars().all()

        total_units = 0
        total_value = Decimal("0")
        categories: Dict[str, Dict[str, Any]] = {}
        batches: Dict[str, Tuple[str, int, Decimal]] = {}
        for unit in units:
            qty = max(unit.quantity, 0)
            value = Decimal(str(unit.price_per_unit or 0)) * qty
            total_units += qty
            total_value += value

            cat = categories.setdefault(unit.category or "Uncategorized", {"quantity": 0, "value": Decimal("0"), "names": set()})
            cat["quantity"] += qty
            cat["value"] += value
            cat["names"].add(unit.name)

            name, b_qty, b_value = batches.get(unit.batch_id, (unit.name, 0, Decimal("0")))
            batches[unit.batch_id] = (name, b_qty + qty, b_value + value)

        ranked = sorted(batches.items(), key=lambda kv: (-kv[1][2], kv[0]))[:top]
        return AnalyticsOut(
            facility_id=facility_id,
            total_records=len(units),
            total_units=total_units,
            total_value=float(total_value),
            categories=[
                CategoryStat(category=c, quantity=s["quantity"], value=float(s["value"]), products=len(s["names"]))
                for c, s in sorted(categories.items())
            ],
            top_batches=[
                BatchValue(batch_id=b, name=name, quantity=qty, value=float(value))
                for b, (name, qty, value) in ranked
            ],
        )


class SectionService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_section(
        self,
        facility_id: str,
        name: str,
        allowed_categories: Optional[List[str]] = None,
        capacity: Optional[int] = None,
    ) -> Section:
        name = (name or "").strip()
        if not name:
            raise FacilityValidationError(["name is required"])
        exists = await self.db.execute(
            select(Section.id).where(Section.facility_id == facility_id, Section.name == name)
        )
        if exists.scalar_one_or_none() is not None:
            raise FacilityValidationError([f"section {name} already exists for facility {facility_id}"])

        section = Section(
            facility_id=facility_id,
            name=name,
            allowed_categories=list(allowed_categories) if allowed_categories else ["All"],
            capacity=capacity,
        )
        self.db.add(section)
        await self.db.flush()
        logger.info("facility=%s section %s created", facility_id, name)
        return section

    async def list_sections(self, facility_id: str) -> List[Section]:
        stmt = select(Section).where(Section.facility_id == facility_id).order_by(Section.name)
        return list((await self.db.execute(stmt)).scalars().all())

    async def get_section(self, facility_id: str, section_id: int) -> Section:
        stmt = select(Section).where(Section.facility_id == facility_id, Section.id == section_id)
        section = (await self.db.execute(stmt)).scalar_one_or_none()
        if section is None:
            raise NotFoundError("Section", section_id)
        return section
