# facility_hub/db_models.py
"""
SQLAlchemy ORM models for Facility Hub.

One ProductUnit row is one inventory unit (or, for facilities that do not
track individual units, one aggregate record). Distribution events and
placements hang off the unit as ordered child rows. Purchase orders are
kept apart and only turn into units when delivered.
"""
from __future__ import annotations
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, List, Any

from sqlalchemy import (
    String, Integer, BigInteger, Text, DateTime,
    Numeric, ForeignKey, Index, CheckConstraint, UniqueConstraint,
    Enum as SQLEnum, JSON, event,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import JSONB

from facility_hub.database import Base
from facility_hub.models import UnitStatus, OrderStatus

# BIGSERIAL on PostgreSQL, INTEGER PRIMARY KEY (rowid) on SQLite
PK = BigInteger().with_variant(Integer, "sqlite")
JSONType = JSON().with_variant(JSONB, "postgresql")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# MIXIN for updated_at
# ============================================================================

class TimestampMixin:
    """Mixin for created_at and updated_at columns."""
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False
    )


# ============================================================================
# 1. PRODUCT UNITS
# ============================================================================

class ProductUnit(TimestampMixin, Base):
    __tablename__ = "product_units"

    id: Mapped[int] = mapped_column(PK, primary_key=True)
    facility_id: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    sku: Mapped[str] = mapped_column(String(100), nullable=False)
    batch_id: Mapped[str] = mapped_column(String(100), nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String(100))
    description: Mapped[Optional[str]] = mapped_column(Text)
    quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    # NULL on legacy rows created before initial quantities were recorded
    initial_quantity: Mapped[Optional[int]] = mapped_column(Integer)
    price_per_unit: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)
    received_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    expiry_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    status: Mapped[UnitStatus] = mapped_column(
        SQLEnum(UnitStatus, name="unit_status"),
        default=UnitStatus.active,
        nullable=False
    )
    location: Mapped[Optional[dict]] = mapped_column(JSONType)
    custom_fields: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)
    created_by: Mapped[str] = mapped_column(String(100), default="system", nullable=False)
    updated_by: Mapped[str] = mapped_column(String(100), default="system", nullable=False)

    # Relationships
    distributions: Mapped[List["UnitDistribution"]] = relationship(
        back_populates="unit",
        cascade="all, delete-orphan",
        order_by="UnitDistribution.id",
        lazy="selectin",
    )
    placements: Mapped[List["UnitPlacement"]] = relationship(
        back_populates="unit",
        cascade="all, delete-orphan",
        order_by="UnitPlacement.id",
        lazy="selectin",
    )

    __table_args__ = (
        UniqueConstraint("facility_id", "sku", name="uq_product_units_facility_sku"),
        CheckConstraint("quantity >= 0", name="ck_product_units_quantity"),
        Index("idx_product_units_name", "facility_id", "name"),
        Index("idx_product_units_batch", "facility_id", "batch_id"),
        Index("idx_product_units_status", "facility_id", "status"),
        Index("idx_product_units_received", "facility_id", "received_date"),
    )

    def __init__(self, **kw: Any):
        # new rows start with loaded (empty) collections so async code never lazy-loads them
        kw.setdefault("distributions", [])
        kw.setdefault("placements", [])
        kw.setdefault("custom_fields", {})
        super().__init__(**kw)


# ============================================================================
# 2. DISTRIBUTION EVENTS
# ============================================================================

class UnitDistribution(Base):
    __tablename__ = "unit_distributions"

    id: Mapped[int] = mapped_column(PK, primary_key=True)
    unit_id: Mapped[int] = mapped_column(ForeignKey("product_units.id", ondelete="CASCADE"), nullable=False)
    destination: Mapped[str] = mapped_column(String(255), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    price_sent: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    unit: Mapped["ProductUnit"] = relationship(back_populates="distributions")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_unit_distributions_quantity"),
        Index("idx_unit_distributions_unit", "unit_id"),
    )


# ============================================================================
# 3. PLACEMENTS
# ============================================================================

class UnitPlacement(Base):
    __tablename__ = "unit_placements"

    id: Mapped[int] = mapped_column(PK, primary_key=True)
    unit_id: Mapped[int] = mapped_column(ForeignKey("product_units.id", ondelete="CASCADE"), nullable=False)
    section_id: Mapped[Optional[int]] = mapped_column(ForeignKey("sections.id", ondelete="SET NULL"))
    section: Mapped[str] = mapped_column(String(255), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    position: Mapped[Optional[str]] = mapped_column(String(100))

    unit: Mapped["ProductUnit"] = relationship(back_populates="placements")


# ============================================================================
# 4. SECTIONS
# ============================================================================

class Section(TimestampMixin, Base):
    __tablename__ = "sections"

    id: Mapped[int] = mapped_column(PK, primary_key=True)
    facility_id: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    allowed_categories: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)
    capacity: Mapped[Optional[int]] = mapped_column(Integer)

    __table_args__ = (
        UniqueConstraint("facility_id", "name", name="uq_sections_facility_name"),
    )

    def accepts(self, category: Optional[str]) -> bool:
        allowed = self.allowed_categories or []
        return "All" in allowed or (category is not None and category in allowed)


# ============================================================================
# 5. PURCHASE ORDERS
# ============================================================================

class PurchaseOrder(TimestampMixin, Base):
    __tablename__ = "purchase_orders"

    id: Mapped[int] = mapped_column(PK, primary_key=True)
    facility_id: Mapped[str] = mapped_column(String(100), nullable=False)
    product_name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String(100))
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    price_per_unit: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0"), nullable=False)
    status: Mapped[OrderStatus] = mapped_column(
        SQLEnum(OrderStatus, name="order_status"),
        default=OrderStatus.ordered,
        nullable=False
    )
    order_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    expected_delivery_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    actual_delivery_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    supplier_info: Mapped[Optional[str]] = mapped_column(String(255))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_by: Mapped[str] = mapped_column(String(100), default="system", nullable=False)

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_purchase_orders_quantity"),
        Index("idx_purchase_orders_product", "facility_id", "product_name", "status"),
        Index("idx_purchase_orders_date", "facility_id", "order_date"),
    )

    def recalculate_total(self) -> None:
        self.total_price = Decimal(str(self.price_per_unit or 0)) * (self.quantity or 0)


@event.listens_for(PurchaseOrder, "before_insert")
@event.listens_for(PurchaseOrder, "before_update")
def _purchase_order_total(mapper, connection, target: PurchaseOrder) -> None:
    target.recalculate_total()
