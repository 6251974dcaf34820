from __future__ import annotations
from datetime import datetime
from typing import Optional, Dict, Any, List
from pydantic import BaseModel, ConfigDict, Field
import enum


class UnitStatus(str, enum.Enum):
    active = "active"
    reserved = "reserved"
    damaged = "damaged"
    expired = "expired"
    recalled = "recalled"


class ValidationResult(BaseModel):
    is_valid: bool
    errors: List[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Units
# ---------------------------------------------------------------------------

class DistributionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    destination: str
    quantity: int
    price_sent: float
    date: datetime


class PlacementOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    section: str
    quantity: int
    position: Optional[str] = None


class ProductUnitOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    facility_id: str
    name: str
    sku: str
    batch_id: str
    category: Optional[str] = None
    description: Optional[str] = None
    quantity: int
    initial_quantity: Optional[int] = None
    price_per_unit: float
    received_date: Optional[datetime] = None
    expiry_date: Optional[datetime] = None
    status: UnitStatus
    location: Optional[Dict[str, Any]] = None
    custom_fields: Dict[str, Any] = Field(default_factory=dict)
    distributions: List[DistributionOut] = Field(default_factory=list)
    placements: List[PlacementOut] = Field(default_factory=list)


class BatchSummary(BaseModel):
    batch_id: str
    total_quantity: int
    quantity_remaining: int
    avg_price: float
    total_price: float
    received_date: Optional[datetime] = None
    unit_count: int = 0
    consistency_flags: List[str] = Field(default_factory=list)


class ProductSummary(BaseModel):
    name: str
    category: Optional[str] = None
    total_quantity: int
    total_value: float
    avg_price_per_unit: float
    total_batches: int
    locations: List[str] = Field(default_factory=list)


class ProductDetailOut(BaseModel):
    summary: ProductSummary
    batches: List[BatchSummary]
    units: List[ProductUnitOut]


class ProductGroupOut(BaseModel):
    key: str
    name: str
    sku: str
    category: Optional[str] = None
    total_quantity: int
    unit_count: int
    batch_ids: List[str]


class ProductListOut(BaseModel):
    items: List[ProductUnitOut]
    page: int
    limit: int
    total: int
    pages: int


# ---------------------------------------------------------------------------
# Distribution
# ---------------------------------------------------------------------------

class DistributionRequest(BaseModel):
    name: str
    destination: str
    quantity: int = Field(gt=0)


class Allocation(BaseModel):
    product_id: Optional[int] = None
    sku: str
    batch_id: Optional[str] = None
    quantity_consumed: int
    price_sent: float
    remaining_quantity: int


class DistributionResult(BaseModel):
    product_name: str
    destination: str
    requested_quantity: int
    distributed_at: datetime
    allocations: List[Allocation]


# ---------------------------------------------------------------------------
# Batches / placement / sections
# ---------------------------------------------------------------------------

class BatchQuantityIn(BaseModel):
    quantity_change: int
    price_per_unit: Optional[float] = Field(default=None, ge=0)


class BatchPriceIn(BaseModel):
    price_per_unit: float = Field(ge=0)


class MoveBatchIn(BaseModel):
    batch_id: str
    section_id: int


class MoveBatchItem(BaseModel):
    unit_id: int
    sku: str
    status: str


class SectionIn(BaseModel):
    name: str
    allowed_categories: List[str] = Field(default_factory=lambda: ["All"])
    capacity: Optional[int] = Field(default=None, ge=0)


class SectionOut(SectionIn):
    model_config = ConfigDict(from_attributes=True)

    id: int
    facility_id: str


# ---------------------------------------------------------------------------
# Alerts / analytics
# ---------------------------------------------------------------------------

class StockAlertItem(BaseModel):
    name: str
    category: Optional[str] = None
    quantity: int
    batch_ids: List[str] = Field(default_factory=list)


class LowStockAlerts(BaseModel):
    enabled: bool
    threshold: int
    critical_threshold: int
    out_of_stock: List[StockAlertItem] = Field(default_factory=list)
    critical: List[StockAlertItem] = Field(default_factory=list)
    low: List[StockAlertItem] = Field(default_factory=list)


class ExpiryAlertItem(BaseModel):
    unit_id: int
    name: str
    sku: str
    batch_id: str
    quantity: int
    expiry_date: datetime
    days_left: int


class ExpiryAlerts(BaseModel):
    enabled: bool
    window_days: int
    expired: List[ExpiryAlertItem] = Field(default_factory=list)
    week: List[ExpiryAlertItem] = Field(default_factory=list)
    month: List[ExpiryAlertItem] = Field(default_factory=list)
    future: List[ExpiryAlertItem] = Field(default_factory=list)


class CategoryStat(BaseModel):
    category: str
    quantity: int
    value: float
    products: int


class BatchValue(BaseModel):
    batch_id: str
    name: str
    quantity: int
    value: float


class AnalyticsOut(BaseModel):
    facility_id: str
    total_records: int
    total_units: int
    total_value: float
    categories: List[CategoryStat] = Field(default_factory=list)
    top_batches: List[BatchValue] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Purchase orders
# ---------------------------------------------------------------------------

class OrderStatus(str, enum.Enum):
    ordered = "ordered"
    delivered = "delivered"
    cancelled = "cancelled"


class PurchaseOrderIn(BaseModel):
    product_name: str = Field(min_length=1)
    category: Optional[str] = None
    quantity: int = Field(gt=0)
    price_per_unit: float = Field(ge=0)
    expected_delivery_date: Optional[datetime] = None
    supplier_info: Optional[str] = None
    notes: Optional[str] = None


class PurchaseOrderOut(PurchaseOrderIn):
    model_config = ConfigDict(from_attributes=True)

    id: int
    facility_id: str
    total_price: float
    status: OrderStatus
    order_date: datetime
    actual_delivery_date: Optional[datetime] = None
    created_by: str


class DeliveryDateIn(BaseModel):
    expected_delivery_date: Optional[datetime] = None


class DeliveryOut(BaseModel):
    order: PurchaseOrderOut
    products: List[ProductUnitOut]
