# facility_hub/services/identifiers.py
"""
Batch and SKU identifier generation.

Handles:
- Batch ids per facility format (sequence, SKU sequence, lot based, UUID)
- Per-unit SKUs inside a batch (BATCHID-NNN)
- Reading the existing batches / unit counts the sequences continue from
"""
from __future__ import annotations
import re
from typing import Callable, Iterable, List, Optional
from uuid import UUID, uuid4

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from facility_hub.db_models import ProductUnit

BATCH_ID_FORMATS = ("auto", "sku_sequence", "simple", "lot_based", "uuid")
SEQUENCE_WIDTH = 3


# =========================================================================
# Pure generators
# =========================================================================

def batch_prefix(product_name: str) -> str:
    """
    Two-letter batch prefix from a product name.

    Example:
        "Widget" -> "WI", "3M tape" -> "AM", "x" -> "XA"
    """
    head = (product_name or "")[:2].upper()
    head = re.sub(r"[^A-Z]", "A", head)
    return head.ljust(2, "A")


def _sequence_of(batch_id: str, prefix: str) -> int:
    """Sequence number of `batch_id` if it is PREFIX-NNN[...], else 0."""
    if not batch_id or not batch_id.startswith(f"{prefix}-"):
        return 0
    head = batch_id[len(prefix) + 1:].split("-", 1)[0]
    return int(head) if head.isdigit() else 0


def next_sequence_id(prefix: str, existing_batch_ids: Iterable[str]) -> str:
    highest = max((_sequence_of(b, prefix) for b in existing_batch_ids), default=0)
    return f"{prefix}-{highest + 1:0{SEQUENCE_WIDTH}d}"


def generate_batch_id(
    product_name: str,
    facility_id: str,
    existing_batch_ids: Iterable[str],
    batch_id_format: str = "auto",
    sku: Optional[str] = None,
    lot_number: Optional[str] = None,
    uuid_factory: Callable[[], UUID] = uuid4,
) -> str:
    """
    Derive a batch id for a new receipt of `product_name` at `facility_id`.

    `existing_batch_ids` are the facility's batches for that product name,
    most recently received first. The highest sequence found for the prefix
    is continued (001 when there is none).
    """
    existing = list(existing_batch_ids)
    if batch_id_format == "uuid":
        return uuid_factory().hex[:12].upper()
    if batch_id_format == "lot_based" and lot_number:
        return f"LOT-{str(lot_number).strip().upper()}"
    if batch_id_format == "sku_sequence" and sku:
        return next_sequence_id(str(sku).upper(), existing)
    return next_sequence_id(batch_prefix(product_name), existing)


def generate_sku(batch_id: str, facility_id: str, existing_unit_count: int) -> str:
    """BATCHID-NNN where NNN follows the units already in the batch."""
    return f"{batch_id}-{existing_unit_count + 1:0{SEQUENCE_WIDTH}d}"


def _unit_number(sku: str, batch_id: str) -> int:
    tail = sku[len(batch_id) + 1:] if sku.startswith(f"{batch_id}-") else ""
    return int(tail) if tail.isdigit() else 0


# =========================================================================
# Store-backed lookups
# =========================================================================

class BatchIdentifierService:
    """Reads the facts identifier generation continues from."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def existing_batch_ids(self, facility_id: str, product_name: str) -> List[str]:
        """Batch ids used for product_name at facility_id, most recently received first."""
        stmt = (
            select(ProductUnit.batch_id, func.max(ProductUnit.received_date).label("last_received"))
            .where(
                ProductUnit.facility_id == facility_id,
                ProductUnit.name == product_name,
            )
            .group_by(ProductUnit.batch_id)
            .order_by(func.max(ProductUnit.received_date).desc())
        )
        result = await self.db.execute(stmt)
        return [row.batch_id for row in result]

    async def unit_count(self, facility_id: str, batch_id: str) -> int:
        stmt = select(func.count()).where(
            ProductUnit.facility_id == facility_id,
            ProductUnit.batch_id == batch_id,
        )
        result = await self.db.execute(stmt)
        return result.scalar() or 0

    async def last_unit_number(self, facility_id: str, batch_id: str) -> int:
        """
        Highest NNN among the batch's BATCHID-NNN SKUs, or the unit count
        when that is larger. Deleted units leave gaps, so new SKUs continue
        after the highest number rather than the count.
        """
        stmt = select(ProductUnit.sku).where(
            ProductUnit.facility_id == facility_id,
            ProductUnit.batch_id == batch_id,
        )
        skus = (await self.db.execute(stmt)).scalars().all()
        return max([len(skus)] + [_unit_number(sku, batch_id) for sku in skus])

    async def sku_exists(self, facility_id: str, sku: str) -> bool:
        stmt = select(ProductUnit.id).where(
            ProductUnit.facility_id == facility_id,
            ProductUnit.sku == sku,
        ).limit(1)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def next_batch_id(
        self,
        facility_id: str,
        product_name: str,
        batch_id_format: str = "auto",
        sku: Optional[str] = None,
        lot_number: Optional[str] = None,
    ) -> str:
        existing = await self.existing_batch_ids(facility_id, product_name)
        return generate_batch_id(
            product_name, facility_id, existing,
            batch_id_format=batch_id_format, sku=sku, lot_number=lot_number,
        )
