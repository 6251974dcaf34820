from datetime import datetime, timezone
from uuid import UUID

import pytest

from facility_hub.db_models import ProductUnit
from facility_hub.services.identifiers import (
    BatchIdentifierService, batch_prefix, generate_batch_id, generate_sku,
)


def test_batch_prefix() -> None:
    assert batch_prefix("Widget") == "WI"
    assert batch_prefix("widget") == "WI"
    assert batch_prefix("3M tape") == "AM"
    assert batch_prefix("x") == "XA"
    assert batch_prefix("") == "AA"


def test_first_batch_starts_at_001() -> None:
    assert generate_batch_id("Widget", "default", []) == "WI-001"


def test_batch_sequence_continues_from_highest() -> None:
    existing = ["WI-002", "WI-010", "WI-003", "OTHER-999", "WI-abc"]
    assert generate_batch_id("Widget", "default", existing) == "WI-011"


def test_simple_format_uses_name_prefix() -> None:
    assert generate_batch_id("Donut", "retail_001", ["DO-004"], batch_id_format="simple") == "DO-005"


def test_sku_sequence_format() -> None:
    existing = ["AB-123-456-001", "AB-123-456-002"]
    assert generate_batch_id("Widget", "warehouse_001", existing,
                             batch_id_format="sku_sequence", sku="AB-123-456") == "AB-123-456-003"
    # no SKU to sequence on
    assert generate_batch_id("Widget", "warehouse_001", [], batch_id_format="sku_sequence") == "WI-001"


def test_lot_based_format() -> None:
    assert generate_batch_id("Resin", "manufacturing_001", [],
                             batch_id_format="lot_based", lot_number="l-77 ") == "LOT-L-77"
    assert generate_batch_id("Resin", "manufacturing_001", [], batch_id_format="lot_based") == "RE-001"


def test_uuid_format_is_injectable() -> None:
    fixed = UUID("12345678-9abc-def0-1234-56789abcdef0")
    batch = generate_batch_id("Gold", "enterprise-financial-hub", [],
                              batch_id_format="uuid", uuid_factory=lambda: fixed)
    assert batch == "123456789ABC"


def test_generate_batch_id_is_deterministic() -> None:
    existing = ["WI-001", "WI-002"]
    assert generate_batch_id("Widget", "default", existing) == generate_batch_id("Widget", "default", existing)


def test_sku_suffix_follows_existing_units() -> None:
    assert generate_sku("WI-001", "default", 0) == "WI-001-001"
    assert generate_sku("WI-001", "default", 2) == "WI-001-003"
    assert generate_sku("WI-001", "default", 41) == "WI-001-042"


def _unit(name, batch, sku, day):
    return ProductUnit(
        facility_id="default", name=name, sku=sku, batch_id=batch, category="Tools",
        quantity=1, initial_quantity=1,
        received_date=datetime(2024, 1, day, tzinfo=timezone.utc),
    )


@pytest.mark.asyncio
async def test_service_reads_batches_newest_first(db_session) -> None:
    db_session.add_all([
        _unit("Widget", "WI-001", "WI-001-001", 1),
        _unit("Widget", "WI-001", "WI-001-002", 1),
        _unit("Widget", "WI-002", "WI-002-001", 9),
        _unit("Gadget", "GA-001", "GA-001-001", 20),
        ProductUnit(facility_id="other", name="Widget", sku="WI-007-001", batch_id="WI-007",
                    quantity=1, received_date=datetime(2024, 2, 1, tzinfo=timezone.utc)),
    ])
    await db_session.commit()

    service = BatchIdentifierService(db_session)
    assert await service.existing_batch_ids("default", "Widget") == ["WI-002", "WI-001"]
    assert await service.unit_count("default", "WI-001") == 2
    assert await service.unit_count("default", "WI-999") == 0
    assert await service.sku_exists("default", "WI-002-001")
    assert not await service.sku_exists("default", "WI-007-001")
    assert await service.next_batch_id("default", "Widget") == "WI-003"


@pytest.mark.asyncio
async def test_last_unit_number_skips_gaps(db_session) -> None:
    db_session.add_all([
        _unit("Widget", "WI-001", "WI-001-002", 1),
        _unit("Widget", "WI-001", "WI-001-005", 1),
        _unit("Widget", "WI-002", "CUSTOM-SKU", 2),
    ])
    await db_session.commit()

    service = BatchIdentifierService(db_session)
    assert await service.last_unit_number("default", "WI-001") == 5
    assert await service.last_unit_number("default", "WI-002") == 1
    assert await service.last_unit_number("default", "WI-404") == 0
