import asyncio
import json

import pytest
from sqlalchemy import select

from facility_hub.config_registry import ConfigRegistry
from facility_hub.config_resolver import ConfigResolver
from facility_hub.database import make_session_factory
from facility_hub.db_models import ProductUnit
from facility_hub.errors import InsufficientStockError
from facility_hub.services import DistributionService, ProductService


def _widget(**overrides):
    payload = {"name": "Widget", "category": "Tools", "quantity": 2, "pricePerUnit": 2.5}
    payload.update(overrides)
    return payload


async def _batch_rows(session, batch_id):
    session.expire_all()
    stmt = (
        select(ProductUnit)
        .where(ProductUnit.batch_id == batch_id)
        .order_by(ProductUnit.sku)
        .execution_options(populate_existing=True)
    )
    units = (await session.execute(stmt)).scalars().all()
    return [(u.sku, u.quantity, len(u.distributions)) for u in units]


@pytest.fixture
def aggregate_resolver(tmp_path):
    overlay = tmp_path / "facilities.json"
    overlay.write_text(json.dumps({
        "agg": {"extends": "default", "inventory": {"trackIndividualUnits": False}},
    }), encoding="utf-8")
    return ConfigResolver(ConfigRegistry(overlay_path=overlay))


# ---------------------------------------------------------------------------
# shrinking batches
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_shrink_skips_distributed_units(db_session) -> None:
    service = ProductService(db_session)
    await service.create_products(_widget(), "default")
    await DistributionService(db_session).distribute("default", "Widget", "Store 12", 1)

    remaining = await service.change_batch_quantity("default", "WI-001", -1)

    assert [u.sku for u in remaining] == ["WI-001-001"]
    assert await _batch_rows(db_session, "WI-001") == [("WI-001-001", 0, 1)]

    with pytest.raises(InsufficientStockError) as exc:
        await service.change_batch_quantity("default", "WI-001", -1)
    assert exc.value.available == 0
    assert await _batch_rows(db_session, "WI-001") == [("WI-001-001", 0, 1)]


@pytest.mark.asyncio
async def test_shrink_keeps_history_of_partly_distributed_records(db_session, aggregate_resolver) -> None:
    service = ProductService(db_session, aggregate_resolver)
    await service.create_products(_widget(quantity=5), "agg")
    await DistributionService(db_session).distribute("agg", "Widget", "Store 12", 2)

    await service.change_batch_quantity("agg", "WI-001", -3)

    assert await _batch_rows(db_session, "WI-001") == [("WI-001-001", 0, 1)]


@pytest.mark.asyncio
async def test_shrink_spreads_over_aggregate_records(db_session, aggregate_resolver) -> None:
    service = ProductService(db_session, aggregate_resolver)
    await service.create_products(_widget(name="Bolt", batchId="BO-001", quantity=5), "agg")
    await service.create_products(_widget(name="Bolt", batchId="BO-001", quantity=5), "agg")
    assert await _batch_rows(db_session, "BO-001") == [("BO-001-001", 5, 0), ("BO-001-002", 5, 0)]

    await service.change_batch_quantity("agg", "BO-001", -8)
    assert await _batch_rows(db_session, "BO-001") == [("BO-001-001", 0, 0), ("BO-001-002", 2, 0)]

    with pytest.raises(InsufficientStockError) as exc:
        await service.change_batch_quantity("agg", "BO-001", -3)
    assert exc.value.shortfall == 1
    assert await _batch_rows(db_session, "BO-001") == [("BO-001-001", 0, 0), ("BO-001-002", 2, 0)]

    await service.change_batch_quantity("agg", "BO-001", 4)
    assert await _batch_rows(db_session, "BO-001") == [("BO-001-001", 4, 0), ("BO-001-002", 2, 0)]


@pytest.mark.asyncio
async def test_grow_after_shrink_continues_sku_numbers(db_session) -> None:
    service = ProductService(db_session)
    await service.create_products(_widget(quantity=3), "default")
    await service.change_batch_quantity("default", "WI-001", -1)

    grown = await service.change_batch_quantity("default", "WI-001", 1)

    assert [u.sku for u in grown] == ["WI-001-002", "WI-001-003", "WI-001-004"]


# ---------------------------------------------------------------------------
# concurrent SKU generation
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_and_grow_on_one_batch_never_share_skus(engine) -> None:
    factory = make_session_factory(engine)
    async with factory() as session:
        await ProductService(session).create_products(_widget(), "default")

    async def receive():
        async with factory() as session:
            return await ProductService(session).create_products(_widget(batchId="WI-001"), "default")

    async def grow():
        async with factory() as session:
            return await ProductService(session).change_batch_quantity("default", "WI-001", 2)

    await asyncio.gather(receive(), grow())

    async with factory() as session:
        skus = [sku for sku, _, _ in await _batch_rows(session, "WI-001")]
    assert skus == [f"WI-001-{n:03d}" for n in range(1, 7)]
