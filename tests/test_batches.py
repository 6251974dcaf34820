import logging
import warnings
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from facility_hub.db_models import ProductUnit
from facility_hub.errors import DataConsistencyWarning
from facility_hub.services.batches import (
    FLAG_MISSING_INITIAL, FLAG_NEGATIVE_REMAINING, summarize, summarize_product,
)


def _units():
    return [
        {"batchId": "WI-001", "quantity": 1, "initialQuantity": 1, "pricePerUnit": 2.0,
         "receivedDate": datetime(2024, 1, 1, tzinfo=timezone.utc)},
        {"batchId": "WI-001", "quantity": 0, "initialQuantity": 1, "pricePerUnit": 3.0},
        {"batchId": "WI-002", "quantity": 4, "initialQuantity": 5, "pricePerUnit": 1.25,
         "receivedDate": datetime(2024, 1, 5, tzinfo=timezone.utc)},
        {"batchId": "WI-001", "quantity": 1, "initialQuantity": 1, "pricePerUnit": 2.5},
    ]


def test_groups_in_first_appearance_order() -> None:
    summaries = summarize(_units())
    assert [s.batch_id for s in summaries] == ["WI-001", "WI-002"]

    first, second = summaries
    assert first.total_quantity == 3
    assert first.quantity_remaining == 2
    assert first.total_price == 7.5
    assert first.avg_price == 2.5
    assert first.unit_count == 3
    assert first.received_date == datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert second.total_quantity == 5
    assert second.quantity_remaining == 4
    assert second.total_price == 6.25
    assert second.avg_price == 1.25


def test_summarize_is_idempotent() -> None:
    units = _units()
    assert summarize(units) == summarize(units)
    for summary in summarize(units):
        assert summary.quantity_remaining <= summary.total_quantity


def test_avg_price_is_zero_without_quantity() -> None:
    [summary] = summarize([{"batch_id": "EMPTY-001", "quantity": 0, "initial_quantity": 0, "price_per_unit": 9}])
    assert summary.total_quantity == 0
    assert summary.avg_price == 0
    assert summary.total_price == 0


def test_avg_price_rounds_to_three_places() -> None:
    units = [
        {"batch_id": "B-1", "quantity": 1, "initial_quantity": 1, "price_per_unit": "1.00"},
        {"batch_id": "B-1", "quantity": 1, "initial_quantity": 1, "price_per_unit": "1.00"},
        {"batch_id": "B-1", "quantity": 1, "initial_quantity": 1, "price_per_unit": "2.00"},
    ]
    [summary] = summarize(units)
    assert summary.avg_price == 1.333


def test_missing_initial_quantity_falls_back_to_current(caplog) -> None:
    units = [{"batch_id": "OLD-001", "quantity": 4, "price_per_unit": 2}]
    with caplog.at_level(logging.WARNING, logger="facility_hub.services.batches"):
        with pytest.warns(DataConsistencyWarning, match="OLD-001 initial quantity defaulted"):
            [summary] = summarize(units)
    assert summary.total_quantity == 4
    assert summary.total_price == 8
    assert summary.consistency_flags == [FLAG_MISSING_INITIAL]
    assert "DataConsistencyWarning" in caplog.text


def test_negative_remaining_is_clamped(caplog) -> None:
    units = [{"batch_id": "BAD-001", "quantity": -3, "initial_quantity": 2, "price_per_unit": 1}]
    with caplog.at_level(logging.WARNING, logger="facility_hub.services.batches"):
        with pytest.warns(DataConsistencyWarning, match="BAD-001 negative remaining clamped"):
            [summary] = summarize(units)
    assert summary.quantity_remaining == 0
    assert FLAG_NEGATIVE_REMAINING in summary.consistency_flags
    assert "BAD-001" in caplog.text


def test_consistent_batches_do_not_warn() -> None:
    with warnings.catch_warnings():
        warnings.simplefilter("error", DataConsistencyWarning)
        summarize(_units())


def test_works_on_orm_units() -> None:
    units = [
        ProductUnit(facility_id="default", name="Widget", sku=f"WI-001-00{i}", batch_id="WI-001",
                    quantity=1, initial_quantity=1, price_per_unit=Decimal("0.10"),
                    received_date=datetime(2024, 1, 1, tzinfo=timezone.utc))
        for i in range(1, 4)
    ]
    [summary] = summarize(units)
    assert summary.total_quantity == 3
    assert summary.total_price == 0.3
    assert summary.avg_price == 0.1


def test_product_summary() -> None:
    units = [
        {"batch_id": "WI-001", "quantity": 2, "price_per_unit": 2, "category": "Tools",
         "location": {"warehouse": "W1", "zone": "A"}},
        {"batch_id": "WI-002", "quantity": 1, "price_per_unit": 5, "location": {"warehouse": "W1", "zone": "A"}},
        {"batch_id": "WI-002", "quantity": 0, "price_per_unit": 5, "location": None},
    ]
    summary = summarize_product("Widget", units)
    assert summary.name == "Widget"
    assert summary.category == "Tools"
    assert summary.total_quantity == 3
    assert summary.total_value == 9
    assert summary.avg_price_per_unit == 3
    assert summary.total_batches == 2
    assert summary.locations == ["W1 / A"]
