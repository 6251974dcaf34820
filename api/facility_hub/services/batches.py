# facility_hub/services/batches.py
"""
Read-side batch aggregation.

Units are never merged in the store; batch and product summaries are
projections computed from the unit list on every read.
"""
from __future__ import annotations
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Optional
import logging, warnings

from facility_hub.config_resolver import deep_get
from facility_hub.errors import DataConsistencyWarning
from facility_hub.models import BatchSummary, ProductSummary

logger = logging.getLogger(__name__)

FLAG_NEGATIVE_REMAINING = "negative_remaining_clamped"
FLAG_MISSING_INITIAL = "initial_quantity_defaulted"


def _field(unit: Any, snake: str, camel: str, default: Any = None) -> Any:
    value = deep_get(unit, snake)
    if value is None:
        value = deep_get(unit, camel)
    return default if value is None else value


def _dec(value: Any) -> Decimal:
    if value is None:
        return Decimal("0")
    return value if isinstance(value, Decimal) else Decimal(str(value))


def _money(value: Decimal, places: str = "0.01") -> float:
    return float(value.quantize(Decimal(places), rounding=ROUND_HALF_UP))


def summarize(units: Iterable[Any]) -> List[BatchSummary]:
    """
    Group units by batch id (first appearance order) and total each group.

    total_quantity sums initial quantities (current quantity when a unit
    never recorded one), quantity_remaining sums current quantities and is
    clamped at 0, avg_price is total_price / total_quantity or 0.
    Works on ORM rows, pydantic models or plain dicts.
    """
    groups: Dict[str, Dict[str, Any]] = {}

    for unit in units:
        batch_id = _field(unit, "batch_id", "batchId", "")
        quantity = int(_field(unit, "quantity", "quantity", 0))
        initial = _field(unit, "initial_quantity", "initialQuantity")
        price = _dec(_field(unit, "price_per_unit", "pricePerUnit", 0))

        g = groups.get(batch_id)
        if g is None:
            g = groups[batch_id] = {
                "total_quantity": 0,
                "remaining": 0,
                "total_price": Decimal("0"),
                "received_date": _field(unit, "received_date", "receivedDate"),
                "unit_count": 0,
                "flags": [],
            }

        if initial is None:
            if FLAG_MISSING_INITIAL not in g["flags"]:
                g["flags"].append(FLAG_MISSING_INITIAL)
            initial = quantity
        initial = int(initial)

        g["total_quantity"] += initial
        g["remaining"] += quantity
        g["total_price"] += price * initial
        g["unit_count"] += 1

    out: List[BatchSummary] = []
    for batch_id, g in groups.items():
        remaining = g["remaining"]
        if remaining < 0:
            g["flags"].append(FLAG_NEGATIVE_REMAINING)
            remaining = 0
        for flag in g["flags"]:
            message = f"batch {batch_id} {flag.replace('_', ' ')}"
            logger.warning("%s: %s", DataConsistencyWarning.__name__, message)
            warnings.warn(message, DataConsistencyWarning, stacklevel=2)

        total_quantity = g["total_quantity"]
        avg = g["total_price"] / total_quantity if total_quantity > 0 else Decimal("0")
        out.append(BatchSummary(
            batch_id=batch_id,
            total_quantity=total_quantity,
            quantity_remaining=remaining,
            avg_price=_money(avg, "0.001"),
            total_price=_money(g["total_price"]),
            received_date=g["received_date"],
            unit_count=g["unit_count"],
            consistency_flags=g["flags"],
        ))
    return out


def _location_label(location: Any) -> Optional[str]:
    if not location:
        return None
    if isinstance(location, str):
        return location
    if isinstance(location, dict):
        parts = [str(v) for v in location.values() if v not in (None, "")]
        return " / ".join(parts) or None
    return str(location)


def summarize_product(name: str, units: List[Any]) -> ProductSummary:
    """Product-level totals over the current (remaining) stock of every unit."""
    total_quantity = 0
    total_value = Decimal("0")
    batches: List[str] = []
    locations: List[str] = []
    category = None

    for unit in units:
        quantity = max(int(_field(unit, "quantity", "quantity", 0)), 0)
        total_quantity += quantity
        total_value += _dec(_field(unit, "price_per_unit", "pricePerUnit", 0)) * quantity
        batch_id = _field(unit, "batch_id", "batchId")
        if batch_id and batch_id not in batches:
            batches.append(batch_id)
        label = _location_label(_field(unit, "location", "location"))
        if label and label not in locations:
            locations.append(label)
        if category is None:
            category = _field(unit, "category", "category")

    avg = total_value / total_quantity if total_quantity else Decimal("0")
    return ProductSummary(
        name=name,
        category=category,
        total_quantity=total_quantity,
        total_value=_money(total_value),
        avg_price_per_unit=_money(avg),
        total_batches=len(batches),
        locations=locations,
    )
