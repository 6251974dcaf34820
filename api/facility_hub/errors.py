# facility_hub/errors.py
"""
Domain errors for Facility Hub.

Services raise these; routers translate them to HTTPException.
Validation problems are normally returned as a ValidationResult, the
FacilityValidationError is only raised where a write must be refused.
"""
from __future__ import annotations
from typing import List


class FacilityHubError(Exception):
    """Base class for all domain errors."""


class ConfigurationError(FacilityHubError):
    """Facility configuration cannot be resolved (missing default, cyclic or dangling extends)."""


class NotFoundError(FacilityHubError):
    def __init__(self, resource: str, ref: object):
        self.resource = resource
        self.ref = ref
        super().__init__(f"{resource} not found: {ref}")


class FacilityValidationError(FacilityHubError):
    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "validation failed")


class InsufficientStockError(FacilityHubError):
    def __init__(self, product_name: str, requested: int, available: int):
        self.product_name = product_name
        self.requested = requested
        self.available = available
        self.shortfall = requested - available
        super().__init__(
            f"Insufficient stock for {product_name}. "
            f"Available: {available}, Requested: {requested}, Shortfall: {self.shortfall}"
        )


class OrderStateError(FacilityHubError):
    """Purchase order transition not allowed from its current status."""

    def __init__(self, order_id: object, status: str, action: str):
        self.order_id = order_id
        self.status = status
        super().__init__(f"Purchase order {order_id} is {status} and cannot be {action}")


class DataConsistencyWarning(UserWarning):
    """Inconsistent unit data that was clamped or defaulted instead of failing."""
