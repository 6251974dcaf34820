# facility_hub/services/__init__.py
"""
Business logic services for Facility Hub.
"""
from facility_hub.services.identifiers import BatchIdentifierService
from facility_hub.services.distribution import DistributionService
from facility_hub.services.products import ProductService, SectionService
from facility_hub.services.purchase_orders import PurchaseOrderService

__all__ = [
    "BatchIdentifierService",
    "DistributionService",
    "ProductService",
    "SectionService",
    "PurchaseOrderService",
]
