# facility_hub/facility_configs.py
"""
Built-in facility configurations.

Each entry is a raw (unmerged) configuration document. Entries with
"extends" only carry what differs from their parent; ConfigResolver
produces the merged view. skuFormat values are regular expressions
searched in the SKU, so they carry their own anchors.
"""
from __future__ import annotations
from typing import Any, Dict

DEFAULT_FACILITY = "default"

BUILTIN_FACILITY_CONFIGS: Dict[str, Dict[str, Any]] = {
    "default": {
        "id": "default",
        "name": "Default Configuration",
        "productView": {
            "primaryKey": "name_sku",
            "showBatchDetails": True,
            "showPlacement": True,
            "showDistribution": True,
            "showAnalytics": True,
            "allowBatchMerging": False,
            "batchTrackingLevel": "full",
            "displayMode": "grouped",
        },
        "fields": {
            "required": ["name", "sku", "category", "quantity", "pricePerUnit"],
            "optional": ["description", "location", "supplier", "expiryDate"],
            "custom": [],
        },
        "validation": {
            "allowDuplicateNames": True,
            "skuFormat": None,
            "batchIdFormat": "auto",
            "locationRequired": False,
        },
        "inventory": {
            "trackIndividualUnits": True,
            "autoGenerateBatchIds": True,
            "fifoDistribution": True,
            "lowStockAlerts": True,
            "expiryTracking": True,
        },
        "features": {},
    },

    "warehouse_001": {
        "id": "warehouse_001",
        "name": "Main Warehouse",
        "extends": "default",
        "productView": {
            "allowBatchMerging": True,
        },
        "fields": {
            "required": ["name", "sku", "category", "quantity", "pricePerUnit", "location.warehouse", "location.zone"],
            "optional": ["description", "supplier", "expiryDate", "location.aisle", "location.shelf"],
            "custom": [
                {"name": "hazardous", "type": "boolean", "label": "Hazardous Material"},
                {"name": "temperature", "type": "select", "label": "Storage Temperature",
                 "options": ["ambient", "cold", "frozen"]},
            ],
        },
        "validation": {
            "skuFormat": r"^[A-Z]{2}-\d{3}-\d{3}$",  # AB-123-456
            "batchIdFormat": "sku_sequence",
            "locationRequired": True,
        },
    },

    "retail_001": {
        "id": "retail_001",
        "name": "Downtown Store",
        "extends": "default",
        "productView": {
            "showBatchDetails": False,
            "showDistribution": False,
            "batchTrackingLevel": "simple",
        },
        "fields": {
            "optional": ["description", "location.section"],
            "custom": [
                {"name": "displayPrice", "type": "number", "label": "Display Price"},
                {"name": "promotion", "type": "text", "label": "Current Promotion"},
            ],
        },
        "validation": {
            "allowDuplicateNames": False,
            "skuFormat": r"^[0-9]{8,12}$",  # UPC/EAN
            "batchIdFormat": "simple",
        },
    },

    "manufacturing_001": {
        "id": "manufacturing_001",
        "name": "Production Facility",
        "extends": "default",
        "productView": {
            "displayMode": "individual",
        },
        "fields": {
            "required": ["name", "sku", "category", "quantity", "pricePerUnit", "batchId", "productionDate"],
            "optional": ["description", "location", "supplier", "expiryDate", "qualityGrade"],
            "custom": [
                {"name": "lotNumber", "type": "text", "label": "Lot Number"},
                {"name": "qualityControl", "type": "select", "label": "QC Status",
                 "options": ["pending", "passed", "failed"]},
                {"name": "productionLine", "type": "text", "label": "Production Line"},
            ],
        },
        "validation": {
            "skuFormat": r"^MFG-[A-Z0-9]{6}-[0-9]{4}$",
            "batchIdFormat": "lot_based",
            "locationRequired": True,
        },
    },

    # ---- enterprise variants ----
    "enterprise-financial-hub": {
        "id": "enterprise-financial-hub",
        "name": "Enterprise Financial Hub",
        "extends": "default",
        "features": {
            "financial-tracking": {"enabled": True},
            "multi-currency-support": {"enabled": True},
            "cost-analysis": {"enabled": True},
            "smart-notifications": {"enabled": True},
            "security-compliance": {"enabled": True},
            "insurance-integration": {"enabled": True},
            "audit-trails": {"enabled": True},
        },
        "productView": {
            "showFinancialMetrics": True,
        },
        "fields": {
            "required": ["name", "sku", "category", "quantity", "pricePerUnit", "acquisitionCost"],
            "optional": ["description", "location", "supplier", "expiryDate", "insuranceValue", "depreciationRate"],
            "custom": [
                {"name": "acquisitionCost", "type": "currency", "label": "Acquisition Cost", "required": True},
                {"name": "currentValue", "type": "currency", "label": "Current Market Value"},
                {"name": "insuranceValue", "type": "currency", "label": "Insurance Value"},
                {"name": "depreciationRate", "type": "percentage", "label": "Annual Depreciation Rate"},
                {"name": "riskLevel", "type": "select", "label": "Risk Level",
                 "options": ["low", "medium", "high", "critical"]},
                {"name": "complianceStatus", "type": "select", "label": "Compliance Status",
                 "options": ["compliant", "pending", "non-compliant"]},
            ],
        },
        "validation": {
            "skuFormat": r"^FIN-[A-Z0-9]{8}-[0-9]{4}$",
            "batchIdFormat": "uuid",
            "locationRequired": True,
            "financialValidation": True,
        },
    },

    "enterprise-warehouse": {
        "id": "enterprise-warehouse",
        "name": "Enterprise Warehouse",
        "extends": "default",
        "features": {
            "smart-notifications": {"enabled": True},
            "audit-trails": {"enabled": True},
            "security-compliance": {"enabled": True},
        },
        "validation": {
            "skuFormat": r"^WHS-[A-Z0-9]{6}-[0-9]{4}$",
            "locationRequired": True,
        },
    },

    "enterprise-manufacturing": {
        "id": "enterprise-manufacturing",
        "name": "Enterprise Manufacturing",
        "extends": "default",
        "features": {
            "smart-notifications": {"enabled": True},
            "audit-trails": {"enabled": True},
            "security-compliance": {"enabled": True},
        },
        "validation": {
            "skuFormat": r"^MFG-[A-Z0-9]{6}-[0-9]{4}$",
            "locationRequired": True,
        },
    },

    "enterprise-retail": {
        "id": "enterprise-retail",
        "name": "Enterprise Retail",
        "extends": "default",
        "features": {
            "smart-notifications": {"enabled": True},
            "audit-trails": {"enabled": True},
        },
        "validation": {
            "skuFormat": r"^RTL-[A-Z0-9]{6}-[0-9]{4}$",
        },
    },

    "enterprise-cold-storage": {
        "id": "enterprise-cold-storage",
        "name": "Enterprise Cold Storage",
        "extends": "default",
        "features": {
            "smart-notifications": {"enabled": True},
            "audit-trails": {"enabled": True},
            "security-compliance": {"enabled": True},
        },
        "validation": {
            "skuFormat": r"^COLD-[A-Z0-9]{6}-[0-9]{4}$",
            "locationRequired": True,
        },
    },

    "enterprise-distribution": {
        "id": "enterprise-distribution",
        "name": "Enterprise Distribution",
        "extends": "default",
        "features": {
            "smart-notifications": {"enabled": True},
            "audit-trails": {"enabled": True},
        },
        "validation": {
            "skuFormat": r"^DIST-[A-Z0-9]{6}-[0-9]{4}$",
            "locationRequired": True,
        },
    },
}
