# facility_hub/routers/facilities.py
"""
Facility configuration endpoints: registry listing, resolved and raw
configurations, feature flags, explicit reload.
"""
from __future__ import annotations
from typing import Any, Dict, List

from fastapi import APIRouter, HTTPException

from facility_hub.config_registry import registry
from facility_hub.config_resolver import resolver
from facility_hub.deps import http_error
from facility_hub.errors import ConfigurationError

router = APIRouter(prefix="/facilities", tags=["Facilities"])


@router.get("")
def list_facilities() -> List[Dict[str, Any]]:
    return registry.entries()


@router.get("/{facility_id}/config")
def get_resolved_config(facility_id: str) -> Dict[str, Any]:
    """Merged configuration (extends chain applied). Unknown ids resolve to the default."""
    try:
        return resolver.resolve(facility_id)
    except ConfigurationError as e:
        raise http_error(e)


@router.get("/{facility_id}/raw")
def get_raw_config(facility_id: str) -> Dict[str, Any]:
    if not registry.has(facility_id):
        raise HTTPException(404, detail=f"Facility not found: {facility_id}")
    return registry.get(facility_id)


@router.get("/{facility_id}/features/{feature}")
def get_feature(facility_id: str, feature: str) -> Dict[str, Any]:
    try:
        enabled = resolver.is_feature_enabled(facility_id, feature)
    except ConfigurationError as e:
        raise http_error(e)
    return {"facility_id": facility_id, "feature": feature, "enabled": enabled}


@router.post("/reload")
def reload_configs() -> Dict[str, Any]:
    try:
        version = registry.reload()
    except ConfigurationError as e:
        raise http_error(e)
    return {"ok": True, "version": version, "facilities": registry.ids()}
