# facility_hub/deps.py
"""
Request-level dependencies shared by the routers.
"""
from __future__ import annotations
from typing import Optional

from fastapi import Header, HTTPException, Query

from facility_hub.errors import (
    FacilityHubError, ConfigurationError, FacilityValidationError,
    InsufficientStockError, NotFoundError, OrderStateError,
)
from facility_hub.settings import settings


def get_facility_id(
    x_facility_id: Optional[str] = Header(default=None),
    facility_id: Optional[str] = Query(default=None, alias="facilityId"),
) -> str:
    """Facility from the X-Facility-Id header, then ?facilityId=, then DEFAULT_FACILITY_ID."""
    for candidate in (x_facility_id, facility_id, settings.DEFAULT_FACILITY_ID):
        if candidate and candidate.strip():
            return candidate.strip()
    raise HTTPException(400, detail="Facility id is required (X-Facility-Id header or facilityId query parameter)")


def get_user(x_user: Optional[str] = Header(default=None)) -> str:
    return (x_user or "").strip() or "system"


def http_error(e: Exception) -> HTTPException:
    """Translate a domain error into the HTTP response the API returns for it."""
    if isinstance(e, NotFoundError):
        return HTTPException(404, detail=str(e))
    if isinstance(e, FacilityValidationError):
        return HTTPException(422, detail=e.errors)
    if isinstance(e, InsufficientStockError):
        return HTTPException(409, detail={
            "message": str(e),
            "requested": e.requested,
            "available": e.available,
            "shortfall": e.shortfall,
        })
    if isinstance(e, OrderStateError):
        return HTTPException(409, detail=str(e))
    if isinstance(e, ConfigurationError):
        return HTTPException(500, detail=f"Facility configuration error: {e}")
    if isinstance(e, ValueError):
        return HTTPException(422, detail=str(e))
    if isinstance(e, FacilityHubError):
        return HTTPException(400, detail=str(e))
    return HTTPException(500, detail=str(e))
