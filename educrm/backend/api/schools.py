import logging
from fastapi import APIRouter, Depends, HTTPException, Request, status
from typing import Optional

from ..services.tenant_service import TenantService
from ..modules.feature_flags import FeatureFlags
from .schemas.school import SchoolResponse, FeatureFlagsResponse
from .dependencies import get_tenant_service, get_request_host
from .utilities.limiter import limiter

logger = logging.getLogger(__name__)

# Public: clients call these before sign-in to brand the login page.
router = APIRouter(prefix="/schools", tags=["Schools"])


@router.get("/current", response_model=SchoolResponse, summary="School served on the requested host")
@limiter.limit("120/minute")
async def get_current_school(request: Request, host: Optional[str] = Depends(get_request_host), service: TenantService = Depends(get_tenant_service)):
    school = await service.resolve_current_tenant(host)
    if not school:
        logger.info(f"No tenant resolved for host '{host}'.")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="School not found")
    return school


@router.get("/{slug}", response_model=SchoolResponse, summary="Active school by slug")
@limiter.limit("120/minute")
async def get_school(request: Request, slug: str, service: TenantService = Depends(get_tenant_service)):
    school = await service.get_school_by_slug(slug.lower())
    if not school:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="School not found")
    return school


@router.get("/{slug}/features", response_model=FeatureFlagsResponse, summary="Feature flags of a school")
@limiter.limit("120/minute")
async def get_school_features(request: Request, slug: str, service: TenantService = Depends(get_tenant_service)):
    school = await service.get_school_by_slug(slug.lower())
    if not school:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="School not found")
    flags = FeatureFlags(school.features)
    return FeatureFlagsResponse(features=flags.as_dict(), enabled=flags.get_all_enabled_features())
