"""Catalog router - FastAPI endpoints for services"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_role
from ...database import get_db
from ...models import Profile
from .schemas import ServiceCreate, ServiceListResponse, ServiceResponse, ServiceUpdate
from .service import CatalogService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/services", tags=["Services"])


def get_catalog_service(db: Session = Depends(get_db)) -> CatalogService:
    """Dependency injection for CatalogService"""
    return CatalogService(db)


# ============================================================================
# CATALOG
# ============================================================================


@router.get("", response_model=ServiceListResponse)
async def list_services(
    search: Optional[str] = Query(None, max_length=100),
    category: Optional[str] = Query(None),
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    sort: str = Query("created_at", pattern="^(price|created_at)$"),
    order: str = Query("desc", pattern="^(asc|desc)$"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: Profile = Depends(get_current_user),
    service: CatalogService = Depends(get_catalog_service),
):
    """List active and featured services"""
    return service.list_services(search, category, min_price, max_price, sort, order, page, limit)


@router.get("/mine", response_model=list[ServiceResponse])
async def list_my_services(
    current_user: Profile = Depends(require_role("provider", "admin")),
    service: CatalogService = Depends(get_catalog_service),
):
    """All of the current provider's services, any status"""
    return service.list_my_services(current_user)


@router.post("", response_model=ServiceResponse, status_code=201)
async def create_service(
    data: ServiceCreate,
    current_user: Profile = Depends(require_role("provider", "admin")),
    service: CatalogService = Depends(get_catalog_service),
):
    return service.create_service(data, current_user)


@router.get("/{service_id}", response_model=ServiceResponse)
async def get_service(
    service_id: str,
    current_user: Profile = Depends(get_current_user),
    service: CatalogService = Depends(get_catalog_service),
):
    return service.get_service(service_id, current_user)


@router.patch("/{service_id}", response_model=ServiceResponse)
async def update_service(
    service_id: str,
    data: ServiceUpdate,
    current_user: Profile = Depends(get_current_user),
    service: CatalogService = Depends(get_catalog_service),
):
    """Update a service (owner or admin)"""
    return service.update_service(service_id, data, current_user)


__all__ = ["router"]
