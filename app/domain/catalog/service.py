"""Catalog service - Business logic for provider services"""

import logging
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Profile, Service
from ...services.audit_service import record_audit
from ...shared.validators import paginate
from .repository import ServiceRepository
from .schemas import ServiceCreate, ServiceUpdate

logger = logging.getLogger(__name__)


class CatalogService:
    """Service layer for catalog business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = ServiceRepository()

    def list_services(
        self,
        search: Optional[str],
        category: Optional[str],
        min_price: Optional[float],
        max_price: Optional[float],
        sort: str,
        order: str,
        page: int,
        limit: int,
    ) -> dict:
        if min_price is not None and max_price is not None and min_price > max_price:
            raise HTTPException(status_code=400, detail="min_price cannot exceed max_price")

        rows, total = self.repo.list_public_services(
            self.db, search, category, min_price, max_price, sort, order, page, limit
        )
        return {"services": rows, "pagination": paginate(total, page, limit)}

    def list_my_services(self, user: Profile) -> list[Service]:
        return self.repo.list_provider_services(self.db, user.id)

    def get_service(self, service_id: str, user: Optional[Profile] = None) -> Service:
        """Get a service; drafts and inactive services are only visible to their owner"""
        service = self.repo.get_service(self.db, service_id)
        if not service:
            raise HTTPException(status_code=404, detail="Service not found")
        if service.status not in ("active", "featured"):
            if user is None or (user.id != service.provider_id and user.role != "admin"):
                raise HTTPException(status_code=404, detail="Service not found")
        return service

    def create_service(self, data: ServiceCreate, user: Profile) -> Service:
        logger.info(f"📥 Creating service '{data.title}' for provider {user.id}")

        service_data = {
            "title": data.title,
            "description": data.description,
            "category": data.category,
            "base_price": data.base_price,
            "currency": data.currency,
            "status": data.status,
            "delivery_timeframe": data.delivery_timeframe,
            "revision_policy": data.revision_policy,
            "tags": data.tags,
            "company_id": user.company_id,
        }
        packages = [p.model_dump() for p in data.packages]

        try:
            service = self.repo.create_service(self.db, user.id, packages, **service_data)
            record_audit(self.db, user.id, "service", service.id, "created", {"title": service.title})
            self.db.commit()
        except HTTPException:
            raise
        except Exception as e:
            self.db.rollback()
            logger.exception(f"❌ Failed to create service for {user.id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to create service") from e

        logger.info(f"✅ Service {service.id} created")
        return service

    def update_service(self, service_id: str, data: ServiceUpdate, user: Profile) -> Service:
        service = self.repo.get_service(self.db, service_id)
        if not service:
            raise HTTPException(status_code=404, detail="Service not found")
        if service.provider_id != user.id and user.role != "admin":
            raise HTTPException(status_code=403, detail="You can only edit your own services")

        updates = data.model_dump(exclude_unset=True)
        service = self.repo.update_service(self.db, service, **updates)
        record_audit(
            self.db, user.id, "service", service.id, "updated", {"fields": sorted(updates.keys())}
        )
        self.db.commit()
        return service
