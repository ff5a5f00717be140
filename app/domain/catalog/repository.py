"""Catalog repository - Database operations for services"""

from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session, selectinload

from ...models import Service, ServicePackage

PUBLIC_STATUSES = ("active", "featured")


class ServiceRepository:
    """Repository for service database operations"""

    @staticmethod
    def get_service(db: Session, service_id: str) -> Optional[Service]:
        return (
            db.query(Service)
            .options(selectinload(Service.packages))
            .filter(Service.id == service_id)
            .first()
        )

    @staticmethod
    def list_public_services(
        db: Session,
        search: Optional[str] = None,
        category: Optional[str] = None,
        min_price: Optional[float] = None,
        max_price: Optional[float] = None,
        sort: str = "created_at",
        order: str = "desc",
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[Service], int]:
        """List bookable services with filters; returns (rows, total)"""
        query = db.query(Service).filter(Service.status.in_(PUBLIC_STATUSES))

        if search:
            pattern = f"%{search}%"
            query = query.filter(
                or_(Service.title.ilike(pattern), Service.description.ilike(pattern))
            )
        if category:
            query = query.filter(Service.category == category)
        if min_price is not None:
            query = query.filter(Service.base_price >= min_price)
        if max_price is not None:
            query = query.filter(Service.base_price <= max_price)

        total = query.count()

        column = Service.base_price if sort == "price" else Service.created_at
        query = query.order_by(column.asc() if order == "asc" else column.desc())

        rows = (
            query.options(selectinload(Service.packages))
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return rows, total

    @staticmethod
    def list_provider_services(db: Session, provider_id: str) -> list[Service]:
        return (
            db.query(Service)
            .options(selectinload(Service.packages))
            .filter(Service.provider_id == provider_id)
            .order_by(Service.created_at.desc())
            .all()
        )

    @staticmethod
    def create_service(db: Session, provider_id: str, packages: list[dict], **service_data) -> Service:
        service = Service(provider_id=provider_id, **service_data)
        for package in packages:
            service.packages.append(ServicePackage(**package))
        db.add(service)
        db.commit()
        db.refresh(service)
        return service

    @staticmethod
    def update_service(db: Session, service: Service, **updates) -> Service:
        for key, value in updates.items():
            if value is not None and hasattr(service, key):
                setattr(service, key, value)
        db.commit()
        db.refresh(service)
        return service
