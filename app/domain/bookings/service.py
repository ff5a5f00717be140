"""Booking service - Business logic for the booking lifecycle"""

import logging
import uuid
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...cache import invalidate_analytics_cache
from ...config import DEFAULT_BOOKING_DURATION_HOURS
from ...models import Booking, BookingFile, Profile
from ...services.audit_service import record_audit
from ...services.notification_service import create_notification
from ...shared.validators import paginate
from ..milestones.progress import round_half_up
from .repository import BookingRepository
from .schemas import BookingAction, BookingCreate
from .status_rules import ACTION_ROLES, derive_booking_status, validate_action

logger = logging.getLogger(__name__)

INVOICE_DUE_DAYS = 30


def generate_invoice_number(now: Optional[datetime] = None) -> str:
    """INV-YYYYMMDD-XXXXXX"""
    now = now or datetime.utcnow()
    return f"INV-{now.strftime('%Y%m%d')}-{uuid.uuid4().hex[:6].upper()}"


def participant_role(booking: Booking, user: Profile) -> Optional[str]:
    """The part a user plays on a booking, or None for outsiders"""
    if user.role == "admin":
        return "admin"
    if user.id == booking.provider_id:
        return "provider"
    if user.id == booking.client_id:
        return "client"
    return None


def get_accessible_booking(db: Session, booking_id: str, user: Profile) -> Booking:
    """Load a booking the user takes part in (admins see all)"""
    booking = BookingRepository.get_booking(db, booking_id)
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")
    if participant_role(booking, user) is None:
        raise HTTPException(status_code=403, detail="You do not have access to this booking")
    return booking


class BookingService:
    """Service layer for booking business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = BookingRepository()

    def get_booking(self, booking_id: str, user: Profile) -> Booking:
        return get_accessible_booking(self.db, booking_id, user)

    def list_bookings(
        self,
        user: Profile,
        status: Optional[str] = None,
        search: Optional[str] = None,
        sort: str = "created_at",
        order: str = "desc",
        page: int = 1,
        page_size: int = 20,
    ) -> dict:
        query = self.repo.list_bookings(self.db, user, search, sort, order)

        if status:
            # Derived status folds invoices in, so filter after loading
            rows = [b for b in query.all() if derive_booking_status(b) == status]
            total = len(rows)
            start = (page - 1) * page_size
            bookings = rows[start : start + page_size]
        else:
            total = query.count()
            bookings = query.offset((page - 1) * page_size).limit(page_size).all()

        return {"bookings": bookings, "pagination": paginate(total, page, page_size)}

    def create_booking(self, data: BookingCreate, user: Profile) -> Booking:
        logger.info(f"📥 Creating booking for service {data.service_id} by user {user.id}")

        service = self.repo.get_bookable_service(self.db, data.service_id)
        if not service:
            raise HTTPException(status_code=404, detail="Service not found or not available")
        if service.provider_id == user.id:
            raise HTTPException(status_code=400, detail="You cannot book your own service")

        amount = service.base_price
        if data.service_package_id:
            package = next((p for p in service.packages if p.id == data.service_package_id), None)
            if package:
                amount = package.price

        end_time = None
        if data.scheduled_date:
            end_time = data.scheduled_date + timedelta(hours=DEFAULT_BOOKING_DURATION_HOURS)

        try:
            booking = self.repo.create_booking(
                self.db,
                service_id=service.id,
                client_id=user.id,
                provider_id=service.provider_id,
                service_title=service.title,
                scheduled_date=data.scheduled_date,
                start_time=data.scheduled_date,
                end_time=end_time,
                notes=data.notes,
                location=data.location,
                estimated_duration=data.estimated_duration,
                status="pending",
                approval_status="pending",
                operational_status="new",
                payment_status="pending",
                amount=amount,
                amount_cents=round_half_up(Decimal(str(amount)) * 100),
                currency=service.currency,
            )
            create_notification(
                self.db,
                service.provider_id,
                "booking_created",
                "New booking request",
                f"New booking request for {service.title}",
                {"booking_id": booking.id, "service_id": service.id},
                priority="high",
            )
            record_audit(
                self.db, user.id, "booking", booking.id, "created",
                {"service_id": service.id, "amount_cents": booking.amount_cents},
            )
            self.db.commit()
            self.db.refresh(booking)
        except Exception as e:
            self.db.rollback()
            logger.exception(f"❌ Failed to create booking for user {user.id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to create booking") from e

        invalidate_analytics_cache()
        logger.info(f"✅ Booking {booking.id} created ({booking.amount_cents} {booking.currency} cents)")
        return booking

    def apply_action(self, booking_id: str, data: BookingAction, user: Profile) -> Booking:
        """Run a workflow action (approve, decline, reschedule, start, complete, cancel)"""
        booking = get_accessible_booking(self.db, booking_id, user)
        role = participant_role(booking, user)

        if role not in ACTION_ROLES[data.action]:
            logger.warning(f"⚠️ {role} {user.id} not allowed to {data.action} booking {booking.id}")
            raise HTTPException(status_code=403, detail=f"Not allowed to {data.action} this booking")

        error = validate_action(data.action, booking.status, booking.approval_status)
        if error:
            raise HTTPException(status_code=400, detail=error)

        if data.action == "reschedule" and not data.scheduled_date:
            raise HTTPException(status_code=400, detail="scheduled_date is required to reschedule")

        previous_status = booking.status
        now = datetime.utcnow()

        try:
            getattr(self, f"_{data.action}")(booking, data, now)
            self._notify_counterparty(booking, user, data.action)
            record_audit(
                self.db, user.id, "booking", booking.id, data.action,
                {"from": previous_status, "to": booking.status, "reason": data.reason},
            )
            self.db.commit()
            self.db.refresh(booking)
        except HTTPException:
            raise
        except Exception as e:
            self.db.rollback()
            logger.exception(f"❌ Failed to {data.action} booking {booking_id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to update booking") from e

        invalidate_analytics_cache()
        logger.info(f"✅ Booking {booking.id} {data.action}: {previous_status} → {booking.status}")
        return booking

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def _approve(self, booking: Booking, data: BookingAction, now: datetime):
        booking.approval_status = "approved"
        booking.approval_reviewed_at = now
        if not booking.invoices:
            invoice = self.repo.create_invoice(
                self.db, booking, generate_invoice_number(now), now + timedelta(days=INVOICE_DUE_DAYS)
            )
            logger.info(f"🧾 Issued invoice {invoice.invoice_number} for booking {booking.id}")

    def _decline(self, booking: Booking, data: BookingAction, now: datetime):
        booking.status = "declined"
        booking.approval_status = "rejected"
        booking.approval_reviewed_at = now
        booking.decline_reason = data.reason

    def _reschedule(self, booking: Booking, data: BookingAction, now: datetime):
        booking.status = "rescheduled"
        booking.approval_status = "pending"
        booking.scheduled_date = data.scheduled_date
        booking.start_time = data.scheduled_date
        booking.end_time = data.scheduled_date + timedelta(hours=DEFAULT_BOOKING_DURATION_HOURS)

    def _start(self, booking: Booking, data: BookingAction, now: datetime):
        booking.status = "in_progress"
        booking.operational_status = "in_progress"

    def _complete(self, booking: Booking, data: BookingAction, now: datetime):
        booking.status = "completed"
        booking.operational_status = "approved"

    def _cancel(self, booking: Booking, data: BookingAction, now: datetime):
        booking.status = "cancelled"
        booking.operational_status = "rejected"
        booking.cancel_reason = data.reason

    def _notify_counterparty(self, booking: Booking, actor: Profile, action: str):
        title = booking.service_title or "your booking"
        for recipient in {booking.client_id, booking.provider_id} - {actor.id}:
            create_notification(
                self.db,
                recipient,
                f"booking_{action}",
                f"Booking {action}",
                f"Booking for {title} was updated: {action}",
                {"booking_id": booking.id, "status": booking.status},
            )

    def list_files(self, booking_id: str, user: Profile) -> list[BookingFile]:
        booking = get_accessible_booking(self.db, booking_id, user)
        return (
            self.db.query(BookingFile)
            .filter(BookingFile.booking_id == booking.id)
            .order_by(BookingFile.created_at.desc())
            .all()
        )
