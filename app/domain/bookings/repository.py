"""Booking repository - Database operations for bookings"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session, selectinload

from ...models import Booking, Invoice, Profile, Service

SORT_COLUMNS = {
    "created_at": Booking.created_at,
    "updated_at": Booking.updated_at,
    "amount": Booking.amount_cents,
    "title": Booking.service_title,
}


class BookingRepository:
    """Repository for booking database operations"""

    @staticmethod
    def scoped_query(db: Session, user: Profile):
        """Bookings visible to a user: admins see all, others their own side"""
        query = db.query(Booking).options(selectinload(Booking.invoices))
        if user.role == "admin":
            return query
        if user.role == "provider":
            return query.filter(Booking.provider_id == user.id)
        return query.filter(Booking.client_id == user.id)

    @staticmethod
    def get_booking(db: Session, booking_id: str) -> Optional[Booking]:
        return (
            db.query(Booking)
            .options(selectinload(Booking.invoices))
            .filter(Booking.id == booking_id)
            .first()
        )

    @staticmethod
    def list_bookings(
        db: Session,
        user: Profile,
        search: Optional[str] = None,
        sort: str = "created_at",
        order: str = "desc",
    ):
        """Return the ordered (unpaginated) query for a user's bookings"""
        query = BookingRepository.scoped_query(db, user)
        if search:
            query = query.filter(Booking.service_title.ilike(f"%{search}%"))
        column = SORT_COLUMNS.get(sort, Booking.created_at)
        return query.order_by(column.asc() if order == "asc" else column.desc(), Booking.id)

    @staticmethod
    def get_bookable_service(db: Session, service_id: str) -> Optional[Service]:
        return (
            db.query(Service)
            .options(selectinload(Service.packages))
            .filter(Service.id == service_id, Service.status.in_(("active", "featured")))
            .first()
        )

    @staticmethod
    def create_booking(db: Session, **booking_data) -> Booking:
        booking = Booking(**booking_data)
        db.add(booking)
        db.flush()
        return booking

    @staticmethod
    def create_invoice(
        db: Session,
        booking: Booking,
        invoice_number: str,
        due_date: Optional[datetime] = None,
    ) -> Invoice:
        amount = booking.amount if booking.amount is not None else booking.amount_cents / 100
        invoice = Invoice(
            booking_id=booking.id,
            invoice_number=invoice_number,
            amount=amount,
            currency=booking.currency,
            status="issued",
            due_date=due_date,
        )
        db.add(invoice)
        booking.invoices.append(invoice)
        return invoice
