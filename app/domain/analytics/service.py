"""Analytics service - dashboard aggregates over bookings and invoices"""

import logging
from collections import Counter
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from ...cache import cache_summary, get_cached_summary
from ...config import SUMMARY_DAYS_BACK, SUMMARY_MAX_ROWS
from ...models import Booking, Profile, Service
from ..bookings.repository import BookingRepository
from ..bookings.status_rules import BILLED_INVOICE_STATUSES, derive_booking_status
from ..milestones.progress import round_half_up

logger = logging.getLogger(__name__)

EMPTY_SUMMARY = {
    "total": 0,
    "completed": 0,
    "inProgress": 0,
    "approved": 0,
    "pending": 0,
    "readyToLaunch": 0,
    "cancelled": 0,
    "totalRevenue": 0,
    "projectedBillings": 0,
    "pendingApproval": 0,
    "avgCompletionTime": 0,
    "byStatus": {},
}


def billed_amount(bookings: list[Booking]) -> float:
    return sum(
        inv.amount or 0
        for b in bookings
        for inv in b.invoices
        if inv.status in BILLED_INVOICE_STATUSES
    )


def summarize_bookings(bookings: list[Booking]) -> dict:
    """Dashboard counters for a set of bookings"""
    derived = {b.id: derive_booking_status(b) for b in bookings}
    counts = Counter(derived.values())

    projected = sum(
        (b.amount_cents or 0) / 100
        for b in bookings
        if derived[b.id] in ("ready_to_launch", "in_production")
    )

    durations = [
        (b.updated_at - b.created_at).total_seconds() / 86400
        for b in bookings
        if b.status == "completed" and b.created_at and b.updated_at
    ]
    avg_completion = round(sum(durations) / len(durations), 1) if durations else 0

    return {
        "total": len(bookings),
        "completed": counts.get("delivered", 0),
        "inProgress": counts.get("in_production", 0),
        "approved": sum(1 for b in bookings if b.status == "approved" or b.approval_status == "approved"),
        "pending": counts.get("pending_review", 0),
        "readyToLaunch": counts.get("ready_to_launch", 0),
        "cancelled": counts.get("cancelled", 0),
        "totalRevenue": round(billed_amount(bookings), 3),
        "projectedBillings": round(projected, 3),
        "pendingApproval": counts.get("pending_review", 0),
        "avgCompletionTime": avg_completion,
        "byStatus": dict(counts),
    }


class AnalyticsService:
    """Service layer for dashboard analytics"""

    def __init__(self, db: Session):
        self.db = db

    def _recent_bookings(self, user: Profile, days_back: int, limit: Optional[int] = None) -> list[Booking]:
        since = datetime.utcnow() - timedelta(days=days_back)
        query = (
            BookingRepository.scoped_query(self.db, user)
            .filter(Booking.created_at >= since)
            .order_by(Booking.created_at.desc())
        )
        if limit:
            query = query.limit(limit)
        return query.all()

    def get_summary(self, user: Profile) -> dict:
        cached = get_cached_summary(user.id)
        if cached is not None:
            return cached

        try:
            bookings = self._recent_bookings(user, SUMMARY_DAYS_BACK, SUMMARY_MAX_ROWS)
            summary = summarize_bookings(bookings)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Summary query failed for user {user.id}, returning empty summary: {e}")
            return dict(EMPTY_SUMMARY)

        cache_summary(user.id, summary)
        logger.debug(f"📊 Summary for {user.id}: {summary['total']} bookings")
        return summary

    def get_trends(self, user: Profile, months: int = 6) -> dict:
        now = datetime.utcnow()
        buckets = []
        year, month = now.year, now.month
        for _ in range(months):
            buckets.append(f"{year:04d}-{month:02d}")
            month -= 1
            if month == 0:
                year, month = year - 1, 12
        buckets.reverse()

        first = datetime.strptime(buckets[0], "%Y-%m")
        bookings = (
            BookingRepository.scoped_query(self.db, user).filter(Booking.created_at >= first).all()
        )

        series = {b: {"month": b, "bookings": 0, "completed": 0, "revenue": 0.0} for b in buckets}
        for booking in bookings:
            bucket = booking.created_at.strftime("%Y-%m")
            if bucket not in series:
                continue
            series[bucket]["bookings"] += 1
            if booking.status == "completed":
                series[bucket]["completed"] += 1
            for invoice in booking.invoices:
                if invoice.status in BILLED_INVOICE_STATUSES and invoice.created_at:
                    invoice_bucket = invoice.created_at.strftime("%Y-%m")
                    if invoice_bucket in series:
                        series[invoice_bucket]["revenue"] += invoice.amount or 0

        for point in series.values():
            point["revenue"] = round(point["revenue"], 3)
        return {"months": months, "trends": list(series.values())}

    def get_service_analytics(self, service_id: str, user: Profile) -> dict:
        service = self.db.query(Service).filter(Service.id == service_id).first()
        if not service:
            raise HTTPException(status_code=404, detail="Service not found")
        if service.provider_id != user.id and user.role != "admin":
            raise HTTPException(status_code=403, detail="You can only view analytics for your own services")

        bookings = (
            self.db.query(Booking)
            .options(selectinload(Booking.invoices))
            .filter(Booking.service_id == service.id)
            .all()
        )
        total = len(bookings)
        completed = sum(1 for b in bookings if b.status == "completed")
        average_progress = 0
        if total:
            average_progress = round_half_up(
                Decimal(sum(b.project_progress or 0 for b in bookings)) / total
            )

        return {
            "service_id": service.id,
            "title": service.title,
            "total_bookings": total,
            "completed_bookings": completed,
            "completion_rate": round(completed / total * 100, 2) if total else 0,
            "revenue": round(billed_amount(bookings), 3),
            "average_progress": average_progress,
            "status_breakdown": dict(Counter(derive_booking_status(b) for b in bookings)),
        }
