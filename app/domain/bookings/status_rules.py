"""
Booking status rules

Raw statuses: pending → approved/declined/rescheduled → in_progress → completed
(cancelled/on_hold from anywhere non-terminal). Dashboards show a derived
status that folds approval and invoicing into a single pipeline stage.
"""

from typing import Optional

TERMINAL_STATUSES = ("completed", "cancelled", "declined")
REVIEWABLE_STATUSES = ("pending", "rescheduled")
BILLED_INVOICE_STATUSES = ("issued", "paid")

DERIVED_STATUSES = (
    "pending_review",
    "approved",
    "ready_to_launch",
    "in_production",
    "delivered",
    "cancelled",
    "on_hold",
)

# action -> roles allowed to perform it
ACTION_ROLES = {
    "approve": ("provider", "admin"),
    "decline": ("provider", "admin"),
    "reschedule": ("client", "provider"),
    "start": ("provider", "admin"),
    "complete": ("provider", "admin"),
    "cancel": ("client", "admin"),
}


def derive_status(
    status: Optional[str],
    approval_status: Optional[str] = None,
    invoice_statuses: Optional[list[str]] = None,
) -> str:
    """Fold raw booking, approval and invoice state into one dashboard status"""
    if status == "completed":
        return "delivered"
    if status == "in_progress":
        return "in_production"
    if any(s in BILLED_INVOICE_STATUSES for s in (invoice_statuses or [])):
        return "ready_to_launch"
    if status == "approved" or approval_status == "approved":
        return "approved"
    if status == "declined" or approval_status == "rejected":
        return "cancelled"
    if status in REVIEWABLE_STATUSES:
        return "pending_review"
    return status or "pending_review"


def derive_booking_status(booking) -> str:
    return derive_status(
        booking.status,
        booking.approval_status,
        [invoice.status for invoice in booking.invoices],
    )


def is_terminal(status: Optional[str]) -> bool:
    return status in TERMINAL_STATUSES


def validate_action(action: str, status: str, approval_status: Optional[str]) -> Optional[str]:
    """
    Check whether an action may run from the booking's current state

    Returns:
        None if allowed, otherwise the reason it is not
    """
    if action not in ACTION_ROLES:
        return f"Unknown action '{action}'"
    if is_terminal(status):
        return f"Booking is {status} and can no longer change"
    if action in ("approve", "decline") and status not in REVIEWABLE_STATUSES:
        return f"Only pending or rescheduled bookings can be {action}d"
    if action == "start" and approval_status != "approved":
        return "Booking must be approved before work starts"
    if action == "start" and status == "in_progress":
        return "Booking is already in progress"
    return None
