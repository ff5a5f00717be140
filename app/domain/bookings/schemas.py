"""Booking domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, field_validator

from ...shared.validators import to_naive_utc
from ...utils.sanitization import validate_and_sanitize_input


class BookingCreate(BaseModel):
    """Schema for creating a booking request"""

    service_id: str
    scheduled_date: Optional[datetime] = None
    notes: Optional[str] = None
    location: Optional[str] = None
    estimated_duration: Optional[str] = None
    service_package_id: Optional[str] = None

    @field_validator("scheduled_date")
    @classmethod
    def normalize_date(cls, v):
        return to_naive_utc(v)

    @field_validator("notes")
    @classmethod
    def sanitize_notes(cls, v):
        return validate_and_sanitize_input(v, max_length=2000)

    @field_validator("location")
    @classmethod
    def sanitize_location(cls, v):
        return validate_and_sanitize_input(v, max_length=200)


class BookingAction(BaseModel):
    """Schema for PATCH /bookings/{id}"""

    action: Literal["approve", "decline", "reschedule", "start", "complete", "cancel"]
    reason: Optional[str] = None
    scheduled_date: Optional[datetime] = None

    @field_validator("reason")
    @classmethod
    def sanitize_reason(cls, v):
        return validate_and_sanitize_input(v, max_length=1000)

    @field_validator("scheduled_date")
    @classmethod
    def normalize_date(cls, v):
        return to_naive_utc(v)


class InvoiceResponse(BaseModel):
    id: str
    invoice_number: str
    amount: float
    currency: str
    status: str
    due_date: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class BookingResponse(BaseModel):
    """Schema for booking response"""

    id: str
    service_id: str
    client_id: str
    provider_id: str
    service_title: Optional[str] = None
    scheduled_date: Optional[datetime] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    notes: Optional[str] = None
    location: Optional[str] = None
    estimated_duration: Optional[str] = None
    status: str
    derived_status: str
    approval_status: str
    operational_status: Optional[str] = None
    amount_cents: int
    amount: Optional[float] = None
    currency: str
    payment_status: Optional[str] = None
    project_progress: int = 0
    decline_reason: Optional[str] = None
    cancel_reason: Optional[str] = None
    approval_reviewed_at: Optional[datetime] = None
    invoices: list[InvoiceResponse] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class BookingListResponse(BaseModel):
    bookings: list[BookingResponse]
    pagination: dict


class BookingFileResponse(BaseModel):
    id: str
    file_name: str
    storage_path: str
    bucket: str
    content_type: Optional[str] = None
    size_bytes: Optional[int] = None
    uploaded_by: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
