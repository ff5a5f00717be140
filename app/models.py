import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


def generate_uuid():
    """Generate a UUID string primary key"""
    return str(uuid.uuid4())


class Profile(Base):
    __tablename__ = "profiles"

    # Same id as the auth provider's user (JWT "sub")
    id = Column(String(36), primary_key=True, index=True)
    email = Column(String(255), index=True, nullable=True)
    full_name = Column(String(255), nullable=True)
    role = Column(String(20), default="client", nullable=False)  # client, provider, admin
    phone = Column(String(50), nullable=True)
    company_id = Column(String(36), ForeignKey("companies.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    company = relationship("Company", foreign_keys=[company_id])


class Company(Base):
    __tablename__ = "companies"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    owner_id = Column(String(36), nullable=True, index=True)  # profiles.id of the owning provider
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    cr_number = Column(String(50), nullable=True)  # Commercial registration
    vat_number = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    website = Column(String(500), nullable=True)
    industry = Column(String(50), nullable=True)
    size = Column(String(20), nullable=True)  # 1-10, 11-50, 51-200, 201-500, 500+
    logo_url = Column(String(500), nullable=True)  # key in company-assets bucket
    created_at = Column(DateTime, server_default=func.now())


class Service(Base):
    __tablename__ = "services"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    provider_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    company_id = Column(String(36), ForeignKey("companies.id"), nullable=True)
    title = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(50), nullable=True)
    base_price = Column(Float, nullable=False)
    currency = Column(String(3), default="OMR", nullable=False)
    status = Column(String(20), default="draft", nullable=False)  # draft, pending, active, inactive, featured
    delivery_timeframe = Column(String(100), nullable=True)
    revision_policy = Column(String(200), nullable=True)
    tags = Column(JSON, default=list, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    provider = relationship("Profile", foreign_keys=[provider_id])
    packages = relationship(
        "ServicePackage", back_populates="service", cascade="all, delete-orphan"
    )
    bookings = relationship("Booking", back_populates="service")


class ServicePackage(Base):
    __tablename__ = "service_packages"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    service_id = Column(
        String(36), ForeignKey("services.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(50), nullable=False)
    price = Column(Float, nullable=False)
    delivery_days = Column(Integer, nullable=True)
    revisions = Column(Integer, default=0)
    features = Column(JSON, default=list, nullable=True)

    service = relationship("Service", back_populates="packages")


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    service_id = Column(String(36), ForeignKey("services.id"), nullable=False, index=True)
    client_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    provider_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    service_title = Column(String(255), nullable=True)
    scheduled_date = Column(DateTime, nullable=True)
    start_time = Column(DateTime, nullable=True)
    end_time = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=True)
    location = Column(String(200), nullable=True)
    estimated_duration = Column(String(50), nullable=True)
    # pending, approved, rescheduled, in_progress, completed, cancelled, declined, on_hold
    status = Column(String(20), default="pending", nullable=False, index=True)
    approval_status = Column(String(20), default="pending", nullable=False)  # pending, approved, rejected
    operational_status = Column(String(20), default="new", nullable=True)
    amount_cents = Column(Integer, default=0, nullable=False)
    amount = Column(Float, nullable=True)  # Major units, kept alongside amount_cents
    currency = Column(String(3), default="OMR", nullable=False)
    payment_status = Column(String(20), default="pending", nullable=True)
    project_progress = Column(Integer, default=0, nullable=False)  # Weighted milestone rollup 0-100
    decline_reason = Column(Text, nullable=True)
    cancel_reason = Column(Text, nullable=True)
    approval_reviewed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), index=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    service = relationship("Service", back_populates="bookings")
    client = relationship("Profile", foreign_keys=[client_id])
    provider = relationship("Profile", foreign_keys=[provider_id])
    milestones = relationship(
        "Milestone",
        back_populates="booking",
        cascade="all, delete-orphan",
        order_by="Milestone.order_index",
    )
    invoices = relationship("Invoice", back_populates="booking", cascade="all, delete-orphan")
    files = relationship("BookingFile", back_populates="booking", cascade="all, delete-orphan")

    @property
    def derived_status(self) -> str:
        from .domain.bookings.status_rules import derive_booking_status

        return derive_booking_status(self)


class Invoice(Base):
    __tablename__ = "invoices"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    booking_id = Column(
        String(36), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    invoice_number = Column(String(50), unique=True, nullable=False)
    amount = Column(Float, nullable=False)
    currency = Column(String(3), default="OMR", nullable=False)
    status = Column(String(20), default="issued", nullable=False)  # draft, issued, paid, void
    due_date = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    booking = relationship("Booking", back_populates="invoices")


class Milestone(Base):
    __tablename__ = "milestones"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    booking_id = Column(
        String(36), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    # pending, in_progress, completed, on_hold, cancelled, rejected
    status = Column(String(20), default="pending", nullable=False)
    progress_percentage = Column(Integer, default=0, nullable=False)
    completed_tasks = Column(Integer, default=0, nullable=False)
    total_tasks = Column(Integer, default=0, nullable=False)
    weight = Column(Float, default=1.0, nullable=False)
    order_index = Column(Integer, default=0, nullable=False)
    due_date = Column(DateTime, nullable=True)
    start_date = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    estimated_hours = Column(Float, nullable=True)
    risk_level = Column(String(20), nullable=True)  # low, medium, high, critical
    is_overdue = Column(Boolean, default=False, nullable=False)
    editable = Column(Boolean, default=True, nullable=False)
    created_by = Column(String(36), ForeignKey("profiles.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    booking = relationship("Booking", back_populates="milestones")
    tasks = relationship(
        "Task",
        back_populates="milestone",
        cascade="all, delete-orphan",
        order_by="Task.order_index",
    )
    approvals = relationship(
        "MilestoneApproval", back_populates="milestone", cascade="all, delete-orphan"
    )
    comments = relationship(
        "MilestoneComment",
        back_populates="milestone",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="MilestoneComment.created_at",
    )


class Task(Base):
    __tablename__ = "tasks"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    milestone_id = Column(
        String(36), ForeignKey("milestones.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(20), default="pending", nullable=False)  # pending, in_progress, completed, on_hold, cancelled
    priority = Column(String(10), default="medium", nullable=False)  # low, medium, high, urgent
    due_date = Column(DateTime, nullable=True)
    estimated_hours = Column(Float, nullable=True)
    actual_hours = Column(Float, default=0.0, nullable=False)
    assigned_to = Column(String(36), ForeignKey("profiles.id"), nullable=True)
    order_index = Column(Integer, default=0, nullable=False)
    is_overdue = Column(Boolean, default=False, nullable=False)
    editable = Column(Boolean, default=True, nullable=False)
    approval_status = Column(String(20), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    milestone = relationship("Milestone", back_populates="tasks")
    time_entries = relationship(
        "TimeEntry", back_populates="task", cascade="all, delete-orphan"
    )


class MilestoneApproval(Base):
    __tablename__ = "milestone_approvals"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    milestone_id = Column(
        String(36), ForeignKey("milestones.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(String(36), ForeignKey("profiles.id"), nullable=False)
    status = Column(String(20), nullable=False)  # approved, rejected
    comment = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    milestone = relationship("Milestone", back_populates="approvals")


class TimeEntry(Base):
    __tablename__ = "time_entries"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    task_id = Column(
        String(36), ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=True)
    duration_minutes = Column(Integer, nullable=True)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    task = relationship("Task", back_populates="time_entries")


class AuditLog(Base):
    """Append-only record of who changed what"""

    __tablename__ = "audit_logs"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("profiles.id"), nullable=True, index=True)
    entity_type = Column(String(50), nullable=False, index=True)  # booking, milestone, task, service
    entity_id = Column(String(36), nullable=False, index=True)
    action = Column(String(100), nullable=False)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class UserNotification(Base):
    __tablename__ = "user_notifications"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    type = Column(String(50), nullable=False)  # booking_approved, milestone_approved, ...
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=True)
    data = Column(JSON, nullable=True)
    priority = Column(String(10), default="normal", nullable=False)  # low, normal, high, urgent
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now())


class BookingFile(Base):
    """Metadata for objects stored in the booking-files bucket"""

    __tablename__ = "booking_files"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    booking_id = Column(
        String(36), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    uploaded_by = Column(String(36), ForeignKey("profiles.id"), nullable=True)
    file_name = Column(String(255), nullable=False)
    storage_path = Column(String(500), nullable=False)
    bucket = Column(String(50), default="booking-files", nullable=False)
    content_type = Column(String(100), nullable=True)
    size_bytes = Column(Integer, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    booking = relationship("Booking", back_populates="files")


class MilestoneComment(Base):
    __tablename__ = "milestone_comments"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    milestone_id = Column(
        String(36), ForeignKey("milestones.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # Replies point at the comment they answer; deleting a comment removes its thread
    parent_id = Column(
        String(36), ForeignKey("milestone_comments.id", ondelete="CASCADE"), nullable=True, index=True
    )
    created_by = Column(String(36), ForeignKey("profiles.id"), nullable=False)
    content = Column(Text, nullable=False)
    comment_type = Column(String(20), default="general", nullable=False)  # general, feedback, question, issue
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    milestone = relationship("Milestone", back_populates="comments")


class Message(Base):
    """Direct message between two users, optionally about a booking"""

    __tablename__ = "messages"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    sender_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    receiver_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    booking_id = Column(
        String(36), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=True, index=True
    )
    subject = Column(String(255), nullable=False)  # escaped, so longer than the 100 typed characters
    content = Column(Text, nullable=False)
    is_read = Column(Boolean, default=False, nullable=False)
    read_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), index=True)
