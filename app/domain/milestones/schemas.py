"""Milestone domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ...shared.validators import ensure_finite, to_naive_utc
from ...utils.sanitization import validate_and_sanitize_input

MILESTONE_STATUSES = ("pending", "in_progress", "completed", "on_hold", "cancelled", "rejected")
TASK_STATUSES = ("pending", "in_progress", "completed", "on_hold", "cancelled")
TASK_PRIORITIES = ("low", "medium", "high", "urgent")


def _check_title(v):
    if v is None:
        return v
    v = v.strip()
    if not v:
        raise ValueError("Title is required")
    if len(v) > 255:
        raise ValueError("Title must be at most 255 characters")
    return v


def _check_weight(v):
    ensure_finite(v, "Weight")
    if v is not None and v <= 0:
        raise ValueError("Weight must be greater than 0")
    return v


def _check_hours(v):
    ensure_finite(v, "Hours")
    if v is not None and v < 0:
        raise ValueError("Hours cannot be negative")
    return v


class MilestoneCreate(BaseModel):
    title: str
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    weight: float = 1.0
    status: str = "pending"
    estimated_hours: Optional[float] = None
    risk_level: Optional[Literal["low", "medium", "high", "critical"]] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v):
        return _check_title(v)

    @field_validator("description")
    @classmethod
    def sanitize_description(cls, v):
        return validate_and_sanitize_input(v, max_length=2000)

    @field_validator("due_date")
    @classmethod
    def normalize_due_date(cls, v):
        return to_naive_utc(v)

    @field_validator("weight")
    @classmethod
    def validate_weight(cls, v):
        return _check_weight(v)

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        if v not in MILESTONE_STATUSES:
            raise ValueError(f"Status must be one of: {', '.join(MILESTONE_STATUSES)}")
        return v

    @field_validator("estimated_hours")
    @classmethod
    def validate_hours(cls, v):
        return _check_hours(v)


class MilestoneUpdate(BaseModel):
    """Omitted or null fields keep their current value"""

    title: Optional[str] = None
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    status: Optional[str] = None
    weight: Optional[float] = None
    estimated_hours: Optional[float] = None
    risk_level: Optional[Literal["low", "medium", "high", "critical"]] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v):
        return _check_title(v)

    @field_validator("description")
    @classmethod
    def sanitize_description(cls, v):
        return validate_and_sanitize_input(v, max_length=2000)

    @field_validator("due_date")
    @classmethod
    def normalize_due_date(cls, v):
        return to_naive_utc(v)

    @field_validator("weight")
    @classmethod
    def validate_weight(cls, v):
        return _check_weight(v)

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        if v is not None and v not in MILESTONE_STATUSES:
            raise ValueError(f"Status must be one of: {', '.join(MILESTONE_STATUSES)}")
        return v

    @field_validator("estimated_hours")
    @classmethod
    def validate_hours(cls, v):
        return _check_hours(v)


class MilestoneReorder(BaseModel):
    milestone_ids: list[str]


class TaskCreate(BaseModel):
    title: str
    description: Optional[str] = None
    status: str = "pending"
    priority: str = "medium"
    due_date: Optional[datetime] = None
    estimated_hours: Optional[float] = None
    assigned_to: Optional[str] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v):
        return _check_title(v)

    @field_validator("description")
    @classmethod
    def sanitize_description(cls, v):
        return validate_and_sanitize_input(v, max_length=2000)

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        if v not in TASK_STATUSES:
            raise ValueError(f"Status must be one of: {', '.join(TASK_STATUSES)}")
        return v

    @field_validator("priority")
    @classmethod
    def validate_priority(cls, v):
        if v not in TASK_PRIORITIES:
            raise ValueError(f"Priority must be one of: {', '.join(TASK_PRIORITIES)}")
        return v

    @field_validator("due_date")
    @classmethod
    def normalize_due_date(cls, v):
        return to_naive_utc(v)

    @field_validator("estimated_hours")
    @classmethod
    def validate_hours(cls, v):
        return _check_hours(v)


class TaskUpdate(BaseModel):
    """Omitted or null fields keep their current value"""

    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    due_date: Optional[datetime] = None
    estimated_hours: Optional[float] = None
    assigned_to: Optional[str] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v):
        return _check_title(v)

    @field_validator("description")
    @classmethod
    def sanitize_description(cls, v):
        return validate_and_sanitize_input(v, max_length=2000)

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        if v is not None and v not in TASK_STATUSES:
            raise ValueError(f"Status must be one of: {', '.join(TASK_STATUSES)}")
        return v

    @field_validator("priority")
    @classmethod
    def validate_priority(cls, v):
        if v is not None and v not in TASK_PRIORITIES:
            raise ValueError(f"Priority must be one of: {', '.join(TASK_PRIORITIES)}")
        return v

    @field_validator("due_date")
    @classmethod
    def normalize_due_date(cls, v):
        return to_naive_utc(v)

    @field_validator("estimated_hours")
    @classmethod
    def validate_hours(cls, v):
        return _check_hours(v)


class MilestoneApprovalRequest(BaseModel):
    milestone_id: str
    action: Literal["approve", "reject"]
    feedback: Optional[str] = None

    @field_validator("feedback")
    @classmethod
    def sanitize_feedback(cls, v):
        return validate_and_sanitize_input(v, max_length=1000)


class ProgressCalculateRequest(BaseModel):
    booking_id: Optional[str] = None
    milestone_id: Optional[str] = None
    task_id: Optional[str] = None
    run_async: bool = Field(False, alias="async")

    model_config = ConfigDict(populate_by_name=True)


class TaskResponse(BaseModel):
    id: str
    milestone_id: str
    title: str
    description: Optional[str] = None
    status: str
    priority: str
    due_date: Optional[datetime] = None
    estimated_hours: Optional[float] = None
    actual_hours: float = 0.0
    assigned_to: Optional[str] = None
    order_index: int
    is_overdue: bool = False
    editable: bool = True
    approval_status: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class MilestoneResponse(BaseModel):
    id: str
    booking_id: str
    title: str
    description: Optional[str] = None
    status: str
    progress_percentage: int
    completed_tasks: int
    total_tasks: int
    weight: float
    order_index: int
    due_date: Optional[datetime] = None
    start_date: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    estimated_hours: Optional[float] = None
    risk_level: Optional[str] = None
    is_overdue: bool = False
    editable: bool = True
    tasks: list[TaskResponse] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ApprovalResponse(BaseModel):
    milestone: MilestoneResponse
    approval_id: str
    approval_status: str
    booking_progress: int
    message: str
