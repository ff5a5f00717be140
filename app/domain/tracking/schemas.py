"""Time tracking schemas"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from ...utils.sanitization import validate_and_sanitize_input


class TimeEntryStart(BaseModel):
    description: Optional[str] = None

    @field_validator("description")
    @classmethod
    def sanitize_description(cls, v):
        return validate_and_sanitize_input(v, max_length=500)


class TimeEntryResponse(BaseModel):
    id: str
    task_id: str
    user_id: str
    start_time: datetime
    end_time: Optional[datetime] = None
    duration_minutes: Optional[int] = None
    description: Optional[str] = None
    is_active: bool

    class Config:
        from_attributes = True


class TaskTimeResponse(BaseModel):
    task_id: str
    actual_hours: float
    entries: list[TimeEntryResponse]
