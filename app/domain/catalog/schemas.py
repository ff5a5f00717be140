"""Catalog domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from ...config import DEFAULT_CURRENCY
from ...shared.validators import ensure_finite, validate_currency
from ...utils.sanitization import sanitize_string, validate_and_sanitize_input

SERVICE_STATUSES = ("draft", "pending", "active", "inactive", "featured")
MAX_PRICE = 100000
MAX_TAGS = 10
MAX_TAG_LENGTH = 30
MAX_PACKAGES = 5


def _check_title(v: str) -> str:
    v = (v or "").strip()
    if len(v) < 3:
        raise ValueError("Title must be at least 3 characters")
    if len(v) > 100:
        raise ValueError("Title must be at most 100 characters")
    return v


def _check_description(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    stripped = v.strip()
    if len(stripped) < 10:
        raise ValueError("Description must be at least 10 characters")
    return validate_and_sanitize_input(stripped, max_length=1000)


def _check_price(v: float) -> float:
    ensure_finite(v, "Price")
    if v <= 0:
        raise ValueError("Price must be greater than 0")
    if v > MAX_PRICE:
        raise ValueError(f"Price cannot exceed {MAX_PRICE}")
    return v


def _check_tags(v: Optional[list[str]]) -> Optional[list[str]]:
    if v is None:
        return v
    if len(v) > MAX_TAGS:
        raise ValueError(f"At most {MAX_TAGS} tags allowed")
    cleaned = []
    for tag in v:
        tag = sanitize_string(tag)
        if len(tag) > MAX_TAG_LENGTH:
            raise ValueError(f"Tags must be at most {MAX_TAG_LENGTH} characters")
        if tag:
            cleaned.append(tag)
    return cleaned


class PackageCreate(BaseModel):
    name: str
    price: float
    delivery_days: Optional[int] = None
    revisions: int = 0
    features: list[str] = []

    @field_validator("price")
    @classmethod
    def validate_price(cls, v):
        return _check_price(v)


class PackageResponse(BaseModel):
    id: str
    name: str
    price: float
    delivery_days: Optional[int] = None
    revisions: Optional[int] = 0
    features: Optional[list] = None

    class Config:
        from_attributes = True


class ServiceCreate(BaseModel):
    """Schema for creating a new service"""

    title: str
    description: str
    category: Optional[str] = None
    base_price: float
    currency: str = DEFAULT_CURRENCY
    status: str = "draft"
    delivery_timeframe: Optional[str] = None
    revision_policy: Optional[str] = None
    tags: list[str] = []
    packages: list[PackageCreate] = []

    @field_validator("title")
    @classmethod
    def validate_title(cls, v):
        return _check_title(v)

    @field_validator("description")
    @classmethod
    def validate_description(cls, v):
        return _check_description(v)

    @field_validator("base_price")
    @classmethod
    def validate_base_price(cls, v):
        return _check_price(v)

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v):
        return validate_currency(v)

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        if v not in SERVICE_STATUSES:
            raise ValueError(f"Status must be one of: {', '.join(SERVICE_STATUSES)}")
        return v

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v):
        return _check_tags(v)

    @field_validator("packages")
    @classmethod
    def validate_packages(cls, v):
        if len(v) > MAX_PACKAGES:
            raise ValueError(f"At most {MAX_PACKAGES} packages allowed")
        return v


class ServiceUpdate(BaseModel):
    """Schema for updating a service; omitted fields are left unchanged"""

    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    base_price: Optional[float] = None
    currency: Optional[str] = None
    status: Optional[str] = None
    delivery_timeframe: Optional[str] = None
    revision_policy: Optional[str] = None
    tags: Optional[list[str]] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v):
        return _check_title(v) if v is not None else v

    @field_validator("description")
    @classmethod
    def validate_description(cls, v):
        return _check_description(v)

    @field_validator("base_price")
    @classmethod
    def validate_base_price(cls, v):
        return _check_price(v) if v is not None else v

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v):
        return validate_currency(v) if v is not None else v

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        if v is not None and v not in SERVICE_STATUSES:
            raise ValueError(f"Status must be one of: {', '.join(SERVICE_STATUSES)}")
        return v

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v):
        return _check_tags(v)


class ServiceResponse(BaseModel):
    """Schema for service response"""

    id: str
    provider_id: str
    company_id: Optional[str] = None
    title: str
    description: Optional[str] = None
    category: Optional[str] = None
    base_price: float
    currency: str
    status: str
    delivery_timeframe: Optional[str] = None
    revision_policy: Optional[str] = None
    tags: Optional[list] = None
    packages: list[PackageResponse] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ServiceListResponse(BaseModel):
    services: list[ServiceResponse]
    pagination: dict
