"""Pydantic schemas for the booking API.

Field names are snake_case in Python and camelCase on the wire.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Generic, List, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from .models import BookingStatus, RoleEnum

T = TypeVar("T")


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Envelope(BaseModel, Generic[T]):
    """Wrapper used for every API response."""

    success: bool = True
    data: Optional[T] = None
    error: Optional[str] = None


# ----- Users -----
class UserRead(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: str
    email: str
    role: RoleEnum
    department: Optional[str] = None
    avatar: Optional[str] = None
    created_at: datetime


class RoleUpdate(BaseModel):
    role: RoleEnum


# ----- Resources -----
class FormField(BaseModel):
    id: str = Field(..., min_length=1)
    label: str
    type: Literal["text", "number", "boolean", "select"] = "text"
    options: Optional[List[str]] = None
    required: bool = False

    @model_validator(mode="after")
    def _select_needs_options(self) -> "FormField":
        if self.type == "select" and not self.options:
            raise ValueError("select fields need at least one option")
        return self


class ResourceBase(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    type: str = Field(..., min_length=1, max_length=50)
    description: str = ""
    min_lead_time_hours: int = Field(default=0, ge=0)
    icon: str = ""
    color: Optional[str] = None
    specs: Dict[str, str] = Field(default_factory=dict)
    form_fields: List[FormField] = Field(default_factory=list)


class ResourceCreate(ResourceBase):
    pass


class ResourceUpdate(ResourceBase):
    is_active: bool = True


class ResourceRead(ResourceBase):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: str
    is_active: bool
    created_at: datetime


# ----- Bookings -----
class BookingCreate(CamelModel):
    resource_id: str = Field(..., min_length=1)
    user_id: Optional[str] = None  # defaults to the caller
    start_time: datetime = Field(..., alias="start")
    end_time: datetime = Field(..., alias="end")
    details: Dict[str, Any] = Field(default_factory=dict)


class BookingProcess(CamelModel):
    status: BookingStatus
    rejection_reason: Optional[str] = None


class BookingReschedule(CamelModel):
    start_time: datetime = Field(..., alias="start")
    end_time: datetime = Field(..., alias="end")


class BookingRead(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: str
    resource_id: str
    user_id: str
    start_time: datetime = Field(..., alias="start")
    end_time: datetime = Field(..., alias="end")
    status: BookingStatus
    created_at: datetime
    rejection_reason: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)


class AvailabilityRead(CamelModel):
    resource_id: str
    start_time: datetime = Field(..., alias="start")
    end_time: datetime = Field(..., alias="end")
    available: bool


# ----- Stats -----
class ResourceStat(CamelModel):
    resource_id: str
    resource_name: str
    resource_type: str
    booking_count: int
    total_hours: int
    utilization_rate: int
