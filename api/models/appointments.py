"""Pydantic models for the appointments API (camelCase on the wire)."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from database.models import AppointmentStatus


class CamelModel(BaseModel):
    """Reads ORM attributes, accepts snake_case or camelCase, emits camelCase."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# =============================================================================
# Requests
# =============================================================================


class CreateAppointmentRequest(CamelModel):
    # Optional here so a missing field yields the booking core's own message
    business_id: UUID | None = None
    service_id: UUID | None = None
    staff_id: UUID | None = None
    date: datetime | None = None


class StatusUpdateRequest(CamelModel):
    status: str | None = None


class VerifyCompletionRequest(CamelModel):
    otp: str | None = None


# =============================================================================
# Responses
# =============================================================================


class ServiceSummary(CamelModel):
    id: UUID
    name: str
    duration_minutes: int | None
    price: Decimal


class BusinessSummary(CamelModel):
    id: UUID
    name: str
    owner_id: UUID


class StaffSummary(CamelModel):
    id: UUID
    name: str
    title: str | None


class CustomerSummary(CamelModel):
    id: UUID
    name: str
    email: str
    phone: str | None


class AppointmentResponse(CamelModel):
    """Appointment as returned to clients; the completion code is never exposed."""

    id: UUID
    status: AppointmentStatus
    date: datetime
    staff_id: UUID | None
    service_id: UUID
    business_id: UUID
    customer_id: UUID
    created_at: datetime
    updated_at: datetime

    service: ServiceSummary | None = None
    business: BusinessSummary | None = None
    staff: StaffSummary | None = None
    customer: CustomerSummary | None = None


class SlotResponse(CamelModel):
    time: datetime
    available: bool


class MessageResponse(CamelModel):
    message: str


class InitiateCompletionResponse(CamelModel):
    message: str
    email_sent: bool


class CleanupResponse(CamelModel):
    message: str
    count: int
