"""
Appointment API Endpoints

Provides REST endpoints for:
- Slot availability (public)
- Booking creation and listings
- Lifecycle transitions (status, completion code, shortcuts, cleanup)
- Staff claiming
"""

import logging
from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Query, status

from api.dependencies import (
    CurrentActor,
    CustomerActor,
    OwnerActor,
    OwnerOrStaffActor,
    StaffActor,
)
from api.models.appointments import (
    AppointmentResponse,
    CleanupResponse,
    CreateAppointmentRequest,
    InitiateCompletionResponse,
    SlotResponse,
    StatusUpdateRequest,
    VerifyCompletionRequest,
)
from scheduling.services import (
    appointment_query_service,
    assignment_service,
    availability_service,
    lifecycle_service,
)
from scheduling.transactions import BookingTransaction

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/appointments", tags=["appointments"])


@router.get("/available-slots", response_model=list[SlotResponse])
async def get_available_slots(
    business_id: Annotated[UUID | None, Query(alias="businessId")] = None,
    service_id: Annotated[UUID | None, Query(alias="serviceId")] = None,
    target_date: Annotated[date | None, Query(alias="date")] = None,
) -> list[SlotResponse]:
    """Chronological candidate slots of a business for a service on a date."""
    slots = await availability_service.get_available_slots(business_id, service_id, target_date)
    return [SlotResponse(time=slot.time, available=slot.available) for slot in slots]


@router.post("", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
async def create_appointment(
    body: CreateAppointmentRequest, actor: CustomerActor
) -> AppointmentResponse:
    appointment = await BookingTransaction.execute(
        customer_id=actor.user_id,
        business_id=body.business_id,
        service_id=body.service_id,
        start_time=body.date,
        staff_id=body.staff_id,
    )
    return AppointmentResponse.model_validate(appointment)


@router.get("/my", response_model=list[AppointmentResponse])
async def get_my_appointments(actor: CustomerActor) -> list[AppointmentResponse]:
    appointments = await appointment_query_service.list_my_appointments(actor)
    return [AppointmentResponse.model_validate(a) for a in appointments]


@router.get("/business/{business_id}", response_model=list[AppointmentResponse])
async def get_business_appointments(
    business_id: UUID, actor: CurrentActor
) -> list[AppointmentResponse]:
    appointments = await appointment_query_service.list_business_appointments(actor, business_id)
    return [AppointmentResponse.model_validate(a) for a in appointments]


@router.post("/cleanup-expired", response_model=CleanupResponse)
async def cleanup_expired_appointments(actor: OwnerActor) -> CleanupResponse:
    count = await lifecycle_service.cleanup_expired_pending(actor.user_id)
    return CleanupResponse(
        message=f"Cleaned up {count} expired pending appointments",
        count=count,
    )


@router.put("/{appointment_id}/status", response_model=AppointmentResponse)
async def update_appointment_status(
    appointment_id: UUID, body: StatusUpdateRequest, actor: CurrentActor
) -> AppointmentResponse:
    appointment = await lifecycle_service.update_appointment_status(
        actor, appointment_id, body.status
    )
    return AppointmentResponse.model_validate(appointment)


@router.post("/{appointment_id}/initiate-completion", response_model=InitiateCompletionResponse)
async def initiate_completion(
    appointment_id: UUID, actor: OwnerOrStaffActor
) -> InitiateCompletionResponse:
    result = await lifecycle_service.initiate_completion(actor, appointment_id)
    return InitiateCompletionResponse(
        message="OTP sent to customer",
        email_sent=result.email_sent,
    )


@router.post("/{appointment_id}/verify-completion", response_model=AppointmentResponse)
async def verify_completion(
    appointment_id: UUID, body: VerifyCompletionRequest, actor: OwnerOrStaffActor
) -> AppointmentResponse:
    appointment = await lifecycle_service.verify_completion(actor, appointment_id, body.otp)
    return AppointmentResponse.model_validate(appointment)


@router.post("/{appointment_id}/complete", response_model=AppointmentResponse)
async def mark_completed(appointment_id: UUID, actor: OwnerOrStaffActor) -> AppointmentResponse:
    appointment = await lifecycle_service.mark_completed(actor, appointment_id)
    return AppointmentResponse.model_validate(appointment)


@router.post("/{appointment_id}/no-show", response_model=AppointmentResponse)
async def mark_no_show(appointment_id: UUID, actor: OwnerOrStaffActor) -> AppointmentResponse:
    appointment = await lifecycle_service.mark_no_show(actor, appointment_id)
    return AppointmentResponse.model_validate(appointment)


@router.post("/{appointment_id}/claim", response_model=AppointmentResponse)
async def claim_appointment(appointment_id: UUID, actor: StaffActor) -> AppointmentResponse:
    appointment = await assignment_service.claim_appointment(actor, appointment_id)
    return AppointmentResponse.model_validate(appointment)
