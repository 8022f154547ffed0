"""Staff API Endpoints."""

from fastapi import APIRouter

from api.dependencies import StaffActor
from api.models.appointments import AppointmentResponse
from scheduling.services import appointment_query_service

router = APIRouter(prefix="/api/staff", tags=["staff"])


@router.get("/appointments", response_model=list[AppointmentResponse])
async def get_staff_appointments(actor: StaffActor) -> list[AppointmentResponse]:
    """Appointments assigned to the caller plus unassigned ones in their business."""
    appointments = await appointment_query_service.list_staff_appointments(actor)
    return [AppointmentResponse.model_validate(a) for a in appointments]
