"""
Booking core services.

Services:
- availability_service: Slot engine (opening hours minus busy appointments)
- lifecycle_service: Status transitions, completion codes, expired-pending cleanup
- assignment_service: Staff claiming unassigned appointments
- notification_service: Notification fan-out and the per-user inbox
- appointment_query_service: Customer, business and staff listings
"""

from scheduling.services.appointment_query_service import (
    list_business_appointments,
    list_my_appointments,
    list_staff_appointments,
)
from scheduling.services.assignment_service import claim_appointment
from scheduling.services.availability_service import (
    BusyPeriod,
    SlotGrid,
    TimeSlot,
    build_slots,
    get_available_slots,
)
from scheduling.services.lifecycle_service import (
    CompletionInitiation,
    cleanup_expired_pending,
    initiate_completion,
    mark_completed,
    mark_no_show,
    update_appointment_status,
    verify_completion,
)
from scheduling.services.notification_service import (
    NotificationEvent,
    dispatch_notifications,
    notify,
)

__all__ = [
    # Availability service
    "BusyPeriod",
    "SlotGrid",
    "TimeSlot",
    "build_slots",
    "get_available_slots",
    # Lifecycle service
    "CompletionInitiation",
    "cleanup_expired_pending",
    "initiate_completion",
    "mark_completed",
    "mark_no_show",
    "update_appointment_status",
    "verify_completion",
    # Assignment service
    "claim_appointment",
    # Notification service
    "NotificationEvent",
    "dispatch_notifications",
    "notify",
    # Query service
    "list_business_appointments",
    "list_my_appointments",
    "list_staff_appointments",
]
