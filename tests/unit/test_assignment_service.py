"""
Tests for staff claiming of unassigned appointments.
"""

from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest

from database import appointment_store
from database.models import Staff
from scheduling.errors import BookingValidationError, ForbiddenError, NotFoundError
from scheduling.services.assignment_service import claim_appointment

MODULE = "scheduling.services.assignment_service"


@pytest.fixture
def session(mock_session, patch_session):
    patch_session(f"{MODULE}.get_async_session", mock_session)
    return mock_session


@pytest.fixture
def dispatch():
    mock = AsyncMock(return_value=[True, True])
    with patch(f"{MODULE}.dispatch_notifications", mock):
        yield mock


class TestClaimAppointment:
    """Test claim_appointment."""

    @pytest.mark.asyncio
    async def test_staff_claims_unassigned_appointment(self, session, dispatch, salon, make_appointment):
        appointment = make_appointment()

        with patch.object(appointment_store, "find_staff_by_user_id", AsyncMock(return_value=salon.staff)), \
             patch.object(appointment_store, "find_appointment_by_id", AsyncMock(return_value=appointment)):
            result = await claim_appointment(salon.staff_actor, appointment.id)

        assert result.staff_id == salon.staff.id
        session.commit.assert_awaited_once()

        events = dispatch.await_args.args[0]
        by_user = {e.user_id: e for e in events}
        assert by_user[salon.owner.id].type.value == "appointment_claimed"
        assert by_user[salon.customer.id].type.value == "staff_assigned"
        assert "Sam Stylist" in by_user[salon.customer.id].message

    @pytest.mark.asyncio
    async def test_already_assigned(self, session, dispatch, salon, make_appointment):
        other_staff_id = uuid4()
        appointment = make_appointment(staff_id=other_staff_id)

        with patch.object(appointment_store, "find_staff_by_user_id", AsyncMock(return_value=salon.staff)), \
             patch.object(appointment_store, "find_appointment_by_id", AsyncMock(return_value=appointment)):
            with pytest.raises(BookingValidationError, match="Appointment already assigned"):
                await claim_appointment(salon.staff_actor, appointment.id)

        assert appointment.staff_id == other_staff_id
        session.commit.assert_not_called()
        dispatch.assert_not_called()

    @pytest.mark.asyncio
    async def test_staff_of_another_business(self, session, dispatch, salon, make_appointment):
        outsider = Staff(id=uuid4(), business_id=uuid4(), user_id=salon.staff_user.id, name="Outsider")
        appointment = make_appointment()

        with patch.object(appointment_store, "find_staff_by_user_id", AsyncMock(return_value=outsider)), \
             patch.object(appointment_store, "find_appointment_by_id", AsyncMock(return_value=appointment)):
            with pytest.raises(ForbiddenError, match="different business"):
                await claim_appointment(salon.staff_actor, appointment.id)

        assert appointment.staff_id is None
        session.commit.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_staff_profile(self, session, salon):
        with patch.object(appointment_store, "find_staff_by_user_id", AsyncMock(return_value=None)):
            with pytest.raises(NotFoundError, match="Staff profile not found"):
                await claim_appointment(salon.staff_actor, uuid4())

    @pytest.mark.asyncio
    async def test_unknown_appointment(self, session, salon):
        with patch.object(appointment_store, "find_staff_by_user_id", AsyncMock(return_value=salon.staff)), \
             patch.object(appointment_store, "find_appointment_by_id", AsyncMock(return_value=None)):
            with pytest.raises(NotFoundError, match="Appointment not found"):
                await claim_appointment(salon.staff_actor, uuid4())

    @pytest.mark.asyncio
    @pytest.mark.parametrize("actor_name", ["owner_actor", "customer_actor"])
    async def test_only_staff_accounts_can_claim(self, session, salon, actor_name):
        with pytest.raises(ForbiddenError, match="Not authorized"):
            await claim_appointment(getattr(salon, actor_name), uuid4())
