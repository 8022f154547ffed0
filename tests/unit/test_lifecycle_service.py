"""
Unit tests for lifecycle_service.py - Status transitions, completion codes and cleanup.

Tests coverage:
- update_appointment_status(): validation order, authorization, terminal guard
- Notifications dispatched after commit with the right recipients
- initiate_completion(): code format, expiry, email failure tolerance
- verify_completion(): match, mismatch, expiry, no outstanding code
- cleanup_expired_pending(): bulk count returned and committed
"""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest

from database import appointment_store
from database.models import AppointmentStatus, NotificationType
from scheduling.errors import BookingValidationError, ForbiddenError, NotFoundError
from scheduling.services import lifecycle_service
from scheduling.services.lifecycle_service import (
    cleanup_expired_pending,
    generate_completion_code,
    initiate_completion,
    mark_completed,
    mark_no_show,
    update_appointment_status,
    verify_completion,
)

MODULE = "scheduling.services.lifecycle_service"
NOW = datetime(2030, 6, 3, 11, 0, tzinfo=UTC)


@pytest.fixture
def session(mock_session, patch_session):
    patch_session(f"{MODULE}.get_async_session", mock_session)
    return mock_session


@pytest.fixture
def dispatch():
    mock = AsyncMock(side_effect=lambda events: [True] * len(events))
    with patch(f"{MODULE}.dispatch_notifications", mock):
        yield mock


@pytest.fixture
def store(salon):
    """Patch store lookups; writes run for real against the mock session."""

    def _install(appointment):
        find = AsyncMock(return_value=appointment)
        staff = AsyncMock(return_value=salon.staff)
        patcher_find = patch.object(appointment_store, "find_appointment_by_id", find)
        patcher_staff = patch.object(appointment_store, "find_staff_by_user_id", staff)
        patcher_find.start()
        patcher_staff.start()
        return find

    yield _install
    patch.stopall()


class TestUpdateAppointmentStatus:
    """Test generic status transitions."""

    @pytest.mark.asyncio
    async def test_owner_confirms_pending(self, session, store, dispatch, salon, make_appointment):
        appointment = make_appointment()
        store(appointment)

        result = await update_appointment_status(salon.owner_actor, appointment.id, "CONFIRMED")

        assert result.status == AppointmentStatus.CONFIRMED
        session.commit.assert_awaited_once()
        events = dispatch.await_args.args[0]
        assert [e.user_id for e in events] == [salon.customer.id]
        assert events[0].type == NotificationType.APPOINTMENT_CONFIRMED

    @pytest.mark.asyncio
    async def test_assigned_staff_confirm_also_notifies_owner(
        self, session, store, dispatch, salon, make_appointment
    ):
        appointment = make_appointment(staff_id=salon.staff.id)
        store(appointment)

        await update_appointment_status(salon.staff_actor, appointment.id, "CONFIRMED")

        events = dispatch.await_args.args[0]
        assert {e.user_id for e in events} == {salon.customer.id, salon.owner.id}

    @pytest.mark.asyncio
    async def test_invalid_status_is_rejected_before_lookup(self, session, store, make_appointment, salon):
        find = store(make_appointment())

        with pytest.raises(BookingValidationError, match="Invalid status"):
            await update_appointment_status(salon.owner_actor, uuid4(), "ARCHIVED")

        find.assert_not_called()

    @pytest.mark.asyncio
    async def test_pending_is_not_a_target(self, session, salon):
        with pytest.raises(BookingValidationError, match="Invalid status"):
            await update_appointment_status(salon.owner_actor, uuid4(), "PENDING")

    @pytest.mark.asyncio
    async def test_unknown_appointment(self, session, store, salon):
        store(None)

        with pytest.raises(NotFoundError, match="Appointment not found"):
            await update_appointment_status(salon.owner_actor, uuid4(), "CONFIRMED")

    @pytest.mark.asyncio
    async def test_customer_cannot_confirm(self, session, store, dispatch, salon, make_appointment):
        appointment = make_appointment()
        store(appointment)

        with pytest.raises(ForbiddenError, match="Customers can only cancel appointments"):
            await update_appointment_status(salon.customer_actor, appointment.id, "CONFIRMED")

        assert appointment.status == AppointmentStatus.PENDING
        session.commit.assert_not_called()
        dispatch.assert_not_called()

    @pytest.mark.asyncio
    async def test_customer_cancel_notifies_everyone_else(
        self, session, store, dispatch, salon, make_appointment
    ):
        appointment = make_appointment(staff_id=salon.staff.id, status=AppointmentStatus.CONFIRMED)
        store(appointment)

        result = await update_appointment_status(salon.customer_actor, appointment.id, "CANCELLED")

        assert result.status == AppointmentStatus.CANCELLED
        events = dispatch.await_args.args[0]
        assert {e.user_id for e in events} == {salon.owner.id, salon.staff_user.id}

    @pytest.mark.asyncio
    async def test_terminal_appointment_cannot_change(self, session, store, salon, make_appointment):
        appointment = make_appointment(status=AppointmentStatus.COMPLETED)
        store(appointment)

        with pytest.raises(BookingValidationError, match="already COMPLETED"):
            await update_appointment_status(salon.owner_actor, appointment.id, "CANCELLED")

        assert appointment.status == AppointmentStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_cancel_clears_outstanding_completion_code(
        self, session, store, dispatch, salon, make_appointment
    ):
        appointment = make_appointment(
            status=AppointmentStatus.CONFIRMED,
            completion_otp="123456",
            otp_expires=NOW + timedelta(minutes=10),
        )
        store(appointment)

        await update_appointment_status(salon.owner_actor, appointment.id, "CANCELLED")

        assert appointment.completion_otp is None
        assert appointment.otp_expires is None

    @pytest.mark.asyncio
    async def test_confirm_keeps_completion_code(self, session, store, dispatch, salon, make_appointment):
        appointment = make_appointment(completion_otp="123456", otp_expires=NOW)
        store(appointment)

        await update_appointment_status(salon.owner_actor, appointment.id, "CONFIRMED")

        assert appointment.completion_otp == "123456"

    @pytest.mark.asyncio
    async def test_notification_failure_does_not_fail_transition(
        self, session, store, salon, make_appointment
    ):
        appointment = make_appointment()
        store(appointment)

        with patch(f"{MODULE}.dispatch_notifications", AsyncMock(return_value=[False])):
            result = await update_appointment_status(salon.owner_actor, appointment.id, "CONFIRMED")

        assert result.status == AppointmentStatus.CONFIRMED

    @pytest.mark.asyncio
    async def test_shortcuts_route_through_status_update(
        self, session, store, dispatch, salon, make_appointment
    ):
        first = make_appointment(status=AppointmentStatus.CONFIRMED)
        store(first)
        assert (await mark_completed(salon.owner_actor, first.id)).status == AppointmentStatus.COMPLETED

        second = make_appointment(status=AppointmentStatus.CONFIRMED)
        store(second)
        assert (await mark_no_show(salon.owner_actor, second.id)).status == AppointmentStatus.NO_SHOW


class TestCompletionCode:
    """Test completion code issue and verification."""

    def test_code_is_six_digits(self):
        for _ in range(50):
            code = generate_completion_code()
            assert len(code) == 6
            assert code.isdigit()
            assert 100000 <= int(code) <= 999999

    @pytest.mark.asyncio
    async def test_initiate_stores_code_and_emails_customer(
        self, session, store, salon, make_appointment
    ):
        appointment = make_appointment(status=AppointmentStatus.CONFIRMED)
        store(appointment)
        email_client = MagicMock()
        email_client.send_completion_code = AsyncMock(return_value={"id": "email_1"})

        outcome = await initiate_completion(salon.owner_actor, appointment.id, email_client, now=NOW)

        assert outcome.email_sent is True
        assert len(appointment.completion_otp) == 6
        assert appointment.otp_expires == NOW + timedelta(minutes=15)
        assert appointment.status == AppointmentStatus.CONFIRMED
        to, code, context = email_client.send_completion_code.await_args.args
        assert to == salon.customer.email
        assert code == appointment.completion_otp
        assert context.business_name == "Studio Nine"
        session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_initiate_survives_email_failure(self, session, store, salon, make_appointment):
        appointment = make_appointment(status=AppointmentStatus.CONFIRMED)
        store(appointment)
        email_client = MagicMock()
        email_client.send_completion_code = AsyncMock(side_effect=RuntimeError("provider down"))

        outcome = await initiate_completion(salon.owner_actor, appointment.id, email_client, now=NOW)

        assert outcome.email_sent is False
        assert appointment.completion_otp is not None
        session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_customer_cannot_initiate(self, session, store, salon, make_appointment):
        appointment = make_appointment(status=AppointmentStatus.CONFIRMED)
        store(appointment)

        with pytest.raises(ForbiddenError):
            await initiate_completion(salon.customer_actor, appointment.id, MagicMock(), now=NOW)

        assert appointment.completion_otp is None

    @pytest.mark.asyncio
    async def test_verify_matching_code_completes(self, session, store, dispatch, salon, make_appointment):
        appointment = make_appointment(
            staff_id=salon.staff.id,
            status=AppointmentStatus.CONFIRMED,
            completion_otp="482913",
            otp_expires=NOW + timedelta(minutes=5),
        )
        store(appointment)

        result = await verify_completion(salon.staff_actor, appointment.id, "482913", now=NOW)

        assert result.status == AppointmentStatus.COMPLETED
        assert result.completion_otp is None
        assert result.otp_expires is None
        events = dispatch.await_args.args[0]
        assert {e.type for e in events} == {NotificationType.APPOINTMENT_COMPLETED}

    @pytest.mark.asyncio
    async def test_verify_mismatch(self, session, store, dispatch, salon, make_appointment):
        appointment = make_appointment(
            status=AppointmentStatus.CONFIRMED,
            completion_otp="482913",
            otp_expires=NOW + timedelta(minutes=5),
        )
        store(appointment)

        with pytest.raises(BookingValidationError, match="Invalid OTP"):
            await verify_completion(salon.owner_actor, appointment.id, "000000", now=NOW)

        assert appointment.status == AppointmentStatus.CONFIRMED
        assert appointment.completion_otp == "482913"
        dispatch.assert_not_called()

    @pytest.mark.asyncio
    async def test_verify_expired_code(self, session, store, salon, make_appointment):
        appointment = make_appointment(
            status=AppointmentStatus.CONFIRMED,
            completion_otp="482913",
            otp_expires=NOW - timedelta(seconds=1),
        )
        store(appointment)

        with pytest.raises(BookingValidationError, match="expired"):
            await verify_completion(salon.owner_actor, appointment.id, "482913", now=NOW)

        assert appointment.status == AppointmentStatus.CONFIRMED

    @pytest.mark.asyncio
    async def test_verify_without_issued_code(self, session, store, salon, make_appointment):
        appointment = make_appointment(status=AppointmentStatus.CONFIRMED)
        store(appointment)

        with pytest.raises(BookingValidationError, match="No completion code"):
            await verify_completion(salon.owner_actor, appointment.id, "123456", now=NOW)

    @pytest.mark.asyncio
    async def test_verify_on_terminal_appointment(self, session, store, salon, make_appointment):
        appointment = make_appointment(status=AppointmentStatus.CANCELLED)
        store(appointment)

        with pytest.raises(BookingValidationError, match="already CANCELLED"):
            await verify_completion(salon.owner_actor, appointment.id, "123456", now=NOW)


class TestCleanupExpiredPending:
    """Test bulk cancellation of stale pending appointments."""

    @pytest.mark.asyncio
    async def test_returns_count_and_commits(self, session, salon):
        batch = AsyncMock(return_value=3)

        with patch.object(appointment_store, "batch_cancel_expired_pending", batch):
            count = await cleanup_expired_pending(salon.owner.id, now=NOW)

        assert count == 3
        assert batch.await_args.args[1:] == (salon.owner.id, NOW)
        session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_nothing_to_clean(self, session, salon):
        with patch.object(lifecycle_service.appointment_store, "batch_cancel_expired_pending", AsyncMock(return_value=0)):
            assert await cleanup_expired_pending(salon.owner.id, now=NOW) == 0
