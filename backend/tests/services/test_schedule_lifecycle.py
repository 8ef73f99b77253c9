"""
Service tests for the schedule lifecycle engine.

Covers creation with assignee resolution, edits, reassignment, cancellation
and confirmation, including the all-or-nothing behavior of confirm.
"""

import datetime as dt
from decimal import Decimal

import pytest

from clinica.core.exceptions import (
    ConflictError,
    InsufficientStockError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from clinica.domain.entities import (
    INTERN_FIELD_LABEL,
    NO_INTERN_LABEL,
    STATUS_AGENDADO,
    STATUS_CANCELADO,
    STATUS_CONCLUIDO,
)
from clinica.schemas.dtos import (
    MaterialLine,
    ScheduleCancelRequest,
    ScheduleConfirmRequest,
    ScheduleCreateRequest,
    ScheduleEditRequest,
)

DAY = dt.date(2024, 3, 20)


def _create_request(client_id, assigned_to=None, day=DAY):
    return ScheduleCreateRequest(
        client_id=client_id,
        date=day,
        time=dt.time(9, 0),
        service_type="Avaliação",
        assigned_to_user_id=assigned_to,
    )


def _confirm_request(*materials, professional="Dra. Ana"):
    return ScheduleConfirmRequest(
        professional_name=professional,
        value=Decimal("150.00"),
        duration_hours=Decimal("1.00"),
        materials=[MaterialLine(item_id, quantity) for item_id, quantity in materials],
    )


@pytest.mark.integration
@pytest.mark.services
@pytest.mark.schedule
class TestCreate:
    def test_intern_assignee_links_client(
        self, uow, schedule_service, coordinator, intern, client_record
    ):
        """Client without intern; booking with an intern links that intern."""
        schedule = schedule_service.create(
            coordinator, _create_request(client_record.id, assigned_to=intern.id)
        )

        assert schedule.status == STATUS_AGENDADO
        assert schedule.assigned_to_user_name == intern.name
        client = uow.clients.get_by_id(client_record.id)
        assert client.assigned_intern_id == intern.id
        assert len(client.change_history) == 1
        change = client.change_history[0].changes[0]
        assert (change.field, change.old_value, change.new_value) == (
            INTERN_FIELD_LABEL,
            NO_INTERN_LABEL,
            intern.name,
        )

    def test_same_intern_again_adds_no_history(
        self, uow, schedule_service, coordinator, intern, client_record
    ):
        schedule_service.create(coordinator, _create_request(client_record.id, intern.id))
        schedule_service.create(coordinator, _create_request(client_record.id, intern.id))

        assert len(uow.clients.get_by_id(client_record.id).change_history) == 1

    def test_staff_defaults_to_self_and_leaves_client_alone(
        self, uow, schedule_service, staff, client_record
    ):
        schedule = schedule_service.create(staff, _create_request(client_record.id))

        assert schedule.assigned_to_user_id == staff.id
        assert uow.clients.get_by_id(client_record.id).assigned_intern_id is None

    def test_coordinator_without_selection_is_unassigned(
        self, schedule_service, coordinator, client_record
    ):
        schedule = schedule_service.create(coordinator, _create_request(client_record.id))
        assert schedule.assigned_to_user_id is None
        assert schedule.assigned_to_user_name is None

    def test_intern_books_for_themselves(
        self, uow, schedule_service, intern, client_record
    ):
        schedule = schedule_service.create(intern, _create_request(client_record.id))

        assert schedule.assigned_to_user_id == intern.id
        assert uow.clients.get_by_id(client_record.id).assigned_intern_id == intern.id

    def test_intern_cannot_book_for_someone_else(
        self, schedule_service, intern, other_intern, client_record
    ):
        with pytest.raises(PermissionDeniedError):
            schedule_service.create(intern, _create_request(client_record.id, other_intern.id))

    def test_unknown_client_is_validation_error(self, uow, schedule_service, coordinator):
        with pytest.raises(ValidationError):
            schedule_service.create(coordinator, _create_request(999))
        assert uow.schedules.list_by_date(DAY) == []

    def test_coordinator_cannot_be_assignee(
        self, schedule_service, coordinator, client_record
    ):
        with pytest.raises(ValidationError):
            schedule_service.create(coordinator, _create_request(client_record.id, coordinator.id))

    def test_missing_service_type(self, schedule_service, coordinator, client_record):
        request = _create_request(client_record.id)
        request.service_type = ""
        with pytest.raises(ValidationError):
            schedule_service.create(coordinator, request)


@pytest.mark.integration
@pytest.mark.services
@pytest.mark.schedule
class TestEdit:
    def test_edit_changes_fields_but_not_assignee(
        self, schedule_service, staff, client_record
    ):
        schedule = schedule_service.create(staff, _create_request(client_record.id))

        edited = schedule_service.edit(
            staff,
            schedule.id,
            ScheduleEditRequest(time=dt.time(15, 30), observations="Trazer exames"),
        )

        assert edited.time == dt.time(15, 30)
        assert edited.observations == "Trazer exames"
        assert edited.assigned_to_user_id == staff.id
        assert edited.status == STATUS_AGENDADO

    def test_interns_cannot_edit(self, schedule_service, intern, client_record):
        schedule = schedule_service.create(intern, _create_request(client_record.id))
        with pytest.raises(PermissionDeniedError):
            schedule_service.edit(intern, schedule.id, ScheduleEditRequest(service_type="X"))

    def test_edit_unknown_schedule(self, schedule_service, staff):
        with pytest.raises(NotFoundError):
            schedule_service.edit(staff, 999, ScheduleEditRequest(service_type="X"))

    def test_edit_to_unknown_client(self, schedule_service, staff, client_record):
        schedule = schedule_service.create(staff, _create_request(client_record.id))
        with pytest.raises(ValidationError):
            schedule_service.edit(staff, schedule.id, ScheduleEditRequest(client_id=999))

    def test_edit_cancelled_schedule_conflicts(self, schedule_service, staff, client_record):
        schedule = schedule_service.create(staff, _create_request(client_record.id))
        schedule_service.cancel(staff, schedule.id, ScheduleCancelRequest(reason="Chuva"))
        with pytest.raises(ConflictError):
            schedule_service.edit(staff, schedule.id, ScheduleEditRequest(service_type="X"))


@pytest.mark.integration
@pytest.mark.services
@pytest.mark.schedule
class TestReassign:
    def test_intern_cannot_reassign(self, schedule_service, intern, staff, client_record):
        schedule = schedule_service.create(intern, _create_request(client_record.id))

        with pytest.raises(PermissionDeniedError):
            schedule_service.reassign(intern, schedule.id, staff.id)
        with pytest.raises(PermissionDeniedError):
            schedule_service.reassign(intern, 999, 999)

    def test_staff_cannot_reassign(self, schedule_service, staff, intern, client_record):
        schedule = schedule_service.create(staff, _create_request(client_record.id))
        with pytest.raises(PermissionDeniedError):
            schedule_service.reassign(staff, schedule.id, intern.id)

    def test_reassign_to_intern_relinks_client(
        self, uow, schedule_service, coordinator, intern, other_intern, client_record
    ):
        schedule = schedule_service.create(coordinator, _create_request(client_record.id, intern.id))

        updated = schedule_service.reassign(coordinator, schedule.id, other_intern.id)

        assert updated.assigned_to_user_id == other_intern.id
        client = uow.clients.get_by_id(client_record.id)
        assert client.assigned_intern_id == other_intern.id
        assert len(client.change_history) == 2

    def test_reassign_to_staff_never_touches_client_intern(
        self, uow, schedule_service, coordinator, staff, intern, client_record
    ):
        schedule = schedule_service.create(coordinator, _create_request(client_record.id, intern.id))

        schedule_service.reassign(coordinator, schedule.id, staff.id)

        client = uow.clients.get_by_id(client_record.id)
        assert client.assigned_intern_id == intern.id
        assert len(client.change_history) == 1
        assert uow.schedules.get_by_id(schedule.id).assigned_to_user_id == staff.id

    def test_reassign_to_current_assignee_is_noop(
        self, uow, schedule_service, coordinator, intern, client_record
    ):
        schedule = schedule_service.create(coordinator, _create_request(client_record.id, intern.id))

        result = schedule_service.reassign(coordinator, schedule.id, intern.id)

        assert result.assigned_to_user_id == intern.id
        assert result.version == schedule.version
        assert len(uow.clients.get_by_id(client_record.id).change_history) == 1

    def test_reassign_to_unknown_user(self, schedule_service, coordinator, client_record):
        schedule = schedule_service.create(coordinator, _create_request(client_record.id))
        with pytest.raises(ValidationError):
            schedule_service.reassign(coordinator, schedule.id, 999)


@pytest.mark.integration
@pytest.mark.services
@pytest.mark.schedule
class TestCancel:
    def test_empty_reason_is_rejected(self, uow, schedule_service, staff, client_record):
        schedule = schedule_service.create(staff, _create_request(client_record.id))

        with pytest.raises(ValidationError):
            schedule_service.cancel(staff, schedule.id, ScheduleCancelRequest(reason=""))

        assert uow.schedules.get_by_id(schedule.id).status == STATUS_AGENDADO

    def test_cancel_stamps_metadata(self, uow, schedule_service, staff, client_record):
        schedule = schedule_service.create(staff, _create_request(client_record.id))

        cancelled = schedule_service.cancel(
            staff, schedule.id, ScheduleCancelRequest(reason="Cliente desmarcou")
        )

        stored = uow.schedules.get_by_id(schedule.id)
        assert cancelled.status == STATUS_CANCELADO
        assert stored.status == STATUS_CANCELADO
        assert stored.cancellation.reason == "Cliente desmarcou"
        assert stored.cancellation.canceled_by == staff.name
        assert stored.attendance_id is None

    def test_intern_can_cancel_only_own_schedules(
        self, schedule_service, staff, intern, client_record
    ):
        foreign = schedule_service.create(staff, _create_request(client_record.id))
        own = schedule_service.create(intern, _create_request(client_record.id))

        with pytest.raises(PermissionDeniedError):
            schedule_service.cancel(intern, foreign.id, ScheduleCancelRequest(reason="x"))
        assert schedule_service.cancel(
            intern, own.id, ScheduleCancelRequest(reason="x")
        ).status == STATUS_CANCELADO

    def test_cancelled_schedule_accepts_no_transition(
        self, schedule_service, staff, client_record
    ):
        schedule = schedule_service.create(staff, _create_request(client_record.id))
        schedule_service.cancel(staff, schedule.id, ScheduleCancelRequest(reason="x"))

        with pytest.raises(ConflictError):
            schedule_service.cancel(staff, schedule.id, ScheduleCancelRequest(reason="y"))
        with pytest.raises(ConflictError):
            schedule_service.confirm(staff, schedule.id, _confirm_request())


@pytest.mark.integration
@pytest.mark.services
@pytest.mark.schedule
@pytest.mark.stock
class TestConfirm:
    def test_confirm_consumes_stock_and_creates_appointment(
        self, uow, schedule_service, coordinator, intern, client_record, gloves, gauze
    ):
        schedule = schedule_service.create(coordinator, _create_request(client_record.id, intern.id))

        appointment = schedule_service.confirm(
            coordinator, schedule.id, _confirm_request((gloves.id, 3), (gauze.id, 2))
        )

        stored = uow.schedules.get_by_id(schedule.id)
        assert stored.status == STATUS_CONCLUIDO
        assert stored.attendance_id == appointment.id
        assert stored.cancellation is None
        assert appointment.intern_id == intern.id
        assert appointment.attended_by == "Dra. Ana"
        assert appointment.schedule_id == schedule.id
        assert appointment.value == Decimal("150.00")
        assert {(m.item_id, m.quantity_used) for m in appointment.materials_used} == {
            (gloves.id, 3),
            (gauze.id, 2),
        }
        assert uow.stock.get_item(gloves.id).quantity == 7
        assert uow.stock.get_item(gauze.id).quantity == 0
        movements = uow.stock.list_movements()
        assert len(movements) == 2
        assert all(m.schedule_id == schedule.id for m in movements)
        assert all(m.reason == f"Atendimento - {client_record.name}" for m in movements)
        client = uow.clients.get_by_id(client_record.id)
        assert [a.id for a in client.appointments] == [appointment.id]

    def test_insufficient_line_rolls_back_everything(
        self, uow, schedule_service, staff, client_record, gloves, gauze
    ):
        """Item with 2 units; asking for 3 fails without consuming any line."""
        schedule = schedule_service.create(staff, _create_request(client_record.id))

        with pytest.raises(InsufficientStockError) as exc:
            schedule_service.confirm(
                staff, schedule.id, _confirm_request((gloves.id, 1), (gauze.id, 3))
            )

        assert exc.value.item_id == gauze.id
        assert exc.value.available == 2
        assert uow.stock.get_item(gloves.id).quantity == 10
        assert uow.stock.get_item(gauze.id).quantity == 2
        assert uow.stock.list_movements() == []
        assert uow.schedules.get_by_id(schedule.id).status == STATUS_AGENDADO
        assert uow.clients.get_by_id(client_record.id).appointments == []

    def test_duplicate_lines_are_checked_as_one(
        self, uow, schedule_service, staff, client_record, gauze
    ):
        schedule = schedule_service.create(staff, _create_request(client_record.id))

        with pytest.raises(InsufficientStockError):
            schedule_service.confirm(
                staff, schedule.id, _confirm_request((gauze.id, 2), (gauze.id, 1))
            )
        assert uow.stock.get_item(gauze.id).quantity == 2

    def test_unknown_material_aborts(self, uow, schedule_service, staff, client_record, gloves):
        schedule = schedule_service.create(staff, _create_request(client_record.id))

        with pytest.raises(NotFoundError):
            schedule_service.confirm(staff, schedule.id, _confirm_request((gloves.id, 1), (999, 1)))
        assert uow.stock.get_item(gloves.id).quantity == 10

    def test_professional_name_required(self, schedule_service, staff, client_record):
        schedule = schedule_service.create(staff, _create_request(client_record.id))
        with pytest.raises(ValidationError):
            schedule_service.confirm(staff, schedule.id, _confirm_request(professional=" "))

    def test_second_confirm_conflicts(self, schedule_service, staff, client_record):
        schedule = schedule_service.create(staff, _create_request(client_record.id))
        schedule_service.confirm(staff, schedule.id, _confirm_request())

        with pytest.raises(ConflictError):
            schedule_service.confirm(staff, schedule.id, _confirm_request())

    def test_intern_confirms_only_own_schedule(
        self, schedule_service, staff, intern, client_record
    ):
        foreign = schedule_service.create(staff, _create_request(client_record.id))
        with pytest.raises(PermissionDeniedError):
            schedule_service.confirm(intern, foreign.id, _confirm_request())

        own = schedule_service.create(intern, _create_request(client_record.id))
        appointment = schedule_service.confirm(intern, own.id, _confirm_request())
        assert appointment.intern_id == intern.id

    def test_staff_assignee_credits_no_intern(self, schedule_service, staff, client_record):
        schedule = schedule_service.create(staff, _create_request(client_record.id))
        appointment = schedule_service.confirm(staff, schedule.id, _confirm_request())
        assert appointment.intern_id is None


@pytest.mark.integration
@pytest.mark.services
@pytest.mark.schedule
class TestScheduleQueries:
    def test_interns_see_only_their_schedules(
        self, schedule_service, staff, intern, client_record
    ):
        schedule_service.create(staff, _create_request(client_record.id))
        own = schedule_service.create(intern, _create_request(client_record.id))

        assert [s.id for s in schedule_service.list_by_date(intern, DAY)] == [own.id]
        assert len(schedule_service.list_by_date(staff, DAY)) == 2

    def test_calendar_counts_ignore_cancelled(self, schedule_service, staff, client_record):
        first = schedule_service.create(staff, _create_request(client_record.id))
        schedule_service.create(staff, _create_request(client_record.id))
        schedule_service.create(staff, _create_request(client_record.id, day=dt.date(2024, 3, 21)))
        schedule_service.create(staff, _create_request(client_record.id, day=dt.date(2024, 4, 1)))
        schedule_service.cancel(staff, first.id, ScheduleCancelRequest(reason="x"))

        counts = schedule_service.calendar_counts(staff, 2024, 3)

        assert counts == {DAY: 1, dt.date(2024, 3, 21): 1}

    def test_assignable_users(self, schedule_service, coordinator, staff, intern):
        names = {u.name for u in schedule_service.assignable_users(coordinator)}
        assert names == {staff.name, intern.name}
        assert [u.id for u in schedule_service.assignable_users(intern)] == [intern.id]

    def test_list_for_client_and_user(self, schedule_service, staff, intern, client_record):
        schedule_service.create(staff, _create_request(client_record.id))
        schedule_service.create(intern, _create_request(client_record.id))

        assert len(schedule_service.list_for_client(client_record.id)) == 2
        assert len(schedule_service.list_for_user(intern.id)) == 1
