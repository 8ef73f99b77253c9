"""
Service tests for the financial and client reports and daily notes.
"""

import datetime as dt
from decimal import Decimal

import pytest

from clinica.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from clinica.domain.entities import NOTE_DESPESA, NOTE_OBSERVACAO, NOTE_RECEITA, Client
from clinica.schemas.dtos import (
    AppointmentCreateRequest,
    MaterialLine,
    ScheduleCancelRequest,
    ScheduleConfirmRequest,
    ScheduleCreateRequest,
)
from clinica.services.report_service import period_range


@pytest.mark.unit
@pytest.mark.reports
@pytest.mark.parametrize(
    "period, today, expected",
    [
        ("current-month", dt.date(2024, 2, 10), (dt.date(2024, 2, 1), dt.date(2024, 2, 29))),
        ("last-3-months", dt.date(2024, 2, 10), (dt.date(2023, 12, 1), dt.date(2024, 2, 29))),
        ("last-6-months", dt.date(2024, 3, 15), (dt.date(2023, 10, 1), dt.date(2024, 3, 31))),
        ("current-year", dt.date(2024, 3, 15), (dt.date(2024, 1, 1), dt.date(2024, 12, 31))),
        ("all", dt.date(2024, 3, 15), (None, None)),
    ],
)
def test_period_range(period, today, expected):
    assert period_range(period, today) == expected


@pytest.mark.unit
@pytest.mark.reports
def test_unknown_period_is_rejected():
    with pytest.raises(ValidationError):
        period_range("last-week", dt.date(2024, 3, 15))


@pytest.mark.integration
@pytest.mark.services
@pytest.mark.reports
class TestFinancialSummary:
    def _confirmed_session(self, schedule_service, coordinator, client_id, item_id):
        schedule = schedule_service.create(
            coordinator,
            ScheduleCreateRequest(
                client_id=client_id,
                date=dt.date(2024, 3, 20),
                time=dt.time(14, 0),
                service_type="Sessão",
            ),
        )
        schedule_service.confirm(
            coordinator,
            schedule.id,
            ScheduleConfirmRequest(
                professional_name="Dra. Ana",
                value=Decimal("150.00"),
                materials=[MaterialLine(item_id, 2)],
            ),
        )

    def test_totals_combine_sessions_stock_and_notes(
        self,
        report_service,
        schedule_service,
        stock_service,
        coordinator,
        client_record,
        gloves,
    ):
        stock_service.receive(gloves.id, 4, "Compra", coordinator)
        self._confirmed_session(schedule_service, coordinator, client_record.id, gloves.id)
        report_service.add_daily_note(coordinator, NOTE_RECEITA, "Doação", "50,00")
        report_service.add_daily_note(coordinator, NOTE_DESPESA, "Luz", Decimal("20"))
        report_service.add_daily_note(coordinator, NOTE_OBSERVACAO, "Dia tranquilo")

        summary = report_service.financial_summary(coordinator, "current-month")

        assert summary.appointment_count == 1
        assert summary.appointment_revenue == Decimal("150.00")
        assert summary.stock_purchases == Decimal("10.00")
        assert summary.materials_cost == Decimal("5.00")
        assert summary.notes_revenue == Decimal("50.00")
        assert summary.notes_expenses == Decimal("20.00")
        assert summary.notes_observation_count == 1
        assert summary.total_revenue == Decimal("200.00")
        assert summary.total_expenses == Decimal("35.00")
        assert summary.net_result == Decimal("165.00")
        assert summary.schedule_count == 1
        assert [c.client_name for c in summary.by_client] == ["Maria Souza"]

    def test_sessions_outside_period_are_ignored(
        self, report_service, client_service, coordinator, client_record
    ):
        client_service.add_appointment(
            coordinator,
            client_record.id,
            AppointmentCreateRequest(
                date=dt.date(2023, 1, 10), service_type="Sessão", value=Decimal("80.00")
            ),
        )

        assert report_service.financial_summary(coordinator).appointment_count == 0
        assert report_service.financial_summary(coordinator, "all").appointment_revenue == Decimal(
            "80.00"
        )

    def test_only_coordinators(self, report_service, staff):
        with pytest.raises(PermissionDeniedError):
            report_service.financial_summary(staff)


@pytest.mark.integration
@pytest.mark.services
@pytest.mark.reports
class TestDailyNotes:
    def test_add_defaults_to_today(self, report_service, coordinator):
        note = report_service.add_daily_note(coordinator, NOTE_RECEITA, "Venda", "12.5")

        assert note.date == dt.date(2024, 3, 15)
        assert note.value == Decimal("12.50")
        assert note.author == coordinator.name
        assert [n.id for n in report_service.list_daily_notes(coordinator)] == [note.id]

    @pytest.mark.parametrize(
        "note_type, title, value",
        [
            ("bonus", "X", "1"),
            (NOTE_RECEITA, "  ", "1"),
            (NOTE_RECEITA, "X", "abc"),
            (NOTE_DESPESA, "X", "-5"),
        ],
    )
    def test_invalid_notes(self, report_service, coordinator, note_type, title, value):
        with pytest.raises(ValidationError):
            report_service.add_daily_note(coordinator, note_type, title, value)

    def test_delete(self, report_service, coordinator):
        note = report_service.add_daily_note(coordinator, NOTE_OBSERVACAO, "Obs")

        report_service.delete_daily_note(coordinator, note.id)

        assert report_service.list_daily_notes(coordinator) == []
        with pytest.raises(NotFoundError):
            report_service.delete_daily_note(coordinator, note.id)

    def test_staff_cannot_write_notes(self, report_service, staff):
        with pytest.raises(PermissionDeniedError):
            report_service.add_daily_note(staff, NOTE_RECEITA, "X", "1")


@pytest.mark.integration
@pytest.mark.services
@pytest.mark.reports
class TestClientReport:
    @pytest.fixture
    def minor(self, uow, clock):
        with uow.transaction():
            return uow.clients.create(
                Client(
                    type="minor",
                    name="Pedro Lima",
                    birth_date=dt.date(2015, 1, 1),
                    nome_mae="Joana Lima",
                    created_at=clock(),
                )
            )

    @pytest.fixture
    def activity(
        self,
        schedule_service,
        client_service,
        assignment_service,
        coordinator,
        intern,
        client_record,
        minor,
    ):
        """Maria: linked to the intern, one session on 2024-03-20 lasting 1.5h.
        Pedro: one appointment in 2023 and a cancelled schedule."""
        assignment_service.assign(coordinator, client_record.id, intern.id)
        session = schedule_service.create(
            coordinator,
            ScheduleCreateRequest(
                client_id=client_record.id,
                date=dt.date(2024, 3, 20),
                time=dt.time(9, 0),
                service_type="Sessão",
                assigned_to_user_id=intern.id,
            ),
        )
        schedule_service.confirm(
            coordinator,
            session.id,
            ScheduleConfirmRequest(professional_name="Dra. Ana", duration_hours=Decimal("1.5")),
        )
        client_service.add_appointment(
            coordinator,
            minor.id,
            AppointmentCreateRequest(date=dt.date(2023, 1, 10), service_type="Sessão"),
        )
        cancelled = schedule_service.create(
            coordinator,
            ScheduleCreateRequest(
                client_id=minor.id,
                date=dt.date(2024, 3, 22),
                time=dt.time(10, 0),
                service_type="Sessão",
            ),
        )
        schedule_service.cancel(coordinator, cancelled.id, ScheduleCancelRequest(reason="Viagem"))

    def test_counts_by_type_and_attendance(self, report_service, staff, activity):
        report = report_service.client_report(staff, "current-month")

        assert report.total_clients == 2
        assert report.adult_clients == 1
        assert report.minor_clients == 1
        assert report.with_appointments == 1
        assert report.without_appointments == 1
        assert report.with_future_schedules == 1

        everything = report_service.client_report(staff, "all")
        assert everything.with_appointments == 2
        assert everything.start is None

    def test_intern_statistics(self, report_service, coordinator, intern, other_intern, activity):
        stats = {s.intern_id: s for s in report_service.intern_statistics(coordinator, "all")}

        assert set(stats) == {intern.id, other_intern.id}
        carla = stats[intern.id]
        assert [name for _, name in carla.linked_clients] == ["Maria Souza"]
        assert carla.appointment_count == 1
        assert carla.hours_attended == Decimal("1.50")
        assert carla.active_schedules == 1
        assert stats[other_intern.id].linked_clients == []
        assert stats[other_intern.id].appointment_count == 0

    def test_appointments_outside_the_period_are_not_credited(
        self, report_service, coordinator, intern, activity
    ):
        stats = report_service.intern_statistics(
            coordinator, "current-month", today=dt.date(2024, 5, 2)
        )

        carla = next(s for s in stats if s.intern_id == intern.id)
        assert carla.appointment_count == 0
        assert carla.active_schedules == 0
        assert len(carla.linked_clients) == 1

    def test_interns_cannot_see_client_reports(self, report_service, intern):
        with pytest.raises(PermissionDeniedError):
            report_service.client_report(intern)
        with pytest.raises(PermissionDeniedError):
            report_service.intern_statistics(intern)
