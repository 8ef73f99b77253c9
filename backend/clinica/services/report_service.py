"""
Financial and client report service.

Read-only aggregation over clients, appointments, stock movements, daily
notes and schedules for a period preset. Only daily notes are written here.
"""

import calendar
import datetime as dt
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable, List, Optional, Tuple

from clinica.core.config import APP_TZ
from clinica.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from clinica.core.logging_config import get_logger
from clinica.core.validation import parse_date, require_text
from clinica.domain.entities import (
    CLIENT_ADULT,
    CLIENT_MINOR,
    DAILY_NOTE_TYPES,
    MOVEMENT_ENTRADA,
    MOVEMENT_SAIDA,
    NOTE_DESPESA,
    NOTE_RECEITA,
    ROLE_INTERN,
    STATUS_CANCELADO,
    DailyNote,
    User,
)
from clinica.domain.interfaces import IUnitOfWork
from clinica.services.stock_service import local_naive
from clinica.utils.money import ZERO, money_sum, to_stored_money

logger = get_logger(__name__)

PERIODS = {
    "current-month": "Mês atual",
    "last-3-months": "Últimos 3 meses",
    "last-6-months": "Últimos 6 meses",
    "current-year": "Ano atual",
    "all": "Todos os períodos",
}


def _shift_month(year: int, month: int, back: int) -> Tuple[int, int]:
    index = year * 12 + (month - 1) - back
    return index // 12, index % 12 + 1


def period_range(
    period: str, today: dt.date
) -> Tuple[Optional[dt.date], Optional[dt.date]]:
    """Inclusive date range of a period preset; ``all`` is unbounded."""
    if period not in PERIODS:
        raise ValidationError(f"Período inválido: {period}", {"field": "period"})
    if period == "all":
        return None, None
    if period == "current-year":
        return dt.date(today.year, 1, 1), dt.date(today.year, 12, 31)
    back = {"current-month": 0, "last-3-months": 2, "last-6-months": 5}[period]
    start_year, start_month = _shift_month(today.year, today.month, back)
    last_day = calendar.monthrange(today.year, today.month)[1]
    return dt.date(start_year, start_month, 1), dt.date(today.year, today.month, last_day)


def _within(day: Optional[dt.date], start: Optional[dt.date], end: Optional[dt.date]) -> bool:
    if day is None:
        return start is None and end is None
    return (start is None or day >= start) and (end is None or day <= end)


@dataclass
class ClientRevenue:
    client_id: int
    client_name: str
    appointment_count: int
    revenue: Decimal


@dataclass
class FinancialSummary:
    period: str
    period_label: str
    start: Optional[dt.date]
    end: Optional[dt.date]
    appointment_count: int = 0
    appointment_revenue: Decimal = ZERO
    stock_entry_count: int = 0
    stock_purchases: Decimal = ZERO
    stock_exit_count: int = 0
    materials_cost: Decimal = ZERO
    notes_revenue: Decimal = ZERO
    notes_revenue_count: int = 0
    notes_expenses: Decimal = ZERO
    notes_expenses_count: int = 0
    notes_observation_count: int = 0
    schedule_count: int = 0
    client_count: int = 0
    by_client: List[ClientRevenue] = field(default_factory=list)

    @property
    def total_revenue(self) -> Decimal:
        return self.appointment_revenue + self.notes_revenue

    @property
    def total_expenses(self) -> Decimal:
        return self.stock_purchases + self.materials_cost + self.notes_expenses

    @property
    def net_result(self) -> Decimal:
        return self.total_revenue - self.total_expenses


@dataclass
class ClientReport:
    period: str
    period_label: str
    start: Optional[dt.date]
    end: Optional[dt.date]
    total_clients: int = 0
    adult_clients: int = 0
    minor_clients: int = 0
    with_appointments: int = 0
    without_appointments: int = 0
    with_future_schedules: int = 0


@dataclass
class InternStatistics:
    intern_id: int
    intern_name: str
    linked_clients: List[Tuple[int, str]] = field(default_factory=list)
    appointment_count: int = 0
    hours_attended: Decimal = ZERO
    active_schedules: int = 0


class ReportService:
    def __init__(self, uow: IUnitOfWork, clock: Optional[Callable[[], dt.datetime]] = None):
        self.uow = uow
        self.clock = clock or (lambda: dt.datetime.now(APP_TZ))

    def financial_summary(
        self, actor: User, period: str = "current-month", today: Optional[dt.date] = None
    ) -> FinancialSummary:
        self._require_coordinator(actor)
        today = today or self.clock().date()
        start, end = period_range(period, today)
        summary = FinancialSummary(
            period=period, period_label=PERIODS[period], start=start, end=end
        )

        clients = self.uow.clients.list_all()
        summary.client_count = len(clients)
        for client in clients:
            appointments = [a for a in client.appointments if _within(a.date, start, end)]
            if not appointments:
                continue
            revenue = money_sum(a.value for a in appointments)
            summary.appointment_count += len(appointments)
            summary.appointment_revenue += revenue
            summary.by_client.append(
                ClientRevenue(client.id, client.name, len(appointments), revenue)
            )

        for movement in self.uow.stock.list_movements():
            if not _within(local_naive(movement.date).date(), start, end):
                continue
            if movement.type == MOVEMENT_ENTRADA:
                summary.stock_entry_count += 1
                summary.stock_purchases += movement.total_value
            elif movement.type == MOVEMENT_SAIDA:
                summary.stock_exit_count += 1
                summary.materials_cost += movement.total_value

        for note in self.uow.daily_notes.list_between(start, end):
            if note.type == NOTE_RECEITA and note.value:
                summary.notes_revenue += note.value
                summary.notes_revenue_count += 1
            elif note.type == NOTE_DESPESA and note.value:
                summary.notes_expenses += note.value
                summary.notes_expenses_count += 1
            elif note.type not in (NOTE_RECEITA, NOTE_DESPESA):
                summary.notes_observation_count += 1

        schedules = self.uow.schedules.list_by_date_range(
            start or dt.date.min, end or dt.date.max
        )
        summary.schedule_count = len(schedules)

        logger.info(
            "Financial summary computed",
            extra={
                "context": {
                    "period": period,
                    "appointments": summary.appointment_count,
                    "net_result": str(summary.net_result),
                }
            },
        )
        return summary

    def client_report(
        self, actor: User, period: str = "all", today: Optional[dt.date] = None
    ) -> ClientReport:
        """Client counts by type, by attendance in the period and by pending
        schedules from ``today`` on."""
        self._require_manager(actor)
        today = today or self.clock().date()
        start, end = period_range(period, today)
        report = ClientReport(period=period, period_label=PERIODS[period], start=start, end=end)

        clients = self.uow.clients.list_all()
        report.total_clients = len(clients)
        for client in clients:
            if client.type == CLIENT_ADULT:
                report.adult_clients += 1
            elif client.type == CLIENT_MINOR:
                report.minor_clients += 1
            if any(_within(a.date, start, end) for a in client.appointments):
                report.with_appointments += 1
            else:
                report.without_appointments += 1

        report.with_future_schedules = len(
            {s.client_id for s in self._pending_schedules(today)}
        )
        return report

    def intern_statistics(
        self, actor: User, period: str = "all", today: Optional[dt.date] = None
    ) -> List[InternStatistics]:
        """Per intern: linked clients, appointments credited in the period with
        their hours, and pending schedules from ``today`` on."""
        self._require_manager(actor)
        today = today or self.clock().date()
        start, end = period_range(period, today)

        stats = {
            intern.id: InternStatistics(intern.id, intern.name)
            for intern in self.uow.users.list_all(roles=[ROLE_INTERN])
        }
        for client in self.uow.clients.list_all():
            linked = stats.get(client.assigned_intern_id)
            if linked is not None:
                linked.linked_clients.append((client.id, client.name))
            for appointment in client.appointments:
                credited = stats.get(appointment.intern_id)
                if credited is None or not _within(appointment.date, start, end):
                    continue
                credited.appointment_count += 1
                credited.hours_attended += appointment.duration_hours or ZERO

        for schedule in self._pending_schedules(today):
            assigned = stats.get(schedule.assigned_to_user_id)
            if assigned is not None:
                assigned.active_schedules += 1
        return list(stats.values())

    def _pending_schedules(self, today: dt.date):
        return [
            s
            for s in self.uow.schedules.list_by_date_range(today, dt.date.max)
            if s.status != STATUS_CANCELADO
        ]

    def add_daily_note(
        self,
        actor: User,
        note_type: str,
        title: str,
        value=None,
        date=None,
    ) -> DailyNote:
        self._require_coordinator(actor)
        if note_type not in DAILY_NOTE_TYPES:
            raise ValidationError(f"Tipo de nota inválido: {note_type}", {"field": "type"})
        title = require_text(title, "title", "Título")
        try:
            amount = to_stored_money(value)
        except ValueError:
            raise ValidationError(f"Valor inválido: {value}", {"field": "value"})
        if amount < 0:
            raise ValidationError("Valor não pode ser negativo", {"field": "value"})
        day = parse_date(date) if date else self.clock().date()
        with self.uow.transaction():
            note = self.uow.daily_notes.create(
                DailyNote(type=note_type, title=title, value=amount, date=day, author=actor.name)
            )
        logger.info(
            "Daily note added",
            extra={"context": {"note_id": note.id, "type": note.type, "user": actor.name}},
        )
        return note

    def delete_daily_note(self, actor: User, note_id: int) -> None:
        self._require_coordinator(actor)
        with self.uow.transaction():
            if not self.uow.daily_notes.delete(note_id):
                raise NotFoundError("Nota", note_id)
        logger.info("Daily note deleted", extra={"context": {"note_id": note_id}})

    def list_daily_notes(
        self, actor: User, period: str = "all", today: Optional[dt.date] = None
    ) -> List[DailyNote]:
        self._require_coordinator(actor)
        start, end = period_range(period, today or self.clock().date())
        return self.uow.daily_notes.list_between(start, end)

    @staticmethod
    def _require_coordinator(actor: User) -> None:
        if not actor.is_coordinator:
            raise PermissionDeniedError(
                "Apenas coordenadores podem acessar o financeiro", {"role": actor.role}
            )

    @staticmethod
    def _require_manager(actor: User) -> None:
        if actor.is_intern:
            raise PermissionDeniedError(
                "Apenas coordenadores e funcionários podem ver relatórios de clientes",
                {"role": actor.role},
            )
