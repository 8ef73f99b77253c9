"""
Schedule lifecycle engine.

Schedules are created in ``agendado`` and end in one of the terminal states
``concluido`` (via ``confirm``) or ``cancelado`` (via ``cancel``). Each
operation runs in a single unit-of-work transaction together with its side
effects (stock consumption, appointment creation, intern assignment), so it
either lands completely or leaves no trace.
"""

import datetime as dt
from collections import Counter
from typing import Callable, Dict, List, Optional

from clinica.core.config import APP_TZ
from clinica.core.exceptions import (
    ClinicError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from clinica.core.logging_config import get_logger, log_operation_rejected
from clinica.domain.entities import (
    ASSIGNABLE_ROLES,
    ROLE_INTERN,
    ROLE_STAFF,
    STATUS_CANCELADO,
    STATUS_CONCLUIDO,
    Appointment,
    Attachment,
    MaterialUsage,
    Schedule,
    User,
)
from clinica.domain.interfaces import IUnitOfWork
from clinica.schemas.dtos import (
    ScheduleCancelRequest,
    ScheduleConfirmRequest,
    ScheduleCreateRequest,
    ScheduleEditRequest,
)
from clinica.services.assignment_service import AssignmentService
from clinica.services.stock_service import StockLedgerService, month_bounds

logger = get_logger(__name__)


def resolve_assignee(
    role: str, selected_id: Optional[int], acting_user: User
) -> Optional[int]:
    """Decide who a new schedule is assigned to.

    - interns are always assigned to themselves
    - an explicit selection wins for coordinators and staff
    - staff default to themselves
    - a coordinator without a selection leaves the schedule unassigned

    Raises:
        PermissionDeniedError: an intern selected somebody else.
    """
    if role == ROLE_INTERN:
        if selected_id is not None and selected_id != acting_user.id:
            raise PermissionDeniedError(
                "Estagiários só podem criar agendamentos para si mesmos",
                {"selected_id": selected_id},
            )
        return acting_user.id
    if selected_id is not None:
        return selected_id
    if role == ROLE_STAFF:
        return acting_user.id
    return None


def resolve_attendance_intern(
    assignee: Optional[User], acting_user: User
) -> Optional[int]:
    """Intern credited on the appointment produced by a confirmation."""
    if assignee is not None:
        return assignee.id if assignee.is_intern else None
    return acting_user.id if acting_user.is_intern else None


class ScheduleService:
    """Application service for the schedule lifecycle."""

    def __init__(
        self,
        uow: IUnitOfWork,
        stock: Optional[StockLedgerService] = None,
        assignments: Optional[AssignmentService] = None,
        clock: Optional[Callable[[], dt.datetime]] = None,
    ):
        self.uow = uow
        self.clock = clock or (lambda: dt.datetime.now(APP_TZ))
        self.stock = stock or StockLedgerService(uow, clock=self.clock)
        self.assignments = assignments or AssignmentService(uow, clock=self.clock)

    # ------------------- transitions -------------------

    def create(self, actor: User, request: ScheduleCreateRequest) -> Schedule:
        """Book a new schedule in ``agendado``.

        Business Rules:
        - client must exist, date/time/service are required
        - assignee resolved by ``resolve_assignee`` and must be staff or intern
        - an intern assignee becomes the client's linked intern
        """
        try:
            request.validate()
            with self.uow.transaction():
                client = self.uow.clients.get_by_id(request.client_id)
                if client is None:
                    raise ValidationError(
                        f"Cliente {request.client_id} não encontrado",
                        {"field": "client_id", "id": request.client_id},
                    )
                assignee_id = resolve_assignee(
                    actor.role, request.assigned_to_user_id, actor
                )
                assignee = self._assignable_user(assignee_id) if assignee_id else None
                schedule = self.uow.schedules.create(
                    Schedule(
                        client_id=client.id,
                        date=request.date,
                        time=request.time,
                        service_type=request.service_type,
                        observations=request.observations,
                        assigned_to_user_id=assignee.id if assignee else None,
                        assigned_to_user_name=assignee.name if assignee else None,
                        created_at=self.clock(),
                    )
                )
                if assignee is not None and assignee.is_intern:
                    self.assignments.assign_intern(client.id, assignee.id, actor.name)
        except ClinicError as e:
            log_operation_rejected(logger, "create_schedule", e)
            raise
        logger.info(
            "Schedule created",
            extra={
                "context": {
                    "schedule_id": schedule.id,
                    "client_id": schedule.client_id,
                    "assigned_to": schedule.assigned_to_user_id,
                    "user": actor.name,
                }
            },
        )
        return schedule

    def edit(
        self,
        actor: User,
        schedule_id: int,
        request: ScheduleEditRequest,
        expected_version: Optional[int] = None,
    ) -> Schedule:
        """Change client, date, time, service or observations.

        Assignee and status are never touched here; interns cannot edit.
        """
        try:
            if actor.is_intern:
                raise PermissionDeniedError(
                    "Estagiários não podem editar agendamentos",
                    {"schedule_id": schedule_id},
                )
            request.validate()
            with self.uow.transaction():
                schedule = self._require_open(schedule_id, expected_version)
                if request.client_id is not None and request.client_id != schedule.client_id:
                    if self.uow.clients.get_by_id(request.client_id) is None:
                        raise ValidationError(
                            f"Cliente {request.client_id} não encontrado",
                            {"field": "client_id", "id": request.client_id},
                        )
                    schedule.client_id = request.client_id
                if request.date is not None:
                    schedule.date = request.date
                if request.time is not None:
                    schedule.time = request.time
                if request.service_type is not None:
                    schedule.service_type = request.service_type
                if request.observations is not None:
                    schedule.observations = request.observations.strip() or None
                self.uow.schedules.update(schedule)
        except ClinicError as e:
            log_operation_rejected(logger, "edit_schedule", e)
            raise
        logger.info(
            "Schedule edited",
            extra={"context": {"schedule_id": schedule.id, "user": actor.name}},
        )
        return schedule

    def reassign(self, actor: User, schedule_id: int, new_assignee_id: int) -> Schedule:
        """Coordinator-only change of the responsible professional.

        Reassigning to an intern relinks the client; reassigning to staff
        never touches the client's intern.
        """
        try:
            if not actor.is_coordinator:
                raise PermissionDeniedError(
                    "Apenas coordenadores podem reatribuir agendamentos",
                    {"schedule_id": schedule_id, "role": actor.role},
                )
            with self.uow.transaction():
                schedule = self._require_open(schedule_id)
                assignee = self._assignable_user(new_assignee_id)
                if schedule.assigned_to_user_id == assignee.id:
                    return schedule
                previous = schedule.assigned_to_user_id
                schedule.assigned_to_user_id = assignee.id
                schedule.assigned_to_user_name = assignee.name
                self.uow.schedules.update(schedule)
                if assignee.is_intern:
                    self.assignments.assign_intern(
                        schedule.client_id, assignee.id, actor.name
                    )
        except ClinicError as e:
            log_operation_rejected(logger, "reassign_schedule", e)
            raise
        logger.info(
            "Schedule reassigned",
            extra={
                "context": {
                    "schedule_id": schedule.id,
                    "from": previous,
                    "to": assignee.id,
                    "user": actor.name,
                }
            },
        )
        return schedule

    def cancel(
        self, actor: User, schedule_id: int, request: ScheduleCancelRequest
    ) -> Schedule:
        """Move a schedule to ``cancelado``. No stock or assignment effects."""
        try:
            with self.uow.transaction():
                schedule = self._require_schedule(schedule_id, lock=True)
                self._require_owner_or_manager(actor, schedule, "cancelar")
                self._require_not_terminal(schedule)
                request.validate()
                schedule.mark_cancelled(
                    reason=request.reason,
                    cancelled_at=self.clock(),
                    canceled_by=actor.name,
                    image=request.image,
                    image_name=request.image_name,
                )
                self.uow.schedules.update(schedule)
        except ClinicError as e:
            log_operation_rejected(logger, "cancel_schedule", e)
            raise
        logger.info(
            "Schedule cancelled",
            extra={"context": {"schedule_id": schedule.id, "user": actor.name}},
        )
        return schedule

    def confirm(
        self, actor: User, schedule_id: int, request: ScheduleConfirmRequest
    ) -> Appointment:
        """Record attendance: consume materials, create the appointment and
        complete the schedule, all or nothing.

        Every material line is checked against the locked stock rows before
        the first deduction, so an insufficient line leaves every item, the
        client and the schedule untouched.

        Raises:
            InsufficientStockError: a line asks for more than is available.
            ConflictError: the schedule is no longer ``agendado`` or a row
                changed underneath the transaction.
        """
        try:
            with self.uow.transaction():
                schedule = self._require_schedule(schedule_id, lock=True)
                self._require_owner_or_manager(actor, schedule, "confirmar")
                self._require_not_terminal(schedule)
                request.validate()
                client = self.uow.clients.get_by_id(schedule.client_id, lock=True)
                if client is None:
                    raise NotFoundError("Cliente", schedule.client_id)

                quantities = request.quantities_by_item()
                items = self.stock.check_availability(quantities)
                reason = f"Atendimento - {client.name}"
                materials = []
                for item in items:
                    quantity = quantities[item.id]
                    self.stock.consume(item.id, quantity, reason, actor, schedule_id=schedule.id)
                    materials.append(MaterialUsage(item.id, item.name, quantity, item.unit))

                assignee = (
                    self.uow.users.get_by_id(schedule.assigned_to_user_id)
                    if schedule.assigned_to_user_id
                    else None
                )
                now = self.clock()
                appointment = self.uow.clients.add_appointment(
                    client.id,
                    Appointment(
                        client_id=client.id,
                        date=schedule.date,
                        time=schedule.time,
                        service_type=schedule.service_type,
                        notes=request.observations,
                        value=request.value,
                        duration_hours=request.duration_hours,
                        attended_by=request.professional_name,
                        intern_id=resolve_attendance_intern(assignee, actor),
                        materials_used=materials,
                        attachments=[
                            Attachment(a.file_name, a.file_data, a.upload_date or now)
                            for a in request.attachments
                        ],
                        status=STATUS_CONCLUIDO,
                        schedule_id=schedule.id,
                        confirmed_at=now,
                    ),
                )
                schedule.mark_completed(appointment.id, now)
                self.uow.schedules.update(schedule)
        except ClinicError as e:
            log_operation_rejected(logger, "confirm_schedule", e)
            raise
        logger.info(
            "Schedule confirmed",
            extra={
                "context": {
                    "schedule_id": schedule.id,
                    "appointment_id": appointment.id,
                    "materials": len(materials),
                    "user": actor.name,
                }
            },
        )
        return appointment

    # ------------------- queries -------------------

    def get(self, schedule_id: int) -> Schedule:
        return self._require_schedule(schedule_id)

    def list_by_date(self, actor: User, day: dt.date) -> List[Schedule]:
        """Schedules of a day; interns only see their own."""
        schedules = self.uow.schedules.list_by_date(day)
        if actor.is_intern:
            schedules = [s for s in schedules if s.assigned_to_user_id == actor.id]
        return schedules

    def list_for_client(self, client_id: int) -> List[Schedule]:
        return self.uow.schedules.list_by_client(client_id)

    def list_for_user(self, user_id: int) -> List[Schedule]:
        return self.uow.schedules.list_by_assignee(user_id)

    def calendar_counts(self, actor: User, year: int, month: int) -> Dict[dt.date, int]:
        """Number of non-cancelled schedules per day of the month."""
        start, end = month_bounds(year, month)
        schedules = self.uow.schedules.list_by_date_range(
            start.date(), end.date() - dt.timedelta(days=1)
        )
        counter = Counter(
            s.date
            for s in schedules
            if s.status != STATUS_CANCELADO
            and (not actor.is_intern or s.assigned_to_user_id == actor.id)
        )
        return dict(sorted(counter.items()))

    def assignable_users(self, actor: User) -> List[User]:
        if actor.is_intern:
            return [actor]
        return self.uow.users.list_all(roles=list(ASSIGNABLE_ROLES))

    # ------------------- helpers -------------------

    def _require_schedule(self, schedule_id: int, lock: bool = False) -> Schedule:
        schedule = self.uow.schedules.get_by_id(schedule_id, lock=lock)
        if schedule is None:
            raise NotFoundError("Agendamento", schedule_id)
        return schedule

    def _require_open(
        self, schedule_id: int, expected_version: Optional[int] = None
    ) -> Schedule:
        schedule = self._require_schedule(schedule_id, lock=True)
        self._require_not_terminal(schedule)
        if expected_version is not None:
            schedule.version = expected_version
        return schedule

    @staticmethod
    def _require_not_terminal(schedule: Schedule) -> None:
        if schedule.is_terminal:
            raise ConflictError(
                f"Agendamento {schedule.id} já está {schedule.status}",
                {"schedule_id": schedule.id, "status": schedule.status},
            )

    @staticmethod
    def _require_owner_or_manager(actor: User, schedule: Schedule, verb: str) -> None:
        if actor.is_intern and schedule.assigned_to_user_id != actor.id:
            raise PermissionDeniedError(
                f"Estagiários só podem {verb} agendamentos atribuídos a si",
                {"schedule_id": schedule.id},
            )

    def _assignable_user(self, user_id: int) -> User:
        user = self.uow.users.get_by_id(user_id)
        if user is None or user.role not in ASSIGNABLE_ROLES:
            raise ValidationError(
                "Profissional responsável inválido",
                {"field": "assigned_to_user_id", "id": user_id},
            )
        return user
