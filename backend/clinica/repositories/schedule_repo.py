import datetime as dt
from typing import List, Optional

from clinica.core.exceptions import ConflictError, NotFoundError
from clinica.db.base import Schedule as DbSchedule
from clinica.domain.entities import Cancelled, Completed, Schedule, Scheduled
from clinica.domain.interfaces import IScheduleRepository


class ScheduleRepository(IScheduleRepository):
    """Persists schedules, flattening the state variant into columns."""

    def __init__(self, db_session) -> None:
        self.db = db_session

    def _get_db(self, schedule_id: int, lock: bool = False) -> Optional[DbSchedule]:
        query = self.db.query(DbSchedule).filter_by(id=schedule_id)
        if lock:
            query = query.with_for_update()
        return query.first()

    def get_by_id(self, schedule_id: int, lock: bool = False) -> Optional[Schedule]:
        db_schedule = self._get_db(schedule_id, lock=lock)
        return self._to_domain(db_schedule) if db_schedule else None

    def list_by_date(self, day: dt.date) -> List[Schedule]:
        rows = (
            self.db.query(DbSchedule)
            .filter(DbSchedule.date == day)
            .order_by(DbSchedule.time, DbSchedule.id)
            .all()
        )
        return [self._to_domain(s) for s in rows]

    def list_by_date_range(self, start: dt.date, end: dt.date) -> List[Schedule]:
        rows = (
            self.db.query(DbSchedule)
            .filter(DbSchedule.date >= start, DbSchedule.date <= end)
            .order_by(DbSchedule.date, DbSchedule.time, DbSchedule.id)
            .all()
        )
        return [self._to_domain(s) for s in rows]

    def list_by_client(self, client_id: int) -> List[Schedule]:
        rows = (
            self.db.query(DbSchedule)
            .filter(DbSchedule.client_id == client_id)
            .order_by(DbSchedule.date.desc(), DbSchedule.time.desc())
            .all()
        )
        return [self._to_domain(s) for s in rows]

    def list_by_assignee(self, user_id: int) -> List[Schedule]:
        rows = (
            self.db.query(DbSchedule)
            .filter(DbSchedule.assigned_to_user_id == user_id)
            .order_by(DbSchedule.date, DbSchedule.time)
            .all()
        )
        return [self._to_domain(s) for s in rows]

    def create(self, schedule: Schedule) -> Schedule:
        db_schedule = DbSchedule(client_id=schedule.client_id)
        self._apply(db_schedule, schedule)
        self.db.add(db_schedule)
        self.db.flush()
        return self._to_domain(db_schedule)

    def update(self, schedule: Schedule) -> Schedule:
        if not schedule.id:
            raise ValueError("Schedule ID is required for update")
        db_schedule = self._get_db(schedule.id)
        if not db_schedule:
            raise NotFoundError("Agendamento", schedule.id)
        if db_schedule.version != schedule.version:
            raise ConflictError(
                "O agendamento foi alterado por outro usuário. Recarregue e tente novamente.",
                {"entity": "Agendamento", "id": schedule.id},
            )
        self._apply(db_schedule, schedule)
        self.db.flush()
        schedule.version = db_schedule.version
        return schedule

    def delete_by_client(self, client_id: int) -> int:
        rows = self.db.query(DbSchedule).filter(DbSchedule.client_id == client_id).all()
        for row in rows:
            self.db.delete(row)
        self.db.flush()
        return len(rows)

    def _apply(self, db_schedule: DbSchedule, schedule: Schedule) -> None:
        db_schedule.client_id = schedule.client_id
        db_schedule.date = schedule.date
        db_schedule.time = schedule.time
        db_schedule.service_type = schedule.service_type
        db_schedule.observations = schedule.observations
        db_schedule.assigned_to_user_id = schedule.assigned_to_user_id
        db_schedule.assigned_to_user_name = schedule.assigned_to_user_name
        db_schedule.status = schedule.status
        db_schedule.attendance_id = schedule.attendance_id
        db_schedule.confirmed_at = schedule.confirmed_at
        cancellation = schedule.cancellation
        db_schedule.cancel_reason = cancellation.reason if cancellation else None
        db_schedule.cancelled_at = cancellation.cancelled_at if cancellation else None
        db_schedule.canceled_by = cancellation.canceled_by if cancellation else None
        db_schedule.cancel_image = cancellation.image if cancellation else None
        db_schedule.cancel_image_name = cancellation.image_name if cancellation else None

    def _to_domain(self, db_schedule: DbSchedule) -> Schedule:
        if db_schedule.attendance_id is not None:
            state = Completed(
                attendance_id=db_schedule.attendance_id,
                confirmed_at=db_schedule.confirmed_at,
            )
        elif db_schedule.cancel_reason is not None:
            state = Cancelled(
                reason=db_schedule.cancel_reason,
                cancelled_at=db_schedule.cancelled_at,
                canceled_by=db_schedule.canceled_by or "",
                image=db_schedule.cancel_image,
                image_name=db_schedule.cancel_image_name,
            )
        else:
            state = Scheduled()
        return Schedule(
            id=db_schedule.id,
            client_id=db_schedule.client_id,
            date=db_schedule.date,
            time=db_schedule.time,
            service_type=db_schedule.service_type,
            observations=db_schedule.observations,
            assigned_to_user_id=db_schedule.assigned_to_user_id,
            assigned_to_user_name=db_schedule.assigned_to_user_name,
            state=state,
            created_at=db_schedule.created_at,
            version=db_schedule.version,
        )
