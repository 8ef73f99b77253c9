"""
Schedule controller: booking, editing, reassignment, cancellation and
confirmation of schedules.
"""

from clinica.core.api_utils import api_response, json_payload
from clinica.core.auth_decorators import get_actor, get_uow
from clinica.core.limiter_config import limiter
from clinica.core.validation import parse_date, parse_int, parse_positive_int
from clinica.schemas.dtos import (
    AppointmentResponse,
    ScheduleCancelRequest,
    ScheduleConfirmRequest,
    ScheduleCreateRequest,
    ScheduleEditRequest,
    ScheduleResponse,
    UserResponse,
)
from clinica.services.schedule_service import ScheduleService
from flask import Blueprint, request
from flask_login import login_required

schedule_bp = Blueprint("schedules", __name__, url_prefix="/schedules")


def _service() -> ScheduleService:
    return ScheduleService(get_uow())


def _expected_version(data):
    version = data.get("version")
    return parse_positive_int(version, "version") if version is not None else None


@schedule_bp.route("", methods=["GET"])
@login_required
def list_schedules():
    """List schedules of a day (``?date=YYYY-MM-DD``) or of a client (``?client_id=``)."""
    service = _service()
    if request.args.get("client_id"):
        schedules = service.list_for_client(
            parse_positive_int(request.args["client_id"], "client_id")
        )
    else:
        schedules = service.list_by_date(get_actor(), parse_date(request.args.get("date")))
    return api_response(
        True,
        "Agendamentos",
        [ScheduleResponse.from_domain(s).to_dict() for s in schedules],
    )


@schedule_bp.route("", methods=["POST"])
@limiter.limit("30 per minute")
@login_required
def create_schedule():
    payload = ScheduleCreateRequest.from_dict(json_payload())
    schedule = _service().create(get_actor(), payload)
    return api_response(
        True, "Agendamento criado", ScheduleResponse.from_domain(schedule).to_dict(), 201
    )


@schedule_bp.route("/<int:schedule_id>", methods=["GET"])
@login_required
def get_schedule(schedule_id: int):
    schedule = _service().get(schedule_id)
    return api_response(True, "Agendamento", ScheduleResponse.from_domain(schedule).to_dict())


@schedule_bp.route("/<int:schedule_id>", methods=["PUT"])
@limiter.limit("30 per minute")
@login_required
def edit_schedule(schedule_id: int):
    data = json_payload()
    schedule = _service().edit(
        get_actor(),
        schedule_id,
        ScheduleEditRequest.from_dict(data),
        expected_version=_expected_version(data),
    )
    return api_response(
        True, "Agendamento atualizado", ScheduleResponse.from_domain(schedule).to_dict()
    )


@schedule_bp.route("/<int:schedule_id>/reassign", methods=["POST"])
@limiter.limit("30 per minute")
@login_required
def reassign_schedule(schedule_id: int):
    data = json_payload()
    schedule = _service().reassign(
        get_actor(),
        schedule_id,
        parse_positive_int(data.get("assigned_to_user_id"), "assigned_to_user_id"),
    )
    return api_response(
        True, "Agendamento reatribuído", ScheduleResponse.from_domain(schedule).to_dict()
    )


@schedule_bp.route("/<int:schedule_id>/cancel", methods=["POST"])
@limiter.limit("30 per minute")
@login_required
def cancel_schedule(schedule_id: int):
    schedule = _service().cancel(
        get_actor(), schedule_id, ScheduleCancelRequest.from_dict(json_payload())
    )
    return api_response(
        True, "Agendamento cancelado", ScheduleResponse.from_domain(schedule).to_dict()
    )


@schedule_bp.route("/<int:schedule_id>/confirm", methods=["POST"])
@limiter.limit("30 per minute")
@login_required
def confirm_schedule(schedule_id: int):
    appointment = _service().confirm(
        get_actor(), schedule_id, ScheduleConfirmRequest.from_dict(json_payload())
    )
    return api_response(
        True, "Atendimento registrado", AppointmentResponse.from_domain(appointment).to_dict()
    )


@schedule_bp.route("/calendar", methods=["GET"])
@login_required
def calendar_counts():
    """Schedules per day for ``?year=&month=``."""
    year = parse_int(request.args.get("year"), "year", minimum=1)
    month = parse_int(request.args.get("month"), "month", minimum=1)
    counts = _service().calendar_counts(get_actor(), year, month)
    return api_response(True, "Calendário", {day.isoformat(): n for day, n in counts.items()})


@schedule_bp.route("/assignable-users", methods=["GET"])
@login_required
def assignable_users():
    users = _service().assignable_users(get_actor())
    return api_response(
        True, "Profissionais", [UserResponse.from_domain(u).to_dict() for u in users]
    )
