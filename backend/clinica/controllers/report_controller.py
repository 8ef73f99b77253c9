"""
Report endpoints: finances and daily notes (coordinator only), client
and intern statistics (coordinator and staff).
"""

from dataclasses import asdict

from clinica.core.api_utils import api_response, json_payload
from clinica.core.auth_decorators import get_actor, get_uow, require_roles
from clinica.core.limiter_config import limiter
from clinica.domain.entities import ROLE_COORDINATOR, ROLE_STAFF
from clinica.services.report_service import ReportService
from clinica.utils.money import format_brl
from flask import Blueprint, request

reports_bp = Blueprint("reports", __name__, url_prefix="/reports")


def _note_to_dict(note):
    return {
        "id": note.id,
        "type": note.type,
        "title": note.title,
        "value": str(note.value) if note.value is not None else None,
        "date": note.date.isoformat() if note.date else None,
        "author": note.author,
    }


@reports_bp.route("/financial", methods=["GET"])
@require_roles(ROLE_COORDINATOR)
def financial_summary():
    """Totals for ``?period=`` (current-month, last-3-months, last-6-months,
    current-year, all)."""
    summary = ReportService(get_uow()).financial_summary(
        get_actor(), request.args.get("period", "current-month")
    )
    data = asdict(summary)
    data["start"] = summary.start.isoformat() if summary.start else None
    data["end"] = summary.end.isoformat() if summary.end else None
    data["total_revenue"] = summary.total_revenue
    data["total_expenses"] = summary.total_expenses
    data["net_result"] = summary.net_result
    data["formatted"] = {
        "total_revenue": format_brl(summary.total_revenue),
        "total_expenses": format_brl(summary.total_expenses),
        "net_result": format_brl(summary.net_result),
    }
    return api_response(True, "Resumo financeiro", _stringify_decimals(data))


@reports_bp.route("/clients", methods=["GET"])
@require_roles(ROLE_COORDINATOR, ROLE_STAFF)
def client_report():
    report = ReportService(get_uow()).client_report(
        get_actor(), request.args.get("period", "all")
    )
    data = asdict(report)
    data["start"] = report.start.isoformat() if report.start else None
    data["end"] = report.end.isoformat() if report.end else None
    return api_response(True, "Relatório de clientes", data)


@reports_bp.route("/interns", methods=["GET"])
@require_roles(ROLE_COORDINATOR, ROLE_STAFF)
def intern_statistics():
    stats = ReportService(get_uow()).intern_statistics(
        get_actor(), request.args.get("period", "all")
    )
    return api_response(
        True,
        "Estatísticas dos estagiários",
        [
            {
                "intern_id": s.intern_id,
                "intern_name": s.intern_name,
                "linked_clients": [
                    {"id": client_id, "name": name} for client_id, name in s.linked_clients
                ],
                "appointment_count": s.appointment_count,
                "hours_attended": str(s.hours_attended),
                "active_schedules": s.active_schedules,
            }
            for s in stats
        ],
    )


def _stringify_decimals(value):
    if isinstance(value, dict):
        return {k: _stringify_decimals(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_stringify_decimals(v) for v in value]
    if hasattr(value, "quantize"):
        return str(value)
    return value


@reports_bp.route("/daily-notes", methods=["GET"])
@require_roles(ROLE_COORDINATOR)
def list_daily_notes():
    notes = ReportService(get_uow()).list_daily_notes(
        get_actor(), request.args.get("period", "all")
    )
    return api_response(True, "Notas", [_note_to_dict(n) for n in notes])


@reports_bp.route("/daily-notes", methods=["POST"])
@limiter.limit("30 per minute")
@require_roles(ROLE_COORDINATOR)
def add_daily_note():
    data = json_payload()
    note = ReportService(get_uow()).add_daily_note(
        get_actor(), data.get("type"), data.get("title"), data.get("value"), data.get("date")
    )
    return api_response(True, "Nota adicionada", _note_to_dict(note), 201)


@reports_bp.route("/daily-notes/<int:note_id>", methods=["DELETE"])
@limiter.limit("30 per minute")
@require_roles(ROLE_COORDINATOR)
def delete_daily_note(note_id: int):
    ReportService(get_uow()).delete_daily_note(get_actor(), note_id)
    return api_response(True, "Nota excluída")
