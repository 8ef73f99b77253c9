"""
Client controller: registration, edits with change history, intern links,
historical appointments, notes and documents.
"""

from clinica.core.api_utils import api_response, json_payload
from clinica.core.auth_decorators import get_actor, get_uow
from clinica.core.limiter_config import limiter
from clinica.core.validation import parse_positive_int
from clinica.schemas.dtos import (
    AppointmentCreateRequest,
    AppointmentResponse,
    ClientCreateRequest,
    ClientResponse,
)
from clinica.services.assignment_service import AssignmentService
from clinica.services.client_service import ClientService
from flask import Blueprint, request
from flask_login import login_required

client_bp = Blueprint("clients", __name__, url_prefix="/clients")


def _service() -> ClientService:
    return ClientService(get_uow())


@client_bp.route("", methods=["GET"])
@limiter.limit("100 per minute")
@login_required
def list_clients():
    """Search by ``?q=`` (name, CPF or id), ``?activity=`` and ``?intern=``."""
    clients = _service().search(
        request.args.get("q", ""),
        request.args.get("activity", "all"),
        request.args.get("intern", "all"),
    )
    return api_response(
        True, "Clientes", [ClientResponse.from_domain(c).to_dict() for c in clients]
    )


@client_bp.route("", methods=["POST"])
@limiter.limit("30 per minute")
@login_required
def create_client():
    client = _service().register(get_actor(), ClientCreateRequest.from_dict(json_payload()))
    return api_response(
        True, "Cliente cadastrado", ClientResponse.from_domain(client).to_dict(), 201
    )


@client_bp.route("/<int:client_id>", methods=["GET"])
@login_required
def get_client(client_id: int):
    client = _service().get(client_id)
    return api_response(True, "Cliente", ClientResponse.from_domain(client).to_dict())


@client_bp.route("/<int:client_id>", methods=["PUT"])
@limiter.limit("30 per minute")
@login_required
def update_client(client_id: int):
    data = json_payload()
    version = data.pop("version", None)
    service = _service()
    entry = service.update(
        get_actor(),
        client_id,
        data,
        expected_version=parse_positive_int(version, "version") if version is not None else None,
    )
    message = "Cliente atualizado" if entry else "Nenhuma alteração detectada"
    return api_response(True, message, ClientResponse.from_domain(service.get(client_id)).to_dict())


@client_bp.route("/<int:client_id>", methods=["DELETE"])
@limiter.limit("30 per minute")
@login_required
def delete_client(client_id: int):
    _service().delete(get_actor(), client_id)
    return api_response(True, "Cliente excluído")


@client_bp.route("/<int:client_id>/intern", methods=["PUT"])
@limiter.limit("30 per minute")
@login_required
def assign_intern(client_id: int):
    data = json_payload()
    changed = AssignmentService(get_uow()).assign(
        get_actor(), client_id, parse_positive_int(data.get("intern_id"), "intern_id")
    )
    return api_response(
        True,
        "Estagiário vinculado" if changed else "Estagiário já vinculado",
        ClientResponse.from_domain(_service().get(client_id)).to_dict(),
    )


@client_bp.route("/<int:client_id>/intern", methods=["DELETE"])
@limiter.limit("30 per minute")
@login_required
def unassign_intern(client_id: int):
    changed = AssignmentService(get_uow()).unassign(get_actor(), client_id)
    return api_response(
        True,
        "Estagiário desvinculado" if changed else "Nenhum estagiário vinculado",
        ClientResponse.from_domain(_service().get(client_id)).to_dict(),
    )


@client_bp.route("/<int:client_id>/appointments", methods=["POST"])
@limiter.limit("30 per minute")
@login_required
def add_appointment(client_id: int):
    appointment = _service().add_appointment(
        get_actor(), client_id, AppointmentCreateRequest.from_dict(json_payload())
    )
    return api_response(
        True,
        "Atendimento adicionado",
        AppointmentResponse.from_domain(appointment).to_dict(),
        201,
    )


@client_bp.route("/<int:client_id>/notes", methods=["POST"])
@limiter.limit("30 per minute")
@login_required
def add_note(client_id: int):
    data = json_payload()
    note = _service().add_note(get_actor(), client_id, data.get("title"), data.get("content"))
    return api_response(True, "Nota adicionada", {"id": note.id, "title": note.title}, 201)


@client_bp.route("/<int:client_id>/documents", methods=["POST"])
@limiter.limit("30 per minute")
@login_required
def add_document(client_id: int):
    data = json_payload()
    document = _service().add_document(
        get_actor(),
        client_id,
        data.get("title"),
        data.get("file_name"),
        data.get("file_data"),
    )
    return api_response(
        True, "Documento adicionado", {"id": document.id, "title": document.title}, 201
    )


@client_bp.route("/documents/<int:document_id>", methods=["DELETE"])
@limiter.limit("30 per minute")
@login_required
def delete_document(document_id: int):
    _service().delete_document(get_actor(), document_id)
    return api_response(True, "Documento excluído")
