"""
General documents controller: the clinic-wide library of files and notes.
"""

from clinica.core.api_utils import api_response, json_payload
from clinica.core.auth_decorators import get_actor, get_uow, require_roles
from clinica.core.limiter_config import limiter
from clinica.domain.entities import LIBRARY_KIND_NOTE, ROLE_COORDINATOR, ROLE_STAFF
from clinica.schemas.dtos import GeneralDocumentCreateRequest, GeneralDocumentResponse
from clinica.services.document_library_service import DocumentLibraryService
from flask import Blueprint, request

documents_bp = Blueprint("documents", __name__, url_prefix="/documents")


def _service() -> DocumentLibraryService:
    return DocumentLibraryService(get_uow())


@documents_bp.route("", methods=["GET"])
@limiter.limit("100 per minute")
@require_roles(ROLE_COORDINATOR, ROLE_STAFF)
def list_documents():
    """Search by ``?q=`` (title, description or content) and ``?type=``."""
    documents = _service().search(
        get_actor(), request.args.get("q", ""), request.args.get("type") or None
    )
    return api_response(
        True,
        "Documentos",
        [GeneralDocumentResponse.from_domain(d).to_dict() for d in documents],
    )


@documents_bp.route("", methods=["POST"])
@limiter.limit("30 per minute")
@require_roles(ROLE_COORDINATOR, ROLE_STAFF)
def add_document():
    """Expected JSON: {"title", "type", "description"?, "file_name", "file_data"}
    for files or {"title", "type", "content"} for notes."""
    document = _service().add(
        get_actor(), GeneralDocumentCreateRequest.from_dict(json_payload())
    )
    return api_response(
        True,
        "Nota adicionada" if document.kind == LIBRARY_KIND_NOTE else "Documento adicionado",
        GeneralDocumentResponse.from_domain(document).to_dict(),
        201,
    )


@documents_bp.route("/<int:document_id>", methods=["GET"])
@require_roles(ROLE_COORDINATOR, ROLE_STAFF)
def get_document(document_id: int):
    document = _service().get(get_actor(), document_id)
    data = GeneralDocumentResponse.from_domain(document, include_file=True).to_dict()
    return api_response(True, "Documento", data)


@documents_bp.route("/<int:document_id>", methods=["DELETE"])
@limiter.limit("30 per minute")
@require_roles(ROLE_COORDINATOR, ROLE_STAFF)
def delete_document(document_id: int):
    _service().delete(get_actor(), document_id)
    return api_response(True, "Documento excluído")
