"""
Clinic-wide document library.

Files (contracts, receipts, reports) and free text notes that belong to the
clinic rather than to a client. Coordinators and staff manage the library.
"""

import datetime as dt
from typing import Callable, List, Optional

from clinica.core.config import APP_TZ
from clinica.core.exceptions import (
    ClinicError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from clinica.core.logging_config import get_logger, log_operation_rejected
from clinica.domain.entities import LIBRARY_TYPES, GeneralDocument, User
from clinica.domain.interfaces import IUnitOfWork
from clinica.schemas.dtos import GeneralDocumentCreateRequest
from clinica.utils.client_utils import search_key

logger = get_logger(__name__)


class DocumentLibraryService:
    def __init__(self, uow: IUnitOfWork, clock: Optional[Callable[[], dt.datetime]] = None):
        self.uow = uow
        self.clock = clock or (lambda: dt.datetime.now(APP_TZ))

    def add(self, actor: User, request: GeneralDocumentCreateRequest) -> GeneralDocument:
        """Store a file or a note, stamped with the author and the current time.

        Raises:
            ValidationError: missing title, unknown type, no file and no
                content, or a file above the size limit.
        """
        try:
            self._require_manager(actor, "add_general_document")
            request.validate()
            with self.uow.transaction():
                document = self.uow.general_documents.create(
                    GeneralDocument(
                        type=request.type,
                        title=request.title,
                        description=request.description,
                        content=request.content,
                        file_name=request.file_name if request.file_data else None,
                        file_data=request.file_data,
                        created_by=actor.name,
                        created_at=self.clock(),
                    )
                )
        except ClinicError as e:
            log_operation_rejected(logger, "add_general_document", e)
            raise
        logger.info(
            "General document added",
            extra={
                "context": {
                    "document_id": document.id,
                    "kind": document.kind,
                    "type": document.type,
                    "user": actor.name,
                }
            },
        )
        return document

    def search(
        self, actor: User, term: str = "", doc_type: Optional[str] = None
    ) -> List[GeneralDocument]:
        """Newest first. ``term`` matches title, description or content,
        ignoring case and accents."""
        self._require_manager(actor, "search_general_documents")
        if doc_type and doc_type not in LIBRARY_TYPES:
            raise ValidationError(f"Tipo inválido: {doc_type}", {"field": "type"})
        key = search_key((term or "").strip())
        documents = self.uow.general_documents.list_all(doc_type or None)
        if not key:
            return documents
        return [
            d
            for d in documents
            if any(key in search_key(text) for text in (d.title, d.description, d.content))
        ]

    def get(self, actor: User, document_id: int) -> GeneralDocument:
        self._require_manager(actor, "get_general_document")
        document = self.uow.general_documents.get_by_id(document_id)
        if document is None:
            raise NotFoundError("Documento", document_id)
        return document

    def delete(self, actor: User, document_id: int) -> None:
        try:
            self._require_manager(actor, "delete_general_document")
            with self.uow.transaction():
                if not self.uow.general_documents.delete(document_id):
                    raise NotFoundError("Documento", document_id)
        except ClinicError as e:
            log_operation_rejected(logger, "delete_general_document", e)
            raise
        logger.info(
            "General document deleted",
            extra={"context": {"document_id": document_id, "user": actor.name}},
        )

    @staticmethod
    def _require_manager(actor: User, operation: str) -> None:
        if actor.is_intern:
            raise PermissionDeniedError(
                "Apenas coordenadores e funcionários acessam os documentos gerais",
                {"operation": operation, "role": actor.role},
            )
