"""
Client registry service.

Registration, field edits with an audit trail, historical appointments,
notes, documents, search and deletion. Intern linkage is delegated to the
assignment tracker and never edited here.
"""

import datetime as dt
from typing import Any, Callable, Dict, List, Optional

from clinica.core.config import APP_TZ
from clinica.core.exceptions import (
    ClinicError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from clinica.core.logging_config import get_logger, log_operation_rejected
from clinica.core.validation import optional_text, parse_date, require_text
from clinica.domain.entities import (
    ROLE_COORDINATOR,
    ROLE_STAFF,
    STATUS_CONCLUIDO,
    Appointment,
    Attachment,
    ChangeEntry,
    Client,
    ClientDocument,
    ClientNote,
    FieldChange,
    User,
)
from clinica.domain.interfaces import IUnitOfWork
from clinica.schemas.dtos import (
    AppointmentCreateRequest,
    ClientCreateRequest,
    check_attachment_size,
)
from clinica.utils.client_utils import normalize_cpf, normalize_display_name, search_key

logger = get_logger(__name__)

ACTIVITY_FILTERS = ("all", "active", "inactive")
INTERN_FILTERS = ("all", "linked", "unlinked")


def _display(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, dt.date):
        return value.isoformat()
    return str(value)


class ClientService:
    def __init__(self, uow: IUnitOfWork, clock: Optional[Callable[[], dt.datetime]] = None):
        self.uow = uow
        self.clock = clock or (lambda: dt.datetime.now(APP_TZ))

    def register(self, actor: User, request: ClientCreateRequest) -> Client:
        """Register an adult or minor client."""
        try:
            request.validate()
            with self.uow.transaction():
                client = self.uow.clients.create(
                    Client(
                        type=request.type,
                        name=normalize_display_name(request.name),
                        created_at=self.clock(),
                        **request.fields,
                    )
                )
        except ClinicError as e:
            log_operation_rejected(logger, "register_client", e)
            raise
        logger.info(
            "Client registered",
            extra={"context": {"client_id": client.id, "type": client.type, "user": actor.name}},
        )
        return client

    def update(
        self,
        actor: User,
        client_id: int,
        changes: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> Optional[ChangeEntry]:
        """Apply field edits and append one change entry listing every field
        that actually differs.

        Returns the appended entry, or None when nothing changed.
        """
        try:
            self._require_manager(actor, "update_client")
            with self.uow.transaction():
                client = self._require_client(client_id, lock=True)
                if expected_version is not None:
                    client.version = expected_version
                diff = self._diff(client, changes)
                if not diff:
                    return None
                self.uow.clients.update(client)
                entry = self.uow.clients.append_change(
                    client.id,
                    ChangeEntry(
                        client_id=client.id,
                        date=self.clock(),
                        changed_by=actor.name,
                        changes=diff,
                    ),
                )
        except ClinicError as e:
            log_operation_rejected(logger, "update_client", e)
            raise
        logger.info(
            "Client updated",
            extra={
                "context": {
                    "client_id": client_id,
                    "fields": [c.field for c in diff],
                    "user": actor.name,
                }
            },
        )
        return entry

    def _diff(self, client: Client, changes: Dict[str, Any]) -> List[FieldChange]:
        """Mutate ``client`` with the submitted values and return the diff."""
        diff = []
        for name in Client.EDITABLE_FIELDS:
            if name not in changes:
                continue
            if name == "name":
                new_value = normalize_display_name(require_text(changes[name], "name", "Nome"))
            elif name == "birth_date":
                raw = changes[name]
                new_value = parse_date(raw, "birth_date") if raw else None
            else:
                new_value = optional_text(changes[name])
            old_value = getattr(client, name)
            if _display(old_value) != _display(new_value):
                diff.append(FieldChange(name, _display(old_value), _display(new_value)))
                setattr(client, name, new_value)
        return diff

    def add_appointment(
        self, actor: User, client_id: int, request: AppointmentCreateRequest
    ) -> Appointment:
        """Historical entry added straight to the client (no schedule)."""
        try:
            request.validate()
            with self.uow.transaction():
                client = self._require_client(client_id)
                now = self.clock()
                appointment = self.uow.clients.add_appointment(
                    client.id,
                    Appointment(
                        client_id=client.id,
                        date=request.date,
                        time=request.time,
                        service_type=request.service_type,
                        notes=request.notes,
                        value=request.value,
                        duration_hours=request.duration_hours,
                        attended_by=actor.name,
                        intern_id=actor.id if actor.is_intern else None,
                        attachments=[
                            Attachment(a.file_name, a.file_data, a.upload_date or now)
                            for a in request.attachments
                        ],
                        status=STATUS_CONCLUIDO,
                    ),
                )
        except ClinicError as e:
            log_operation_rejected(logger, "add_appointment", e)
            raise
        logger.info(
            "Historical appointment added",
            extra={
                "context": {
                    "client_id": client_id,
                    "appointment_id": appointment.id,
                    "user": actor.name,
                }
            },
        )
        return appointment

    def add_note(self, actor: User, client_id: int, title: str, content: str) -> ClientNote:
        title = require_text(title, "title", "Título")
        content = require_text(content, "content", "Conteúdo")
        with self.uow.transaction():
            self._require_client(client_id)
            note = self.uow.clients.add_note(
                client_id,
                ClientNote(
                    client_id=client_id,
                    title=title,
                    content=content,
                    author=actor.name,
                    date=self.clock(),
                ),
            )
        logger.info("Client note added", extra={"context": {"client_id": client_id}})
        return note

    def list_notes(self, client_id: int) -> List[ClientNote]:
        return self._require_client(client_id).notes

    def add_document(
        self, actor: User, client_id: int, title: str, file_name: str, file_data: str
    ) -> ClientDocument:
        try:
            self._require_manager(actor, "add_document")
            title = require_text(title, "title", "Título")
            file_name = require_text(file_name, "file_name", "Nome do arquivo")
            file_data = require_text(file_data, "file_data", "Arquivo")
            check_attachment_size(file_data, file_name)
            with self.uow.transaction():
                self._require_client(client_id)
                document = self.uow.clients.add_document(
                    client_id,
                    ClientDocument(
                        client_id=client_id,
                        title=title,
                        file_name=file_name,
                        file_data=file_data,
                        uploaded_by=actor.name,
                        date=self.clock(),
                    ),
                )
        except ClinicError as e:
            log_operation_rejected(logger, "add_document", e)
            raise
        logger.info(
            "Client document added",
            extra={"context": {"client_id": client_id, "document_id": document.id}},
        )
        return document

    def delete_document(self, actor: User, document_id: int) -> None:
        self._require_manager(actor, "delete_document")
        with self.uow.transaction():
            if not self.uow.clients.delete_document(document_id):
                raise NotFoundError("Documento", document_id)
        logger.info("Client document deleted", extra={"context": {"document_id": document_id}})

    def delete(self, actor: User, client_id: int) -> None:
        """Coordinator-only removal of a client, its history and its schedules."""
        try:
            if not actor.is_coordinator:
                raise PermissionDeniedError(
                    "Apenas coordenadores podem excluir clientes",
                    {"client_id": client_id, "role": actor.role},
                )
            with self.uow.transaction():
                self._require_client(client_id, lock=True)
                removed = self.uow.schedules.delete_by_client(client_id)
                self.uow.clients.delete(client_id)
        except ClinicError as e:
            log_operation_rejected(logger, "delete_client", e)
            raise
        logger.info(
            "Client deleted",
            extra={
                "context": {
                    "client_id": client_id,
                    "schedules_removed": removed,
                    "user": actor.name,
                }
            },
        )

    # ------------------- queries -------------------

    def get(self, client_id: int) -> Client:
        return self._require_client(client_id)

    def search(
        self, term: str = "", activity: str = "all", intern_filter: str = "all"
    ) -> List[Client]:
        """Match by name (accent-insensitive), CPF digits or id."""
        if activity not in ACTIVITY_FILTERS:
            raise ValidationError(f"Filtro inválido: {activity}", {"field": "activity"})
        if intern_filter not in INTERN_FILTERS:
            raise ValidationError(
                f"Filtro inválido: {intern_filter}", {"field": "intern_filter"}
            )
        term = (term or "").strip()
        key = search_key(term)
        digits = normalize_cpf(term)
        results = []
        for client in self.uow.clients.list_all():
            if term and not (
                key in search_key(client.name)
                or (digits and digits in normalize_cpf(client.cpf))
                or term in str(client.id)
            ):
                continue
            if activity == "active" and not client.appointments:
                continue
            if activity == "inactive" and client.appointments:
                continue
            if intern_filter == "linked" and client.assigned_intern_id is None:
                continue
            if intern_filter == "unlinked" and client.assigned_intern_id is not None:
                continue
            results.append(client)
        return results

    def list_for_intern(self, intern_id: int) -> List[Client]:
        return self.uow.clients.list_by_assigned_intern(intern_id)

    # ------------------- helpers -------------------

    def _require_client(self, client_id: int, lock: bool = False) -> Client:
        client = self.uow.clients.get_by_id(client_id, lock=lock)
        if client is None:
            raise NotFoundError("Cliente", client_id)
        return client

    @staticmethod
    def _require_manager(actor: User, operation: str) -> None:
        if actor.role not in (ROLE_COORDINATOR, ROLE_STAFF):
            raise PermissionDeniedError(
                "Apenas coordenadores e funcionários podem realizar esta ação",
                {"operation": operation, "role": actor.role},
            )
