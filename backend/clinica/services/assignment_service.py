"""
Assignment tracker.

Keeps ``Client.assigned_intern_id``/``assigned_intern_name`` pointing at the
most recent intern the client was scheduled with. Every real change is paired
with exactly one appended ``ChangeEntry``; repeating the current state is a
no-op without an audit entry.
"""

import datetime as dt
from typing import Callable, Optional

from clinica.core.config import APP_TZ
from clinica.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from clinica.core.logging_config import get_logger, log_operation_rejected
from clinica.domain.entities import (
    INTERN_FIELD_LABEL,
    NO_INTERN_LABEL,
    ROLE_COORDINATOR,
    ROLE_STAFF,
    ChangeEntry,
    Client,
    FieldChange,
    User,
)
from clinica.domain.interfaces import IUnitOfWork

logger = get_logger(__name__)


class AssignmentService:
    def __init__(self, uow: IUnitOfWork, clock: Optional[Callable[[], dt.datetime]] = None):
        self.uow = uow
        self.clock = clock or (lambda: dt.datetime.now(APP_TZ))

    def assign(self, actor: User, client_id: int, intern_id: int) -> bool:
        """Link a client to an intern from the client screen.

        Returns True when the assignment changed, False on a no-op.
        """
        self._require_manager(actor, "assign")
        return self.assign_intern(client_id, intern_id, actor.name)

    def unassign(self, actor: User, client_id: int) -> bool:
        self._require_manager(actor, "unassign")
        return self.unassign_intern(client_id, actor.name)

    def assign_intern(self, client_id: int, intern_id: int, changed_by: str) -> bool:
        """Tracker entry point used by the schedule engine (no role check).

        Raises:
            NotFoundError: unknown client.
            ValidationError: ``intern_id`` is not a user with role intern.
        """
        with self.uow.transaction():
            client = self._require_client(client_id)
            intern = self.uow.users.get_by_id(intern_id)
            if intern is None or not intern.is_intern:
                raise ValidationError(
                    "Estagiário inválido", {"field": "intern_id", "id": intern_id}
                )
            if client.assigned_intern_id == intern.id:
                return False
            old_name = client.assigned_intern_name or NO_INTERN_LABEL
            client.assigned_intern_id = intern.id
            client.assigned_intern_name = intern.name
            self._persist_change(client, changed_by, old_name, intern.name)
        logger.info(
            "Intern assigned to client",
            extra={
                "context": {
                    "client_id": client_id,
                    "intern_id": intern.id,
                    "previous": old_name,
                    "changed_by": changed_by,
                }
            },
        )
        return True

    def unassign_intern(self, client_id: int, changed_by: str) -> bool:
        with self.uow.transaction():
            client = self._require_client(client_id)
            if client.assigned_intern_id is None:
                return False
            old_name = client.assigned_intern_name or NO_INTERN_LABEL
            client.assigned_intern_id = None
            client.assigned_intern_name = None
            self._persist_change(client, changed_by, old_name, NO_INTERN_LABEL)
        logger.info(
            "Intern unassigned from client",
            extra={
                "context": {
                    "client_id": client_id,
                    "previous": old_name,
                    "changed_by": changed_by,
                }
            },
        )
        return True

    def _persist_change(
        self, client: Client, changed_by: str, old_value: str, new_value: str
    ) -> None:
        self.uow.clients.update(client)
        self.uow.clients.append_change(
            client.id,
            ChangeEntry(
                client_id=client.id,
                date=self.clock(),
                changed_by=changed_by,
                changes=[FieldChange(INTERN_FIELD_LABEL, old_value, new_value)],
            ),
        )

    def _require_client(self, client_id: int) -> Client:
        client = self.uow.clients.get_by_id(client_id, lock=True)
        if client is None:
            raise NotFoundError("Cliente", client_id)
        return client

    def _require_manager(self, actor: User, operation: str) -> None:
        if actor.role not in (ROLE_COORDINATOR, ROLE_STAFF):
            error = PermissionDeniedError(
                "Apenas coordenadores e funcionários podem vincular estagiários",
                {"operation": operation, "role": actor.role},
            )
            log_operation_rejected(logger, operation, error)
            raise error
