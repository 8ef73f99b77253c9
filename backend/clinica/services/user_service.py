from typing import Any, Dict, List, Optional

from clinica.core.exceptions import (
    ClinicError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from clinica.core.logging_config import get_logger, log_operation_rejected
from clinica.core.security import hash_password, verify_password
from clinica.core.validation import optional_text, require_text
from clinica.domain.entities import ROLES, USER_PROFILE_FIELDS, User
from clinica.domain.interfaces import IUnitOfWork
from clinica.services.assignment_service import AssignmentService

logger = get_logger(__name__)

PROFILE_FIELDS = USER_PROFILE_FIELDS
MIN_PASSWORD_LENGTH = 6


class UserService:
    """Application service for user-related use-cases.

    Works with domain entities; password hashing goes through passlib
    (``clinica.core.security``).
    """

    def __init__(self, uow: IUnitOfWork, assignments: Optional[AssignmentService] = None):
        self.uow = uow
        self.assignments = assignments or AssignmentService(uow)

    def create_user(
        self,
        actor: User,
        username: str,
        password: str,
        name: str,
        role: str,
        **profile,
    ) -> User:
        """Create a coordinator, staff member or intern.

        Business Rules:
        - only coordinators create users
        - usernames are unique
        - passwords are stored hashed
        """
        try:
            self._require_coordinator(actor, "create_user")
            username = require_text(username, "username", "Usuário").lower()
            name = require_text(name, "name", "Nome")
            if role not in ROLES:
                raise ValidationError(f"Papel inválido: {role}", {"field": "role"})
            if not password or len(password) < MIN_PASSWORD_LENGTH:
                raise ValidationError(
                    f"A senha deve ter pelo menos {MIN_PASSWORD_LENGTH} caracteres",
                    {"field": "password"},
                )
            unknown = set(profile) - set(PROFILE_FIELDS)
            if unknown:
                raise ValidationError(
                    f"Campos desconhecidos: {', '.join(sorted(unknown))}",
                    {"fields": sorted(unknown)},
                )
            with self.uow.transaction():
                if self.uow.users.get_by_username(username) is not None:
                    raise ValidationError(
                        f"Usuário {username} já existe", {"field": "username"}
                    )
                user = self.uow.users.create(
                    User(
                        username=username,
                        name=name,
                        role=role,
                        password_hash=hash_password(password),
                        **{k: optional_text(v) for k, v in profile.items()},
                    )
                )
        except ClinicError as e:
            log_operation_rejected(logger, "create_user", e)
            raise
        logger.info(
            "User created",
            extra={"context": {"user_id": user.id, "role": user.role, "by": actor.name}},
        )
        return user

    def authenticate(self, username: str, password: str) -> Optional[User]:
        """Return the user when the credentials match, else None."""
        if not username or not password:
            return None
        user = self.uow.users.get_by_username(username.strip().lower())
        if user is None or not verify_password(password, user.password_hash or ""):
            logger.warning(
                "Failed login attempt", extra={"context": {"username": username}}
            )
            return None
        return user

    def get(self, user_id: int) -> User:
        user = self.uow.users.get_by_id(user_id)
        if user is None:
            raise NotFoundError("Usuário", user_id)
        return user

    def list_by_role(self, role: Optional[str] = None) -> List[User]:
        return self.uow.users.list_all(roles=[role] if role else None)

    def update_user(self, actor: User, user_id: int, changes: Dict[str, Any]) -> User:
        """Change the name and profile fields of a user.

        Username and role are fixed once the account exists. Names already
        copied onto clients and schedules are left as they were.
        """
        try:
            self._require_coordinator(actor, "update_user")
            fixed = {"username", "role", "password"} & set(changes)
            if fixed:
                raise ValidationError(
                    f"Campos não podem ser alterados: {', '.join(sorted(fixed))}",
                    {"fields": sorted(fixed)},
                )
            unknown = set(changes) - {"name", *PROFILE_FIELDS}
            if unknown:
                raise ValidationError(
                    f"Campos desconhecidos: {', '.join(sorted(unknown))}",
                    {"fields": sorted(unknown)},
                )
            with self.uow.transaction():
                user = self.get(user_id)
                if "name" in changes:
                    user.name = require_text(changes["name"], "name", "Nome")
                for name in PROFILE_FIELDS:
                    if name in changes:
                        setattr(user, name, optional_text(changes[name]))
                user = self.uow.users.update(user)
        except ClinicError as e:
            log_operation_rejected(logger, "update_user", e)
            raise
        logger.info(
            "User updated",
            extra={
                "context": {"user_id": user.id, "fields": sorted(changes), "by": actor.name}
            },
        )
        return user

    def delete_user(self, actor: User, user_id: int) -> None:
        """Delete a user, releasing every schedule and client linked to them."""
        try:
            self._require_coordinator(actor, "delete_user")
            if actor.id == user_id:
                raise ValidationError(
                    "Você não pode excluir o próprio usuário", {"user_id": user_id}
                )
            with self.uow.transaction():
                user = self.get(user_id)
                released = 0
                for schedule in self.uow.schedules.list_by_assignee(user.id):
                    schedule.assigned_to_user_id = None
                    schedule.assigned_to_user_name = None
                    self.uow.schedules.update(schedule)
                    released += 1
                unlinked = 0
                if user.is_intern:
                    for client in self.uow.clients.list_by_assigned_intern(user.id):
                        if self.assignments.unassign_intern(client.id, actor.name):
                            unlinked += 1
                self.uow.users.delete(user.id)
        except ClinicError as e:
            log_operation_rejected(logger, "delete_user", e)
            raise
        logger.info(
            "User deleted",
            extra={
                "context": {
                    "user_id": user_id,
                    "schedules_released": released,
                    "clients_unlinked": unlinked,
                    "by": actor.name,
                }
            },
        )

    @staticmethod
    def _require_coordinator(actor: User, operation: str) -> None:
        if not actor.is_coordinator:
            raise PermissionDeniedError(
                "Apenas coordenadores podem gerenciar usuários",
                {"operation": operation, "role": actor.role},
            )
