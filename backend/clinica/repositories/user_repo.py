from typing import List, Optional

from clinica.core.exceptions import NotFoundError
from clinica.db.base import User as DbUser
from clinica.domain.entities import USER_PROFILE_FIELDS
from clinica.domain.entities import User as DomainUser
from clinica.domain.interfaces import IUserRepository


class UserRepository(IUserRepository):
    """Repository for User persistence operations.

    Maps between domain entities and database models and handles data
    access only; role rules live in the services.
    """

    def __init__(self, db_session) -> None:
        self.db = db_session

    def get_db_by_id(self, user_id: int) -> Optional[DbUser]:
        """Get user by ID, returning database model (used by Flask-Login)."""
        return self.db.query(DbUser).filter_by(id=user_id).first()

    def get_by_id(self, user_id: int) -> Optional[DomainUser]:
        """Get user by ID, returning domain entity."""
        db_user = self.get_db_by_id(user_id)
        return self._to_domain(db_user) if db_user else None

    def get_by_username(self, username: str) -> Optional[DomainUser]:
        db_user = self.db.query(DbUser).filter_by(username=username).first()
        return self._to_domain(db_user) if db_user else None

    def list_all(self, roles: Optional[List[str]] = None) -> List[DomainUser]:
        query = self.db.query(DbUser)
        if roles:
            query = query.filter(DbUser.role.in_(roles))
        return [self._to_domain(u) for u in query.order_by(DbUser.name).all()]

    def create(self, user: DomainUser) -> DomainUser:
        """Create a new user from domain entity."""
        db_user = DbUser(
            username=user.username,
            password_hash=user.password_hash,
            name=user.name,
            role=user.role,
            # Handle empty optional fields - use None instead of empty string
            email=user.email or None,
            phone=user.phone or None,
            cpf=user.cpf or None,
            institution=user.institution or None,
            graduation_period=user.graduation_period or None,
            education=user.education or None,
            discipline=user.discipline or None,
        )
        self.db.add(db_user)
        self.db.flush()
        return self._to_domain(db_user)

    def update(self, user: DomainUser) -> DomainUser:
        if not user.id:
            raise ValueError("User ID is required for update")
        db_user = self.get_db_by_id(user.id)
        if not db_user:
            raise NotFoundError("Usuário", user.id)
        db_user.name = user.name
        for field_name in USER_PROFILE_FIELDS:
            setattr(db_user, field_name, getattr(user, field_name) or None)
        self.db.flush()
        return self._to_domain(db_user)

    def delete(self, user_id: int) -> bool:
        """Delete a user by ID."""
        db_user = self.get_db_by_id(user_id)
        if not db_user:
            return False
        self.db.delete(db_user)
        self.db.flush()
        return True

    def _to_domain(self, db_user: DbUser) -> DomainUser:
        """Convert database model to domain entity."""
        return DomainUser(
            id=db_user.id,
            username=db_user.username,
            name=db_user.name,
            role=db_user.role,
            password_hash=db_user.password_hash,
            email=db_user.email,
            phone=db_user.phone,
            cpf=db_user.cpf,
            institution=db_user.institution,
            graduation_period=db_user.graduation_period,
            education=db_user.education,
            discipline=db_user.discipline,
            created_at=db_user.created_at,
        )
