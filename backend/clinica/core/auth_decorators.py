"""
Authentication helpers for the JSON API.

Human users authenticate with a Flask-Login session (``/auth/login``). Each
request gets one unit of work stored on ``flask.g``; it is closed in the
app's teardown hook.

DECORATOR GUIDE:
- @login_required (Flask-Login): any authenticated user
- @require_roles(...): authenticated user with one of the given roles

Examples:
    @stock_bp.route("/items", methods=["POST"])
    @require_roles(ROLE_COORDINATOR)
    def create_item():
        actor = get_actor()
        ...
"""

from functools import wraps

from flask import g
from flask_login import current_user

from clinica.core.api_utils import api_response
from clinica.core.exceptions import NotFoundError
from clinica.db.unit_of_work import SqlAlchemyUnitOfWork
from clinica.domain.entities import User


def get_uow() -> SqlAlchemyUnitOfWork:
    """Return the request-scoped unit of work, creating it on first use."""
    if "uow" not in g:
        g.uow = SqlAlchemyUnitOfWork()
    return g.uow


def close_uow(exception=None) -> None:
    uow = g.pop("uow", None)
    if uow is not None:
        uow.close()


def get_actor() -> User:
    """Domain user behind the current Flask-Login session."""
    user = get_uow().users.get_by_id(int(current_user.get_id()))
    if user is None:
        raise NotFoundError("Usuário", current_user.get_id())
    return user


def require_roles(*roles):
    """Decorator requiring an authenticated user with one of ``roles``."""

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_user or not current_user.is_authenticated:
                return api_response(
                    False, "Autenticação necessária", {"kind": "unauthorized"}, 401
                )
            if current_user.role not in roles:
                return api_response(
                    False,
                    "Permissão negada para esta operação",
                    {"kind": "permission"},
                    403,
                )
            return f(*args, **kwargs)

        return decorated_function

    return decorator
