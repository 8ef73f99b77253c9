from clinica.core.api_utils import api_response, json_payload
from clinica.core.auth_decorators import get_actor, get_uow
from clinica.core.limiter_config import limiter
from clinica.core.logging_config import get_logger
from clinica.schemas.dtos import UserResponse
from clinica.services.user_service import UserService
from flask import Blueprint
from flask_login import login_required, login_user, logout_user

logger = get_logger(__name__)

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


@auth_bp.route("/login", methods=["POST"])
@limiter.limit("10 per minute")
def login():
    """Start a session with username and password.

    Expected JSON: {"username": str, "password": str}
    """
    data = json_payload()
    uow = get_uow()
    user = UserService(uow).authenticate(data.get("username"), data.get("password"))
    if user is None:
        return api_response(False, "Usuário ou senha inválidos", {"kind": "unauthorized"}, 401)

    db_user = uow.users.get_db_by_id(user.id)
    login_user(db_user)
    logger.info("User logged in", extra={"context": {"user_id": user.id}})
    return api_response(True, "Login realizado", UserResponse.from_domain(user).to_dict())


@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    logout_user()
    return api_response(True, "Logout realizado")


@auth_bp.route("/me", methods=["GET"])
@login_required
def me():
    return api_response(True, "Usuário atual", UserResponse.from_domain(get_actor()).to_dict())
