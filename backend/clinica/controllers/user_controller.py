from clinica.core.api_utils import api_response, json_payload
from clinica.core.auth_decorators import get_actor, get_uow, require_roles
from clinica.core.limiter_config import limiter
from clinica.domain.entities import ROLE_COORDINATOR
from clinica.schemas.dtos import UserResponse
from clinica.services.user_service import PROFILE_FIELDS, UserService
from flask import Blueprint, request

user_bp = Blueprint("users", __name__, url_prefix="/users")


@user_bp.route("", methods=["GET"])
@require_roles(ROLE_COORDINATOR)
def list_users():
    users = UserService(get_uow()).list_by_role(request.args.get("role") or None)
    return api_response(True, "Usuários", [UserResponse.from_domain(u).to_dict() for u in users])


@user_bp.route("", methods=["POST"])
@limiter.limit("10 per minute")
@require_roles(ROLE_COORDINATOR)
def create_user():
    """Expected JSON: {"username", "password", "name", "role", ...profile fields}"""
    data = json_payload()
    user = UserService(get_uow()).create_user(
        get_actor(),
        data.get("username"),
        data.get("password"),
        data.get("name"),
        data.get("role"),
        **{k: data[k] for k in PROFILE_FIELDS if k in data},
    )
    return api_response(True, "Usuário criado", UserResponse.from_domain(user).to_dict(), 201)


@user_bp.route("/<int:user_id>", methods=["DELETE"])
@limiter.limit("10 per minute")
@require_roles(ROLE_COORDINATOR)
def delete_user(user_id: int):
    UserService(get_uow()).delete_user(get_actor(), user_id)
    return api_response(True, "Usuário excluído")


@user_bp.route("/<int:user_id>", methods=["PUT"])
@limiter.limit("10 per minute")
@require_roles(ROLE_COORDINATOR)
def update_user(user_id: int):
    """Expected JSON: any of {"name", ...profile fields}; role is fixed."""
    data = json_payload()
    user = UserService(get_uow()).update_user(get_actor(), user_id, data)
    return api_response(True, "Usuário atualizado", UserResponse.from_domain(user).to_dict())
