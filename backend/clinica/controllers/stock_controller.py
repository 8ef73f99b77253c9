"""
Stock controller: item catalogue, manual adjustments and the movement log.
"""

from dataclasses import asdict

from clinica.core.api_utils import api_response, json_payload
from clinica.core.auth_decorators import get_actor, get_uow
from clinica.core.limiter_config import limiter
from clinica.core.validation import parse_int, parse_positive_int
from clinica.schemas.dtos import (
    StockItemCreateRequest,
    StockItemResponse,
    StockItemUpdateRequest,
    StockMovementResponse,
)
from clinica.services.stock_service import StockLedgerService
from flask import Blueprint, request
from flask_login import login_required

stock_bp = Blueprint("stock", __name__, url_prefix="/stock")


def _service() -> StockLedgerService:
    return StockLedgerService(get_uow())


def _optional_int_arg(name: str):
    value = request.args.get(name)
    return parse_int(value, name, minimum=1) if value else None


@stock_bp.route("/items", methods=["GET"])
@limiter.limit("100 per minute")
@login_required
def list_items():
    items = _service().list_items(request.args.get("category") or None)
    return api_response(
        True, "Itens do estoque", [StockItemResponse.from_domain(i).to_dict() for i in items]
    )


@stock_bp.route("/items", methods=["POST"])
@limiter.limit("30 per minute")
@login_required
def create_item():
    item = _service().create_item(
        get_actor(), StockItemCreateRequest.from_dict(json_payload())
    )
    return api_response(
        True, "Item adicionado ao estoque", StockItemResponse.from_domain(item).to_dict(), 201
    )


@stock_bp.route("/items/<int:item_id>", methods=["GET"])
@login_required
def get_item(item_id: int):
    item = _service().get_item(item_id)
    return api_response(True, "Item", StockItemResponse.from_domain(item).to_dict())


@stock_bp.route("/items/<int:item_id>", methods=["PUT"])
@limiter.limit("30 per minute")
@login_required
def update_item(item_id: int):
    data = json_payload()
    version = data.get("version")
    item = _service().update_item(
        get_actor(),
        item_id,
        StockItemUpdateRequest.from_dict(data),
        expected_version=parse_positive_int(version, "version") if version is not None else None,
    )
    return api_response(True, "Item atualizado", StockItemResponse.from_domain(item).to_dict())


@stock_bp.route("/items/<int:item_id>", methods=["DELETE"])
@limiter.limit("30 per minute")
@login_required
def delete_item(item_id: int):
    movement = _service().remove_item(get_actor(), item_id)
    return api_response(
        True, "Item excluído do estoque", StockMovementResponse.from_domain(movement).to_dict()
    )


@stock_bp.route("/items/<int:item_id>/adjust", methods=["POST"])
@limiter.limit("30 per minute")
@login_required
def adjust_item(item_id: int):
    """Manual entry or exit.

    Expected JSON: {"delta": int (non-zero), "reason": str}
    """
    data = json_payload()
    movement = _service().adjust(
        get_actor(), item_id, parse_int(data.get("delta"), "delta"), data.get("reason")
    )
    return api_response(
        True, "Movimentação registrada", StockMovementResponse.from_domain(movement).to_dict()
    )


@stock_bp.route("/movements", methods=["GET"])
@login_required
def list_movements():
    """Movement log, newest first (``?year=&month=&limit=``)."""
    movements = _service().list_movements(
        year=_optional_int_arg("year"),
        month=_optional_int_arg("month"),
        limit=_optional_int_arg("limit"),
    )
    return api_response(
        True,
        "Movimentações",
        [StockMovementResponse.from_domain(m).to_dict() for m in movements],
    )


@stock_bp.route("/summary", methods=["GET"])
@login_required
def summary():
    service = _service()
    stock = service.summary()
    movements = service.movement_summary(
        _optional_int_arg("year"), _optional_int_arg("month")
    )
    data = asdict(stock)
    data["total_value"] = str(stock.total_value)
    data["movements"] = {
        "entry_count": movements.entry_count,
        "entry_value": str(movements.entry_value),
        "exit_count": movements.exit_count,
        "exit_value": str(movements.exit_value),
        "net_value": str(movements.net_value),
    }
    return api_response(True, "Resumo do estoque", data)
