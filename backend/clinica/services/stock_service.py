"""
Stock ledger service.

The ledger is the only writer of ``StockItem.quantity``; every quantity
change appends exactly one immutable ``StockMovement`` in the same
transaction. Currency is handled as ``Decimal`` end to end.
"""

import datetime as dt
import logging
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Callable, List, Optional

from clinica.core.config import APP_TZ
from clinica.core.exceptions import (
    InsufficientStockError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from clinica.core.logging_config import get_logger, log_operation_rejected
from clinica.core.validation import parse_positive_int, require_text
from clinica.domain.entities import (
    MOVEMENT_ENTRADA,
    MOVEMENT_EXCLUSAO,
    MOVEMENT_SAIDA,
    STOCK_LOW,
    STOCK_OUT,
    StockItem,
    StockMovement,
    User,
)
from clinica.domain.interfaces import IUnitOfWork
from clinica.schemas.dtos import StockItemCreateRequest, StockItemUpdateRequest
from clinica.utils.money import money_sum

logger = get_logger(__name__)

INITIAL_STOCK_REASON = "Adição inicial de estoque"
ITEM_DELETED_REASON = "Item excluído do estoque"
DEFAULT_MOVEMENT_LIMIT = 20


@dataclass
class StockSummary:
    total_units: int
    low_stock_count: int
    out_of_stock_count: int
    total_value: Decimal


@dataclass
class MovementSummary:
    entry_count: int
    entry_value: Decimal
    exit_count: int
    exit_value: Decimal

    @property
    def net_value(self) -> Decimal:
        return self.entry_value - self.exit_value


def month_bounds(year: int, month: int):
    """Return the [start, end) datetimes of a calendar month."""
    if not 1 <= month <= 12:
        raise ValidationError(f"Mês inválido: {month}", {"field": "month"})
    start = dt.datetime(year, month, 1)
    end = dt.datetime(year + 1, 1, 1) if month == 12 else dt.datetime(year, month + 1, 1)
    return start, end


class StockLedgerService:
    """Receive, consume, adjust and remove stock with an audit trail.

    ``receive``/``consume`` carry no role check: they are the primitives used
    both by the management endpoints and by schedule confirmation. The
    management operations (create, update, adjust, remove) are
    coordinator-only.
    """

    def __init__(self, uow: IUnitOfWork, clock: Optional[Callable[[], dt.datetime]] = None):
        self.uow = uow
        self.clock = clock or (lambda: dt.datetime.now(APP_TZ))

    # ------------------- ledger primitives -------------------

    def receive(
        self,
        item_id: int,
        quantity: int,
        reason: str,
        user: User,
        schedule_id: Optional[int] = None,
    ) -> StockMovement:
        """Increase the quantity of an item and record an ``entrada`` movement.

        Raises:
            ValidationError: quantity is not a positive integer or the item
                does not resolve.
        """
        quantity = parse_positive_int(quantity, "quantity")
        with self.uow.transaction():
            item = self.uow.stock.get_item(item_id, lock=True)
            if item is None:
                raise ValidationError(
                    f"Item {item_id} não encontrado no estoque",
                    {"field": "item_id", "id": item_id},
                )
            item.quantity += quantity
            self.uow.stock.update_item(item)
            movement = self._record(item, MOVEMENT_ENTRADA, quantity, reason, user, schedule_id)
        self._log_ledger(
            "Stock received",
            extra={
                "context": {
                    "item_id": item.id,
                    "quantity": quantity,
                    "new_quantity": item.quantity,
                    "user": user.name,
                }
            },
        )
        return movement

    def consume(
        self,
        item_id: int,
        quantity: int,
        reason: str,
        user: User,
        schedule_id: Optional[int] = None,
    ) -> StockMovement:
        """Decrease the quantity of an item and record a ``saida`` movement.

        Raises:
            InsufficientStockError: quantity exceeds what is available; the
                item is left untouched.
        """
        quantity = parse_positive_int(quantity, "quantity")
        with self.uow.transaction():
            item = self._require_item(item_id, lock=True)
            if quantity > item.quantity:
                error = InsufficientStockError(item.id, item.name, item.quantity, quantity)
                log_operation_rejected(logger, "consume", error)
                raise error
            item.quantity -= quantity
            self.uow.stock.update_item(item)
            movement = self._record(item, MOVEMENT_SAIDA, quantity, reason, user, schedule_id)
        self._log_ledger(
            "Stock consumed",
            extra={
                "context": {
                    "item_id": item.id,
                    "quantity": quantity,
                    "new_quantity": item.quantity,
                    "schedule_id": schedule_id,
                    "user": user.name,
                }
            },
        )
        return movement

    def _log_ledger(self, message: str, extra: dict) -> None:
        # Inside an outer transaction the change is not committed yet
        level = logging.DEBUG if self.uow.in_transaction else logging.INFO
        logger.log(level, message, extra=extra)

    def check_availability(self, quantities_by_item: dict) -> List[StockItem]:
        """Lock and validate every requested item before any deduction.

        Returns the locked items in request order.

        Raises:
            NotFoundError: an item id does not resolve.
            InsufficientStockError: the first line that cannot be satisfied.
        """
        items = []
        for item_id, quantity in quantities_by_item.items():
            item = self._require_item(item_id, lock=True)
            if quantity > item.quantity:
                raise InsufficientStockError(item.id, item.name, item.quantity, quantity)
            items.append(item)
        return items

    # ------------------- management -------------------

    def adjust(self, actor: User, item_id: int, delta: int, reason: str) -> StockMovement:
        """Manual add (positive delta) or removal (negative delta)."""
        self._require_coordinator(actor, "adjust")
        if isinstance(delta, bool) or not isinstance(delta, int) or delta == 0:
            raise ValidationError(
                "Informe uma quantidade diferente de zero", {"field": "delta"}
            )
        reason = require_text(reason, "reason", "Motivo")
        if delta > 0:
            return self.receive(item_id, delta, reason, actor)
        return self.consume(item_id, -delta, reason, actor)

    def create_item(self, actor: User, request: StockItemCreateRequest) -> StockItem:
        """Create an item; an initial quantity is recorded as an ``entrada``."""
        self._require_coordinator(actor, "create_item")
        request.validate()
        with self.uow.transaction():
            item = self.uow.stock.create_item(
                StockItem(
                    name=request.name,
                    category=request.category,
                    quantity=request.quantity,
                    min_stock=request.min_stock,
                    unit_value=request.unit_value,
                    description=request.description,
                    unit=request.unit,
                    created_by=actor.name,
                )
            )
            if item.quantity > 0:
                self._record(item, MOVEMENT_ENTRADA, item.quantity, INITIAL_STOCK_REASON, actor)
        logger.info(
            "Stock item created",
            extra={"context": {"item_id": item.id, "name": item.name, "user": actor.name}},
        )
        return item

    def update_item(
        self,
        actor: User,
        item_id: int,
        request: StockItemUpdateRequest,
        expected_version: Optional[int] = None,
    ) -> StockItem:
        """Edit descriptive fields. Quantity is never touched here."""
        self._require_coordinator(actor, "update_item")
        request.validate()
        with self.uow.transaction():
            item = self._require_item(item_id)
            if expected_version is not None:
                item.version = expected_version
            item = replace(item, **request.changes())
            self.uow.stock.update_item(item)
        logger.info(
            "Stock item updated",
            extra={"context": {"item_id": item.id, "fields": sorted(request.changes())}},
        )
        return item

    def remove_item(self, actor: User, item_id: int) -> StockMovement:
        """Delete an item, leaving a final ``exclusao`` movement behind."""
        self._require_coordinator(actor, "remove_item")
        with self.uow.transaction():
            item = self._require_item(item_id, lock=True)
            movement = self._record(
                item, MOVEMENT_EXCLUSAO, item.quantity, ITEM_DELETED_REASON, actor
            )
            self.uow.stock.delete_item(item.id)
        logger.info(
            "Stock item removed",
            extra={
                "context": {
                    "item_id": item.id,
                    "name": item.name,
                    "quantity_at_deletion": item.quantity,
                    "user": actor.name,
                }
            },
        )
        return movement

    # ------------------- queries -------------------

    def get_item(self, item_id: int) -> StockItem:
        return self._require_item(item_id)

    def list_items(self, category: Optional[str] = None) -> List[StockItem]:
        return self.uow.stock.list_items(category)

    @staticmethod
    def stock_status(item: StockItem) -> str:
        return item.stock_status

    def summary(self) -> StockSummary:
        items = self.uow.stock.list_items()
        return StockSummary(
            total_units=sum(i.quantity for i in items),
            low_stock_count=sum(1 for i in items if i.stock_status == STOCK_LOW),
            out_of_stock_count=sum(1 for i in items if i.stock_status == STOCK_OUT),
            total_value=money_sum(i.total_value for i in items),
        )

    def list_movements(
        self,
        year: Optional[int] = None,
        month: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[StockMovement]:
        """Newest first. Without a month filter only the latest 20 are returned
        unless ``limit`` says otherwise."""
        if (year is None) != (month is None):
            raise ValidationError("Informe mês e ano juntos", {"field": "month"})
        if year is not None:
            start, end = month_bounds(year, month)
            movements = [
                m for m in self.uow.stock.list_movements()
                if start <= local_naive(m.date) < end
            ]
        else:
            movements = self.uow.stock.list_movements()
            if limit is None:
                limit = DEFAULT_MOVEMENT_LIMIT
        return movements[:limit] if limit is not None else movements

    def movement_summary(
        self, year: Optional[int] = None, month: Optional[int] = None
    ) -> MovementSummary:
        if year is None and month is None:
            movements = self.uow.stock.list_movements()
        else:
            movements = self.list_movements(year, month)
        return summarize_movements(movements)

    # ------------------- helpers -------------------

    def _require_item(self, item_id: int, lock: bool = False) -> StockItem:
        item = self.uow.stock.get_item(item_id, lock=lock)
        if item is None:
            raise NotFoundError("Item", item_id, f"Item {item_id} não encontrado no estoque")
        return item

    def _record(
        self,
        item: StockItem,
        movement_type: str,
        quantity: int,
        reason: str,
        user: User,
        schedule_id: Optional[int] = None,
    ) -> StockMovement:
        return self.uow.stock.append_movement(
            StockMovement(
                item_id=item.id,
                item_name=item.name,
                type=movement_type,
                quantity=quantity,
                reason=reason,
                date=self.clock(),
                user=user.name,
                item_unit_value=item.unit_value,
                schedule_id=schedule_id,
            )
        )

    def _require_coordinator(self, actor: User, operation: str) -> None:
        if not actor.is_coordinator:
            error = PermissionDeniedError(
                "Apenas coordenadores podem gerenciar o estoque",
                {"operation": operation, "role": actor.role},
            )
            log_operation_rejected(logger, operation, error)
            raise error


def summarize_movements(movements: List[StockMovement]) -> MovementSummary:
    entries = [m for m in movements if m.type == MOVEMENT_ENTRADA]
    exits = [m for m in movements if m.type == MOVEMENT_SAIDA]
    return MovementSummary(
        entry_count=len(entries),
        entry_value=money_sum(m.total_value for m in entries),
        exit_count=len(exits),
        exit_value=money_sum(m.total_value for m in exits),
    )


def local_naive(value: dt.datetime) -> dt.datetime:
    """Wall-clock time in the app timezone, without tzinfo (SQLite drops it)."""
    if value.tzinfo is not None:
        return value.astimezone(APP_TZ).replace(tzinfo=None)
    return value
