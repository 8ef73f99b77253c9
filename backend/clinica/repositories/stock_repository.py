import datetime as dt
from typing import List, Optional

from clinica.core.exceptions import ConflictError, NotFoundError
from clinica.db.base import StockItem as DbStockItem
from clinica.db.base import StockMovement as DbStockMovement
from clinica.domain.entities import StockItem, StockMovement
from clinica.domain.interfaces import IStockRepository


class StockRepository(IStockRepository):
    """Stock items plus the append-only movement log.

    Movements have no update or delete path here.
    """

    def __init__(self, db_session) -> None:
        self.db = db_session

    def _get_db(self, item_id: int, lock: bool = False) -> Optional[DbStockItem]:
        query = self.db.query(DbStockItem).filter_by(id=item_id)
        if lock:
            query = query.with_for_update()
        return query.first()

    def get_item(self, item_id: int, lock: bool = False) -> Optional[StockItem]:
        db_item = self._get_db(item_id, lock=lock)
        return self._to_domain(db_item) if db_item else None

    def list_items(self, category: Optional[str] = None) -> List[StockItem]:
        query = self.db.query(DbStockItem)
        if category:
            query = query.filter(DbStockItem.category == category)
        return [self._to_domain(i) for i in query.order_by(DbStockItem.name).all()]

    def create_item(self, item: StockItem) -> StockItem:
        db_item = DbStockItem(
            name=item.name,
            category=item.category,
            quantity=item.quantity,
            min_stock=item.min_stock,
            unit_value=item.unit_value,
            unit=item.unit,
            description=item.description,
            created_by=item.created_by,
        )
        self.db.add(db_item)
        self.db.flush()
        return self._to_domain(db_item)

    def update_item(self, item: StockItem) -> StockItem:
        if not item.id:
            raise ValueError("Item ID is required for update")
        db_item = self._get_db(item.id)
        if not db_item:
            raise NotFoundError("Item", item.id)
        if db_item.version != item.version:
            raise ConflictError(
                "O item foi alterado por outro usuário. Recarregue e tente novamente.",
                {"entity": "Item", "id": item.id},
            )
        db_item.name = item.name
        db_item.category = item.category
        db_item.quantity = item.quantity
        db_item.min_stock = item.min_stock
        db_item.unit_value = item.unit_value
        db_item.unit = item.unit
        db_item.description = item.description
        self.db.flush()
        item.version = db_item.version
        return item

    def delete_item(self, item_id: int) -> bool:
        db_item = self._get_db(item_id)
        if not db_item:
            return False
        self.db.delete(db_item)
        self.db.flush()
        return True

    def append_movement(self, movement: StockMovement) -> StockMovement:
        db_movement = DbStockMovement(
            item_id=movement.item_id,
            item_name=movement.item_name,
            type=movement.type,
            quantity=movement.quantity,
            reason=movement.reason,
            date=movement.date,
            user_name=movement.user,
            item_unit_value=movement.item_unit_value,
            schedule_id=movement.schedule_id,
        )
        self.db.add(db_movement)
        self.db.flush()
        return self._movement_to_domain(db_movement)

    def list_movements(
        self,
        start: Optional[dt.datetime] = None,
        end: Optional[dt.datetime] = None,
        item_id: Optional[int] = None,
    ) -> List[StockMovement]:
        query = self.db.query(DbStockMovement)
        if start is not None:
            query = query.filter(DbStockMovement.date >= start)
        if end is not None:
            query = query.filter(DbStockMovement.date <= end)
        if item_id is not None:
            query = query.filter(DbStockMovement.item_id == item_id)
        rows = query.order_by(DbStockMovement.date.desc(), DbStockMovement.id.desc()).all()
        return [self._movement_to_domain(m) for m in rows]

    def _to_domain(self, db_item: DbStockItem) -> StockItem:
        return StockItem(
            id=db_item.id,
            name=db_item.name,
            category=db_item.category,
            quantity=db_item.quantity,
            min_stock=db_item.min_stock,
            unit_value=db_item.unit_value,
            description=db_item.description,
            unit=db_item.unit,
            created_at=db_item.created_at,
            created_by=db_item.created_by,
            version=db_item.version,
        )

    def _movement_to_domain(self, db_movement: DbStockMovement) -> StockMovement:
        return StockMovement(
            id=db_movement.id,
            item_id=db_movement.item_id,
            item_name=db_movement.item_name,
            type=db_movement.type,
            quantity=db_movement.quantity,
            reason=db_movement.reason,
            date=db_movement.date,
            user=db_movement.user_name,
            item_unit_value=db_movement.item_unit_value,
            schedule_id=db_movement.schedule_id,
        )
