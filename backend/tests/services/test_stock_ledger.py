"""
Service tests for the stock ledger: every quantity change goes through
receive/consume/adjust/remove_item and leaves exactly one movement behind.
"""

import logging
from decimal import Decimal

import pytest

from clinica.core.exceptions import (
    InsufficientStockError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from clinica.domain.entities import (
    MOVEMENT_ENTRADA,
    MOVEMENT_EXCLUSAO,
    MOVEMENT_SAIDA,
    StockItem,
)
from clinica.schemas.dtos import StockItemCreateRequest, StockItemUpdateRequest
from clinica.services.stock_service import INITIAL_STOCK_REASON, ITEM_DELETED_REASON


def _ledger_balance(movements):
    signs = {MOVEMENT_ENTRADA: 1, MOVEMENT_SAIDA: -1, MOVEMENT_EXCLUSAO: -1}
    return sum(signs[m.type] * m.quantity for m in movements)


@pytest.mark.integration
@pytest.mark.services
@pytest.mark.stock
class TestLedgerPrimitives:
    def test_consume_decrements_and_records_saida(self, uow, stock_service, coordinator):
        """Item with 10 units at 2.00; consuming 4 leaves 6 and one saida."""
        with uow.transaction():
            item = uow.stock.create_item(
                StockItem(name="Agulha", category="X", quantity=10, unit_value="2.00")
            )

        movement = stock_service.consume(item.id, 4, "test", coordinator)

        assert stock_service.get_item(item.id).quantity == 6
        movements = uow.stock.list_movements(item_id=item.id)
        assert len(movements) == 1
        assert movement.type == MOVEMENT_SAIDA
        assert movement.quantity == 4
        assert movement.item_unit_value == Decimal("2.00")
        assert movement.user == coordinator.name

    def test_consume_inside_rolled_back_transaction_is_not_logged_as_done(
        self, uow, stock_service, coordinator, gloves, caplog
    ):
        caplog.set_level(logging.DEBUG, logger="clinica.services.stock_service")

        with pytest.raises(RuntimeError):
            with uow.transaction():
                stock_service.consume(gloves.id, 3, "test", coordinator)
                raise RuntimeError("outer step failed")

        consumed = [r for r in caplog.records if r.getMessage() == "Stock consumed"]
        assert [r.levelno for r in consumed] == [logging.DEBUG]
        assert stock_service.get_item(gloves.id).quantity == 10

        caplog.clear()
        stock_service.consume(gloves.id, 3, "test", coordinator)
        consumed = [r for r in caplog.records if r.getMessage() == "Stock consumed"]
        assert [r.levelno for r in consumed] == [logging.INFO]

    def test_receive_increments_and_records_entrada(self, uow, stock_service, staff, gloves):
        movement = stock_service.receive(gloves.id, 5, "Compra", staff)

        assert stock_service.get_item(gloves.id).quantity == 15
        assert movement.type == MOVEMENT_ENTRADA
        assert movement.item_name == "Luvas"

    @pytest.mark.parametrize("quantity", [0, -3, 1.5, "abc"])
    def test_receive_rejects_non_positive_or_fractional(self, stock_service, staff, gloves, quantity):
        with pytest.raises(ValidationError):
            stock_service.receive(gloves.id, quantity, "Compra", staff)
        assert stock_service.get_item(gloves.id).quantity == 10

    def test_receive_unknown_item_is_validation_error(self, stock_service, staff):
        with pytest.raises(ValidationError):
            stock_service.receive(999, 1, "Compra", staff)

    def test_consume_more_than_available_leaves_item_untouched(
        self, uow, stock_service, staff, gauze
    ):
        with pytest.raises(InsufficientStockError) as exc:
            stock_service.consume(gauze.id, 3, "Uso", staff)

        assert exc.value.item_name == "Gaze"
        assert exc.value.available == 2
        assert exc.value.requested == 3
        assert stock_service.get_item(gauze.id).quantity == 2
        assert uow.stock.list_movements(item_id=gauze.id) == []

    def test_consume_unknown_item(self, stock_service, staff):
        with pytest.raises(NotFoundError):
            stock_service.consume(999, 1, "Uso", staff)

    def test_quantity_matches_ledger_after_mixed_sequence(
        self, uow, stock_service, coordinator
    ):
        item = stock_service.create_item(
            coordinator,
            StockItemCreateRequest(name="Algodão", category="X", quantity=5),
        )
        stock_service.receive(item.id, 7, "Compra", coordinator)
        stock_service.consume(item.id, 3, "Uso", coordinator)
        with pytest.raises(InsufficientStockError):
            stock_service.consume(item.id, 50, "Uso", coordinator)
        stock_service.adjust(coordinator, item.id, -2, "Perda")
        stock_service.adjust(coordinator, item.id, 4, "Doação")

        movements = uow.stock.list_movements(item_id=item.id)
        quantity = stock_service.get_item(item.id).quantity
        assert quantity == 11
        assert _ledger_balance(movements) == quantity

        stock_service.remove_item(coordinator, item.id)
        assert _ledger_balance(uow.stock.list_movements(item_id=item.id)) == 0


@pytest.mark.integration
@pytest.mark.services
@pytest.mark.stock
class TestItemManagement:
    def test_create_item_records_initial_entrada(self, uow, stock_service, coordinator):
        item = stock_service.create_item(
            coordinator,
            StockItemCreateRequest(
                name="Máscara", category="EPI", quantity=8, unit_value=Decimal("0.75")
            ),
        )

        movements = uow.stock.list_movements(item_id=item.id)
        assert len(movements) == 1
        assert movements[0].reason == INITIAL_STOCK_REASON
        assert movements[0].quantity == 8

    def test_create_item_without_quantity_has_no_movement(self, uow, stock_service, coordinator):
        item = stock_service.create_item(
            coordinator, StockItemCreateRequest(name="Máscara", category="EPI")
        )
        assert uow.stock.list_movements(item_id=item.id) == []

    def test_management_is_coordinator_only(self, stock_service, staff, intern, gloves):
        with pytest.raises(PermissionDeniedError):
            stock_service.create_item(staff, StockItemCreateRequest(name="A", category="B"))
        with pytest.raises(PermissionDeniedError):
            stock_service.adjust(intern, gloves.id, 1, "x")
        with pytest.raises(PermissionDeniedError):
            stock_service.remove_item(staff, gloves.id)

    def test_adjust_requires_non_zero_delta_and_reason(self, stock_service, coordinator, gloves):
        with pytest.raises(ValidationError):
            stock_service.adjust(coordinator, gloves.id, 0, "x")
        with pytest.raises(ValidationError):
            stock_service.adjust(coordinator, gloves.id, 1, "  ")

    def test_adjust_removal_beyond_available(self, stock_service, coordinator, gauze):
        with pytest.raises(InsufficientStockError):
            stock_service.adjust(coordinator, gauze.id, -5, "Perda")
        assert stock_service.get_item(gauze.id).quantity == 2

    def test_update_item_edits_descriptive_fields_only(self, stock_service, coordinator, gloves):
        updated = stock_service.update_item(
            coordinator,
            gloves.id,
            StockItemUpdateRequest(name="Luvas M", unit_value=Decimal("3.00")),
        )
        assert updated.name == "Luvas M"
        assert updated.quantity == 10
        assert stock_service.get_item(gloves.id).unit_value == Decimal("3.00")

    def test_remove_item_keeps_previous_movement_snapshots(
        self, uow, stock_service, coordinator, gloves
    ):
        stock_service.consume(gloves.id, 4, "Uso", coordinator)

        final = stock_service.remove_item(coordinator, gloves.id)

        assert final.type == MOVEMENT_EXCLUSAO
        assert final.quantity == 6
        assert final.reason == ITEM_DELETED_REASON
        with pytest.raises(NotFoundError):
            stock_service.get_item(gloves.id)
        movements = uow.stock.list_movements(item_id=gloves.id)
        assert [m.type for m in movements] == [MOVEMENT_EXCLUSAO, MOVEMENT_SAIDA]
        assert all(m.item_name == "Luvas" for m in movements)
        assert movements[1].item_unit_value == Decimal("2.50")


@pytest.mark.integration
@pytest.mark.services
@pytest.mark.stock
class TestStockQueries:
    def test_summary(self, stock_service, coordinator, gloves, gauze):
        stock_service.consume(gauze.id, 2, "Uso", coordinator)

        summary = stock_service.summary()

        assert summary.total_units == 10
        assert summary.out_of_stock_count == 1
        assert summary.low_stock_count == 0
        assert summary.total_value == Decimal("25.00")

    def test_list_items_by_category(self, stock_service, gloves, gauze):
        assert [i.name for i in stock_service.list_items("Curativos")] == ["Gaze"]
        assert len(stock_service.list_items()) == 2

    def test_movements_by_month_and_summary(self, stock_service, coordinator, gloves):
        stock_service.receive(gloves.id, 4, "Compra", coordinator)
        stock_service.consume(gloves.id, 2, "Uso", coordinator)

        march = stock_service.list_movements(2024, 3)
        assert len(march) == 2
        assert stock_service.list_movements(2024, 4) == []

        summary = stock_service.movement_summary(2024, 3)
        assert summary.entry_count == 1
        assert summary.entry_value == Decimal("10.00")
        assert summary.exit_value == Decimal("5.00")
        assert summary.net_value == Decimal("5.00")

    def test_unfiltered_movements_are_limited(self, stock_service, coordinator, gloves):
        for _ in range(25):
            stock_service.receive(gloves.id, 1, "Compra", coordinator)
        assert len(stock_service.list_movements()) == 20
        assert len(stock_service.list_movements(limit=5)) == 5

    def test_month_and_year_must_come_together(self, stock_service):
        with pytest.raises(ValidationError):
            stock_service.list_movements(year=2024)
        with pytest.raises(ValidationError):
            stock_service.list_movements(2024, 13)
