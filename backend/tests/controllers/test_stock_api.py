"""
HTTP tests for the stock catalogue and ledger endpoints.
"""

import pytest


@pytest.mark.controllers
@pytest.mark.stock
class TestStockEndpoints:
    def test_create_adjust_and_list_movements(self, http, login, coordinator):
        login(coordinator)
        created = http.post(
            "/stock/items",
            json={
                "name": "Algodão",
                "category": "Curativos",
                "quantity": 5,
                "min_stock": 2,
                "unit_value": "3.00",
            },
        )
        assert created.status_code == 201
        item = created.get_json()["data"]
        assert item["stock_status"] == "normal"
        assert item["total_value"] == "15.00"

        adjusted = http.post(
            f"/stock/items/{item['id']}/adjust", json={"delta": -4, "reason": "Uso interno"}
        )
        assert adjusted.status_code == 200
        assert adjusted.get_json()["data"]["type"] == "saida"

        current = http.get(f"/stock/items/{item['id']}").get_json()["data"]
        assert current["quantity"] == 1
        assert current["stock_status"] == "low"

        movements = http.get("/stock/movements").get_json()["data"]
        assert [m["type"] for m in movements] == ["saida", "entrada"]

    def test_adjust_beyond_available(self, http, login, coordinator, gauze):
        login(coordinator)

        response = http.post(
            f"/stock/items/{gauze.id}/adjust", json={"delta": -3, "reason": "Perda"}
        )

        assert response.status_code == 409
        assert response.get_json()["data"]["kind"] == "insufficient_stock"

    def test_quantity_is_not_editable(self, http, login, coordinator, gloves):
        login(coordinator)

        response = http.put(f"/stock/items/{gloves.id}", json={"quantity": 99})

        assert response.status_code == 400
        assert http.get(f"/stock/items/{gloves.id}").get_json()["data"]["quantity"] == 10

    def test_update_descriptive_fields(self, http, login, coordinator, gloves):
        login(coordinator)

        response = http.put(
            f"/stock/items/{gloves.id}",
            json={"name": "Luvas M", "unit_value": "3.00", "version": gloves.version},
        )

        assert response.status_code == 200
        data = response.get_json()["data"]
        assert data["name"] == "Luvas M"
        assert data["total_value"] == "30.00"

    def test_delete_records_exclusion(self, http, login, coordinator, gloves):
        login(coordinator)

        response = http.delete(f"/stock/items/{gloves.id}")

        assert response.status_code == 200
        assert response.get_json()["data"]["type"] == "exclusao"
        assert http.get(f"/stock/items/{gloves.id}").status_code == 404

    def test_staff_reads_but_cannot_manage(self, http, login, staff, gloves):
        login(staff)

        assert http.get("/stock/items").status_code == 200
        response = http.post(
            "/stock/items", json={"name": "Máscara", "category": "Descartáveis"}
        )
        assert response.status_code == 403
        assert response.get_json()["data"]["kind"] == "permission"

    def test_summary(self, http, login, coordinator, gloves, gauze):
        login(coordinator)

        data = http.get("/stock/summary").get_json()["data"]

        assert data["total_units"] == 12
        assert data["total_value"] == "27.40"
        assert data["movements"]["entry_count"] == 0
