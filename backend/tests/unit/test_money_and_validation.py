"""
Unit tests for currency helpers, input validation and request DTOs.
"""

import base64
from decimal import Decimal

import pytest

from clinica.core.exceptions import InsufficientStockError, ValidationError
from clinica.core.validation import parse_duration_hours, parse_int, parse_time
from clinica.schemas.dtos import (
    ClientCreateRequest,
    OperationResult,
    ScheduleConfirmRequest,
    ScheduleCreateRequest,
    ScheduleEditRequest,
    StockItemUpdateRequest,
    check_attachment_size,
)
from clinica.utils.client_utils import normalize_cpf, search_key
from clinica.utils.money import format_brl, line_total, money_sum, to_money, to_stored_money


@pytest.mark.unit
class TestMoney:
    def test_float_input_has_no_binary_error(self):
        assert to_money(0.1) + to_money(0.2) == Decimal("0.30")

    def test_comma_separator_and_rounding(self):
        assert to_money("1,005") == Decimal("1.01")
        assert to_money(None) == Decimal("0.00")

    def test_invalid_value(self):
        with pytest.raises(ValueError):
            to_money("abc")

    def test_huge_exponent_is_rejected_as_invalid(self):
        with pytest.raises(ValueError):
            to_money("1e30")
        with pytest.raises(ValueError):
            to_money(float("inf"))

    def test_stored_amount_must_fit_the_column(self):
        assert to_stored_money("99999999.99") == Decimal("99999999.99")
        with pytest.raises(ValueError):
            to_stored_money("100000000")
        with pytest.raises(ValueError):
            to_stored_money(1e20)

    def test_line_total_and_sum(self):
        assert line_total(3, "19.99") == Decimal("59.97")
        assert money_sum(["1.10", 2, Decimal("0.05")]) == Decimal("3.15")

    def test_format_brl(self):
        assert format_brl("1234.5") == "R$ 1.234,50"
        assert format_brl("-3") == "-R$ 3,00"


@pytest.mark.unit
class TestValidationHelpers:
    def test_parse_int_rejects_fractions_and_booleans(self):
        assert parse_int("4", "quantity") == 4
        assert parse_int(4.0, "quantity") == 4
        with pytest.raises(ValidationError):
            parse_int(2.5, "quantity")
        with pytest.raises(ValidationError):
            parse_int(True, "quantity")

    def test_parse_int_minimum(self):
        with pytest.raises(ValidationError) as exc:
            parse_int(0, "quantity", minimum=1)
        assert exc.value.details == {"field": "quantity"}

    def test_parse_time_and_duration(self):
        assert parse_time("14:30").hour == 14
        assert parse_duration_hours("1:30") == Decimal("1.5")
        assert parse_duration_hours(2) == Decimal("2")

    def test_duration_rejects_out_of_range_parts(self):
        for bad in ("1:75", "-1:30", "1:-5", "1e40", "NaN", "abc"):
            with pytest.raises(ValidationError):
                parse_duration_hours(bad)
        assert parse_duration_hours("0:59") == Decimal("0.98")

    def test_parse_int_outside_column_range(self):
        with pytest.raises(ValidationError):
            parse_int(10**12, "quantity")

    def test_search_helpers(self):
        assert search_key("João Conceição") == "joao conceicao"
        assert normalize_cpf("123.456.789-00") == "12345678900"


@pytest.mark.unit
class TestRequestDtos:
    def test_schedule_create_requires_service(self):
        with pytest.raises(ValidationError):
            ScheduleCreateRequest.from_dict(
                {"client_id": 1, "date": "2024-03-20", "time": "09:00", "service_type": " "}
            )

    def test_confirm_sums_duplicate_material_lines(self):
        request = ScheduleConfirmRequest.from_dict(
            {
                "professional_name": "Ana",
                "value": "150.00",
                "materials": [
                    {"item_id": 1, "quantity": 2},
                    {"item_id": 2, "quantity": 1},
                    {"item_id": 1, "quantity": 3},
                ],
            }
        )
        assert request.quantities_by_item() == {1: 5, 2: 1}
        assert request.value == Decimal("150.00")

    def test_confirm_rejects_non_positive_material_quantity(self):
        with pytest.raises(ValidationError):
            ScheduleConfirmRequest.from_dict(
                {"professional_name": "Ana", "materials": [{"item_id": 1, "quantity": 0}]}
            )

    def test_confirm_rejects_huge_value(self):
        with pytest.raises(ValidationError) as exc:
            ScheduleConfirmRequest.from_dict({"professional_name": "Ana", "value": 1e30})
        assert exc.value.details["field"] == "value"

    def test_confirm_rejects_non_object_material_entries(self):
        with pytest.raises(ValidationError) as exc:
            ScheduleConfirmRequest.from_dict({"professional_name": "Ana", "materials": [5]})
        assert exc.value.details["field"] == "materials"
        with pytest.raises(ValidationError):
            ScheduleConfirmRequest.from_dict({"professional_name": "Ana", "materials": "x"})

    def test_edit_observations_are_text(self):
        assert ScheduleEditRequest.from_dict({"observations": 5}).observations == "5"
        assert ScheduleEditRequest.from_dict({"observations": "  "}).observations == ""
        assert ScheduleEditRequest.from_dict({}).observations is None

    def test_stock_update_rejects_quantity(self):
        with pytest.raises(ValidationError) as exc:
            StockItemUpdateRequest.from_dict({"quantity": 50})
        assert exc.value.details["field"] == "quantity"

    def test_minor_requires_guardian(self):
        request = ClientCreateRequest.from_dict(
            {"type": "minor", "name": "Pedro", "birth_date": "2015-01-01"}
        )
        with pytest.raises(ValidationError):
            request.validate()
        request.fields["nome_mae"] = "Joana"
        request.validate()

    def test_client_requires_birth_date_and_valid_email(self):
        with pytest.raises(ValidationError):
            ClientCreateRequest.from_dict({"type": "adult", "name": "Ana"}).validate()
        with pytest.raises(ValidationError):
            ClientCreateRequest.from_dict(
                {"type": "adult", "name": "Ana", "birth_date": "1990-01-01", "email": "ana"}
            ).validate()

    def test_attachment_size_limit(self, monkeypatch):
        monkeypatch.setattr("clinica.schemas.dtos.MAX_ATTACHMENT_BYTES", 10)
        small = base64.b64encode(b"12345").decode()
        check_attachment_size(small, "a.png")
        big = "data:image/png;base64," + base64.b64encode(b"x" * 11).decode()
        with pytest.raises(ValidationError):
            check_attachment_size(big, "b.png")
        with pytest.raises(ValidationError):
            check_attachment_size("not base64!!", "c.png")


@pytest.mark.unit
class TestOperationResult:
    def test_error_carries_kind_and_details(self):
        result = OperationResult.from_error(InsufficientStockError(7, "Gaze", 2, 5))

        assert result.success is False
        assert result.kind == "insufficient_stock"
        assert result.details["available"] == 2
        assert "Gaze" in result.message

    def test_ok(self):
        result = OperationResult.ok("Feito", {"id": 1})

        assert result.to_dict() == {
            "success": True,
            "message": "Feito",
            "kind": None,
            "data": {"id": 1},
            "details": {},
        }
