"""
Common validation helpers shared by request DTOs and services.

All helpers raise ``clinica.core.exceptions.ValidationError`` with a
human-readable Portuguese message and the offending field in ``details``.
"""

from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Union

from clinica.core.exceptions import ValidationError

# Column limits: Integer and Numeric(6, 2)
MAX_INT = 2_147_483_647
MAX_DURATION_HOURS = Decimal("9999.99")


def require_text(value: Any, field: str, label: Optional[str] = None) -> str:
    """Return the stripped string or raise if it is missing/blank."""
    text = "" if value is None else str(value).strip()
    if not text:
        raise ValidationError(
            f"{label or field} é obrigatório", {"field": field}
        )
    return text


def optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_date(value: Union[str, date, None], field: str = "date") -> date:
    """Parse an ISO date (``YYYY-MM-DD``); datetimes are truncated."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = require_text(value, field, "Data")
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        raise ValidationError(f"Data inválida: {text}", {"field": field})


def parse_time(value: Union[str, time, None], field: str = "time") -> time:
    """Parse ``HH:MM`` or ``HH:MM:SS``."""
    if isinstance(value, time):
        return value
    text = require_text(value, field, "Horário")
    try:
        return time.fromisoformat(text)
    except ValueError:
        raise ValidationError(f"Horário inválido: {text}", {"field": field})


def parse_int(value: Any, field: str, minimum: Optional[int] = None) -> int:
    """Parse an integral value, rejecting floats with a fractional part."""
    if isinstance(value, bool) or value is None or value == "":
        raise ValidationError(f"{field} deve ser um número inteiro", {"field": field})
    try:
        if isinstance(value, float):
            if not value.is_integer():
                raise ValueError(value)
            number = int(value)
        else:
            number = int(str(value).strip())
    except ValueError:
        raise ValidationError(f"{field} deve ser um número inteiro", {"field": field})
    if minimum is not None and number < minimum:
        raise ValidationError(
            f"{field} deve ser maior ou igual a {minimum}", {"field": field}
        )
    if abs(number) > MAX_INT:
        raise ValidationError(f"{field} está fora do limite", {"field": field})
    return number


def parse_positive_int(value: Any, field: str) -> int:
    return parse_int(value, field, minimum=1)


def parse_duration_hours(value: Any, field: str = "duration_hours"):
    """Accept decimal hours (``1.5``) or an ``HH:MM`` string; returns Decimal.

    Minutes in ``HH:MM`` must be 0-59 and the total must fit ``Numeric(6, 2)``.
    """
    if value is None or value == "":
        return Decimal("0.00")
    invalid = ValidationError(f"Duração inválida: {value}", {"field": field})
    if isinstance(value, bool):
        raise invalid
    if isinstance(value, str) and ":" in value:
        try:
            hours, minutes = (int(part) for part in value.split(":", 1))
        except ValueError:
            raise invalid
        if hours < 0 or not 0 <= minutes <= 59:
            raise invalid
        total = Decimal(hours) + Decimal(minutes) / Decimal(60)
    else:
        try:
            total = Decimal(str(value).strip())
        except InvalidOperation:
            raise invalid
    if not total.is_finite():
        raise invalid
    if total < 0:
        raise ValidationError("Duração não pode ser negativa", {"field": field})
    if total > MAX_DURATION_HOURS:
        raise ValidationError(
            f"Duração máxima é {MAX_DURATION_HOURS} horas", {"field": field}
        )
    return total.quantize(Decimal("0.01"))
