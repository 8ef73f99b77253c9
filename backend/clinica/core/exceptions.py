"""
Custom exceptions for the application.

Every service-layer failure is one of the kinds below. Controllers map the
``kind`` to an HTTP status and callers outside Flask can rely on
``to_dict()`` for a structured payload.
"""

from typing import Any, Dict, Optional


class ClinicError(Exception):
    """Base class for all domain errors raised by the services."""

    kind = "error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        payload = {"kind": self.kind, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(ClinicError):
    """Missing or malformed input. Nothing is persisted."""

    kind = "validation"


class NotFoundError(ClinicError):
    """A referenced id does not resolve."""

    kind = "not_found"

    def __init__(self, entity: str, entity_id: Any, message: Optional[str] = None):
        super().__init__(
            message or f"{entity} {entity_id} não encontrado",
            {"entity": entity, "id": entity_id},
        )
        self.entity = entity
        self.entity_id = entity_id


class PermissionDeniedError(ClinicError):
    """Role-based check failed for the acting user."""

    kind = "permission"


class InsufficientStockError(ClinicError):
    """Requested consumption exceeds the available quantity of an item."""

    kind = "insufficient_stock"

    def __init__(self, item_id: int, item_name: str, available: int, requested: int):
        super().__init__(
            f"Estoque insuficiente para {item_name}. Disponível: {available} unidades.",
            {
                "item_id": item_id,
                "item_name": item_name,
                "available": available,
                "requested": requested,
            },
        )
        self.item_id = item_id
        self.item_name = item_name
        self.available = available
        self.requested = requested


class ConflictError(ClinicError):
    """State changed between validation and commit."""

    kind = "conflict"
