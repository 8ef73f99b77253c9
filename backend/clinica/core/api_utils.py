"""
Common API utilities for consistent response formatting across all controllers.
"""

from typing import Any, Dict, Optional

from flask import jsonify, request

from clinica.core.exceptions import ClinicError, ValidationError
from clinica.schemas.dtos import OperationResult

ERROR_STATUS = {
    "validation": 400,
    "permission": 403,
    "not_found": 404,
    "insufficient_stock": 409,
    "conflict": 409,
}


def api_response(
    success: bool, message: str, data: Optional[Any] = None, status_code: int = 200
) -> tuple:
    """
    Standardized API response format for all endpoints.

    Args:
        success: Whether the operation was successful
        message: Human-readable message about the operation
        data: Optional data payload
        status_code: HTTP status code

    Returns:
        Tuple of (json_response, status_code)
    """
    response = {"success": success, "message": message}

    if data is not None:
        response["data"] = data

    return jsonify(response), status_code


def error_response(error: ClinicError) -> tuple:
    """Translate a domain error into the standard envelope."""
    result = OperationResult.from_error(error)
    data = {"kind": result.kind}
    if result.details:
        data["details"] = result.details
    return api_response(
        result.success, result.message, data, ERROR_STATUS.get(result.kind, 400)
    )


def json_payload() -> Dict[str, Any]:
    """Return the JSON object body of the current request.

    Raises:
        ValidationError: body is missing or not a JSON object.
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Corpo da requisição deve ser um objeto JSON")
    return data
