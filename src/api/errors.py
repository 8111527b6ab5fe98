"""API error handling and response helpers."""

from typing import Any, Dict, NoReturn

from fastapi import HTTPException

from src.services.errors import BillingError


def error_response(error: BillingError) -> Dict[str, Any]:
    """Create a standardized error response."""
    return {
        "error": {
            "code": error.code,
            "message": error.message,
        }
    }


def raise_app_error(error: BillingError) -> NoReturn:
    """Raise an HTTPException from a BillingError."""
    raise HTTPException(
        status_code=error.http_status,
        detail=error_response(error),
    ) from error


__all__ = ["error_response", "raise_app_error"]
