"""Billing engine error types.

Services raise these; API routers turn them into HTTP responses with
raise_app_error().
"""

from fastapi import status


class BillingError(Exception):
    """Base billing engine error."""

    def __init__(self, message: str, code: str, http_status: int = 400):
        """Initialize error."""
        self.message = message
        self.code = code
        self.http_status = http_status
        super().__init__(message)


class NotFoundError(BillingError):
    """Deployment, plan, bill or other record does not exist."""

    def __init__(self, message: str = "Not found"):
        super().__init__(message, "not_found", status.HTTP_404_NOT_FOUND)


class BillingValidationError(BillingError):
    """Request input is invalid; raised before any write is staged."""

    def __init__(self, message: str = "Invalid input"):
        super().__init__(message, "validation_error", status.HTTP_400_BAD_REQUEST)


class PlanStateError(BillingError):
    """Plan is not in a state that allows the requested transition."""

    def __init__(self, message: str = "Invalid plan state"):
        super().__init__(message, "invalid_plan_state", status.HTTP_400_BAD_REQUEST)


class BillGenerationError(BillingError):
    """Monthly bill run aborted; nothing from the run was committed."""

    def __init__(self, message: str = "Failed to generate bills"):
        super().__init__(message, "bill_generation_failed", status.HTTP_500_INTERNAL_SERVER_ERROR)


__all__ = [
    "BillingError",
    "NotFoundError",
    "BillingValidationError",
    "PlanStateError",
    "BillGenerationError",
]
