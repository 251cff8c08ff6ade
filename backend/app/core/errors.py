"""Domain errors raised by the budget services.

Every error renders as ``{"error", "message", "code"?, ...details}`` through the
handlers registered in ``app.main``. Detail keys are camelCase because they are
written to the response body as-is.
"""

from decimal import Decimal
import uuid

from fastapi import status


class BudgetError(ValueError):
    StatusCode = status.HTTP_400_BAD_REQUEST
    DefaultError = "Invalid request"
    DefaultCode: str | None = None

    def __init__(
        self,
        message: str,
        *,
        error: str | None = None,
        code: str | None = None,
        details: dict | None = None,
    ) -> None:
        super().__init__(message)
        self.Message = message
        self.Error = error or self.DefaultError
        self.Code = code or self.DefaultCode
        self.Details = details or {}

    def ToBody(self) -> dict:
        body = {"error": self.Error, "message": self.Message}
        if self.Code:
            body["code"] = self.Code
        for key, value in self.Details.items():
            body[key] = float(value) if isinstance(value, Decimal) else value
        return body


class InvalidRequestError(BudgetError):
    StatusCode = status.HTTP_400_BAD_REQUEST
    DefaultError = "Invalid request"
    DefaultCode = "INVALID_REQUEST"


class NotFoundError(BudgetError):
    StatusCode = status.HTTP_404_NOT_FOUND
    DefaultError = "Not found"
    DefaultCode = "NOT_FOUND"


class ForbiddenError(BudgetError):
    StatusCode = status.HTTP_403_FORBIDDEN
    DefaultError = "Forbidden"
    DefaultCode = "FORBIDDEN"


class ConflictError(BudgetError):
    StatusCode = status.HTTP_409_CONFLICT
    DefaultError = "Conflict"
    DefaultCode = "CONFLICT"


class AttributionAlreadyExistsError(ConflictError):
    DefaultError = "Attribution already exists"
    DefaultCode = "ATTRIBUTION_ALREADY_EXISTS"


class AllocationsAlreadyExistError(ConflictError):
    # Regeneration over an existing set is reported as a bad request, which is
    # what clients of the generate endpoint check for.
    StatusCode = status.HTTP_400_BAD_REQUEST
    DefaultError = "Allocations already exist"
    DefaultCode = "ALLOCATIONS_ALREADY_EXIST"


class InsufficientIncomeRemainingError(InvalidRequestError):
    DefaultError = "Insufficient income remaining"
    DefaultCode = "INSUFFICIENT_INCOME_REMAINING"


class AttributionExceedsPaymentError(InvalidRequestError):
    DefaultError = "Attribution exceeds payment amount"
    DefaultCode = "ATTRIBUTION_EXCEEDS_PAYMENT_AMOUNT"


class InsufficientAvailableIncomeError(InvalidRequestError):
    DefaultError = "Insufficient available income"
    DefaultCode = "INSUFFICIENT_AVAILABLE_INCOME"


def ParseId(value: str | None, label: str) -> str:
    """Normalise a UUID path/body value, raising 400 for malformed input."""
    if not value or not isinstance(value, str):
        raise InvalidRequestError(
            f"{label} ID is required.",
            error=f"Invalid {label.lower()} ID",
            code="INVALID_ID",
        )
    try:
        return str(uuid.UUID(value.strip()))
    except ValueError as exc:
        raise InvalidRequestError(
            f"{label} ID must be a valid UUID.",
            error=f"Invalid {label.lower()} ID format",
            code="INVALID_ID",
        ) from exc
