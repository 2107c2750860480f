"""Shared FastAPI dependencies for the drug interaction API."""

from typing import Annotated, TypeVar

from fastapi import Depends, HTTPException, status

from medrefer_ddi.core.exceptions import ErrorKind
from medrefer_ddi.core.result import Result
from medrefer_ddi.services.drug_interaction_service import (
    DrugInteractionService,
    get_drug_interaction_service,
)

T = TypeVar("T")

ERROR_STATUS_CODES: dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.VALIDATION_ERROR: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.TIMEOUT: status.HTTP_504_GATEWAY_TIMEOUT,
}


def get_service() -> DrugInteractionService:
    """Dependency returning the engine singleton."""
    return get_drug_interaction_service()


# Type alias for the engine dependency
InteractionService = Annotated[DrugInteractionService, Depends(get_service)]


def unwrap_result(result: Result[T]) -> T:
    """Return the data of a successful result or raise the matching HTTP error."""
    kind = result.error_kind
    if kind is None:
        return result.data  # type: ignore[return-value]
    raise HTTPException(
        status_code=ERROR_STATUS_CODES.get(kind, status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail={"error": kind.value, "message": result.error_message},
    )
