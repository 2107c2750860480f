"""Exceptions raised inside the drug interaction engine.

Every engine error carries an ``ErrorKind`` so the service boundary can
turn it into a failed ``Result`` without inspecting exception types.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Failure categories surfaced to callers."""

    NOT_FOUND = "not_found"
    VALIDATION_ERROR = "validation_error"
    UNAVAILABLE = "unavailable"
    TIMEOUT = "timeout"


class DrugInteractionEngineError(Exception):
    """Base exception for all engine errors."""

    kind: ErrorKind = ErrorKind.UNAVAILABLE

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


# Lookup failures

class NotFoundError(DrugInteractionEngineError):
    """Referenced entity does not exist."""

    kind = ErrorKind.NOT_FOUND


class AlertNotFoundError(NotFoundError):
    """Alert id is unknown."""

    def __init__(self, alert_id: str) -> None:
        super().__init__(f"Alert not found: {alert_id}")
        self.alert_id = alert_id


class PatientNotFoundError(NotFoundError):
    """Patient id is unknown to the patient record store."""

    def __init__(self, patient_id: str) -> None:
        super().__init__(f"Patient not found: {patient_id}")
        self.patient_id = patient_id


# Input validation

class ValidationError(DrugInteractionEngineError):
    """Malformed input such as an empty drug name or a self-pairing."""

    kind = ErrorKind.VALIDATION_ERROR


# Backend availability

class UnavailableError(DrugInteractionEngineError):
    """A backing component cannot be reached."""

    kind = ErrorKind.UNAVAILABLE


class KnowledgeBaseUnavailableError(UnavailableError):
    """Interaction knowledge base is not loaded or cannot be read."""


class AlertStoreUnavailableError(UnavailableError):
    """Alert store cannot be reached."""


class OperationTimeoutError(DrugInteractionEngineError):
    """An operation exceeded its time bound."""

    kind = ErrorKind.TIMEOUT
