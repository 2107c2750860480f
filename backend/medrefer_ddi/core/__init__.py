"""Core application configuration and utilities."""

from medrefer_ddi.core.audit import AuditAction, AuditEvent, log_alert_event, log_audit
from medrefer_ddi.core.config import settings
from medrefer_ddi.core.database import Base
from medrefer_ddi.core.exceptions import (
    AlertNotFoundError,
    AlertStoreUnavailableError,
    DrugInteractionEngineError,
    ErrorKind,
    KnowledgeBaseUnavailableError,
    NotFoundError,
    OperationTimeoutError,
    PatientNotFoundError,
    UnavailableError,
    ValidationError,
)
from medrefer_ddi.core.result import Result

__all__ = [
    # Config
    "settings",
    # Database
    "Base",
    # Audit
    "AuditAction",
    "AuditEvent",
    "log_alert_event",
    "log_audit",
    # Errors
    "AlertNotFoundError",
    "AlertStoreUnavailableError",
    "DrugInteractionEngineError",
    "ErrorKind",
    "KnowledgeBaseUnavailableError",
    "NotFoundError",
    "OperationTimeoutError",
    "PatientNotFoundError",
    "UnavailableError",
    "ValidationError",
    "Result",
]
