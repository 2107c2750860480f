"""Audit logging for alert lifecycle and interaction checks.

Clinically relevant state changes (alerts raised, acknowledged or
dismissed, knowledge base reloads) go to the dedicated ``audit`` logger
so they can be routed to an append-only store in production.
"""

import logging
from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field

# Separate audit logger for clinically relevant events
audit_logger = logging.getLogger("audit")


class AuditAction(str, Enum):
    """Types of auditable actions."""

    INTERACTION_CHECK = "interaction_check"
    ALERT_RAISED = "alert_raised"
    ALERT_ACKNOWLEDGED = "alert_acknowledged"
    ALERT_DISMISSED = "alert_dismissed"
    KNOWLEDGE_BASE_RELOAD = "knowledge_base_reload"

    # System
    ERROR = "error"


class AuditEvent(BaseModel):
    """Audit event record."""

    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    action: AuditAction = Field(..., description="Type of action performed")
    resource_type: str = Field(..., description="Type of resource affected")
    resource_id: str | None = Field(None, description="ID of specific resource")
    patient_id: str | None = Field(None, description="Patient ID if applicable")
    user_id: str | None = Field(None, description="Clinician who performed action")
    details: dict | None = Field(None, description="Additional context")
    success: bool = Field(True, description="Whether action succeeded")


def log_audit(
    action: AuditAction,
    resource_type: str,
    resource_id: str | None = None,
    patient_id: str | None = None,
    user_id: str | None = None,
    details: dict | None = None,
    success: bool = True,
) -> AuditEvent:
    """Log an audit event.

    Args:
        action: Type of action being audited
        resource_type: The type of resource affected
        resource_id: Specific resource identifier
        patient_id: Patient ID if this is patient data
        user_id: Clinician performing the action
        details: Additional context
        success: Whether the action succeeded

    Returns:
        The created AuditEvent
    """
    event = AuditEvent(
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        patient_id=patient_id,
        user_id=user_id,
        details=details,
        success=success,
    )

    log_level = logging.INFO if success else logging.WARNING
    audit_logger.log(
        log_level,
        f"AUDIT: {action.value} {resource_type}"
        f"{f'/{resource_id}' if resource_id else ''}"
        f"{f' patient={patient_id}' if patient_id else ''}"
        f" success={success}",
        extra={"audit_event": event.model_dump()},
    )

    return event


def log_alert_event(
    action: AuditAction,
    alert_id: str,
    patient_id: str,
    user_id: str | None = None,
    details: dict | None = None,
) -> AuditEvent:
    """Log a drug interaction alert lifecycle event.

    Args:
        action: ALERT_RAISED, ALERT_ACKNOWLEDGED or ALERT_DISMISSED
        alert_id: Alert identifier
        patient_id: Patient the alert belongs to
        user_id: Clinician acting on the alert
        details: Additional context such as severity or notes

    Returns:
        The created AuditEvent
    """
    return log_audit(
        action=action,
        resource_type="drug_interaction_alert",
        resource_id=alert_id,
        patient_id=patient_id,
        user_id=user_id,
        details=details,
    )
