"""Downstream notification hook for newly raised alerts.

Notification is fire-and-forget: a failing notifier is logged and never
fails the alert that triggered it.
"""

import json
import logging
from typing import Any, Protocol

from redis import Redis
from redis.exceptions import RedisError

from medrefer_ddi.core.config import settings
from medrefer_ddi.core.redis import publish_event
from medrefer_ddi.services.interaction_types import DrugInteractionAlert, InteractionSeverity

logger = logging.getLogger(__name__)

HIGH_PRIORITY_SEVERITIES = frozenset({InteractionSeverity.MAJOR, InteractionSeverity.CONTRAINDICATED})


def notification_priority(alert: DrugInteractionAlert) -> str:
    """``high`` for major and contraindicated interactions, ``medium`` otherwise."""
    return "high" if alert.interaction.severity in HIGH_PRIORITY_SEVERITIES else "medium"


def build_notification(alert: DrugInteractionAlert) -> dict[str, Any]:
    """Message sent to the prescribing clinician."""
    interaction = alert.interaction
    return {
        "title": "Drug Interaction Alert",
        "message": f"{interaction.severity.value.upper()}: {interaction.description}",
        "patient_id": alert.patient_id,
        "priority": notification_priority(alert),
        "metadata": {
            "type": "drug_interaction",
            "alert_id": alert.id,
            "drugs": [interaction.drug_a, interaction.drug_b],
            "severity": interaction.severity.value,
        },
    }


class AlertNotifier(Protocol):
    """Receives every newly raised alert."""

    def notify(self, alert: DrugInteractionAlert) -> None: ...


class LoggingAlertNotifier:
    """Default notifier that only writes the notification to the log."""

    def notify(self, alert: DrugInteractionAlert) -> None:
        payload = build_notification(alert)
        log_level = logging.WARNING if payload["priority"] == "high" else logging.INFO
        logger.log(log_level, f"Notify patient_id={alert.patient_id}: {payload['message']}")


class RedisAlertNotifier:
    """Publishes alert notifications on a Redis pub/sub channel."""

    def __init__(self, channel: str | None = None, client: Redis | None = None) -> None:
        self.channel = channel or settings.alert_notification_channel
        self._client = client

    def notify(self, alert: DrugInteractionAlert) -> None:
        payload = build_notification(alert)
        try:
            if self._client is not None:
                receivers = self._client.publish(self.channel, json.dumps(payload))
            else:
                receivers = publish_event(self.channel, payload)
            logger.debug(f"Published alert {alert.id} to {self.channel} ({receivers} receivers)")
        except RedisError as e:
            logger.warning(f"Failed to publish alert {alert.id} to Redis channel {self.channel}: {e}")


def get_default_notifier() -> AlertNotifier:
    """Notifier selected by settings."""
    if settings.redis_notifications_enabled:
        return RedisAlertNotifier()
    return LoggingAlertNotifier()
