"""Live feed of newly raised drug interaction alerts.

Each subscriber owns its own queue, so a slow or disconnected consumer
never blocks publishing or other subscribers. Subscribers may ask for a
single patient's alerts; the filter is applied before enqueueing. A
subscriber whose queue reaches ``max_pending`` is closed and dropped.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from threading import Lock

from medrefer_ddi.services.interaction_types import DrugInteractionAlert

logger = logging.getLogger(__name__)

_CLOSED = object()

# Alerts a subscriber may fall behind by before it is dropped
DEFAULT_MAX_PENDING = 1000


class AlertSubscription:
    """One consumer's view of the alert feed.

    Usage:
        async with feed.subscribe(patient_id="p-1") as subscription:
            async for alert in subscription:
                ...
    """

    def __init__(
        self,
        feed: "AlertFeed",
        patient_id: str | None = None,
        max_pending: int = DEFAULT_MAX_PENDING,
    ) -> None:
        self._feed = feed
        self.patient_id = patient_id
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max_pending)
        self._closed = False
        self.overflowed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def wants(self, alert: DrugInteractionAlert) -> bool:
        return self.patient_id is None or alert.patient_id == self.patient_id

    def _deliver(self, alert: DrugInteractionAlert) -> bool:
        if self._closed:
            return False
        try:
            self._queue.put_nowait(alert)
        except asyncio.QueueFull:
            logger.warning(
                f"Alert feed subscriber (patient_id={self.patient_id}) fell behind by "
                f"{self._queue.qsize()} alerts; closing it"
            )
            self.overflowed = True
            self.close()
            return False
        return True

    async def get(self, timeout: float | None = None) -> DrugInteractionAlert | None:
        """Wait for the next alert; None once the subscription is closed.

        Raises:
            asyncio.TimeoutError: If ``timeout`` elapses first.
        """
        if self._closed and self._queue.empty():
            return None
        item = await asyncio.wait_for(self._queue.get(), timeout)
        if item is _CLOSED:
            return None
        return item

    def close(self) -> None:
        """Stop receiving alerts. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._feed._unsubscribe(self)
        try:
            self._queue.put_nowait(_CLOSED)
        except asyncio.QueueFull:
            # The reader drains the queue, then sees closed and empty
            pass

    def __aiter__(self) -> AsyncIterator[DrugInteractionAlert]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[DrugInteractionAlert]:
        while True:
            alert = await self.get()
            if alert is None:
                return
            yield alert

    async def __aenter__(self) -> "AlertSubscription":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()


class AlertFeed:
    """Broadcast channel for newly raised alerts.

    Delivery is at-least-once to subscribers active at publish time;
    late subscribers see nothing older. Publishing is synchronous, so
    alerts for one patient are delivered in the order they were raised.
    """

    def __init__(self, max_pending: int = DEFAULT_MAX_PENDING) -> None:
        self.max_pending = max_pending
        self._subscribers: list[AlertSubscription] = []
        self._lock = Lock()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, patient_id: str | None = None) -> AlertSubscription:
        """Register a new subscriber, optionally filtered to one patient."""
        subscription = AlertSubscription(self, patient_id, self.max_pending)
        with self._lock:
            self._subscribers.append(subscription)
        logger.debug(f"Alert feed subscriber added (patient_id={patient_id}), total={self.subscriber_count}")
        return subscription

    def publish(self, alert: DrugInteractionAlert) -> int:
        """Deliver an alert to every interested subscriber.

        Returns:
            Number of subscribers the alert was delivered to.
        """
        with self._lock:
            subscribers = list(self._subscribers)
        delivered = 0
        for subscription in subscribers:
            if subscription.wants(alert) and subscription._deliver(alert):
                delivered += 1
        return delivered

    def close(self) -> None:
        """Close every subscription."""
        with self._lock:
            subscribers = list(self._subscribers)
        for subscription in subscribers:
            subscription.close()

    def _unsubscribe(self, subscription: AlertSubscription) -> None:
        with self._lock:
            if subscription in self._subscribers:
                self._subscribers.remove(subscription)


class AlertCache:
    """Consumer-side copy of a patient's alerts kept in sync with the feed.

    Reconciliation is append-if-absent by alert id, so replaying the same
    alert from the feed and from ``get_patient_alerts`` never duplicates it.
    """

    def __init__(self, patient_id: str | None = None) -> None:
        self.patient_id = patient_id
        self._alerts: dict[str, DrugInteractionAlert] = {}
        self._lock = Lock()

    def add(self, alert: DrugInteractionAlert) -> bool:
        """Add an alert unless already present; returns True if added."""
        if self.patient_id is not None and alert.patient_id != self.patient_id:
            return False
        with self._lock:
            if alert.id in self._alerts:
                return False
            self._alerts[alert.id] = alert
            return True

    def extend(self, alerts: list[DrugInteractionAlert]) -> int:
        return sum(1 for alert in alerts if self.add(alert))

    def replace(self, alert: DrugInteractionAlert) -> None:
        """Overwrite a cached alert, e.g. after it was acknowledged."""
        with self._lock:
            self._alerts[alert.id] = alert

    @property
    def alerts(self) -> list[DrugInteractionAlert]:
        """Cached alerts, most recent first."""
        with self._lock:
            alerts = list(self._alerts.values())
        return sorted(alerts, key=lambda a: a.created_at, reverse=True)

    @property
    def unacknowledged(self) -> list[DrugInteractionAlert]:
        return [alert for alert in self.alerts if not alert.acknowledged]

    def __contains__(self, alert_id: object) -> bool:
        return alert_id in self._alerts

    def __len__(self) -> int:
        return len(self._alerts)
