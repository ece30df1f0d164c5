from collections import deque
from typing import Callable, Deque, Optional, Sequence

from ..schemas.records import Alert, NotificationRecord, NotificationType
from ..utils.logger import logger

AlertSink = Callable[[Alert], None]

# Toast category per notification type tag
ALERT_CATEGORIES = {
    NotificationType.SUCCESS.value: "success",
    NotificationType.ERROR.value: "error",
    NotificationType.WARNING.value: "warning",
}


class NotificationDiffer:
    """
    Turns full notification snapshots (newest first) into one-shot alerts.

    After each delivery the newest id is compared with the one remembered from the previous
    delivery. A different id on an unread item emits exactly one alert; the remembered id is
    updated either way, so replaying the same snapshot never alerts twice.
    """

    def __init__(self, on_alert: Optional[AlertSink] = None, history: int = 20):
        self.on_alert = on_alert
        self.last_seen_id: Optional[str] = None
        # Most recent alerts only, a header differ lives as long as the session
        self.emitted: Deque[Alert] = deque(maxlen=history)

    def observe(self, notifications: Sequence[NotificationRecord]) -> Optional[Alert]:
        newest = notifications[0] if notifications else None
        newest_id = newest.id if newest else None

        alert = None
        if newest is not None and newest_id != self.last_seen_id and not newest.read:
            alert = Alert(
                category=ALERT_CATEGORIES.get(newest.type, "info"),
                title=newest.title,
                message=newest.message,
                notification_id=newest.id,
            )
        self.last_seen_id = newest_id

        if alert is not None:
            self.emitted.append(alert)
            if self.on_alert is not None:
                try:
                    self.on_alert(alert)
                except Exception as e:
                    logger.error(f"❌ Alert sink failed for notification {alert.notification_id}: {e}")
        return alert

    def __call__(self, notifications: Sequence[NotificationRecord]) -> None:
        self.observe(notifications)
