"""
Alert Board - capped, thread-safe notice board

Background pollers and the post_alert tool append here; the /api/alerts
endpoint and the read_alerts tool read from here. The board keeps at most
`capacity` alerts and evicts the oldest first.
"""
import threading
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from finai.logger import create_logger
from finai.schemas import Alert

logger = create_logger("alert_board")


def filter_recent_alerts(
    alerts: List[Alert],
    hours: float,
    now: Optional[datetime] = None,
) -> List[Alert]:
    """Alerts stamped strictly after now - hours."""
    cutoff = (now or datetime.now(timezone.utc)) - timedelta(hours=hours)
    return [alert for alert in alerts if alert.timestamp > cutoff]


class AlertBoard:
    """In-memory alert list guarded by a lock."""

    def __init__(self, capacity: int = 100):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._alerts: List[Alert] = []
        self._lock = threading.Lock()

    def add(self, alert: Alert) -> Alert:
        with self._lock:
            self._alerts.append(alert)
            overflow = len(self._alerts) - self.capacity
            if overflow > 0:
                del self._alerts[:overflow]
        return alert

    def post(self, message: str, alert_type: str = "info", id_prefix: str = "alert") -> Alert:
        """Create and store an alert, returning it."""
        alert = self.add(Alert.create(message, alert_type, id_prefix))
        logger.info("Alert posted", {"id": alert.id, "type": alert.type, "message": message})
        return alert

    def all(self) -> List[Alert]:
        with self._lock:
            return list(self._alerts)

    def recent(
        self,
        hours: float = 24,
        alert_type: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> List[Alert]:
        """Alerts from the last `hours`, optionally limited to one type."""
        with self._lock:
            snapshot = list(self._alerts)
        recent = filter_recent_alerts(snapshot, hours, now)
        if alert_type:
            recent = [alert for alert in recent if alert.type == alert_type]
        return recent

    def __len__(self) -> int:
        with self._lock:
            return len(self._alerts)
