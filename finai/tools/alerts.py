"""
Alert tools - post_alert and read_alerts

Both operate on the shared AlertBoard that the background pollers also write to.
"""
import re
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

from finai.logger import create_logger
from finai.schemas import ALERT_TYPES, ToolResult
from finai.services.alert_board import AlertBoard

logger = create_logger("alerts")

DEFAULT_LOOKBACK_HOURS = 24
ALERT_POSTED_STATUS = "Alert posted successfully and will appear in the user's notification sidebar"

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def parse_hours(hours: Union[str, int, None]) -> int:
    """
    Parse the look-back window.

    Accepts an int or a string starting with an integer ("12", "48h").
    Anything else falls back to 24 with a warning.
    """
    if hours is None or hours == "":
        return DEFAULT_LOOKBACK_HOURS
    if isinstance(hours, int) and not isinstance(hours, bool):
        return hours

    match = _LEADING_INT.match(str(hours))
    if not match:
        logger.warn("Failed to parse hours, using default", {
            "hours": hours,
            "default": DEFAULT_LOOKBACK_HOURS,
        })
        return DEFAULT_LOOKBACK_HOURS
    return int(match.group(1))


def post_alert_handler(
    board: AlertBoard,
    message: Optional[str],
    type: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Post an alert to the notification sidebar.

    Args:
        board: Shared alert board
        message: Alert text (required)
        type: "info", "warning" or "success"; anything else becomes "info"

    Returns:
        Tool result envelope
    """
    with logger.tool_call("post_alert", {"type": type}):
        if not message:
            return ToolResult.fail("message is required").to_dict()

        alert_type = type if type in ALERT_TYPES else "info"
        alert = board.post(message, alert_type)

        return ToolResult.ok({
            "alert_id": alert.id,
            "message": alert.message,
            "type": alert.type,
            "timestamp": alert.timestamp.isoformat(),
            "status": ALERT_POSTED_STATUS,
        }).to_dict()


def read_alerts_handler(
    board: AlertBoard,
    hours: Union[str, int, None] = None,
    type: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Read alerts posted in the last `hours` (default 24), optionally of one type."""
    with logger.tool_call("read_alerts", {"hours": hours, "type": type}):
        lookback = parse_hours(hours)
        current = now or datetime.now(timezone.utc)

        alerts = []
        for alert in board.recent(lookback, type or None, now=current):
            alerts.append({
                "id": alert.id,
                "message": alert.message,
                "type": alert.type,
                "timestamp": alert.timestamp.strftime("%Y-%m-%d %H:%M"),
                "age_hours": (current - alert.timestamp).total_seconds() / 3600,
            })

        data: Dict[str, Any] = {
            "total_alerts": len(alerts),
            "hours_looked_back": lookback,
            "alerts": alerts,
        }
        if type:
            data["filtered_by_type"] = type

        return ToolResult.ok(data).to_dict()
