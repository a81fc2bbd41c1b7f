"""
Data Schemas - Pydantic Models

This module defines the data contracts shared by the tools, the background
pollers and the HTTP endpoints. Field aliases match the JSON the frontend
already consumes (camelCase for isIncoming / lastSeen).

Key principles:
1. Transactions are parsed fresh from the mock file; no persistence
2. Alerts and recurring payments live in memory only
3. Tool results always use the same success/data/error envelope
"""

import time
from datetime import datetime, timezone
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field


AlertType = Literal["info", "warning", "success"]
ALERT_TYPES = ("info", "warning", "success")


# ============================================================================
# TRANSACTION SCHEMAS
# ============================================================================

class Transaction(BaseModel):
    """A row of the mock transaction file"""
    date: str  # YYYY-MM-DD as written in the file
    merchant: str
    product: str
    amount: str  # Raw amount text, e.g. "$49.99"
    is_incoming: bool = False

    def to_tool_dict(self) -> Dict[str, Any]:
        """Shape used by the read_mock_transactions tool."""
        return {
            "date": self.date,
            "merchant": self.merchant,
            "product": self.product,
            "amount": self.amount,
            "incoming": self.is_incoming,
        }

    def fingerprint(self) -> str:
        """Stable key for deduplication across polls."""
        return f"{self.date}|{self.merchant}|{self.product}|{self.amount}"


class TransactionAPI(BaseModel):
    """Transaction as returned by GET /api/transactions"""
    id: str
    amount: float  # Negative = debit, positive = incoming credit
    description: str
    date: str
    merchant: str
    is_incoming: bool = Field(default=False, alias="isIncoming")

    class Config:
        populate_by_name = True


# ============================================================================
# ALERT SCHEMA
# ============================================================================

class Alert(BaseModel):
    """Timestamped notification shown on the notice board"""
    id: str
    message: str
    timestamp: datetime
    type: AlertType = "info"

    @classmethod
    def create(cls, message: str, alert_type: str = "info", id_prefix: str = "alert") -> "Alert":
        """Factory method stamping the alert with the current UTC time"""
        now = datetime.now(timezone.utc)
        if alert_type not in ALERT_TYPES:
            alert_type = "info"
        return cls(
            id=f"{id_prefix}-{time.time_ns()}",
            message=message,
            timestamp=now,
            type=alert_type,
        )


# ============================================================================
# RECURRING PAYMENT SCHEMA
# ============================================================================

class RecurringPayment(BaseModel):
    """Recurring payment as detected by the language model"""
    id: str
    merchant: str
    product: str = ""
    amount: float
    frequency: str  # "Weekly", "Bi-weekly", "Monthly", "Annual", "Irregular"
    last_seen: str = Field(alias="lastSeen")
    occurrences: int = 1

    class Config:
        populate_by_name = True


# ============================================================================
# TOOL RESULT ENVELOPE
# ============================================================================

class ToolResult(BaseModel):
    """Result envelope returned by every tool"""
    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, data: Any) -> "ToolResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str) -> "ToolResult":
        return cls(success=False, error=error)

    def to_dict(self) -> Dict[str, Any]:
        if self.success:
            return {"success": True, "data": self.data}
        return {"success": False, "error": self.error}
