"""
Schemas module for finai

Provides Pydantic models for data validation and serialization.
"""

from finai.schemas.models import (
    ALERT_TYPES,
    Alert,
    AlertType,
    RecurringPayment,
    ToolResult,
    Transaction,
    TransactionAPI,
)

__all__ = [
    'ALERT_TYPES',
    'Alert',
    'AlertType',
    'RecurringPayment',
    'ToolResult',
    'Transaction',
    'TransactionAPI',
]
