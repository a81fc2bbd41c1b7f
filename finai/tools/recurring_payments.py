"""get_recurring_payments tool: reads the detector's cached result."""
from typing import Any, Dict

from finai.logger import create_logger
from finai.schemas import ToolResult
from finai.services.recurring_store import RecurringPaymentStore

logger = create_logger("recurring_payments")


def get_recurring_payments_handler(store: RecurringPaymentStore) -> Dict[str, Any]:
    with logger.tool_call("get_recurring_payments"):
        detected, payments = store.snapshot()
        updated_at = store.updated_at
        return ToolResult.ok({
            "detected": detected,
            "updated_at": updated_at.isoformat() if updated_at else None,
            "recurring_payments": [p.model_dump(by_alias=True) for p in payments],
        }).to_dict()
