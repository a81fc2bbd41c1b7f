"""Cache of the last recurring payment detection."""
import threading
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from finai.schemas import RecurringPayment


class RecurringPaymentStore:
    """Last detection result, read by the HTTP endpoint and the agent tool."""

    def __init__(self):
        self._payments: List[RecurringPayment] = []
        self._detected = False
        self._updated_at: Optional[datetime] = None
        self._lock = threading.Lock()

    def replace(self, payments: List[RecurringPayment]) -> None:
        with self._lock:
            self._payments = list(payments)
            self._detected = True
            self._updated_at = datetime.now(timezone.utc)

    def snapshot(self) -> Tuple[bool, List[RecurringPayment]]:
        """(detected, payments) read under one lock."""
        with self._lock:
            return self._detected, list(self._payments)

    @property
    def detected(self) -> bool:
        with self._lock:
            return self._detected

    @property
    def updated_at(self) -> Optional[datetime]:
        with self._lock:
            return self._updated_at
