"""Shared fixtures: fake model client, fake banking executor, sample statement."""
import asyncio
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import pytest

from finai.config import Settings
from finai.services.alert_board import AlertBoard
from finai.services.claude_service import ClaudeService
from finai.services.liminal_executor import ExecuteResponse
from finai.services.recurring_store import RecurringPaymentStore

SAMPLE_STATEMENT = """MOCK CREDIT CARD TRANSACTION HISTORY
Account Holder: Test User
Card Number: **** 0000
Period: 2026-01-01 to 2026-01-31
============================================
DATE       | MERCHANT     | PRODUCT          | AMOUNT    | INCOMING
--------------------------------------------
2026-01-25 | Amazon       | Echo Dot 5th Gen | $49.99    | F
2026-01-26 | Acme Payroll | Salary Deposit   | $2,450.00 | T
2026-01-27 | Best Buy     | Headphones       | $399.99   | F
2026-01-28 | Netflix      | Premium Plan     | $22.99    | F
2026-01-30 | Nike         | Running Shoes    | $139.99   | F
============================================
TOTAL TRANSACTIONS: 5
TOTAL SPENT: $612.96
TOTAL RECEIVED: $2,450.00
TOTAL AMOUNT: $1,837.04

CATEGORY BREAKDOWN:
- Electronics: $449.98
- Subscriptions: $22.99
- Shopping: $139.99
"""


class FakeMessages:
    """Stands in for anthropic.Anthropic().messages, replaying canned replies."""

    def __init__(self, replies: Optional[List[Any]] = None):
        self.replies = list(replies or [])
        self.calls: List[Dict[str, Any]] = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        reply = self.replies.pop(0) if self.replies else ""
        if isinstance(reply, Exception):
            raise reply
        return SimpleNamespace(content=[SimpleNamespace(type="text", text=reply)])


class FakeAnthropicClient:
    def __init__(self, replies: Optional[List[Any]] = None):
        self.messages = FakeMessages(replies)


class FakeExecutor:
    """Records execute() calls and returns a fixed ExecuteResponse."""

    def __init__(self, response: ExecuteResponse):
        self.response = response
        self.calls: List[Dict[str, Any]] = []

    async def execute(self, tool, input, user_id=None, request_id=None):
        self.calls.append({"tool": tool, "input": input, "user_id": user_id, "request_id": request_id})
        return self.response


def make_claude(*replies: Any) -> ClaudeService:
    return ClaudeService(api_key="test-key", model="test-model", timeout=5, client=FakeAnthropicClient(list(replies)))


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def statement_file(tmp_path):
    path = tmp_path / "mock_transactions.txt"
    path.write_text(SAMPLE_STATEMENT, encoding="utf-8")
    return str(path)


@pytest.fixture
def test_settings(statement_file):
    return Settings(
        _env_file=None,
        anthropic_api_key="test-key",
        mock_transactions_file=statement_file,
        enable_background_analysis=False,
    )


@pytest.fixture
def board():
    return AlertBoard(capacity=100)


@pytest.fixture
def store():
    return RecurringPaymentStore()
