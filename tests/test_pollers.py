"""Tests for the background analysis loops."""
from datetime import datetime

import anthropic
import httpx
import pytest

from finai.config import Settings
from finai.exceptions import AIResponseError, MockDataError
from finai.schemas import Transaction
from finai.services.alert_board import AlertBoard
from finai.services.pollers import (
    INSIGHT_QUESTIONS,
    BackgroundAnalysis,
    InsightPoller,
    LargeTransactionPoller,
    PollOutcome,
    ProductAlternativePoller,
    RecurringPaymentPoller,
    UncheckedTracker,
    extract_savings_amount,
    parse_recurring_payments_response,
    should_post_recommendation,
)
from finai.services.recurring_store import RecurringPaymentStore
from finai.tools.mock_transactions import parse_mock_transactions

from conftest import SAMPLE_STATEMENT, make_claude

NOW = datetime(2026, 1, 31)
SETTINGS = Settings(_env_file=None, anthropic_api_key="test-key")
GOOD_ALTERNATIVE = (
    "Echo Dot 5th Gen ($49.99) - Alternative: Google Nest Mini ($29.99) - "
    "Save: $20.00 - Buy: https://store.google.com/product/google_nest_mini"
)
RECURRING_JSON = (
    '[{"id": "rec-1", "merchant": "Netflix", "product": "Premium Plan", '
    '"amount": 22.99, "frequency": "Monthly", "lastSeen": "2026-01-28", "occurrences": 1}]'
)


def _load():
    return parse_mock_transactions(SAMPLE_STATEMENT)


def _failing_load():
    raise MockDataError("gone")


# ----------------------------------------------------------------------------
# Dedup tracker
# ----------------------------------------------------------------------------

def test_claim_next_is_deterministic():
    tracker = UncheckedTracker()
    items = ["a", "b", "", "c"]

    claimed = [tracker.claim_next(items, key=str) for _ in range(4)]

    assert claimed == ["a", "b", "c", None]
    assert tracker.checked() == {"a", "b", "c"}


def test_claim_next_skips_marked_and_resets():
    tracker = UncheckedTracker()
    tracker.mark(["a", "b"])
    assert tracker.claim_next(["a", "b", "c"], key=str) == "c"

    tracker.reset()
    assert tracker.claim_next(["a", "b", "c"], key=str) == "a"


# ----------------------------------------------------------------------------
# Response parsing
# ----------------------------------------------------------------------------

@pytest.mark.parametrize("text, expected", [
    ("Save: $20.00", 20.0),
    (GOOD_ALTERNATIVE, 20.0),
    ("Save: $7.5-Buy", 7.5),
    ("Save: $abc", 0.0),
    ("No marker here", 0.0),
    ("", 0.0),
])
def test_extract_savings_amount(text, expected):
    assert extract_savings_amount(text) == pytest.approx(expected)


def test_should_post_recommendation():
    assert should_post_recommendation(GOOD_ALTERNATIVE, 5.0) is True
    assert should_post_recommendation("Not enough savings (under $5)", 5.0) is False
    assert should_post_recommendation("This is already the optimal choice. Save: $30.00", 5.0) is False
    assert should_post_recommendation("Cheaper option - Save: $3.00 - Buy: x", 5.0) is False
    assert should_post_recommendation("Google Nest Mini is cheaper", 5.0) is False
    assert should_post_recommendation("", 5.0) is False


def test_parse_recurring_plain_and_fenced():
    plain = parse_recurring_payments_response(RECURRING_JSON)
    fenced = parse_recurring_payments_response("```json\n" + RECURRING_JSON + "\n```")

    assert plain == fenced
    assert plain[0].merchant == "Netflix"
    assert plain[0].last_seen == "2026-01-28"
    assert plain[0].amount == pytest.approx(22.99)


def test_parse_recurring_empty_list():
    assert parse_recurring_payments_response("  []  ") == []


def test_parse_recurring_null_means_none_found():
    assert parse_recurring_payments_response("null") == []


@pytest.mark.parametrize("reply", [
    "not json",
    '{"merchant": "Netflix"}',
    '[{"merchant": "Netflix"}]',
])
def test_parse_recurring_rejects_malformed(reply):
    with pytest.raises(AIResponseError):
        parse_recurring_payments_response(reply)


# ----------------------------------------------------------------------------
# Product alternatives
# ----------------------------------------------------------------------------

def test_alternative_poller_posts_qualifying_recommendation():
    board = AlertBoard()
    claude = make_claude(GOOD_ALTERNATIVE)
    poller = ProductAlternativePoller(claude, board, SETTINGS, load_transactions=_load, clock=lambda: NOW)

    assert poller.poll_once() is PollOutcome.PROCESSED

    alerts = board.all()
    assert len(alerts) == 1
    assert alerts[0].type == "success"
    assert alerts[0].id.startswith("alt-")
    assert alerts[0].message == GOOD_ALTERNATIVE

    call = claude.client.messages.calls[0]
    assert call["max_tokens"] == 200
    assert "Echo Dot 5th Gen" in call["messages"][0]["content"]
    assert call["timeout"] == 5


def test_alternative_poller_walks_products_then_resets():
    board = AlertBoard()
    claude = make_claude(*["Not enough savings (under $5)"] * 10)
    poller = ProductAlternativePoller(claude, board, SETTINGS, load_transactions=_load, clock=lambda: NOW)

    outcomes = [poller.poll_once() for _ in range(6)]

    assert outcomes == [PollOutcome.PROCESSED] * 5 + [PollOutcome.EXHAUSTED]
    assert poller.tracker.checked() == set()
    assert len(board) == 0
    assert poller.poll_once() is PollOutcome.PROCESSED


def test_alternative_poller_skips_when_nothing_recent():
    poller = ProductAlternativePoller(
        make_claude(), AlertBoard(), SETTINGS, load_transactions=_load, clock=lambda: datetime(2027, 1, 1),
    )
    assert poller.poll_once() is PollOutcome.SKIPPED


def test_alternative_poller_survives_ai_timeout():
    board = AlertBoard()
    timeout = anthropic.APITimeoutError(request=httpx.Request("POST", "https://api.anthropic.com/v1/messages"))
    claude = make_claude(timeout)
    poller = ProductAlternativePoller(claude, board, SETTINGS, load_transactions=_load, clock=lambda: NOW)

    assert poller.poll_once() is PollOutcome.PROCESSED
    assert len(board) == 0


def test_pollers_skip_on_read_error():
    board, store = AlertBoard(), RecurringPaymentStore()
    claude = make_claude()

    assert ProductAlternativePoller(claude, board, SETTINGS, load_transactions=_failing_load).poll_once() is PollOutcome.SKIPPED
    assert LargeTransactionPoller(claude, board, SETTINGS, load_transactions=_failing_load).poll_once() is PollOutcome.SKIPPED
    assert RecurringPaymentPoller(claude, store, SETTINGS, load_transactions=_failing_load).poll_once() is PollOutcome.SKIPPED


# ----------------------------------------------------------------------------
# Large transactions
# ----------------------------------------------------------------------------

def test_large_transactions_are_outgoing_and_over_threshold():
    poller = LargeTransactionPoller(make_claude(), AlertBoard(), SETTINGS, load_transactions=_load)

    large = poller.large_transactions(_load())

    assert [tx.merchant for tx in large] == ["Best Buy", "Nike"]


def test_large_transaction_poller_posts_warnings_then_resets():
    board = AlertBoard()
    claude = make_claude("Headphones at $399.99 is a big one.", "  ", "unused")
    poller = LargeTransactionPoller(claude, board, SETTINGS, load_transactions=_load)

    assert poller.poll_once() is PollOutcome.PROCESSED
    assert poller.poll_once() is PollOutcome.PROCESSED
    assert poller.poll_once() is PollOutcome.EXHAUSTED

    alerts = board.all()
    assert len(alerts) == 1
    assert alerts[0].type == "warning"
    assert alerts[0].id.startswith("large-")
    assert claude.client.messages.calls[0]["max_tokens"] == 100


# ----------------------------------------------------------------------------
# Recurring payments
# ----------------------------------------------------------------------------

def test_recurring_poller_detects_once_per_snapshot():
    store = RecurringPaymentStore()
    claude = make_claude(RECURRING_JSON)
    poller = RecurringPaymentPoller(claude, store, SETTINGS, load_transactions=_load)

    assert store.detected is False
    assert poller.poll_once() is PollOutcome.PROCESSED
    detected, payments = store.snapshot()
    assert detected is True
    assert [p.merchant for p in payments] == ["Netflix"]
    assert store.updated_at is not None

    prompt = claude.client.messages.calls[0]["messages"][0]["content"]
    assert "- 2026-01-28 | Netflix | Premium Plan | $22.99" in prompt
    assert "Salary Deposit" not in prompt
    assert claude.client.messages.calls[0]["max_tokens"] == 2000

    assert poller.poll_once() is PollOutcome.EXHAUSTED
    assert len(claude.client.messages.calls) == 1


def test_recurring_poller_keeps_pending_on_bad_reply():
    store = RecurringPaymentStore()
    poller = RecurringPaymentPoller(make_claude("I found Netflix"), store, SETTINGS, load_transactions=_load)

    assert poller.poll_once() is PollOutcome.PROCESSED
    assert store.detected is False


def test_recurring_poller_reruns_on_new_rows():
    store = RecurringPaymentStore()
    rows = _load()
    claude = make_claude("[]", RECURRING_JSON)
    poller = RecurringPaymentPoller(claude, store, SETTINGS, load_transactions=lambda: rows)

    poller.poll_once()
    rows.append(Transaction(date="2026-01-31", merchant="Hulu", product="Basic", amount="$7.99"))
    assert poller.poll_once() is PollOutcome.PROCESSED
    assert len(claude.client.messages.calls) == 2


def test_recurring_poller_null_reply_completes_detection():
    store = RecurringPaymentStore()
    poller = RecurringPaymentPoller(make_claude("null"), store, SETTINGS, load_transactions=_load)

    assert poller.poll_once() is PollOutcome.PROCESSED
    assert store.snapshot() == (True, [])


# ----------------------------------------------------------------------------
# Insights
# ----------------------------------------------------------------------------

def test_insight_poller_rotates_questions_and_alert_types():
    board = AlertBoard()
    claude = make_claude(*[f"Insight {n}" for n in range(6)])
    poller = InsightPoller(claude, board, SETTINGS, load_transactions=_load)

    outcomes = [poller.poll_once() for _ in range(6)]

    assert outcomes == [PollOutcome.PROCESSED] * 6
    assert [alert.type for alert in board.all()] == ["info", "warning", "success", "info", "warning", "info"]
    assert all(alert.id.startswith("auto-") for alert in board.all())

    calls = claude.client.messages.calls
    assert calls[0]["messages"][0]["content"].startswith(INSIGHT_QUESTIONS[0][0])
    assert calls[5]["messages"][0]["content"].startswith(INSIGHT_QUESTIONS[0][0])
    assert calls[2]["messages"][0]["content"].startswith(INSIGHT_QUESTIONS[2][0])
    assert "- 2026-01-27 | Best Buy | Headphones | $399.99" in calls[0]["messages"][0]["content"]


def test_insight_poller_uses_short_reply_settings():
    claude = make_claude("Subscriptions cost $22.99 a month")
    config = Settings(_env_file=None, anthropic_api_key="test-key", insights_timeout_seconds=12)
    poller = InsightPoller(claude, AlertBoard(), config, load_transactions=_load)

    poller.poll_once()

    call = claude.client.messages.calls[0]
    assert call["max_tokens"] == 100
    assert call["timeout"] == 12
    assert "15 words" in call["system"]


def test_insight_poller_skips_empty_reply_and_errors_but_rotates():
    board = AlertBoard()
    timeout = anthropic.APITimeoutError(request=httpx.Request("POST", "https://api.anthropic.com/v1/messages"))
    claude = make_claude("   ", timeout, "Great job keeping dining under budget")
    poller = InsightPoller(claude, board, SETTINGS, load_transactions=_load)

    for _ in range(3):
        poller.poll_once()

    alerts = board.all()
    assert len(alerts) == 1
    assert alerts[0].type == "success"
    assert poller.index == 3


def test_insight_poller_does_not_rotate_on_read_error():
    poller = InsightPoller(make_claude(), AlertBoard(), SETTINGS, load_transactions=_failing_load)

    assert poller.poll_once() is PollOutcome.SKIPPED
    assert poller.index == 0


# ----------------------------------------------------------------------------
# Loop lifecycle
# ----------------------------------------------------------------------------

def test_background_analysis_starts_and_stops(statement_file):
    config = Settings(
        _env_file=None,
        anthropic_api_key="test-key",
        mock_transactions_file=statement_file,
        alternatives_initial_delay_seconds=30,
        large_tx_initial_delay_seconds=30,
        recurring_initial_delay_seconds=30,
        insights_initial_delay_seconds=30,
    )
    background = BackgroundAnalysis(make_claude(), AlertBoard(), RecurringPaymentStore(), config)
    assert [loop.name for loop in background.loops] == [
        "product_alternatives", "large_transactions", "recurring_payments", "insights",
    ]

    background.start()
    assert all(loop.running for loop in background.loops)

    background.stop(timeout=2)
    assert not any(loop.running for loop in background.loops)
