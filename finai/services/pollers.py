"""
Background Analysis - polling loops that feed the notice board

Four loops run next to the HTTP server, each on its own daemon thread:

- ProductAlternativePoller: one recent purchase per tick, asks Claude for a
  cheaper alternative and posts it when the savings clear the minimum
- LargeTransactionPoller: one large outgoing charge per tick, posts a warning
- RecurringPaymentPoller: re-detects subscriptions whenever it sees
  transactions it has not covered yet, and caches the result
- InsightPoller: rotates through five short insight questions, each tied to
  an alert type, and posts every non-empty reply

The first three follow the same pattern: keep a set of processed keys, claim the
first unprocessed item in file order, call the model with a deadline, and
when every item has been processed clear the set and wait the longer reset
delay before starting over. Failed model calls are logged and skipped.

The free-text parsing of the alternative recommendation is substring based
and depends on the model following the requested format.
"""
import json
import re
import threading
from datetime import datetime
from enum import Enum
from functools import partial
from typing import Callable, Generic, Iterable, List, Optional, Set, Tuple, TypeVar

from pydantic import ValidationError

from finai.config import Settings, settings as default_settings
from finai.exceptions import AIResponseError, AIServiceError, MockDataError
from finai.logger import create_logger
from finai.prompts import build_prompt, load_prompt
from finai.schemas import RecurringPayment, Transaction
from finai.services.alert_board import AlertBoard
from finai.services.claude_service import ClaudeService
from finai.services.recurring_store import RecurringPaymentStore
from finai.tools.mock_transactions import (
    filter_recent_transactions,
    outgoing_transactions,
    parse_amount,
    read_mock_transactions,
)

logger = create_logger("pollers")

T = TypeVar("T")

SAVE_MARKER = "Save: $"
_LEADING_FLOAT = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)")


class PollOutcome(str, Enum):
    PROCESSED = "processed"
    SKIPPED = "skipped"
    EXHAUSTED = "exhausted"


# ============================================================================
# DEDUPLICATION
# ============================================================================

class UncheckedTracker(Generic[T]):
    """Set of already-processed keys, shared between a loop and its readers."""

    def __init__(self):
        self._checked: Set[str] = set()
        self._lock = threading.Lock()

    def claim_next(self, items: Iterable[T], key: Callable[[T], str]) -> Optional[T]:
        """Mark and return the first item whose key is non-empty and unchecked."""
        with self._lock:
            for item in items:
                item_key = key(item)
                if item_key and item_key not in self._checked:
                    self._checked.add(item_key)
                    return item
        return None

    def mark(self, keys: Iterable[str]) -> None:
        with self._lock:
            self._checked.update(k for k in keys if k)

    def reset(self) -> None:
        with self._lock:
            self._checked.clear()

    def checked(self) -> Set[str]:
        with self._lock:
            return set(self._checked)


# ============================================================================
# RESPONSE PARSING
# ============================================================================

def extract_savings_amount(recommendation: str) -> float:
    """
    Savings figure following "Save: $" in a recommendation.

    The number runs up to the first space or dash. Returns 0.0 when the
    marker is missing or no number can be read.
    """
    index = recommendation.find(SAVE_MARKER)
    if index == -1:
        return 0.0

    remainder = recommendation[index + len(SAVE_MARKER):]
    end = len(remainder)
    for stop_char in (" ", "-"):
        position = remainder.find(stop_char)
        if position != -1:
            end = min(end, position)

    match = _LEADING_FLOAT.match(remainder[:end])
    if not match:
        return 0.0
    try:
        return float(match.group(0))
    except ValueError:
        return 0.0


def should_post_recommendation(recommendation: str, minimum_savings: float = 5.0) -> bool:
    """True when the model proposed an alternative that saves enough."""
    if not recommendation:
        return False

    lowered = recommendation.lower()
    refusals = ("optimal", "not enough savings", f"under ${minimum_savings:.0f}")
    if any(phrase in lowered for phrase in refusals):
        return False

    if SAVE_MARKER not in recommendation:
        return False

    return extract_savings_amount(recommendation) >= minimum_savings


def parse_recurring_payments_response(response: str) -> List[RecurringPayment]:
    """Decode the JSON array Claude returns, tolerating markdown fences."""
    cleaned = response.strip()
    cleaned = cleaned.removeprefix("```json")
    cleaned = cleaned.removeprefix("```")
    cleaned = cleaned.removesuffix("```")
    cleaned = cleaned.strip()

    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise AIResponseError(f"failed to parse recurring payments JSON: {e}", cleaned) from e

    # A bare null means nothing was found
    if payload is None:
        return []
    if not isinstance(payload, list):
        raise AIResponseError("recurring payments reply is not a JSON array", cleaned)

    try:
        return [RecurringPayment.model_validate(item) for item in payload]
    except ValidationError as e:
        raise AIResponseError(f"recurring payment failed schema validation: {e}", cleaned) from e


def format_transaction_lines(transactions: List[Transaction]) -> str:
    return "".join(
        f"- {tx.date} | {tx.merchant} | {tx.product} | {tx.amount}\n" for tx in transactions
    )


# ============================================================================
# LOOPS
# ============================================================================

class PollingLoop:
    """Timer loop on a daemon thread; subclasses implement poll_once()."""

    name = "poller"

    def __init__(self, initial_delay: float, interval: float, reset_delay: float):
        self.initial_delay = initial_delay
        self.interval = interval
        self.reset_delay = reset_delay
        self.tracker: UncheckedTracker = UncheckedTracker()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def poll_once(self) -> PollOutcome:
        raise NotImplementedError

    def run(self) -> None:
        logger.info("Poll loop started", {
            "loop": self.name,
            "interval_seconds": self.interval,
            "reset_delay_seconds": self.reset_delay,
        })
        if self._stop_event.wait(self.initial_delay):
            return

        while not self._stop_event.is_set():
            logger.debug("Poll tick", {"loop": self.name})
            try:
                outcome = self.poll_once()
            except Exception as e:
                # Keep the loop alive; the next tick starts from a clean read
                logger.failure("Poll tick failed", e, {"loop": self.name})
                outcome = PollOutcome.SKIPPED

            if outcome is PollOutcome.EXHAUSTED and self._stop_event.wait(self.reset_delay):
                break
            if self._stop_event.wait(self.interval):
                break

        logger.info("Poll loop stopped", {"loop": self.name})

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self.run, name=self.name, daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout)

    @property
    def running(self) -> bool:
        return bool(self._thread and self._thread.is_alive())


class ProductAlternativePoller(PollingLoop):
    """Checks recent purchases, one product per tick, for cheaper alternatives."""

    name = "product_alternatives"

    def __init__(
        self,
        claude: ClaudeService,
        board: AlertBoard,
        config: Settings = default_settings,
        load_transactions: Callable[[], List[Transaction]] = read_mock_transactions,
        clock: Callable[[], datetime] = datetime.now,
    ):
        super().__init__(
            config.alternatives_initial_delay_seconds,
            config.alternatives_interval_seconds,
            config.alternatives_reset_delay_seconds,
        )
        self.claude = claude
        self.board = board
        self.minimum_savings = config.minimum_savings
        self.lookback_days = config.transaction_lookback_days
        self.load_transactions = load_transactions
        self.clock = clock

    def poll_once(self) -> PollOutcome:
        try:
            transactions = self.load_transactions()
        except MockDataError as e:
            logger.failure("Failed to read transactions", e, {"loop": self.name})
            return PollOutcome.SKIPPED

        recent = filter_recent_transactions(transactions, self.lookback_days, now=self.clock())
        if not recent:
            logger.info("No recent transactions to analyze", {
                "loop": self.name,
                "lookback_days": self.lookback_days,
            })
            return PollOutcome.SKIPPED

        tx = self.tracker.claim_next(recent, key=lambda t: t.product)
        if tx is None:
            self.tracker.reset()
            logger.info("All recent purchases checked for alternatives, resetting", {"loop": self.name})
            return PollOutcome.EXHAUSTED

        self.analyze(tx)
        return PollOutcome.PROCESSED

    def build_prompt(self, tx: Transaction) -> str:
        return build_prompt(
            "product_alternative.txt",
            product=tx.product,
            amount=tx.amount,
            merchant=tx.merchant,
            date=tx.date,
            minimum_savings=f"{self.minimum_savings:.2f}",
            minimum_savings_rounded=f"{self.minimum_savings:.0f}",
        )

    def analyze(self, tx: Transaction) -> Optional[str]:
        """Ask for an alternative and post it if it qualifies; returns the posted message."""
        logger.info("Checking for cheaper alternatives", {"product": tx.product, "amount": tx.amount})

        try:
            recommendation = self.claude.complete(self.build_prompt(tx), max_tokens=200).strip()
        except AIServiceError as e:
            logger.failure("AI analysis error", e, {"loop": self.name, "product": tx.product})
            return None

        if not should_post_recommendation(recommendation, self.minimum_savings):
            logger.info("No better alternative", {
                "product": tx.product,
                "savings": extract_savings_amount(recommendation),
                "minimum_savings": self.minimum_savings,
            })
            return None

        self.board.post(recommendation, "success", id_prefix="alt")
        return recommendation


class LargeTransactionPoller(PollingLoop):
    """Warns about outgoing charges at or above the configured threshold."""

    name = "large_transactions"

    def __init__(
        self,
        claude: ClaudeService,
        board: AlertBoard,
        config: Settings = default_settings,
        load_transactions: Callable[[], List[Transaction]] = read_mock_transactions,
    ):
        super().__init__(
            config.large_tx_initial_delay_seconds,
            config.large_tx_interval_seconds,
            config.large_tx_reset_delay_seconds,
        )
        self.claude = claude
        self.board = board
        self.threshold = config.large_transaction_threshold
        self.load_transactions = load_transactions

    def large_transactions(self, transactions: List[Transaction]) -> List[Transaction]:
        return [
            tx for tx in outgoing_transactions(transactions)
            if parse_amount(tx.amount) >= self.threshold
        ]

    def poll_once(self) -> PollOutcome:
        try:
            transactions = self.load_transactions()
        except MockDataError as e:
            logger.failure("Failed to read transactions", e, {"loop": self.name})
            return PollOutcome.SKIPPED

        candidates = self.large_transactions(transactions)
        if not candidates:
            logger.debug("No large transactions", {"threshold": self.threshold})
            return PollOutcome.SKIPPED

        tx = self.tracker.claim_next(candidates, key=Transaction.fingerprint)
        if tx is None:
            self.tracker.reset()
            logger.info("All large transactions reviewed, resetting", {"loop": self.name})
            return PollOutcome.EXHAUSTED

        self.analyze(tx)
        return PollOutcome.PROCESSED

    def analyze(self, tx: Transaction) -> Optional[str]:
        logger.info("Reviewing large transaction", {"merchant": tx.merchant, "amount": tx.amount})
        prompt = build_prompt(
            "large_transaction.txt",
            date=tx.date,
            merchant=tx.merchant,
            product=tx.product,
            amount=tx.amount,
        )

        try:
            warning = self.claude.complete(prompt, max_tokens=100).strip()
        except AIServiceError as e:
            logger.failure("AI analysis error", e, {"loop": self.name, "merchant": tx.merchant})
            return None

        if not warning:
            return None

        self.board.post(warning, "warning", id_prefix="large")
        return warning


class RecurringPaymentPoller(PollingLoop):
    """Detects recurring payments over all outgoing transactions."""

    name = "recurring_payments"

    def __init__(
        self,
        claude: ClaudeService,
        store: RecurringPaymentStore,
        config: Settings = default_settings,
        load_transactions: Callable[[], List[Transaction]] = read_mock_transactions,
    ):
        super().__init__(
            config.recurring_initial_delay_seconds,
            config.recurring_interval_seconds,
            config.recurring_reset_delay_seconds,
        )
        self.claude = claude
        self.store = store
        self.load_transactions = load_transactions

    def poll_once(self) -> PollOutcome:
        try:
            transactions = self.load_transactions()
        except MockDataError as e:
            logger.failure("Recurring payments: failed to read transactions", e, {"loop": self.name})
            return PollOutcome.SKIPPED

        outgoing = outgoing_transactions(transactions)
        if not outgoing:
            logger.info("Recurring payments: no outgoing transactions to analyze")
            return PollOutcome.SKIPPED

        # One model call covers the whole set, so any unseen row marks them all
        if self.tracker.claim_next(outgoing, key=Transaction.fingerprint) is None:
            self.tracker.reset()
            logger.debug("Recurring payments up to date, resetting", {"loop": self.name})
            return PollOutcome.EXHAUSTED
        self.tracker.mark(tx.fingerprint() for tx in outgoing)

        self.detect(outgoing)
        return PollOutcome.PROCESSED

    def detect(self, outgoing: List[Transaction]) -> Optional[List[RecurringPayment]]:
        logger.info("Detecting recurring payments", {"outgoing_transactions": len(outgoing)})
        prompt = build_prompt("recurring_payments.txt", transactions=format_transaction_lines(outgoing))

        try:
            response = self.claude.complete(prompt, max_tokens=2000)
            payments = parse_recurring_payments_response(response)
        except (AIServiceError, AIResponseError) as e:
            logger.failure("Recurring payments AI error", e, {"loop": self.name})
            return None

        self.store.replace(payments)
        logger.info("Recurring payments detected", {"count": len(payments)})
        return payments


INSIGHT_QUESTIONS = (
    (
        "Analyze the recent spending patterns. Provide ONE specific insight in 15 words or less. "
        "Be actionable and direct. Format: just the insight, no preamble.",
        "info",
    ),
    (
        "Identify ONE spending concern or warning in 15 words or less. "
        "Be specific about amounts or categories. Format: just the concern, no preamble.",
        "warning",
    ),
    (
        "Find ONE positive financial habit or achievement in the transaction history. "
        "State it in 15 words or less. Be encouraging. Format: just the achievement, no preamble.",
        "success",
    ),
    (
        "Suggest ONE specific money-saving opportunity based on the transactions. "
        "Maximum 15 words. Be concrete. Format: just the suggestion, no preamble.",
        "info",
    ),
    (
        "Identify ONE unusual or notable transaction pattern. "
        "Describe it in 15 words or less. Format: just the pattern, no preamble.",
        "warning",
    ),
)


class InsightPoller(PollingLoop):
    """Rotates through short insight questions, posting one alert per tick."""

    name = "insights"

    def __init__(
        self,
        claude: ClaudeService,
        board: AlertBoard,
        config: Settings = default_settings,
        load_transactions: Callable[[], List[Transaction]] = read_mock_transactions,
    ):
        # The rotation never runs out, so there is no reset pause
        super().__init__(
            config.insights_initial_delay_seconds,
            config.insights_interval_seconds,
            0.0,
        )
        self.claude = claude
        self.board = board
        self.timeout = config.insights_timeout_seconds
        self.load_transactions = load_transactions
        self.index = 0

    def next_question(self) -> Tuple[str, str]:
        """(question, alert type) for this tick; advances the rotation."""
        question = INSIGHT_QUESTIONS[self.index]
        self.index = (self.index + 1) % len(INSIGHT_QUESTIONS)
        return question

    def poll_once(self) -> PollOutcome:
        try:
            transactions = self.load_transactions()
        except MockDataError as e:
            logger.failure("Failed to read transactions", e, {"loop": self.name})
            return PollOutcome.SKIPPED

        question, alert_type = self.next_question()
        self.analyze(question, alert_type, transactions)
        return PollOutcome.PROCESSED

    def analyze(self, question: str, alert_type: str, transactions: List[Transaction]) -> Optional[str]:
        prompt = build_prompt(
            "insight.txt",
            question=question,
            transactions=format_transaction_lines(transactions),
        )

        try:
            insight = self.claude.complete(
                prompt,
                max_tokens=100,
                system=load_prompt("insight_system.txt"),
                timeout=self.timeout,
            ).strip()
        except AIServiceError as e:
            logger.failure("AI analysis error", e, {"loop": self.name, "alert_type": alert_type})
            return None

        if not insight:
            return None

        self.board.post(insight, alert_type, id_prefix="auto")
        return insight


class BackgroundAnalysis:
    """Owns the polling loops and the state they share with the server."""

    def __init__(
        self,
        claude: ClaudeService,
        board: AlertBoard,
        store: RecurringPaymentStore,
        config: Settings = default_settings,
    ):
        load = partial(read_mock_transactions, config.mock_transactions_file)
        self.loops: List[PollingLoop] = [
            ProductAlternativePoller(claude, board, config, load_transactions=load),
            LargeTransactionPoller(claude, board, config, load_transactions=load),
            RecurringPaymentPoller(claude, store, config, load_transactions=load),
            InsightPoller(claude, board, config, load_transactions=load),
        ]

    def start(self) -> None:
        for loop in self.loops:
            loop.start()
        logger.info("Background analysis started", {"loops": [loop.name for loop in self.loops]})

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        for loop in self.loops:
            loop.stop(timeout)
