"""
Spending tools - analyze_spending and analyze_products

Both fetch the user's real transaction history from the banking service
through the LiminalExecutor. analyze_spending computes totals locally;
analyze_products hands the list to the language model for categorisation.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from finai.exceptions import AIServiceError, ExecutorError
from finai.logger import create_logger
from finai.prompts import build_prompt
from finai.schemas import ToolResult
from finai.services.claude_service import ClaudeService
from finai.services.liminal_executor import ExecuteResponse, LiminalExecutor

logger = create_logger("spending")

DEFAULT_DAYS = 30
SPENDING_FETCH_LIMIT = 100
DEFAULT_PRODUCT_LIMIT = 50
PRODUCT_PROMPT_CAP = 50
PRODUCT_MAX_TOKENS = 2048
NO_TRANSACTIONS = "No transactions found in the specified period"
NO_ANALYSIS = "No analysis generated"


def _positive_or(value: Optional[int], default: int) -> int:
    if value is None or value < 1:
        return default
    return value


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def extract_transactions(response: ExecuteResponse) -> List[Dict[str, Any]]:
    """The `transactions` list from a get_transactions response, dict items only."""
    data = response.json_data()
    if not isinstance(data, dict):
        return []
    items = data.get("transactions")
    if not isinstance(items, list):
        return []
    return [tx for tx in items if isinstance(tx, dict)]


def calculate_velocity(transaction_count: int, days: int) -> str:
    """Spending frequency: low under 2 a week, moderate under 7, else high."""
    per_week = transaction_count / days * 7
    if per_week < 2:
        return "low"
    if per_week < 7:
        return "moderate"
    return "high"


def analyze_transactions(transactions: List[Dict[str, Any]], days: int) -> Dict[str, Any]:
    """Totals and velocity over `send` and `receive` transactions."""
    if not transactions:
        return {"summary": NO_TRANSACTIONS}

    total_spent = 0.0
    total_received = 0.0
    spend_count = 0
    receive_count = 0

    for tx in transactions:
        tx_type = tx.get("type")
        amount = tx.get("amount")
        if not isinstance(tx_type, str) or not _is_number(amount):
            continue

        if tx_type == "send":
            total_spent += amount
            spend_count += 1
        elif tx_type == "receive":
            total_received += amount
            receive_count += 1

    avg_daily_spend = total_spent / days

    return {
        "total_spent": f"{total_spent:.2f}",
        "total_received": f"{total_received:.2f}",
        "spend_count": spend_count,
        "receive_count": receive_count,
        "avg_daily_spend": f"{avg_daily_spend:.2f}",
        "velocity": calculate_velocity(spend_count, days),
        "insights": [
            f"You made {spend_count} spending transactions over {days} days",
            f"Average daily spend: ${avg_daily_spend:.2f}",
            "Consider setting up savings goals to build financial cushion",
        ],
    }


def format_transactions_for_prompt(transactions: List[Dict[str, Any]]) -> str:
    """Numbered transaction blocks for the product analysis prompt (first 50 only)."""
    blocks = []
    for index, tx in enumerate(transactions[:PRODUCT_PROMPT_CAP], start=1):
        lines = [f"Transaction {index}:"]
        if isinstance(tx.get("type"), str):
            lines.append(f"  Type: {tx['type']}")
        if _is_number(tx.get("amount")):
            lines.append(f"  Amount: ${tx['amount']:.2f}")
        for field in ("description", "merchant", "recipient", "sender", "memo"):
            value = tx.get(field)
            if isinstance(value, str) and value:
                lines.append(f"  {field.capitalize()}: {value}")
        blocks.append("\n".join(lines) + "\n")
    return "\n".join(blocks)


async def fetch_transactions(
    executor: LiminalExecutor,
    limit: int,
    user_id: Optional[str] = None,
    request_id: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """
    Run get_transactions through the executor.

    Raises:
        ExecutorError: when the banking service reports a failure
    """
    response = await executor.execute(
        "get_transactions",
        {"limit": limit},
        user_id=user_id,
        request_id=request_id,
    )
    if not response.success:
        raise ExecutorError(f"transaction fetch failed: {response.error}")
    return extract_transactions(response)


async def analyze_spending_handler(
    executor: LiminalExecutor,
    days: Optional[int] = None,
    user_id: Optional[str] = None,
    request_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Analyze spending over the last `days` (default 30).

    Fetches up to 100 transactions and returns totals, counts, average daily
    spend, a velocity label and a few plain-language insights.
    """
    period = _positive_or(days, DEFAULT_DAYS)
    started = logger.tool_call_start("analyze_spending", {"days": period, "user_id": user_id})

    try:
        transactions = await fetch_transactions(executor, SPENDING_FETCH_LIMIT, user_id, request_id)
    except ExecutorError as e:
        logger.tool_call_error("analyze_spending", started, e)
        return ToolResult.fail(str(e)).to_dict()

    data = {
        "period_days": period,
        "total_transactions": len(transactions),
        "analysis": analyze_transactions(transactions, period),
        "generated_at": datetime.now(timezone.utc).isoformat(),
    }
    logger.tool_call_end("analyze_spending", started, data)
    return ToolResult.ok(data).to_dict()


async def analyze_products_handler(
    executor: LiminalExecutor,
    claude: ClaudeService,
    days: Optional[int] = None,
    limit: Optional[int] = None,
    user_id: Optional[str] = None,
    request_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Identify what the user bought, grouped by category.

    Args:
        executor: Banking service client
        claude: Language model service
        days: Period label for the result (default 30)
        limit: Transactions to fetch (default 50)
        user_id: End-user id forwarded to the banking service
        request_id: Request id forwarded to the banking service

    Returns:
        Tool result envelope with the model's analysis as text
    """
    period = _positive_or(days, DEFAULT_DAYS)
    fetch_limit = _positive_or(limit, DEFAULT_PRODUCT_LIMIT)
    started = logger.tool_call_start("analyze_products", {
        "days": period,
        "limit": fetch_limit,
        "user_id": user_id,
    })

    try:
        transactions = await fetch_transactions(executor, fetch_limit, user_id, request_id)
    except ExecutorError as e:
        logger.tool_call_error("analyze_products", started, e)
        return ToolResult.fail(str(e)).to_dict()

    if not transactions:
        data = {"summary": NO_TRANSACTIONS, "products": []}
        logger.tool_call_end("analyze_products", started, data)
        return ToolResult.ok(data).to_dict()

    prompt = build_prompt("product_analysis.txt", transactions=format_transactions_for_prompt(transactions))
    try:
        reply = await claude.acomplete(prompt, max_tokens=PRODUCT_MAX_TOKENS)
    except AIServiceError as e:
        logger.tool_call_error("analyze_products", started, e)
        return ToolResult.fail(f"AI analysis failed: {e}").to_dict()

    data = {
        "period_days": period,
        "transactions_analyzed": len(transactions),
        "product_analysis": reply or NO_ANALYSIS,
        "generated_at": datetime.now(timezone.utc).isoformat(),
    }
    logger.tool_call_end("analyze_products", started, data)
    return ToolResult.ok(data).to_dict()
