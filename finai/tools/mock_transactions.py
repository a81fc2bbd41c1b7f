"""
Mock Transactions - pipe-delimited transaction feed

This module parses the mock credit card statement that stands in for a real
banking transaction feed, and exposes it through the read_mock_transactions
tool and the /api/transactions endpoint.

File layout:
    banner lines (MOCK ..., Account ..., Card ..., Period ...)
    DATE | MERCHANT | PRODUCT | AMOUNT | INCOMING
    ----------------------------------------------
    2026-01-30 | Amazon | Echo Dot 5th Gen | $49.99 | F
    ==============================================
    TOTAL TRANSACTIONS: ...
    CATEGORY BREAKDOWN:
    - Groceries: $412.50
"""
import re
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

from finai.config import settings
from finai.exceptions import MockDataError
from finai.logger import create_logger
from finai.schemas import ToolResult, Transaction, TransactionAPI

logger = create_logger("mock_transactions")

HEADER_PREFIXES = ("MOCK", "Account", "Card", "Period", "DATE")
DATE_FORMAT = "%Y-%m-%d"

_LEADING_FLOAT = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)")


def read_mock_file(file_path: Optional[str] = None) -> str:
    """Read the raw mock statement text."""
    path = Path(file_path or settings.mock_transactions_file)
    try:
        return path.read_text(encoding="utf-8")
    except OSError as e:
        raise MockDataError(f"failed to read mock transactions file {path}: {e}") from e


def read_mock_transactions(file_path: Optional[str] = None) -> List[Transaction]:
    """Read and parse the mock transactions file."""
    return parse_mock_transactions(read_mock_file(file_path))


def parse_mock_transactions(content: str) -> List[Transaction]:
    """
    Extract transactions from the statement text.

    Data starts after the line naming both DATE and MERCHANT and stops at the
    first ======= line after it. Separator and banner lines are skipped, and
    rows that do not have exactly five fields are ignored.
    """
    transactions: List[Transaction] = []
    in_data_section = False

    for raw_line in content.split("\n"):
        line = raw_line.strip()

        if "DATE" in line and "MERCHANT" in line:
            in_data_section = True
            continue

        if line.startswith("=======") and in_data_section:
            break

        if line.startswith("----"):
            continue

        if in_data_section and line and not is_header_line(line):
            tx = parse_transaction_line(line)
            if tx is not None:
                transactions.append(tx)

    return transactions


def is_header_line(line: str) -> bool:
    """Return True for banner and column header lines."""
    return line.startswith(HEADER_PREFIXES)


def parse_transaction_line(line: str) -> Optional[Transaction]:
    """Parse a single DATE | MERCHANT | PRODUCT | AMOUNT | FLAG row."""
    parts = line.split("|")
    if len(parts) != 5:
        return None

    date, merchant, product, amount, incoming = (part.strip() for part in parts)

    if not date or date == "DATE" or not merchant:
        return None

    return Transaction(
        date=date,
        merchant=merchant,
        product=product,
        amount=amount,
        is_incoming=incoming == "T",
    )


def parse_amount(amount: str) -> float:
    """Numeric value of an amount like "$1,049.99"; 0.0 when unreadable."""
    cleaned = amount.strip().replace(",", "")
    if cleaned.startswith("$"):
        cleaned = cleaned[1:]
    match = _LEADING_FLOAT.match(cleaned)
    if not match:
        return 0.0
    try:
        return float(match.group(0))
    except ValueError:
        return 0.0


def filter_recent_transactions(
    transactions: List[Transaction],
    days: int,
    now: Optional[datetime] = None,
) -> List[Transaction]:
    """Transactions dated strictly after now - days. Unparseable dates are skipped."""
    cutoff = (now or datetime.now()) - timedelta(days=days)
    recent = []
    for tx in transactions:
        try:
            tx_date = datetime.strptime(tx.date, DATE_FORMAT)
        except ValueError:
            continue
        if tx_date > cutoff:
            recent.append(tx)
    return recent


def outgoing_transactions(transactions: List[Transaction]) -> List[Transaction]:
    return [tx for tx in transactions if not tx.is_incoming]


def format_transactions_for_api(transactions: List[Transaction]) -> List[Dict[str, Any]]:
    """Convert to the /api/transactions shape; debits are negative."""
    formatted = []
    for index, tx in enumerate(transactions, start=1):
        amount = parse_amount(tx.amount)
        api_tx = TransactionAPI(
            id=f"tx-{index}",
            amount=amount if tx.is_incoming else -amount,
            description=tx.product,
            date=tx.date,
            merchant=tx.merchant,
            is_incoming=tx.is_incoming,
        )
        formatted.append(api_tx.model_dump(by_alias=True))
    return formatted


def extract_summary_from_content(content: str) -> str:
    """Return the TOTAL TRANSACTIONS .. TOTAL AMOUNT block of the footer."""
    summary_lines = []
    in_summary = False
    for line in content.split("\n"):
        if "TOTAL TRANSACTIONS:" in line or "TOTAL AMOUNT:" in line:
            in_summary = True
        if in_summary:
            summary_lines.append(line + "\n")
            if "TOTAL AMOUNT:" in line:
                break
    return "".join(summary_lines)


def extract_categories_from_content(content: str) -> Dict[str, str]:
    """Map "- Category: $amount" lines following CATEGORY BREAKDOWN:."""
    categories: Dict[str, str] = {}
    in_category_section = False
    for line in content.split("\n"):
        if "CATEGORY BREAKDOWN:" in line:
            in_category_section = True
            continue

        if in_category_section and line.startswith("- "):
            name, sep, amount = line[2:].partition(":")
            if sep:
                categories[name.strip()] = amount.strip()

    return categories


def read_mock_transactions_handler(
    format: Optional[str] = None,
    file_path: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Read the mock statement for the agent.

    Args:
        format: "full" (default) for every row plus the raw text, "summary"
            for totals and the category breakdown only
        file_path: Override of the configured mock file

    Returns:
        Tool result envelope
    """
    output_format = format or "full"
    started = logger.tool_call_start("read_mock_transactions", {"format": output_format})

    try:
        content = read_mock_file(file_path)
    except MockDataError as e:
        logger.tool_call_error("read_mock_transactions", started, e)
        return ToolResult.fail(str(e)).to_dict()

    transactions = parse_mock_transactions(content)

    if output_format == "summary":
        data = {
            "format": "summary",
            "total_transactions": len(transactions),
            "summary": extract_summary_from_content(content),
            "categories": extract_categories_from_content(content),
        }
    else:
        data = {
            "format": "full",
            "total_transactions": len(transactions),
            "transactions": [tx.to_tool_dict() for tx in transactions],
            "raw_content": content,
        }

    logger.tool_call_end("read_mock_transactions", started, data)
    return ToolResult.ok(data).to_dict()
