"""
Product Search - search_product_alternatives tool

Asks the language model for cheaper or better alternatives to a product the
user bought, with optional price and category constraints.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from finai.config import settings
from finai.exceptions import AIServiceError
from finai.logger import ErrorType, create_logger
from finai.prompts import build_prompt
from finai.schemas import ToolResult
from finai.services.claude_service import ClaudeService

logger = create_logger("product_search")

NO_RESULTS = "No product alternatives found"


def build_search_details(
    original_price: Optional[str] = None,
    search_criteria: Optional[str] = None,
    max_price: Optional[str] = None,
    category_filter: Optional[str] = None,
) -> str:
    """One line per supplied constraint, in a fixed order."""
    lines = []
    if original_price:
        lines.append(f"Original price paid: {original_price}")
    if search_criteria:
        lines.append(f"Search criteria: {search_criteria}")
    if max_price:
        lines.append(f"Maximum price: {max_price}")
    if category_filter:
        lines.append(f"Category: {category_filter}")
    return "\n".join(lines) + ("\n" if lines else "")


async def search_product_alternatives_handler(
    claude: ClaudeService,
    product_name: Optional[str],
    original_price: Optional[str] = None,
    search_criteria: Optional[str] = None,
    max_price: Optional[str] = None,
    category_filter: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Research alternatives to a purchased product.

    Args:
        claude: Language model service
        product_name: Product to find alternatives for (required)
        original_price: Price the user paid, e.g. "$49.99"
        search_criteria: Free text, e.g. "cheaper", "better reviews"
        max_price: Upper price bound
        category_filter: Product category, e.g. "smart speakers"

    Returns:
        Tool result envelope with the model's research as text
    """
    started = logger.tool_call_start("search_product_alternatives", {
        "product_name": product_name,
        "max_price": max_price,
        "category_filter": category_filter,
    })

    if not product_name:
        logger.tool_call_error(
            "search_product_alternatives",
            started,
            ValueError("product_name is required"),
            ErrorType.VALIDATION_ERROR,
        )
        return ToolResult.fail("product_name is required").to_dict()

    prompt = build_prompt(
        "product_search.txt",
        product_name=product_name,
        details=build_search_details(original_price, search_criteria, max_price, category_filter),
    )

    try:
        reply = await claude.acomplete(prompt, max_tokens=settings.max_tokens)
    except AIServiceError as e:
        logger.tool_call_error("search_product_alternatives", started, e)
        return ToolResult.fail(f"product search failed: {e}").to_dict()

    data = {
        "product_searched": product_name,
        "original_price": original_price or "",
        "search_results": reply or NO_RESULTS,
        "generated_at": datetime.now(timezone.utc).isoformat(),
    }
    logger.tool_call_end("search_product_alternatives", started, data)
    return ToolResult.ok(data).to_dict()
