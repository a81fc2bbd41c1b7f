"""
Claude Service - single entry point for language model calls

Used by:
- the background pollers (product alternatives, large transactions, recurring payments, insights)
- the search_product_alternatives and analyze_products tools

Every call carries a deadline. Failures are raised as AIServiceError so that
callers can log and skip without caring about the SDK's exception types.
"""
import asyncio
from typing import Any, Optional

import anthropic

from finai.config import settings
from finai.exceptions import AIServiceError
from finai.logger import create_logger

logger = create_logger("claude_service")


def extract_text(response: Any) -> str:
    """Concatenate the text blocks of a Messages API response."""
    parts = []
    for block in getattr(response, "content", None) or []:
        if getattr(block, "type", None) == "text":
            parts.append(block.text)
    return "".join(parts)


class ClaudeService:
    """Thin wrapper over the Anthropic Messages API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Any = None,
    ):
        self.model = model or settings.claude_model
        self.timeout = timeout if timeout is not None else settings.analysis_timeout_seconds
        self.client = client or anthropic.Anthropic(api_key=api_key or settings.anthropic_api_key)

    def complete(
        self,
        prompt: str,
        max_tokens: int = 1024,
        system: Optional[str] = None,
        timeout: Optional[float] = None,
        model: Optional[str] = None,
    ) -> str:
        """
        Send a single user message and return the reply text.

        Args:
            prompt: User message text
            max_tokens: Reply token cap
            system: Optional system prompt
            timeout: Deadline in seconds (defaults to the service timeout)
            model: Override of the configured model

        Returns:
            Reply text (text blocks joined, not stripped)
        """
        deadline = timeout if timeout is not None else self.timeout
        params = {
            "model": model or self.model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            params["system"] = system

        logger.debug("Calling Claude", {
            "model": params["model"],
            "max_tokens": max_tokens,
            "prompt_length": len(prompt),
            "timeout": deadline,
        })

        try:
            response = self.client.messages.create(**params, timeout=deadline)
        except anthropic.APITimeoutError as e:
            raise AIServiceError(f"Claude call timed out after {deadline} seconds") from e
        except anthropic.APIError as e:
            raise AIServiceError(f"Claude API error: {e}") from e

        return extract_text(response)

    async def acomplete(self, prompt: str, **kwargs: Any) -> str:
        """complete() on a worker thread, for async tool handlers."""
        return await asyncio.to_thread(self.complete, prompt, **kwargs)
