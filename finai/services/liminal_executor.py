"""
Liminal Executor - calls banking tools on the Liminal service

The agent's spending and product analysis tools fetch real transaction history
through this client. Only one narrow operation is used: execute a named banking
tool with a JSON input and read back a success/data/error envelope.
"""
import json
from typing import Any, Dict, Optional

import httpx
from pydantic import BaseModel

from finai.config import settings
from finai.logger import create_logger

logger = create_logger("liminal_executor")

DEFAULT_TIMEOUT_SECONDS = 30.0


class ExecuteResponse(BaseModel):
    """Envelope returned by the banking service"""
    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None

    def json_data(self) -> Any:
        """Data decoded from JSON when the service sent it as a string"""
        if isinstance(self.data, str):
            try:
                return json.loads(self.data)
            except ValueError:
                return self.data
        return self.data


class LiminalExecutor:
    """HTTP client for the banking tool endpoint."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        execute_path: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.liminal_base_url).rstrip("/")
        self.execute_path = execute_path or settings.liminal_execute_path
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    @property
    def execute_url(self) -> str:
        return f"{self.base_url}{self.execute_path}"

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def execute(
        self,
        tool: str,
        input: Dict[str, Any],
        user_id: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> ExecuteResponse:
        """
        Execute a banking tool.

        Args:
            tool: Banking tool name, e.g. "get_transactions"
            input: Tool input, sent as JSON
            user_id: Optional end-user id forwarded to the service
            request_id: Optional request id for tracing

        Returns:
            ExecuteResponse; transport and protocol failures come back as
            success=False rather than being raised
        """
        payload = {
            "tool": tool,
            "input": input,
            "user_id": user_id,
            "request_id": request_id,
        }

        logger.info("Executing banking tool", {
            "tool": tool,
            "user_id": user_id,
            "request_id": request_id,
        })

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.execute_url, json=payload, headers=self._headers())
                response.raise_for_status()
                body = response.json()
        except httpx.HTTPError as e:
            logger.error("HTTP error calling banking tool", {
                "tool": tool,
                "error": str(e),
            })
            return ExecuteResponse(success=False, error=f"HTTP error: {e}")
        except ValueError as e:
            logger.error("Invalid response from banking tool", {
                "tool": tool,
                "error": str(e),
            })
            return ExecuteResponse(success=False, error=f"Invalid response: {e}")

        if not isinstance(body, dict) or "success" not in body:
            return ExecuteResponse(success=False, error="Invalid response: missing success flag")

        result = ExecuteResponse(
            success=bool(body.get("success")),
            data=body.get("data"),
            error=body.get("error"),
        )
        if not result.success:
            logger.warn("Banking tool reported failure", {"tool": tool, "error": result.error})
        return result
