"""Main MCP server entry point"""
import json
import sys
from typing import Any, Dict, Optional, Union

import mcp.types as types
import uvicorn
from dotenv import load_dotenv
from mcp.server.fastmcp import FastMCP
from mcp.types import TextContent
from starlette.applications import Starlette
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from finai import __version__
from finai.config import Settings, settings
from finai.exceptions import ConfigurationError, MockDataError
from finai.logger import create_logger
from finai.prompts import load_prompt
from finai.services.alert_board import AlertBoard
from finai.services.claude_service import ClaudeService
from finai.services.liminal_executor import LiminalExecutor
from finai.services.pollers import BackgroundAnalysis
from finai.services.recurring_store import RecurringPaymentStore
from finai.tools import (
    analyze_products_handler,
    analyze_spending_handler,
    get_recurring_payments_handler,
    post_alert_handler,
    read_alerts_handler,
    read_mock_transactions_handler,
    search_product_alternatives_handler,
)
from finai.tools.mock_transactions import format_transactions_for_api, read_mock_transactions
# Tool descriptions live in finai/tools/tool_descriptions.py, not in the decorators
from finai.tools.tool_descriptions import (
    ANALYZE_PRODUCTS_DESCRIPTION,
    ANALYZE_SPENDING_DESCRIPTION,
    GET_RECURRING_PAYMENTS_DESCRIPTION,
    POST_ALERT_DESCRIPTION,
    READ_ALERTS_DESCRIPTION,
    READ_MOCK_TRANSACTIONS_DESCRIPTION,
    SEARCH_PRODUCT_ALTERNATIVES_DESCRIPTION,
)

load_dotenv()

logger = create_logger("main")

SERVER_NAME = "finai"


class AgentServices:
    """Shared state handed to the tools, the HTTP routes and the pollers."""

    def __init__(
        self,
        config: Settings,
        claude: ClaudeService,
        executor: LiminalExecutor,
        board: Optional[AlertBoard] = None,
        store: Optional[RecurringPaymentStore] = None,
    ):
        self.config = config
        self.claude = claude
        self.executor = executor
        self.board = board or AlertBoard(config.max_alerts_stored)
        self.store = store or RecurringPaymentStore()

    @classmethod
    def from_settings(cls, config: Settings = settings) -> "AgentServices":
        return cls(
            config=config,
            claude=ClaudeService(
                api_key=config.anthropic_api_key,
                model=config.claude_model,
                timeout=config.analysis_timeout_seconds,
            ),
            executor=LiminalExecutor(config.liminal_base_url, config.liminal_execute_path),
        )


def build_tool_result(result: Dict[str, Any]) -> types.CallToolResult:
    """Wrap a {success, data|error} envelope for the MCP runtime."""
    if "success" not in result:
        raise ValueError("tool handler result missing success flag")

    return types.CallToolResult(
        content=[TextContent(type="text", text=json.dumps(result, default=str))],
        structuredContent=result,
        isError=not result["success"],
    )


def build_server(services: AgentServices) -> FastMCP:
    """Create the MCP server with every tool and HTTP route bound to `services`."""
    config = services.config

    mcp = FastMCP(
        SERVER_NAME,
        instructions=load_prompt("system_prompt.txt"),
        host=config.host,
        port=config.port,
        stateless_http=True,
        streamable_http_path="/mcp",
    )

    # ------------------------------------------------------------------
    # HTTP routes
    # ------------------------------------------------------------------

    @mcp.custom_route("/health", methods=["GET"])
    async def health(request: Request):
        """Health check endpoint"""
        return JSONResponse({"status": "ok"})

    @mcp.custom_route("/api/alerts", methods=["GET"])
    async def api_alerts(request: Request):
        """Alerts from the retention window, oldest first"""
        alerts = services.board.recent(config.alert_retention_hours)
        return JSONResponse([alert.model_dump(mode="json") for alert in alerts])

    @mcp.custom_route("/api/transactions", methods=["GET"])
    async def api_transactions(request: Request):
        """Mock statement rows in the frontend format"""
        try:
            transactions = read_mock_transactions(config.mock_transactions_file)
        except MockDataError as e:
            logger.failure("Failed to read transactions", e, {"path": str(request.url.path)})
            return JSONResponse({"error": "Failed to read transactions"}, status_code=500)
        return JSONResponse(format_transactions_for_api(transactions))

    @mcp.custom_route("/api/recurring-payments", methods=["GET"])
    async def api_recurring_payments(request: Request):
        """Detected recurring payments, 202 until the first detection finishes"""
        detected, payments = services.store.snapshot()
        if not detected:
            return JSONResponse({"status": "pending"}, status_code=202)
        return JSONResponse([payment.model_dump(by_alias=True) for payment in payments])

    # ------------------------------------------------------------------
    # Tools
    # ------------------------------------------------------------------

    @mcp.tool(
        name="read_mock_transactions",
        description=READ_MOCK_TRANSACTIONS_DESCRIPTION,
        meta={"readOnlyHint": True},
    )
    async def read_mock_transactions_tool(format: Optional[str] = "full") -> types.CallToolResult:
        result = read_mock_transactions_handler(format=format, file_path=config.mock_transactions_file)
        return build_tool_result(result)

    @mcp.tool(
        name="search_product_alternatives",
        description=SEARCH_PRODUCT_ALTERNATIVES_DESCRIPTION,
        meta={"readOnlyHint": True},
    )
    async def search_product_alternatives(
        product_name: str,
        original_price: Optional[str] = None,
        search_criteria: Optional[str] = None,
        max_price: Optional[str] = None,
        category_filter: Optional[str] = None,
    ) -> types.CallToolResult:
        result = await search_product_alternatives_handler(
            services.claude,
            product_name=product_name,
            original_price=original_price,
            search_criteria=search_criteria,
            max_price=max_price,
            category_filter=category_filter,
        )
        return build_tool_result(result)

    @mcp.tool(
        name="post_alert",
        description=POST_ALERT_DESCRIPTION,
        meta={"readOnlyHint": False},
    )
    async def post_alert(message: str, type: Optional[str] = "info") -> types.CallToolResult:
        return build_tool_result(post_alert_handler(services.board, message=message, type=type))

    @mcp.tool(
        name="read_alerts",
        description=READ_ALERTS_DESCRIPTION,
        meta={"readOnlyHint": True},
    )
    async def read_alerts(
        hours: Optional[Union[str, int]] = None,
        type: Optional[str] = None,
    ) -> types.CallToolResult:
        return build_tool_result(read_alerts_handler(services.board, hours=hours, type=type))

    @mcp.tool(
        name="analyze_spending",
        description=ANALYZE_SPENDING_DESCRIPTION,
        meta={"readOnlyHint": True},
    )
    async def analyze_spending(
        days: Optional[int] = 30,
        user_id: Optional[str] = None,
    ) -> types.CallToolResult:
        result = await analyze_spending_handler(services.executor, days=days, user_id=user_id)
        return build_tool_result(result)

    @mcp.tool(
        name="analyze_products",
        description=ANALYZE_PRODUCTS_DESCRIPTION,
        meta={"readOnlyHint": True},
    )
    async def analyze_products(
        days: Optional[int] = 30,
        limit: Optional[int] = 50,
        user_id: Optional[str] = None,
    ) -> types.CallToolResult:
        result = await analyze_products_handler(
            services.executor,
            services.claude,
            days=days,
            limit=limit,
            user_id=user_id,
        )
        return build_tool_result(result)

    @mcp.tool(
        name="get_recurring_payments",
        description=GET_RECURRING_PAYMENTS_DESCRIPTION,
        meta={"readOnlyHint": True},
    )
    async def get_recurring_payments() -> types.CallToolResult:
        return build_tool_result(get_recurring_payments_handler(services.store))

    return mcp


def create_app(services: Optional[AgentServices] = None) -> Starlette:
    """Build the ASGI app: MCP endpoint, JSON routes and CORS."""
    services = services or AgentServices.from_settings()
    mcp = build_server(services)

    app = mcp.streamable_http_app()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=services.config.origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        allow_credentials=False,
    )
    return app


def main() -> None:
    """Validate configuration, start the background analysis and serve."""
    try:
        settings.validate_required_settings()
    except ConfigurationError as e:
        logger.failure("Invalid configuration", e)
        sys.exit(1)

    services = AgentServices.from_settings(settings)
    app = create_app(services)

    background: Optional[BackgroundAnalysis] = None
    if settings.enable_background_analysis:
        background = BackgroundAnalysis(services.claude, services.board, services.store, settings)
        background.start()

    logger.info("finai server starting", {
        "version": __version__,
        "host": settings.host,
        "port": settings.port,
        "model": settings.claude_model,
        "liminal_base_url": settings.liminal_base_url,
        "background_analysis": settings.enable_background_analysis,
        "endpoints": ["/mcp", "/api/alerts", "/api/transactions", "/api/recurring-payments", "/health"],
    })

    try:
        uvicorn.run(app, host=settings.host, port=settings.port)
    finally:
        if background is not None:
            background.stop()


if __name__ == "__main__":
    main()
