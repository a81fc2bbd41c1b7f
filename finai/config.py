"""Configuration management"""
from pathlib import Path
from typing import List, Optional

from pydantic_settings import BaseSettings

from finai.exceptions import ConfigurationError

DEFAULT_MOCK_TRANSACTIONS_FILE = str(Path(__file__).resolve().parent / "data" / "mock_transactions.txt")


class Settings(BaseSettings):
    """Application settings"""

    # Anthropic
    anthropic_api_key: Optional[str] = None
    claude_model: str = "claude-sonnet-4-20250514"
    max_tokens: int = 4096

    # Liminal banking API
    liminal_base_url: str = "https://api.liminal.cash"
    liminal_execute_path: str = "/nim/v1/tools/execute"

    # Server
    host: str = "0.0.0.0"
    port: int = 8080

    # CORS - comma-separated list of allowed origins
    allowed_origins: str = "*"

    # Mock data
    mock_transactions_file: str = DEFAULT_MOCK_TRANSACTIONS_FILE

    # Alerts
    max_alerts_stored: int = 100
    alert_retention_hours: int = 24

    # Analysis
    enable_background_analysis: bool = True
    analysis_timeout_seconds: float = 60.0
    minimum_savings: float = 5.0
    transaction_lookback_days: int = 7
    large_transaction_threshold: float = 100.0

    # Product alternative loop timing
    alternatives_initial_delay_seconds: float = 0.0
    alternatives_interval_seconds: float = 5.0
    alternatives_reset_delay_seconds: float = 60.0

    # Large transaction loop timing
    large_tx_initial_delay_seconds: float = 5.0
    large_tx_interval_seconds: float = 15.0
    large_tx_reset_delay_seconds: float = 120.0

    # Recurring payment loop timing
    recurring_initial_delay_seconds: float = 0.0
    recurring_interval_seconds: float = 5.0
    recurring_reset_delay_seconds: float = 300.0

    # Insight rotation timing
    insights_initial_delay_seconds: float = 10.0
    insights_interval_seconds: float = 30.0
    insights_timeout_seconds: float = 30.0

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"  # Ignore extra environment variables

    @property
    def origins(self) -> List[str]:
        """Allowed CORS origins, falling back to a wildcard when none are set."""
        parsed = [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]
        return parsed or ["*"]

    def validate_required_settings(self) -> None:
        """Fail fast on configuration the server cannot start without. Call during startup."""
        if not self.anthropic_api_key:
            raise ConfigurationError(
                "ANTHROPIC_API_KEY environment variable is required. "
                "Export it or add it to a .env file."
            )


settings = Settings()
