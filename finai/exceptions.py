"""Custom exception classes for the finai agent backend."""


class FinAIError(Exception):
    """Base exception for finai."""
    pass


class ConfigurationError(FinAIError):
    """Missing or invalid startup configuration."""
    pass


class MockDataError(FinAIError):
    """Mock transaction file could not be read."""
    pass


class AIServiceError(FinAIError):
    """Call to the language model failed or timed out."""
    pass


class AIResponseError(FinAIError):
    """Language model replied with something we could not parse."""

    def __init__(self, message: str, raw_response: str = ""):
        super().__init__(message)
        self.raw_response = raw_response


class ExecutorError(FinAIError):
    """Banking executor call failed."""
    pass
