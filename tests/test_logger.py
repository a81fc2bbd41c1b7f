"""Tests for the structured JSON logger."""
import json

import pytest

from finai.exceptions import AIResponseError, AIServiceError, ConfigurationError, ExecutorError, MockDataError
from finai.logger import ErrorType, classify_error, create_logger, summarize


@pytest.mark.parametrize("error, expected", [
    (TimeoutError("slow"), ErrorType.TIMEOUT),
    (ConfigurationError("missing key"), ErrorType.CONFIG_ERROR),
    (MockDataError("no file"), ErrorType.MOCK_DATA_ERROR),
    (AIResponseError("bad json", "raw"), ErrorType.PARSE_ERROR),
    (ExecutorError("bank down"), ErrorType.NETWORK_ERROR),
    (AIServiceError("Claude call timed out after 60 seconds"), ErrorType.TIMEOUT),
    (AIServiceError("Claude API error: overloaded"), ErrorType.AI_ERROR),
    (ValueError("connection reset"), ErrorType.NETWORK_ERROR),
    (ValueError("could not decode"), ErrorType.PARSE_ERROR),
    (ValueError("???"), ErrorType.UNKNOWN_ERROR),
])
def test_classify_error(error, expected):
    assert classify_error(error) == expected


def test_info_goes_to_stdout_as_json(capsys, monkeypatch):
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    create_logger("pollers").info("Poll tick", {"loop": "large_transactions"})

    out, err = capsys.readouterr()
    record = json.loads(out)
    assert record["level"] == "INFO"
    assert record["event"] == "Poll tick"
    assert record["context"] == "pollers"
    assert record["metadata"] == {"loop": "large_transactions"}
    assert record["timestamp"].endswith("Z")
    assert err == ""


def test_failure_goes_to_stderr_with_classification(capsys):
    create_logger("main").failure("Invalid configuration", ConfigurationError("ANTHROPIC_API_KEY missing"))

    out, err = capsys.readouterr()
    record = json.loads(err)
    assert out == ""
    assert record["level"] == "ERROR"
    assert record["metadata"]["error_type"] == "CONFIG_ERROR"
    assert record["metadata"]["error_message"] == "ANTHROPIC_API_KEY missing"


def test_level_threshold(capsys, monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "warning")
    log = create_logger("test")
    log.debug("hidden")
    log.info("hidden")
    log.warn("shown")

    out, err = capsys.readouterr()
    assert out == ""
    assert json.loads(err)["event"] == "shown"


def test_tool_call_context_logs_error_and_reraises(capsys, monkeypatch):
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    log = create_logger("tools")

    with pytest.raises(MockDataError):
        with log.tool_call("read_mock_transactions", {"format": "full"}):
            raise MockDataError("no file")

    out, err = capsys.readouterr()
    started = json.loads(out)
    failed = json.loads(err)
    assert started["event"] == "Tool call started"
    assert started["metadata"]["arguments"] == {"format": "full"}
    assert failed["event"] == "Tool call failed"
    assert failed["metadata"]["error_type"] == "MOCK_DATA_ERROR"


def test_summarize():
    assert summarize({"a": 1, "b": 2}) == {"_type": "object", "keys": ["a", "b"]}
    assert summarize([1, 2, 3]) == {"_type": "array", "length": 3}
    assert summarize("x" * 300).endswith("...")
    assert summarize(3) == 3
