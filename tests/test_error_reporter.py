"""Tests for the error reporting sink."""
import json
from unittest.mock import patch

from finbot.assistant.errors import LoopExceeded
from finbot.llm.errors import ProviderError
from finbot.services.error_reporter import ErrorReporter, describe_error


class TestDescribeError:

    def test_provider_details_extracted(self):
        error = ProviderError("anthropic", "API error 529", status=529, body={"error": {"type": "overloaded_error"}})

        record = describe_error("anthropic", error, "Primary model failed")

        assert record["provider"] == "anthropic"
        assert record["status"] == 529
        assert record["body"] == {"error": {"type": "overloaded_error"}}
        assert record["transient"] is True
        assert record["context"] == "Primary model failed"

    def test_plain_exception(self):
        record = describe_error("loop", LoopExceeded(10))
        assert record["error_class"] == "LoopExceeded"
        assert "provider" not in record


class TestErrorReporter:

    def test_writes_json_dump(self, tmp_path):
        reporter = ErrorReporter(log_dir=str(tmp_path / "errors"))

        reporter.report("openai", ProviderError("openai", "timeout", timed_out=True), "Backup failed")

        files = list((tmp_path / "errors").glob("openai_*.json"))
        assert len(files) == 1
        record = json.loads(files[0].read_text())
        assert record["timed_out"] is True

    def test_never_raises(self, tmp_path):
        reporter = ErrorReporter(log_dir=str(tmp_path))
        with patch.object(ErrorReporter, "_write", side_effect=OSError("disk full")):
            reporter.report("tools", RuntimeError("boom"))

    def test_without_log_dir_only_logs(self, caplog):
        ErrorReporter().report("loop", RuntimeError("boom"), "Round limit")
        assert "Round limit" in caplog.text
