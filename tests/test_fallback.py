"""Tests for the primary/backup fallback cascade."""
import pytest

from finbot.llm.errors import ProviderError
from finbot.llm.fallback import FallbackCascade
from finbot.llm.types import LLMMessage, LLMRequest

from fakes import FakeProvider, provider_factory, text_response


def make_request() -> LLMRequest:
    return LLMRequest(system="Be brief.", messages=[LLMMessage(role="user", content="Hi")])


def make_cascade(primary, backup=None, reporter=None) -> FallbackCascade:
    providers = {"primary": primary}
    if backup is not None:
        providers["backup"] = backup
    return FallbackCascade(
        primary_provider="primary",
        primary_model="model-a",
        backup_provider="backup" if backup is not None else None,
        backup_model="model-b" if backup is not None else None,
        error_reporter=reporter,
        provider_factory=provider_factory(**providers),
    )


# ============================================================================
# ERROR CLASSIFICATION
# ============================================================================

class TestProviderErrorTransient:
    """Tests for ProviderError.transient."""

    @pytest.mark.parametrize("status", [500, 502, 503, 529])
    def test_server_errors_are_transient(self, status):
        assert ProviderError("p", "boom", status=status).transient

    @pytest.mark.parametrize("status", [400, 401, 403, 404, 422])
    def test_client_errors_are_permanent(self, status):
        assert not ProviderError("p", "bad", status=status).transient

    def test_timeout_is_transient(self):
        assert ProviderError("p", "slow", timed_out=True).transient

    def test_connection_failure_is_transient(self):
        assert ProviderError("p", "reset", connection_failed=True).transient

    def test_overload_body_without_status(self):
        error = ProviderError("p", "busy", body={"type": "error", "error": {"type": "overloaded_error"}})
        assert error.transient
        assert error.error_type == "overloaded_error"


# ============================================================================
# CASCADE
# ============================================================================

class TestFallbackCascade:
    """Tests for FallbackCascade.call."""

    @pytest.mark.asyncio
    async def test_primary_success(self, reporter):
        primary = FakeProvider([text_response("hello")])
        backup = FakeProvider([])
        cascade = make_cascade(primary, backup, reporter)

        response = await cascade.call(make_request())

        assert response.text() == "hello"
        assert response.model == "model-a"
        assert primary.requests[0].model == "model-a"
        assert backup.calls == 0
        assert reporter.reports == []

    @pytest.mark.asyncio
    async def test_transient_failure_calls_backup_once(self, reporter):
        primary = FakeProvider([ProviderError("primary", "overloaded", status=529)])
        backup = FakeProvider([text_response("from backup")])
        cascade = make_cascade(primary, backup, reporter)

        response = await cascade.call(make_request())

        assert response.text() == "from backup"
        assert response.model == "model-b"
        assert primary.calls == 1
        assert backup.calls == 1
        assert backup.requests[0].model == "model-b"
        assert len(reporter.reports) == 1
        assert reporter.reports[0][0] == "primary"

    @pytest.mark.asyncio
    async def test_permanent_failure_skips_backup(self, reporter):
        primary = FakeProvider([ProviderError("primary", "bad request", status=400)])
        backup = FakeProvider([text_response("unused")])
        cascade = make_cascade(primary, backup, reporter)

        with pytest.raises(ProviderError) as exc_info:
            await cascade.call(make_request())

        assert exc_info.value.status == 400
        assert backup.calls == 0
        assert len(reporter.reports) == 1

    @pytest.mark.asyncio
    async def test_no_backup_configured(self, reporter):
        primary = FakeProvider([ProviderError("primary", "down", status=503)])
        cascade = make_cascade(primary, reporter=reporter)

        assert not cascade.has_backup
        with pytest.raises(ProviderError) as exc_info:
            await cascade.call(make_request())
        assert exc_info.value.status == 503

    @pytest.mark.asyncio
    async def test_backup_failure_propagates(self, reporter):
        primary = FakeProvider([ProviderError("primary", "down", status=500)])
        backup = FakeProvider([ProviderError("backup", "also down", status=502)])
        cascade = make_cascade(primary, backup, reporter)

        with pytest.raises(ProviderError) as exc_info:
            await cascade.call(make_request())

        assert exc_info.value.provider == "backup"
        assert primary.calls == 1
        assert backup.calls == 1
        assert [r[0] for r in reporter.reports] == ["primary", "backup"]

    @pytest.mark.asyncio
    async def test_primary_timeout_falls_back(self, reporter):
        """A provider that exceeds its hard timeout counts as transient."""
        primary = FakeProvider([text_response("too late")], timeout=0.05, delay=1.0)
        backup = FakeProvider([text_response("in time")])
        cascade = make_cascade(primary, backup, reporter)

        response = await cascade.call(make_request())

        assert response.text() == "in time"
        error = reporter.reports[0][1]
        assert isinstance(error, ProviderError)
        assert error.timed_out

    @pytest.mark.asyncio
    async def test_response_model_kept_when_set(self, reporter):
        primary = FakeProvider([text_response("hi", model="model-a-2025")])
        cascade = make_cascade(primary, reporter=reporter)
        response = await cascade.call(make_request())
        assert response.model == "model-a-2025"
