"""
Unit tests for the resilience policy.

Covers transient/permanent classification and the bounded retry loop.
"""

from unittest.mock import AsyncMock

import httpx
import pytest
from incremental_rag.core.resilience import (
    ResiliencePolicy,
    is_transient_error,
    is_transient_status,
    with_resilience,
)
from incremental_rag.models import DocumentSourceError, EmbeddingModelError


def _status_error(status_code: int) -> httpx.HTTPStatusError:
    request = httpx.Request("GET", "https://graph.example/v1.0/me")
    response = httpx.Response(status_code, request=request)
    return httpx.HTTPStatusError("error", request=request, response=response)


class TestTransientClassification:
    """Test cases for is_transient_error."""

    @pytest.mark.parametrize("status_code", [408, 429, 500, 502, 503, 504])
    def test_transient_statuses(self, status_code):
        assert is_transient_status(status_code)
        assert is_transient_error(_status_error(status_code))

    @pytest.mark.parametrize("status_code", [400, 401, 403, 404])
    def test_permanent_statuses(self, status_code):
        assert not is_transient_status(status_code)
        assert not is_transient_error(_status_error(status_code))

    def test_timeouts_and_connection_errors_are_transient(self):
        assert is_transient_error(TimeoutError())
        assert is_transient_error(ConnectionResetError())
        assert is_transient_error(httpx.ReadTimeout("slow"))
        assert is_transient_error(httpx.ConnectError("refused"))

    def test_rag_errors_carry_their_classification(self):
        assert is_transient_error(EmbeddingModelError("rate limited", transient=True))
        assert not is_transient_error(EmbeddingModelError("unauthorized", transient=False))
        assert is_transient_error(DocumentSourceError("busy", status_code=503, transient=True))

    def test_programming_errors_are_permanent(self):
        assert not is_transient_error(ValueError("bad input"))
        assert not is_transient_error(KeyError("missing"))


class TestResiliencePolicy:
    """Test cases for with_resilience and ResiliencePolicy."""

    @pytest.mark.asyncio
    async def test_success_on_first_attempt(self, config):
        func = AsyncMock(return_value="ok")

        result = await with_resilience(config, "test call", func, "a", key="b")

        assert result == "ok"
        func.assert_awaited_once_with("a", key="b")

    @pytest.mark.asyncio
    async def test_transient_failures_are_retried(self, config):
        func = AsyncMock(side_effect=[TimeoutError(), TimeoutError(), "ok"])

        result = await ResiliencePolicy(config).run("test call", func)

        assert result == "ok"
        assert func.await_count == 3

    @pytest.mark.asyncio
    async def test_permanent_failure_is_not_retried(self, config):
        error = EmbeddingModelError("unauthorized", transient=False)
        func = AsyncMock(side_effect=error)

        with pytest.raises(EmbeddingModelError) as exc_info:
            await ResiliencePolicy(config).run("test call", func)

        assert exc_info.value is error
        assert func.await_count == 1

    @pytest.mark.asyncio
    async def test_attempts_are_bounded(self, config):
        config.retry_max_attempts = 3
        func = AsyncMock(side_effect=TimeoutError("still down"))

        with pytest.raises(TimeoutError):
            await ResiliencePolicy(config).run("test call", func)

        assert func.await_count == 3
