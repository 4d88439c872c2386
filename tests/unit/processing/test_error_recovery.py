"""Tests for error classification and the bounded retry policy."""

from unittest.mock import AsyncMock

import pytest

from dealmate.schemas.processing import ErrorType
from dealmate.services.processing.error_recovery import ErrorRecovery, classify_error


@pytest.fixture
def sleep() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def recovery(sleep) -> ErrorRecovery:
    return ErrorRecovery(max_retries=3, backoff_seconds=2.0, sleep=sleep)


class TestClassifyError:
    @pytest.mark.parametrize(
        "message,expected,retryable",
        [
            ("Failed to fetch", ErrorType.NETWORK, True),
            ("Network unreachable", ErrorType.NETWORK, True),
            ("HTTP error! status: 401", ErrorType.AUTHENTICATION, False),
            ("Unauthorized request", ErrorType.AUTHENTICATION, False),
            ("Unexpected token in JSON at position 4", ErrorType.PARSING, True),
            ("Invalid file format", ErrorType.VALIDATION, False),
            ("Gateway returned 504", ErrorType.TIMEOUT, True),
            ("Something odd happened", ErrorType.UNKNOWN, True),
        ],
    )
    def test_taxonomy(self, message, expected, retryable):
        error = classify_error(message)
        assert error.type == expected
        assert error.retryable is retryable
        assert error.message == message

    def test_timeout_text_classifies_as_network(self):
        assert classify_error("Request timeout after 30s").type == ErrorType.NETWORK

    def test_exception_input_and_agent(self):
        error = classify_error(ValueError("JSON parse failure"), agent="financial_agent")
        assert error.type == ErrorType.PARSING
        assert error.agent == "financial_agent"

    def test_authentication_hint(self):
        assert classify_error("401").recovery_action == "Please log in again"

    def test_exception_without_message_uses_type_name(self):
        assert classify_error(TimeoutError()).message == "TimeoutError"


class TestErrorRecovery:
    def test_handle_error_records(self, recovery):
        recovery.handle_error("Network down", agent="memo_agent")

        assert len(recovery.state.errors) == 1
        assert recovery.last_error.agent == "memo_agent"

    @pytest.mark.asyncio
    async def test_successful_recovery(self, recovery, sleep):
        retry_fn = AsyncMock()

        result = await recovery.attempt_recovery(retry_fn, classify_error("parse error"))

        assert result is True
        retry_fn.assert_awaited_once()
        sleep.assert_not_awaited()
        assert recovery.state.retry_count == 1
        assert recovery.state.is_recovering is False

    @pytest.mark.asyncio
    async def test_retry_ceiling(self, recovery):
        retry_fn = AsyncMock(side_effect=RuntimeError("still broken"))
        error = classify_error("Failed to fetch")

        results = [await recovery.attempt_recovery(retry_fn, error) for _ in range(3)]
        assert results == [False, False, False]
        assert retry_fn.await_count == 3

        assert await recovery.attempt_recovery(retry_fn, error) is False
        assert retry_fn.await_count == 3
        assert recovery.state.is_recovering is False

    @pytest.mark.asyncio
    async def test_non_retryable_short_circuits(self, recovery, sleep):
        retry_fn = AsyncMock()

        result = await recovery.attempt_recovery(retry_fn, classify_error("401 Unauthorized"))

        assert result is False
        retry_fn.assert_not_awaited()
        sleep.assert_not_awaited()
        assert recovery.state.retry_count == 0

    @pytest.mark.asyncio
    async def test_linear_backoff_for_network_errors(self, recovery, sleep):
        retry_fn = AsyncMock(side_effect=RuntimeError("nope"))
        error = classify_error("network error")

        for _ in range(3):
            await recovery.attempt_recovery(retry_fn, error)

        assert [call.args[0] for call in sleep.await_args_list] == [0.0, 2.0, 4.0]

    @pytest.mark.asyncio
    async def test_reset_restores_budget(self, recovery):
        retry_fn = AsyncMock(side_effect=RuntimeError("nope"))
        error = classify_error("parse error")
        for _ in range(3):
            await recovery.attempt_recovery(retry_fn, error)

        recovery.reset()

        assert recovery.state.retry_count == 0
        assert recovery.state.errors == []
        assert recovery.can_retry(error)
