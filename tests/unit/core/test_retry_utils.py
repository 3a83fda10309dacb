"""Unit tests for retry utilities with exponential backoff."""

import pytest
from unittest.mock import AsyncMock, patch
from uuid import uuid4

from incident_coordinator.core.errors import ConcurrencyConflict, PersistenceError
from incident_coordinator.core.retry_utils import RetryConfig, retry_async


def conflict() -> ConcurrencyConflict:
    return ConcurrencyConflict(uuid4(), expected_version=1, actual_version=2)


class TestRetryConfig:
    """Test RetryConfig initialization and defaults."""

    def test_retry_config_default_values(self):
        # Arrange & Act
        config = RetryConfig()

        # Assert
        assert config.max_attempts == 3
        assert config.initial_delay == 0.01
        assert config.max_delay == 0.5
        assert config.exponential_base == 2.0
        assert config.retryable_exceptions == [ConcurrencyConflict]

    def test_retry_config_custom_values(self):
        config = RetryConfig(
            max_attempts=5,
            initial_delay=0.5,
            max_delay=20.0,
            exponential_base=3.0,
            retryable_exceptions=[ValueError, TypeError],
        )

        assert config.max_attempts == 5
        assert config.initial_delay == 0.5
        assert config.max_delay == 20.0
        assert config.exponential_base == 3.0
        assert config.retryable_exceptions == [ValueError, TypeError]

    def test_only_conflicts_are_retryable_by_default(self):
        config = RetryConfig()

        assert config.is_retryable(conflict())
        assert not config.is_retryable(PersistenceError("disk full"))
        assert not config.is_retryable(ValueError("bad"))

    def test_delays_grow_and_cap(self):
        config = RetryConfig(max_attempts=5, initial_delay=1.0, max_delay=3.0)

        assert list(config.delays()) == [1.0, 2.0, 3.0, 3.0]

    def test_single_attempt_has_no_delays(self):
        assert list(RetryConfig(max_attempts=1).delays()) == []


class TestRetryAsyncSuccessfulExecution:
    @pytest.mark.asyncio
    async def test_retry_async_successful_first_attempt(self):
        # Arrange
        async def successful_func():
            return "success"

        # Act
        result = await retry_async(successful_func, RetryConfig())

        # Assert
        assert result == "success"

    @pytest.mark.asyncio
    async def test_retry_async_with_args_and_kwargs(self):
        """Test retry_async passes args and kwargs correctly."""

        async def func_with_params(a, b, c=None):
            return f"{a}-{b}-{c}"

        result = await retry_async(
            func_with_params, RetryConfig(), None, "arg1", "arg2", c="kwarg1"
        )

        assert result == "arg1-arg2-kwarg1"


class TestRetryAsyncConflicts:
    @pytest.mark.asyncio
    async def test_retry_async_succeeds_after_conflict(self):
        # Arrange
        call_count = 0

        async def func_conflicts_once():
            nonlocal call_count
            call_count += 1
            if call_count == 1:
                raise conflict()
            return "saved"

        config = RetryConfig(max_attempts=3, initial_delay=0.0)

        # Act
        result = await retry_async(func_conflicts_once, config, "incident-1")

        # Assert
        assert result == "saved"
        assert call_count == 2

    @pytest.mark.asyncio
    async def test_retry_async_raises_last_conflict_when_exhausted(self):
        func = AsyncMock(side_effect=conflict())
        func.__name__ = "save_incident"
        config = RetryConfig(max_attempts=3, initial_delay=0.0)

        with pytest.raises(ConcurrencyConflict):
            await retry_async(func, config)

        assert func.await_count == 3

    @pytest.mark.asyncio
    async def test_non_retryable_error_is_raised_immediately(self):
        func = AsyncMock(side_effect=PersistenceError("disk full"))
        func.__name__ = "save_incident"
        config = RetryConfig(max_attempts=5, initial_delay=0.0)

        with pytest.raises(PersistenceError, match="disk full"):
            await retry_async(func, config)

        assert func.await_count == 1


class TestRetryAsyncBackoff:
    @pytest.mark.asyncio
    async def test_delay_grows_exponentially_and_is_capped(self):
        # Arrange
        func = AsyncMock(side_effect=conflict())
        func.__name__ = "save_incident"
        config = RetryConfig(
            max_attempts=5, initial_delay=0.1, max_delay=0.3, exponential_base=2.0
        )

        # Act
        with patch(
            "incident_coordinator.core.retry_utils.asyncio.sleep", new=AsyncMock()
        ) as mock_sleep:
            with pytest.raises(ConcurrencyConflict):
                await retry_async(func, config)

        # Assert
        delays = [call.args[0] for call in mock_sleep.await_args_list]
        assert delays == pytest.approx([0.1, 0.2, 0.3, 0.3])

    @pytest.mark.asyncio
    async def test_no_sleep_after_final_attempt(self):
        func = AsyncMock(side_effect=conflict())
        func.__name__ = "save_incident"
        config = RetryConfig(max_attempts=2, initial_delay=0.1)

        with patch(
            "incident_coordinator.core.retry_utils.asyncio.sleep", new=AsyncMock()
        ) as mock_sleep:
            with pytest.raises(ConcurrencyConflict):
                await retry_async(func, config)

        assert mock_sleep.await_count == 1
