from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from logship.core.retry import AsyncRetrier, RetryConfig


class TestComputeDelay:
    def test_exponential_and_capped(self) -> None:
        retrier = AsyncRetrier(
            RetryConfig(max_attempts=5, base_delay=0.5, max_delay=3.0, jitter=0.0)
        )
        assert [retrier.compute_delay(a) for a in (1, 2, 3, 4)] == [0.5, 1.0, 2.0, 3.0]

    def test_jitter_stays_within_fraction_and_cap(self) -> None:
        retrier = AsyncRetrier(
            RetryConfig(max_attempts=5, base_delay=1.0, max_delay=1.05, jitter=0.5)
        )
        for _ in range(50):
            assert 1.0 <= retrier.compute_delay(1) <= 1.05

    def test_zero_base_delay_means_no_sleep(self) -> None:
        retrier = AsyncRetrier(RetryConfig(base_delay=0.0, max_delay=0.0))
        assert retrier.compute_delay(3) == 0.0


@pytest.mark.parametrize(
    "kwargs",
    [{"max_attempts": 0}, {"base_delay": -1.0}, {"max_delay": -0.1}],
)
def test_config_validation(kwargs: dict[str, float]) -> None:
    with pytest.raises(ValueError):
        RetryConfig(**kwargs)  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_success_after_failures_sleeps_between_attempts() -> None:
    calls = {"n": 0}

    async def flaky() -> str:
        calls["n"] += 1
        if calls["n"] < 3:
            raise ConnectionError("boom")
        return "ok"

    retrier = AsyncRetrier(
        RetryConfig(max_attempts=3, base_delay=0.1, max_delay=1.0, jitter=0.0)
    )
    with patch("logship.core.retry.asyncio.sleep", new_callable=AsyncMock) as sleep:
        assert await retrier(flaky) == "ok"

    assert calls["n"] == 3
    assert [c.args[0] for c in sleep.await_args_list] == [0.1, 0.2]


@pytest.mark.asyncio
async def test_last_error_is_reraised_when_attempts_run_out() -> None:
    async def always_fails() -> None:
        raise ConnectionError("still down")

    retrier = AsyncRetrier(RetryConfig(max_attempts=2, base_delay=0.0, max_delay=0.0))
    with pytest.raises(ConnectionError, match="still down"):
        await retrier.retry(always_fails)


@pytest.mark.asyncio
async def test_should_retry_false_stops_immediately() -> None:
    factory = AsyncMock(side_effect=ValueError("fatal"))
    retrier = AsyncRetrier(
        RetryConfig(max_attempts=5, base_delay=0.0, max_delay=0.0),
        should_retry=lambda exc: not isinstance(exc, ValueError),
    )
    with pytest.raises(ValueError):
        await retrier(factory)
    assert factory.await_count == 1


@pytest.mark.asyncio
async def test_on_retry_observes_each_retry() -> None:
    seen: list[tuple[int, str, float]] = []

    async def on_retry(attempt: int, exc: BaseException, delay: float) -> None:
        seen.append((attempt, str(exc), delay))

    factory = AsyncMock(side_effect=[RuntimeError("a"), RuntimeError("b"), 42])
    retrier = AsyncRetrier(
        RetryConfig(max_attempts=3, base_delay=0.0, max_delay=0.0),
        on_retry=on_retry,
    )

    assert await retrier(factory) == 42
    assert seen == [(1, "a", 0.0), (2, "b", 0.0)]
