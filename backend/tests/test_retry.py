from __future__ import annotations

import anyio
import pytest

from retry import RetryExhausted, RetryPolicy


class Flaky:
    def __init__(self, failures: list[BaseException], result: str = "ok"):
        self.failures = list(failures)
        self.result = result
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.failures:
            raise self.failures.pop(0)
        return self.result


def _policy(sleeps: list[float], attempts: int = 3) -> RetryPolicy:
    async def sleep(delay: float) -> None:
        sleeps.append(delay)

    return RetryPolicy(attempts=attempts, base_delay=0.5, max_delay=8.0, sleep=sleep)


def _transient(exc: BaseException) -> bool:
    return isinstance(exc, ConnectionError)


def test_delay_grows_exponentially_and_is_capped():
    policy = RetryPolicy(base_delay=0.5, max_delay=3.0)
    assert [policy.delay_for(n) for n in range(5)] == [0.5, 1.0, 2.0, 3.0, 3.0]


def test_attempts_must_be_positive():
    with pytest.raises(ValueError):
        RetryPolicy(attempts=0)


def test_transient_failures_are_retried_until_success():
    sleeps: list[float] = []
    op = Flaky([ConnectionError("reset"), ConnectionError("reset")])

    async def _run():
        return await _policy(sleeps).run(op, _transient, describe="upload")

    assert anyio.run(_run) == "ok"
    assert op.calls == 3
    assert sleeps == [0.5, 1.0]


def test_exhaustion_carries_last_error():
    sleeps: list[float] = []
    last = ConnectionError("third")
    op = Flaky([ConnectionError("first"), ConnectionError("second"), last])

    async def _run():
        await _policy(sleeps).run(op, _transient)

    with pytest.raises(RetryExhausted) as exc_info:
        anyio.run(_run)
    assert exc_info.value.attempts == 3
    assert exc_info.value.last_error is last
    assert op.calls == 3
    assert len(sleeps) == 2


def test_non_transient_error_propagates_immediately():
    sleeps: list[float] = []
    op = Flaky([PermissionError("denied")])

    async def _run():
        await _policy(sleeps).run(op, _transient)

    with pytest.raises(PermissionError):
        anyio.run(_run)
    assert op.calls == 1
    assert sleeps == []


def test_retries_are_logged(caplog):
    op = Flaky([ConnectionError("reset")])

    async def _run():
        return await _policy([]).run(op, _transient, describe="S3 upload documents/x.pdf")

    with caplog.at_level("WARNING", logger="retry"):
        anyio.run(_run)
    assert "S3 upload documents/x.pdf failed (attempt 1/3)" in caplog.text
