import asyncio
import random

import pytest

from checkin.core.errors import (
    AuthenticationError,
    GridPermissionError,
    InvalidRequestError,
    NotFoundError,
    RateLimitError,
    ServiceUnavailableError,
    UnknownRemoteError,
)
from checkin.services.retry import EXPONENTIAL, FATAL, LINEAR, classify, with_retry


class FlakyOperation:
    def __init__(self, errors, result="ok"):
        self.errors = list(errors)
        self.result = result
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


def test_classify():
    assert classify(AuthenticationError()) == FATAL
    assert classify(GridPermissionError()) == FATAL
    assert classify(InvalidRequestError()) == FATAL
    assert classify(NotFoundError()) == FATAL
    assert classify(RateLimitError()) == EXPONENTIAL
    assert classify(ServiceUnavailableError()) == EXPONENTIAL
    assert classify(UnknownRemoteError(status_code=500)) == LINEAR
    assert classify(RuntimeError("socket closed")) == LINEAR


@pytest.mark.parametrize("error", [GridPermissionError(), AuthenticationError(), NotFoundError(), InvalidRequestError()])
def test_non_retryable_errors_are_attempted_once(error, sleep):
    operation = FlakyOperation([error] * 3)
    with pytest.raises(type(error)):
        asyncio.run(with_retry(operation, 3, 1.0, sleep=sleep))
    assert operation.calls == 1
    assert sleep.delays == []


def test_rate_limit_retries_with_increasing_delays(sleep):
    operation = FlakyOperation([RateLimitError()] * 3)
    with pytest.raises(RateLimitError):
        asyncio.run(with_retry(operation, 3, 1.0, sleep=sleep))
    assert operation.calls == 3
    assert len(sleep.delays) == 2
    assert sleep.delays[0] < sleep.delays[1]
    assert 1.0 <= sleep.delays[0] <= 1.3
    assert 2.0 <= sleep.delays[1] <= 2.6


def test_exponential_backoff_jitter(monkeypatch, sleep):
    monkeypatch.setattr(random, "random", lambda: 1.0)
    operation = FlakyOperation([ServiceUnavailableError()] * 4)
    with pytest.raises(ServiceUnavailableError):
        asyncio.run(with_retry(operation, 4, 0.5, sleep=sleep))
    assert sleep.delays == pytest.approx([0.65, 1.3, 2.6])


def test_other_errors_back_off_linearly(sleep):
    operation = FlakyOperation([UnknownRemoteError(status_code=500)] * 3)
    with pytest.raises(UnknownRemoteError):
        asyncio.run(with_retry(operation, 3, 1.0, sleep=sleep))
    assert operation.calls == 3
    assert sleep.delays == [1.0, 2.0]


def test_recovers_before_attempts_run_out(sleep):
    operation = FlakyOperation([ServiceUnavailableError(), RuntimeError("reset")], result=[["Name"]])
    result = asyncio.run(with_retry(operation, 3, 1.0, sleep=sleep))
    assert result == [["Name"]]
    assert operation.calls == 3
    assert len(sleep.delays) == 2


def test_success_on_first_attempt_does_not_sleep(sleep):
    operation = FlakyOperation([])
    assert asyncio.run(with_retry(operation, sleep=sleep)) == "ok"
    assert sleep.delays == []
