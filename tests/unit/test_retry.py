"""Tests for the retry policy and its backoff schedule."""

import pytest

from apps.extractor.retry import RetryPolicy
from utils.errors import RemoteRequestError, TransientRemoteError


class Flaky:
    """Callable failing with the given errors before returning 'ok'."""

    def __init__(self, *errors: Exception) -> None:
        self.errors = list(errors)
        self.calls = 0

    def __call__(self) -> str:
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return "ok"


def test_succeeds_after_transient_failures() -> None:
    sleeps: list[float] = []
    policy = RetryPolicy(max_attempts=3, base_delay=1.0, multiplier=2.0, sleep=sleeps.append)
    fn = Flaky(TransientRemoteError("timeout"), TransientRemoteError("timeout"))

    assert policy.call(fn) == "ok"
    assert fn.calls == 3
    assert sleeps == [1.0, 2.0]


def test_gives_up_after_max_attempts() -> None:
    policy = RetryPolicy(max_attempts=3, sleep=lambda _: None)
    fn = Flaky(*(TransientRemoteError(f"fail {i}") for i in range(5)))

    with pytest.raises(TransientRemoteError, match="fail 2"):
        policy.call(fn)
    assert fn.calls == 3


def test_non_retryable_error_fails_immediately() -> None:
    policy = RetryPolicy(max_attempts=5, sleep=lambda _: None)
    fn = Flaky(RemoteRequestError("bad request", status_code=400))

    with pytest.raises(RemoteRequestError):
        policy.call(fn)
    assert fn.calls == 1


def test_delay_is_capped() -> None:
    sleeps: list[float] = []
    policy = RetryPolicy(max_attempts=5, base_delay=10.0, multiplier=3.0, max_delay=25.0, sleep=sleeps.append)

    with pytest.raises(TransientRemoteError):
        policy.call(Flaky(*(TransientRemoteError("x") for _ in range(5))))
    assert sleeps == [10.0, 25.0, 25.0, 25.0]


def test_custom_predicate() -> None:
    policy = RetryPolicy(max_attempts=2, retryable=lambda e: isinstance(e, KeyError), sleep=lambda _: None)
    fn = Flaky(KeyError("k"))
    assert policy.call(fn) == "ok"


def test_with_max_attempts_copies() -> None:
    policy = RetryPolicy(max_attempts=3)
    changed = policy.with_max_attempts(7)
    assert changed.max_attempts == 7
    assert policy.max_attempts == 3
    assert policy.with_max_attempts(0).max_attempts == 1


def test_passes_arguments_through() -> None:
    policy = RetryPolicy(sleep=lambda _: None)
    assert policy.call(lambda a, b=0: a + b, 2, b=3) == 5
