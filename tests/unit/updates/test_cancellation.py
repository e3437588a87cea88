from __future__ import annotations

import pytest

from extupdate.core.updates.cancellation import CancellationToken
from extupdate.core.updates.exceptions import Cancelled


def test_callbacks_run_once_on_cancel() -> None:
    token = CancellationToken()
    calls = []
    token.on_cancel(lambda: calls.append("a"))

    token.cancel()
    token.cancel()

    assert calls == ["a"]
    with pytest.raises(Cancelled):
        token.raise_if_cancelled()


def test_unregistered_callback_is_not_run() -> None:
    token = CancellationToken()
    calls = []
    unregister = token.on_cancel(lambda: calls.append("a"))

    unregister()
    token.cancel()

    assert calls == []


def test_late_registration_runs_immediately() -> None:
    token = CancellationToken()
    token.cancel()
    calls = []

    token.on_cancel(lambda: calls.append("late"))

    assert calls == ["late"]


def test_failing_callback_does_not_block_others() -> None:
    token = CancellationToken()
    calls = []

    def boom() -> None:
        raise RuntimeError("boom")

    token.on_cancel(boom)
    token.on_cancel(lambda: calls.append("b"))
    token.cancel()

    assert calls == ["b"]
    assert token.is_cancelled
