"""Tests for the bounded polling loop."""

from __future__ import annotations

import threading
from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock

import pytest

from acmeman.core.errors import CancelledError, PollingTimeoutError
from acmeman.core.types import ValidationStatus
from acmeman.services.polling import wait_for_completion

_T0 = datetime(2026, 1, 1, 12, 0, 0, tzinfo=UTC)


class ScriptedResource:
    """Returns the next scripted status after every update."""

    def __init__(self, *statuses, retry_at=None):
        self._statuses = list(statuses)
        self._retry_at = retry_at
        self.status = ValidationStatus.PENDING
        self.updates = 0

    def update(self):
        self.updates += 1
        if self._statuses:
            self.status = self._statuses.pop(0)
        return self._retry_at


def _poll(resource, **kwargs):
    kwargs.setdefault("default_delay", 0)
    return wait_for_completion(lambda: resource.status, resource.update, **kwargs)


class TestConvergence:
    def test_valid_on_third_attempt(self):
        res = ScriptedResource(
            ValidationStatus.PENDING,
            ValidationStatus.PENDING,
            ValidationStatus.VALID,
        )
        assert _poll(res) == ValidationStatus.VALID
        assert res.updates == 3

    def test_invalid_is_terminal(self):
        res = ScriptedResource(ValidationStatus.PROCESSING, ValidationStatus.INVALID)
        assert _poll(res) == ValidationStatus.INVALID
        assert res.updates == 2

    def test_already_terminal_after_first_update(self):
        res = ScriptedResource(ValidationStatus.VALID)
        assert _poll(res) == ValidationStatus.VALID
        assert res.updates == 1


class TestExhaustion:
    def test_ten_updates_then_timeout(self):
        res = ScriptedResource()
        with pytest.raises(PollingTimeoutError) as exc_info:
            _poll(res, label="challenge example.com")
        assert res.updates == 10
        assert exc_info.value.attempts == 10
        assert exc_info.value.label == "challenge example.com"

    def test_custom_attempt_limit(self):
        res = ScriptedResource()
        with pytest.raises(PollingTimeoutError):
            _poll(res, max_attempts=3)
        assert res.updates == 3

    def test_no_sleep_after_last_attempt(self):
        res = ScriptedResource()
        event = MagicMock(spec=threading.Event)
        event.is_set.return_value = False
        event.wait.return_value = False
        with pytest.raises(PollingTimeoutError):
            _poll(res, max_attempts=4, cancel_event=event)
        assert event.wait.call_count == 3


class TestDelays:
    def _run_with_clock(self, retry_at, default_delay=3.0):
        res = ScriptedResource(ValidationStatus.PENDING, ValidationStatus.VALID, retry_at=retry_at)
        event = MagicMock(spec=threading.Event)
        event.is_set.return_value = False
        event.wait.return_value = False
        wait_for_completion(
            lambda: res.status,
            res.update,
            default_delay=default_delay,
            cancel_event=event,
            clock=lambda: _T0,
        )
        return event.wait.call_args.args[0]

    def test_default_delay_when_no_retry_after(self):
        assert self._run_with_clock(None) == pytest.approx(3.0)

    def test_retry_after_instant_honoured(self):
        assert self._run_with_clock(_T0 + timedelta(seconds=7)) == pytest.approx(7.0)

    def test_past_retry_after_clamped_to_zero(self):
        assert self._run_with_clock(_T0 - timedelta(seconds=30)) == 0.0


class TestCancellation:
    def test_preset_event_cancels_before_update(self):
        res = ScriptedResource()
        event = threading.Event()
        event.set()
        with pytest.raises(CancelledError):
            _poll(res, cancel_event=event)
        assert res.updates == 0

    def test_event_set_during_wait(self):
        res = ScriptedResource()
        event = threading.Event()

        def update():
            res.updates += 1
            event.set()

        with pytest.raises(CancelledError):
            wait_for_completion(lambda: res.status, update, default_delay=5, cancel_event=event)
        assert res.updates == 1
        assert event.is_set()

    def test_deadline_shorter_than_delay(self):
        res = ScriptedResource()
        event = MagicMock(spec=threading.Event)
        event.is_set.return_value = False
        event.wait.return_value = False
        with pytest.raises(CancelledError, match="deadline"):
            wait_for_completion(
                lambda: res.status,
                res.update,
                default_delay=10,
                cancel_event=event,
                deadline=_T0 + timedelta(seconds=2),
                clock=lambda: _T0,
            )
        assert res.updates == 1
        event.wait.assert_called_once_with(2.0)

    def test_deadline_already_passed(self):
        res = ScriptedResource()
        with pytest.raises(CancelledError):
            wait_for_completion(
                lambda: res.status,
                res.update,
                default_delay=0,
                deadline=_T0 - timedelta(seconds=1),
                clock=lambda: _T0,
            )
        assert res.updates == 1
