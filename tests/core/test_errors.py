"""Tests for the orchestration error taxonomy."""

from __future__ import annotations

import pytest

from acmeman.core.errors import (
    AcmeManagerError,
    CancelledError,
    IntegrityError,
    KeyPersistenceError,
    NoSupportedChallengeError,
    PollingTimeoutError,
    ProtocolError,
    RoutingError,
    UnsupportedChallengeError,
)


@pytest.mark.parametrize(
    "cls",
    [
        ProtocolError,
        IntegrityError,
        UnsupportedChallengeError,
        NoSupportedChallengeError,
        RoutingError,
        CancelledError,
    ],
)
def test_subclasses_carry_detail(cls):
    exc = cls("something broke")
    assert isinstance(exc, AcmeManagerError)
    assert exc.detail == "something broke"
    assert str(exc) == "something broke"
    assert exc.retryable is False


class TestPollingTimeoutError:
    def test_is_timeout_and_retryable(self):
        exc = PollingTimeoutError("gave up", attempts=10, label="challenge example.com")
        assert isinstance(exc, TimeoutError)
        assert exc.retryable is True
        assert exc.attempts == 10
        assert exc.label == "challenge example.com"


class TestKeyPersistenceError:
    def test_is_oserror_with_path_and_result(self):
        exc = KeyPersistenceError("disk full", path="/certs/ABC/private.key")
        assert isinstance(exc, OSError)
        assert exc.path == "/certs/ABC/private.key"
        assert exc.result is None
        exc.result = "partial"
        assert exc.result == "partial"
