"""Typed error taxonomy for order and challenge orchestration.

Every error carries a human-readable ``detail`` and a ``retryable``
flag.  Callers of :class:`~acmeman.services.order.OrderOrchestrator`
receive either a populated result or one of these errors; per-domain
failures during execution are converted into outcome entries instead.
"""

from __future__ import annotations


class AcmeManagerError(Exception):
    """Base class for all orchestration errors.

    Parameters
    ----------
    detail:
        Human-readable description of the failure.
    retryable:
        Whether retrying the same call could succeed.

    When raised from :meth:`~acmeman.services.order.OrderOrchestrator.execute_order`
    after domain validation has run, ``result`` carries the per-domain
    outcomes gathered so far.

    """

    result = None

    def __init__(self, detail: str, *, retryable: bool = False) -> None:
        self.detail = detail
        self.retryable = retryable
        super().__init__(detail)


class ProtocolError(AcmeManagerError):
    """The ACME provider rejected a request or returned a malformed response."""


class IntegrityError(AcmeManagerError):
    """A computed identity does not match the stored one."""


class UnsupportedChallengeError(AcmeManagerError):
    """A forced challenge type is not offered by the authorization."""


class NoSupportedChallengeError(AcmeManagerError):
    """The authorization offers neither HTTP-01 nor DNS-01."""


class RoutingError(AcmeManagerError):
    """No reachable agent (or DNS publisher) could make a challenge servable."""


class PollingTimeoutError(AcmeManagerError, TimeoutError):
    """Polling used up its attempts without a terminal status."""

    def __init__(self, detail: str, *, attempts: int, label: str = "") -> None:
        self.attempts = attempts
        self.label = label
        super().__init__(detail, retryable=True)


class CancelledError(AcmeManagerError):
    """The caller cancelled the operation or its deadline passed."""


class KeyPersistenceError(AcmeManagerError, OSError):
    """Writing key material to disk failed after a successful order.

    ``result`` holds the execution result so the caller still sees the
    per-domain outcomes of the otherwise successful run.
    """

    def __init__(self, detail: str, *, path: str, result=None) -> None:
        self.path = path
        self.result = result
        super().__init__(detail)
