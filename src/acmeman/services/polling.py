"""Bounded-retry status convergence for provider objects.

One primitive serves both challenge and order polling: the caller
passes an ``update`` operation (refresh remote state, return an
optional retry-after instant) and a ``status`` accessor.

Usage::

    status = wait_for_completion(
        lambda: challenge.status,
        challenge.update,
        label=f"challenge {domain}",
    )
"""

from __future__ import annotations

import logging
import threading
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from acmeman.core.errors import CancelledError, PollingTimeoutError
from acmeman.core.state import is_terminal

if TYPE_CHECKING:
    from collections.abc import Callable

    from acmeman.core.types import ValidationStatus

log = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 10
DEFAULT_RETRY_SECONDS = 3.0


def _now() -> datetime:
    return datetime.now(UTC)


def wait_for_completion(  # noqa: PLR0913
    status: Callable[[], ValidationStatus],
    update: Callable[[], datetime | None],
    *,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    default_delay: float = DEFAULT_RETRY_SECONDS,
    cancel_event: threading.Event | None = None,
    deadline: datetime | None = None,
    label: str = "",
    context: dict | None = None,
    clock: Callable[[], datetime] = _now,
) -> ValidationStatus:
    """Drive an object to ``valid`` or ``invalid``.

    Each attempt calls *update*, then reads *status*; a terminal status
    is returned immediately.  Otherwise the call sleeps until the
    provider's retry-after instant (``now + default_delay`` when none was
    given, never a negative duration) and tries again.

    Parameters
    ----------
    status:
        Returns the object's current status.
    update:
        Refreshes remote state; may return a retry-after ``datetime``.
    max_attempts:
        Upper bound on calls to *update*.
    default_delay:
        Seconds to wait when the provider gives no retry-after.
    cancel_event:
        Sleeping waits on this event; setting it aborts the loop.  The
        event is left set so the caller still observes the cancellation.
    deadline:
        Aware datetime after which the loop aborts.
    label:
        Human-readable object name for logs and errors.
    context:
        Extra structured logging fields (``order_identity``, ``domain``).
    clock:
        Returns the current aware time.

    Returns
    -------
    ValidationStatus
        The terminal status reached.

    Raises
    ------
    PollingTimeoutError
        No terminal status after *max_attempts* updates.
    CancelledError
        *cancel_event* was set or *deadline* passed.

    """
    extra = dict(context or {})
    event = cancel_event if cancel_event is not None else threading.Event()

    for attempt in range(1, max_attempts + 1):
        if event.is_set():
            msg = f"{label}: polling cancelled before attempt {attempt}"
            raise CancelledError(msg)

        retry_at = update()
        current = status()
        if is_terminal(current):
            log.debug(
                "%s reached %s on attempt %d",
                label,
                current,
                attempt,
                extra={**extra, "attempt": attempt},
            )
            return current

        if attempt == max_attempts:
            break

        now = clock()
        if retry_at is None:
            retry_at = now + timedelta(seconds=default_delay)
        delay = max((retry_at - now).total_seconds(), 0.0)

        if deadline is not None:
            remaining = (deadline - now).total_seconds()
            if remaining <= delay:
                if remaining > 0:
                    event.wait(remaining)
                msg = f"{label}: deadline exceeded after {attempt} attempt(s)"
                log.warning(msg, extra={**extra, "attempt": attempt})
                raise CancelledError(msg)

        log.debug(
            "%s is %s (attempt %d/%d); retrying in %.1fs",
            label,
            current,
            attempt,
            max_attempts,
            delay,
            extra={**extra, "attempt": attempt},
        )
        if event.wait(delay):
            msg = f"{label}: polling cancelled after {attempt} attempt(s)"
            log.warning(msg, extra={**extra, "attempt": attempt})
            raise CancelledError(msg)

    msg = f"{label}: no terminal status after {max_attempts} attempts"
    log.error(msg, extra={**extra, "attempt": max_attempts})
    raise PollingTimeoutError(msg, attempts=max_attempts, label=label)
