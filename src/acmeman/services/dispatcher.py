"""Bounded worker pool for top-level orchestration calls.

Each ``place_order`` / ``execute_order`` call runs to completion on one
pool thread, including every blocking polling sleep.  Execution calls
get their own cancel event and an optional deadline; :meth:`shutdown`
can cancel everything still running.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from acmeman.core.types import AcmeProvider
    from acmeman.models.account import Account
    from acmeman.models.certificate import Certificate
    from acmeman.services.order import ExecutionResult, OrderOrchestrator

log = logging.getLogger(__name__)


class OrderDispatcher:
    """Runs orchestration calls on a bounded :class:`ThreadPoolExecutor`.

    Parameters
    ----------
    orchestrator:
        The orchestrator whose calls are dispatched.
    max_workers:
        Pool size.
    default_timeout_seconds:
        Deadline applied to executions submitted without one.

    """

    def __init__(
        self,
        orchestrator: OrderOrchestrator,
        max_workers: int = 4,
        default_timeout_seconds: int | None = None,
    ) -> None:
        self._orchestrator = orchestrator
        self._default_timeout = default_timeout_seconds
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="acmeman-order",
        )
        self._lock = threading.Lock()
        self._cancel_events: set[threading.Event] = set()

    def submit_place(
        self,
        account: Account,
        domains: Sequence[str],
        provider: AcmeProvider,
        save_key_pair: bool,  # noqa: FBT001
        **kwargs,
    ) -> Future[Certificate]:
        return self._executor.submit(
            self._orchestrator.place_order,
            account,
            list(domains),
            provider,
            save_key_pair,
            **kwargs,
        )

    def submit_execute(
        self,
        account: Account,
        certificate: Certificate,
        *,
        timeout_seconds: int | None = None,
    ) -> Future[ExecutionResult]:
        """Queue an execution; its deadline starts counting at submission."""
        timeout = timeout_seconds if timeout_seconds is not None else self._default_timeout
        deadline = datetime.now(UTC) + timedelta(seconds=timeout) if timeout is not None else None
        event = threading.Event()
        with self._lock:
            self._cancel_events.add(event)

        future = self._executor.submit(
            self._orchestrator.execute_order,
            account,
            certificate,
            deadline=deadline,
            cancel_event=event,
        )
        future.add_done_callback(lambda _f: self._forget(event))
        log.debug(
            "Queued execution of certificate %s (deadline %s)",
            certificate.id,
            deadline.isoformat() if deadline is not None else "none",
            extra={"order_identity": certificate.order_identity},
        )
        return future

    def _forget(self, event: threading.Event) -> None:
        with self._lock:
            self._cancel_events.discard(event)

    def cancel_all(self) -> int:
        """Signal every running or queued execution to stop."""
        with self._lock:
            events = list(self._cancel_events)
        for event in events:
            event.set()
        if events:
            log.info("Cancelled %d outstanding execution(s)", len(events))
        return len(events)

    def shutdown(self, *, cancel_pending: bool = False, wait: bool = True) -> None:
        if cancel_pending:
            self.cancel_all()
        self._executor.shutdown(wait=wait, cancel_futures=cancel_pending)
