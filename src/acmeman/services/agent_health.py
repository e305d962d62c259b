"""Background agent health worker.

Polls every registered agent's ``GET /metadata`` endpoint and flips its
``is_connected`` flag.  Runs as a daemon thread; the challenge router
refuses to publish to disconnected agents.
"""

from __future__ import annotations

import json
import logging
import threading
import urllib.error
import urllib.request
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from acmeman.models.agent import Agent
    from acmeman.repositories.agent import AgentRepository

log = logging.getLogger(__name__)

_MAX_BACKOFF_SECONDS = 300
_OK = 200


class AgentHealthWorker:
    """Daemon thread that keeps agent connectivity state current.

    Parameters
    ----------
    agent_repo:
        Agent repository used to list agents and store connectivity.
    poll_seconds:
        How often to check every agent (default 30).
    timeout_seconds:
        Per-request timeout for the metadata call (default 10).

    """

    def __init__(
        self,
        agent_repo: AgentRepository,
        poll_seconds: int = 30,
        timeout_seconds: int = 10,
    ) -> None:
        self._agents = agent_repo
        self._poll_seconds = poll_seconds
        self._timeout = timeout_seconds
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._consecutive_failures = 0

    def start(self) -> None:
        """Start the background worker thread."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run,
            name="agent-health-worker",
            daemon=True,
        )
        self._thread.start()
        log.info(
            "Agent health worker started (poll=%ds, timeout=%ds)",
            self._poll_seconds,
            self._timeout,
        )

    def stop(self) -> None:
        """Signal the worker to stop and wait for it."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=self._poll_seconds + self._timeout)
            log.info("Agent health worker stopped")

    def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.check_all()
                self._consecutive_failures = 0
            except Exception:
                self._consecutive_failures += 1
                log.exception(
                    "Agent health check error (consecutive failures: %d)",
                    self._consecutive_failures,
                )
                backoff = min(
                    self._poll_seconds * (2**self._consecutive_failures),
                    _MAX_BACKOFF_SECONDS,
                )
                self._stop_event.wait(timeout=backoff)
                continue
            self._stop_event.wait(timeout=self._poll_seconds)

    def check_all(self) -> dict[str, bool]:
        """Check every agent once and store the result.

        Returns a mapping of agent name to health.
        """
        results: dict[str, bool] = {}
        for agent in self._agents.find_all():
            if self._stop_event.is_set():
                break
            healthy = self.is_healthy(agent)
            results[agent.name] = healthy
            if self._agents.set_connected(agent.id, healthy):
                log.info(
                    "Agent %s is now %s",
                    agent.name,
                    "connected" if healthy else "disconnected",
                    extra={"agent": agent.name, "connected": healthy},
                )
        return results

    def is_healthy(self, agent: Agent) -> bool:
        """Return ``True`` if the agent's metadata endpoint answers 200 with JSON."""
        url = agent.url.rstrip("/") + "/metadata"
        req = urllib.request.Request(url, method="GET", headers={"Accept": "application/json"})
        try:
            with urllib.request.urlopen(req, timeout=self._timeout) as resp:  # noqa: S310
                if resp.status != _OK:
                    return False
                metadata = json.loads(resp.read().decode("utf-8"))
        except (urllib.error.URLError, OSError, ValueError) as exc:
            log.debug("Agent %s health check failed: %s", agent.name, exc)
            return False
        if not isinstance(metadata, dict):
            return False
        log.debug("Agent %s reports version %s", agent.name, metadata.get("version", "?"))
        return True
