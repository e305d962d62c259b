"""Challenge propagation to remote agents.

HTTP-01 token/authorization pairs are pushed synchronously to the
agent fronting the domain through its challenge API::

    PUT    {agent}/challenges          {"token": ..., "authorization": ...}
    DELETE {agent}/challenges?token=T

Both calls carry the agent's shared secret in the API-key header.
Publishing must succeed before the provider is asked to validate.
"""

from __future__ import annotations

import contextlib
import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from typing import TYPE_CHECKING

from acmeman.core.errors import RoutingError
from acmeman.core.types import ChallengeType

if TYPE_CHECKING:
    from acmeman.models.agent import Agent
    from acmeman.repositories.agent import AgentRepository
    from acmeman.services.dns01 import CallbackDnsPublisher
    from acmeman.services.selector import SelectedChallenge

log = logging.getLogger(__name__)

_NOT_FOUND = 404


class ChallengePropagator:
    """Authenticated client for an agent's challenge API.

    Parameters
    ----------
    api_key_header:
        Header carrying the agent's shared secret.
    timeout:
        Per-request timeout in seconds.

    """

    def __init__(self, api_key_header: str = "X-Api-Key", timeout: int = 10) -> None:
        self._header = api_key_header
        self._timeout = timeout

    def publish(
        self,
        agent_endpoint: str,
        api_key: str,
        token: str,
        authorization: str,
    ) -> None:
        """Store *token* -> *authorization* on the agent (overwrites)."""
        payload = json.dumps({"token": token, "authorization": authorization}).encode("utf-8")
        req = urllib.request.Request(
            _join(agent_endpoint, "/challenges"),
            data=payload,
            method="PUT",
            headers={
                "Content-Type": "application/json",
                self._header: api_key,
            },
        )
        self._send(req, agent_endpoint, "publish", token)
        log.info("Published challenge token %s to %s", token, agent_endpoint)

    def withdraw(self, agent_endpoint: str, api_key: str, token: str) -> None:
        """Remove *token* from the agent; an unknown token is not an error."""
        query = urllib.parse.urlencode({"token": token})
        req = urllib.request.Request(
            _join(agent_endpoint, f"/challenges?{query}"),
            method="DELETE",
            headers={self._header: api_key},
        )
        self._send(req, agent_endpoint, "withdraw", token, allow_missing=True)
        log.info("Withdrew challenge token %s from %s", token, agent_endpoint)

    def _send(
        self,
        req: urllib.request.Request,
        endpoint: str,
        action: str,
        token: str,
        *,
        allow_missing: bool = False,
    ) -> None:
        try:
            with urllib.request.urlopen(req, timeout=self._timeout) as resp:  # noqa: S310
                resp.read()
        except urllib.error.HTTPError as exc:
            if allow_missing and exc.code == _NOT_FOUND:
                log.debug("Token %s already absent on %s", token, endpoint)
                return
            body = ""
            with contextlib.suppress(OSError):
                body = exc.read().decode("utf-8", errors="replace")[:200]
            msg = f"Agent {endpoint} rejected {action} of token {token}: HTTP {exc.code} {body}"
            raise RoutingError(msg, retryable=exc.code >= 500) from exc  # noqa: PLR2004
        except (urllib.error.URLError, OSError) as exc:
            msg = f"Agent {endpoint} unreachable during {action} of token {token}: {exc}"
            raise RoutingError(msg, retryable=True) from exc


def _join(base: str, path: str) -> str:
    return base.rstrip("/") + path


class AgentDirectory:
    """Resolves the agent that fronts a domain.

    With *require_connected* off (health checking disabled) the
    connectivity flag is ignored and the first bound agent is used.
    """

    def __init__(self, agent_repo: AgentRepository, *, require_connected: bool = True) -> None:
        self._agents = agent_repo
        self._require_connected = require_connected

    def resolve(self, domain: str) -> Agent:
        """Return the connected agent for *domain*.

        Raises
        ------
        RoutingError
            No agent is bound to *domain*, or every bound agent is
            currently disconnected.

        """
        agents = self._agents.find_for_domain(domain)
        if not agents:
            msg = f"No agent is bound to domain {domain}"
            raise RoutingError(msg)
        for agent in agents:
            if agent.is_connected or not self._require_connected:
                return agent
        names = ", ".join(a.name for a in agents)
        msg = f"Agent(s) for domain {domain} are disconnected: {names}"
        raise RoutingError(msg, retryable=True)


class ChallengeRouter:
    """Makes a selected challenge servable and removes it afterwards.

    HTTP-01 goes to the owning agent; DNS-01 goes to the DNS publisher.
    """

    def __init__(
        self,
        propagator: ChallengePropagator,
        directory: AgentDirectory,
        dns_publisher: CallbackDnsPublisher | None = None,
    ) -> None:
        self._propagator = propagator
        self._directory = directory
        self._dns = dns_publisher

    def publish(self, selected: SelectedChallenge) -> None:
        if selected.type == ChallengeType.HTTP_01:
            agent = self._directory.resolve(selected.domain)
            self._propagator.publish(
                agent.url,
                agent.token,
                selected.token,
                selected.authorization,
            )
            return
        self._dns_publisher(selected).create(
            selected.domain,
            selected.token,
            selected.authorization,
        )

    def withdraw(self, selected: SelectedChallenge) -> None:
        if selected.type == ChallengeType.HTTP_01:
            agent = self._directory.resolve(selected.domain)
            self._propagator.withdraw(agent.url, agent.token, selected.token)
            return
        self._dns_publisher(selected).delete(selected.domain, selected.token)

    def _dns_publisher(self, selected: SelectedChallenge) -> CallbackDnsPublisher:
        if self._dns is None:
            msg = f"No DNS publisher configured for {selected.domain}"
            raise RoutingError(msg)
        return self._dns
