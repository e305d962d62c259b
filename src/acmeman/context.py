"""Dependency container for the orchestrator.

Created once by the CLI after the configuration and database are
initialised; wires repositories, the provider connector and the
services together.

Usage::

    from acmeman.context import Container

    c = Container(db, config.settings)
    certificate = c.orchestrator.load(certificate_id)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from acmeman.provider.acme_v2 import AcmeV2Connector
from acmeman.repositories import (
    AccountRepository,
    AgentRepository,
    CertificateRepository,
    ValidationRequestRepository,
)
from acmeman.services.account import AccountBinder
from acmeman.services.agent_health import AgentHealthWorker
from acmeman.services.dispatcher import OrderDispatcher
from acmeman.services.dns01 import CallbackDnsPublisher
from acmeman.services.order import OrderOrchestrator
from acmeman.services.propagator import AgentDirectory, ChallengePropagator, ChallengeRouter

if TYPE_CHECKING:
    from pypgkit import Database

    from acmeman.config.settings import AcmeManagerSettings
    from acmeman.provider.base import ProviderConnector


class Container:
    """Holds every long-lived collaborator of the orchestrator.

    Parameters
    ----------
    db:
        The initialised :class:`Database` singleton.
    settings:
        The full settings tree.
    connector:
        Provider connector; defaults to :class:`AcmeV2Connector`.

    """

    def __init__(
        self,
        db: Database,
        settings: AcmeManagerSettings,
        connector: ProviderConnector | None = None,
    ) -> None:
        self.db = db
        self.settings = settings

        # Repositories
        self.accounts = AccountRepository(db)
        self.agents = AgentRepository(db)
        self.certificates = CertificateRepository(db)
        self.validation_requests = ValidationRequestRepository(db)

        # Provider
        self.connector = connector if connector is not None else AcmeV2Connector(settings.acme)
        self.binder = AccountBinder(self.connector)

        # Challenge propagation
        dns_publisher = None
        if settings.dns01.create_script and settings.dns01.delete_script:
            dns_publisher = CallbackDnsPublisher(settings.dns01)
        self.router = ChallengeRouter(
            ChallengePropagator(
                api_key_header=settings.agents.api_key_header,
                timeout=settings.agents.request_timeout_seconds,
            ),
            AgentDirectory(self.agents, require_connected=settings.agents.health.enabled),
            dns_publisher,
        )

        # Services
        self.orchestrator = OrderOrchestrator(
            self.binder,
            self.certificates,
            self.validation_requests,
            self.router,
            settings.orchestration,
        )
        self._dispatcher: OrderDispatcher | None = None
        self._health_worker: AgentHealthWorker | None = None

    @property
    def dispatcher(self) -> OrderDispatcher:
        if self._dispatcher is None:
            self._dispatcher = OrderDispatcher(
                self.orchestrator,
                max_workers=self.settings.orchestration.max_workers,
                default_timeout_seconds=self.settings.orchestration.execute_timeout_seconds,
            )
        return self._dispatcher

    @property
    def health_worker(self) -> AgentHealthWorker:
        if self._health_worker is None:
            health = self.settings.agents.health
            self._health_worker = AgentHealthWorker(
                self.agents,
                poll_seconds=health.poll_seconds,
                timeout_seconds=health.timeout_seconds,
            )
        return self._health_worker

    def close(self) -> None:
        if self._health_worker is not None:
            self._health_worker.stop()
        if self._dispatcher is not None:
            self._dispatcher.shutdown(cancel_pending=True)
