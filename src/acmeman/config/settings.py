"""Typed, frozen dataclasses for every configuration section.

This module is the **single source of truth** for default values.
JSON Schema defaults exist only for documentation; these builders
are what the application actually reads.

Access pattern::

    from acmeman.config import get_config

    orch = get_config().settings.orchestration
    print(orch.max_attempts, orch.default_retry_seconds)
"""

from __future__ import annotations

from dataclasses import dataclass

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LoggingSettings:
    """Application logging configuration (level, format)."""

    level: str
    format: str


def _build_logging(data: dict | None) -> LoggingSettings:
    d = data or {}
    return LoggingSettings(
        level=d.get("level", "INFO"),
        format=d.get("format", "json"),
    )


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseSettings:
    """PostgreSQL connection and pool settings."""

    host: str
    port: int
    database: str
    user: str
    password: str
    sslmode: str
    min_connections: int
    max_connections: int
    connection_timeout: float
    auto_setup: bool


def _build_database(data: dict | None) -> DatabaseSettings:
    d = data or {}
    return DatabaseSettings(
        host=d.get("host", "localhost"),
        port=d.get("port", 5432),
        database=d.get("database", "acmeman"),
        user=d.get("user", "acmeman"),
        password=d.get("password", ""),
        sslmode=d.get("sslmode", "prefer"),
        min_connections=d.get("min_connections", 1),
        max_connections=d.get("max_connections", 10),
        connection_timeout=d.get("connection_timeout", 30.0),
        auto_setup=d.get("auto_setup", False),
    )


# ---------------------------------------------------------------------------
# ACME client
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AcmeSettings:
    """Outbound ACME client behaviour."""

    user_agent: str
    verify_ssl: bool
    timeout_seconds: int
    directory_overrides: dict[str, str]


def _build_acme(data: dict | None) -> AcmeSettings:
    d = data or {}
    return AcmeSettings(
        user_agent=d.get("user_agent", "acmeman"),
        verify_ssl=d.get("verify_ssl", True),
        timeout_seconds=d.get("timeout_seconds", 45),
        directory_overrides=dict(d.get("directory_overrides") or {}),
    )


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class OrchestrationSettings:
    """Order placement / execution policy."""

    max_workers: int
    max_attempts: int
    default_retry_seconds: float
    key_storage_path: str
    execute_timeout_seconds: int | None
    force_challenge_type: bool
    preferred_challenge: str


def _build_orchestration(data: dict | None) -> OrchestrationSettings:
    d = data or {}
    return OrchestrationSettings(
        max_workers=d.get("max_workers", 4),
        max_attempts=d.get("max_attempts", 10),
        default_retry_seconds=d.get("default_retry_seconds", 3),
        key_storage_path=d.get("key_storage_path", "certs"),
        execute_timeout_seconds=d.get("execute_timeout_seconds"),
        force_challenge_type=d.get("force_challenge_type", False),
        preferred_challenge=d.get("preferred_challenge", "http-01"),
    )


# ---------------------------------------------------------------------------
# Agents (client side)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AgentHealthSettings:
    enabled: bool
    poll_seconds: int
    timeout_seconds: int


@dataclass(frozen=True)
class AgentsSettings:
    """How the orchestrator talks to remote agents."""

    api_key_header: str
    request_timeout_seconds: int
    health: AgentHealthSettings


def _build_agents(data: dict | None) -> AgentsSettings:
    d = data or {}
    h = d.get("health") or {}
    return AgentsSettings(
        api_key_header=d.get("api_key_header", "X-Api-Key"),
        request_timeout_seconds=d.get("request_timeout_seconds", 10),
        health=AgentHealthSettings(
            enabled=h.get("enabled", True),
            poll_seconds=h.get("poll_seconds", 30),
            timeout_seconds=h.get("timeout_seconds", 10),
        ),
    )


# ---------------------------------------------------------------------------
# Agent server
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AgentServerSettings:
    """HTTP service run on each agent host."""

    bind: str
    port: int
    api_key: str
    api_key_header: str
    name: str
    version: str
    certificate_dir: str
    workers: int
    worker_class: str
    timeout: int
    graceful_timeout: int
    keepalive: int


def _build_agent_server(data: dict | None) -> AgentServerSettings:
    d = data or {}
    return AgentServerSettings(
        bind=d.get("bind", "0.0.0.0"),  # noqa: S104
        port=d.get("port", 8080),
        api_key=d.get("api_key", ""),
        api_key_header=d.get("api_key_header", "X-Api-Key"),
        name=d.get("name", "agent"),
        version=d.get("version", "1.0.0"),
        certificate_dir=d.get("certificate_dir", "certs"),
        workers=d.get("workers", 1),
        worker_class=d.get("worker_class", "gthread"),
        timeout=d.get("timeout", 30),
        graceful_timeout=d.get("graceful_timeout", 30),
        keepalive=d.get("keepalive", 2),
    )


# ---------------------------------------------------------------------------
# DNS-01 publishing
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Dns01Settings:
    """Callback scripts and propagation checks for DNS-01 records."""

    create_script: str | None
    delete_script: str | None
    script_timeout: int
    resolvers: tuple[str, ...]
    verify_propagation: bool
    propagation_timeout_seconds: int
    propagation_poll_seconds: int


def _build_dns01(data: dict | None) -> Dns01Settings:
    d = data or {}
    return Dns01Settings(
        create_script=d.get("create_script"),
        delete_script=d.get("delete_script"),
        script_timeout=d.get("script_timeout", 60),
        resolvers=tuple(d.get("resolvers", [])),
        verify_propagation=d.get("verify_propagation", True),
        propagation_timeout_seconds=d.get("propagation_timeout_seconds", 120),
        propagation_poll_seconds=d.get("propagation_poll_seconds", 5),
    )


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AcmeManagerSettings:
    logging: LoggingSettings
    database: DatabaseSettings
    acme: AcmeSettings
    orchestration: OrchestrationSettings
    agents: AgentsSettings
    agent_server: AgentServerSettings
    dns01: Dns01Settings


def build_settings(data: dict) -> AcmeManagerSettings:
    """Build the full typed settings tree from raw config data.

    Called once during :class:`AcmeManagerConfig` initialization after
    schema validation and environment-variable resolution.
    """
    return AcmeManagerSettings(
        logging=_build_logging(data.get("logging")),
        database=_build_database(data.get("database")),
        acme=_build_acme(data.get("acme")),
        orchestration=_build_orchestration(data.get("orchestration")),
        agents=_build_agents(data.get("agents")),
        agent_server=_build_agent_server(data.get("agent_server")),
        dns01=_build_dns01(data.get("dns01")),
    )
