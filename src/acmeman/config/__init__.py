"""Configuration subsystem for ACME Manager.

Public API::

    from acmeman.config import get_config, AcmeManagerConfig

    # At startup (CLI only):
    AcmeManagerConfig(config_file="config.yaml")

    # Everywhere else:
    cfg = get_config()
    attempts = cfg.settings.orchestration.max_attempts
"""

from acmeman.config.acmeman_config import (
    AcmeManagerConfig,
    ConfigValidationError,
    get_config,
)
from acmeman.config.settings import (
    AcmeManagerSettings,
    AcmeSettings,
    AgentHealthSettings,
    AgentServerSettings,
    AgentsSettings,
    DatabaseSettings,
    Dns01Settings,
    LoggingSettings,
    OrchestrationSettings,
)

__all__ = [
    "AcmeManagerConfig",
    "AcmeManagerSettings",
    "AcmeSettings",
    "AgentHealthSettings",
    "AgentServerSettings",
    "AgentsSettings",
    "ConfigValidationError",
    "DatabaseSettings",
    "Dns01Settings",
    "LoggingSettings",
    "OrchestrationSettings",
    "get_config",
]
