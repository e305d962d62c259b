"""ACME Manager configuration loader built on ConfigKit.

The CLI builds the singleton once; everything else reads it::

    AcmeManagerConfig(config_file="/etc/acmeman/config.yaml")

    from acmeman.config import get_config
    get_config().settings.orchestration.max_attempts
    get_config().get("agents.health.poll_seconds", default=30)
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Any

from configkit import ConfigKit, ConfigKitMeta

from acmeman.config.settings import AcmeManagerSettings, build_settings
from acmeman.core.types import AcmeProvider, ChallengeType

_SCHEMA_PATH = Path(__file__).parent / "schema.json"

_ENV_RE = re.compile(
    r"^\$\{([^}:]+?)(?::-(.*))?\}$",
    re.DOTALL,
)

_MIN_API_KEY_LENGTH = 16

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Module-level singleton reference
# ---------------------------------------------------------------------------
_instance: AcmeManagerConfig | None = None


def get_config() -> AcmeManagerConfig:
    """Return the initialised configuration singleton.

    Raises :class:`RuntimeError` if :class:`AcmeManagerConfig` has not
    been created yet (i.e. the CLI entry point has not run).
    """
    if _instance is None:
        msg = (
            "Configuration not initialised. "
            "AcmeManagerConfig must be created with config_file= before calling get_config()."
        )
        raise RuntimeError(msg)
    return _instance


# ---------------------------------------------------------------------------
# Validation error collector
# ---------------------------------------------------------------------------


class ConfigValidationError(Exception):
    """Raised when cross-field validation finds one or more problems."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = errors
        body = "\n".join(f"  - {e}" for e in errors)
        super().__init__(f"Configuration validation failed:\n{body}")


# ---------------------------------------------------------------------------
# ${VAR} / ${VAR:-default} placeholders
# ---------------------------------------------------------------------------


def _substitute(value: Any, where: str) -> Any:  # noqa: ANN401
    """Return *value* with every placeholder string replaced, recursively."""
    if isinstance(value, dict):
        for key, child in value.items():
            value[key] = _substitute(child, f"{where}.{key}" if where else str(key))
        return value
    if isinstance(value, list):
        value[:] = [_substitute(child, f"{where}[{i}]") for i, child in enumerate(value)]
        return value
    if not isinstance(value, str):
        return value

    placeholder = _ENV_RE.match(value)
    if placeholder is None:
        return value
    name, default = placeholder.groups()
    if name in os.environ:
        return os.environ[name]
    if default is None:
        msg = f"{where}: ${{{name}}} is unset and has no :-default"
        raise ConfigValidationError([msg])
    return default


# ---------------------------------------------------------------------------
# Config class
# ---------------------------------------------------------------------------


class AcmeManagerConfig(ConfigKit):
    """Central configuration for the orchestrator and the agent service.

    The JSON schema is bundled at ``config/schema.json``; users supply
    only ``config_file``.  After construction the typed settings tree is
    available at :pyattr:`settings`.
    """

    def __init__(
        self,
        *,
        config_file: str | Path,
        schema_file: str | Path | None = None,  # noqa: ARG002
    ) -> None:
        global _instance  # noqa: PLW0603

        # The bundled schema is always used; ``schema_file`` exists only to
        # satisfy ConfigKitMeta's __call__ guard.
        super().__init__(
            config_file=config_file,
            schema_file=_SCHEMA_PATH,
        )
        self._settings: AcmeManagerSettings = build_settings(self.data)
        _instance = self

    def _load(self) -> None:
        """Load the file, then substitute ``${VAR}`` placeholders.

        Runs before schema validation so substituted values are checked
        against the schema's constraints.
        """
        super()._load()
        _substitute(self._data, "")

    @property
    def settings(self) -> AcmeManagerSettings:
        """Fully-typed, frozen settings tree."""
        return self._settings

    def additional_checks(self) -> None:  # noqa: C901
        """Semantic & cross-field validation, run after schema validation."""
        errors: list[str] = []
        warnings: list[str] = []

        acme = self.data.get("acme") or {}
        orch = self.data.get("orchestration") or {}
        agents = self.data.get("agents") or {}
        agent_server = self.data.get("agent_server") or {}
        dns01 = self.data.get("dns01") or {}

        # -- acme --
        known_providers = {p.value for p in AcmeProvider}
        for name, url in (acme.get("directory_overrides") or {}).items():
            if name not in known_providers:
                errors.append(
                    f"acme.directory_overrides: unknown provider '{name}' "
                    f"(known: {sorted(known_providers)})",
                )
            elif not str(url).startswith("https://"):
                warnings.append(
                    f"acme.directory_overrides.{name} is not an https URL ({url})",
                )
        if acme.get("verify_ssl") is False:
            warnings.append("acme.verify_ssl is disabled; provider TLS is not verified")

        # -- orchestration --
        preferred = orch.get("preferred_challenge", ChallengeType.HTTP_01.value)
        if preferred not in {c.value for c in ChallengeType}:
            errors.append(
                f"orchestration.preferred_challenge must be one of "
                f"{sorted(c.value for c in ChallengeType)} (got '{preferred}')",
            )
        timeout = orch.get("execute_timeout_seconds")
        max_attempts = orch.get("max_attempts", 10)
        retry = orch.get("default_retry_seconds", 3)
        if timeout is not None and timeout < max_attempts * retry:
            warnings.append(
                f"orchestration.execute_timeout_seconds ({timeout}) is shorter "
                f"than one full polling cycle ({max_attempts} x {retry}s)",
            )

        # -- agents --
        health = agents.get("health") or {}
        if health.get("timeout_seconds", 10) >= health.get("poll_seconds", 30):
            errors.append(
                "agents.health.timeout_seconds must be smaller than agents.health.poll_seconds",
            )

        # -- agent server --
        if agent_server:
            api_key = agent_server.get("api_key", "")
            if not api_key:
                errors.append("agent_server.api_key is required when agent_server is configured")
            elif len(api_key) < _MIN_API_KEY_LENGTH:
                errors.append(
                    f"agent_server.api_key is too short ({len(api_key)} chars); "
                    f"minimum {_MIN_API_KEY_LENGTH} characters required",
                )
            if agent_server.get("workers", 1) != 1:
                errors.append(
                    "agent_server.workers must be 1: the challenge store is "
                    "held in process memory",
                )

        # -- dns01 --
        has_create = bool(dns01.get("create_script"))
        has_delete = bool(dns01.get("delete_script"))
        if has_create != has_delete:
            errors.append("dns01.create_script and dns01.delete_script must be set together")

        for w in warnings:
            log.warning("Config warning: %s", w)

        if errors:
            raise ConfigValidationError(errors)

    @classmethod
    def reset(cls) -> None:
        """Reset the singleton -- testing only."""
        global _instance  # noqa: PLW0603
        _instance = None
        ConfigKitMeta.reset()

    def __repr__(self) -> str:
        source = self.data.get("_source", "?")
        return f"<AcmeManagerConfig config_file={source}>"
