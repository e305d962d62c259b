"""ACME Manager command-line entry point.

Usage::

    acmeman -c /etc/acmeman/config.yaml --validate-only
    acmeman -c config.yaml agent serve --dev
    acmeman -c config.yaml agents add --name web1 --url http://10.0.0.5:8080 \\
        --token s3cret --domain example.com --domain '*.example.com'
    acmeman -c config.yaml agents check
    acmeman -c config.yaml account create --provider LetsEncryptStaging --email ops@example.com
    acmeman -c config.yaml order place --account-id <uuid> --domain example.com --save-key
    acmeman -c config.yaml order execute --certificate-id <uuid> --timeout 600
    acmeman -c config.yaml db status
    python -m acmeman -c config.yaml db status
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

log = logging.getLogger(__name__)


def _get_version() -> str:
    from acmeman import __version__

    return __version__


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="acmeman",
        description="ACME Manager: order orchestration with remote HTTP-01 agents",
    )
    parser.add_argument(
        "-c",
        "--config",
        required=True,
        metavar="PATH",
        help="Path to the configuration file (YAML or JSON).",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=False,
        help="Enable debug output (full tracebacks, verbose logging).",
    )
    parser.add_argument(
        "--validate-only",
        action="store_true",
        default=False,
        help="Validate the configuration file and exit.",
    )
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"%(prog)s {_get_version()}",
    )

    subparsers = parser.add_subparsers(dest="command")

    # agent (run the challenge responder)
    agent_parser = subparsers.add_parser("agent", help="Agent service")
    agent_sub = agent_parser.add_subparsers(dest="agent_command")
    serve = agent_sub.add_parser("serve", help="Start the agent HTTP service")
    serve.add_argument("--dev", action="store_true", default=False, dest="dev")

    # agents (registry, orchestrator side)
    agents_parser = subparsers.add_parser("agents", help="Agent registry")
    agents_sub = agents_parser.add_subparsers(dest="agents_command")
    add = agents_sub.add_parser("add", help="Register an agent")
    add.add_argument("--name", required=True, help="Unique agent name")
    add.add_argument("--url", required=True, help="Agent base URL")
    add.add_argument("--token", required=True, help="Agent API key")
    add.add_argument(
        "--domain",
        action="append",
        required=True,
        dest="domains",
        help="Domain fronted by the agent (repeatable, '*.suffix' allowed)",
    )
    agents_sub.add_parser("list", help="List registered agents")
    agents_sub.add_parser("check", help="Run one health check on every agent")

    # account
    account_parser = subparsers.add_parser("account", help="ACME account management")
    account_sub = account_parser.add_subparsers(dest="account_command")
    create = account_sub.add_parser("create", help="Register a new provider account")
    create.add_argument("--provider", required=True, help="LetsEncrypt or LetsEncryptStaging")
    create.add_argument("--email", required=True, help="Contact email address")

    # order
    order_parser = subparsers.add_parser("order", help="Order placement and execution")
    order_sub = order_parser.add_subparsers(dest="order_command")
    place = order_sub.add_parser("place", help="Place (or re-find) an order")
    place.add_argument("--account-id", required=True, help="Account UUID")
    place.add_argument(
        "--domain",
        action="append",
        required=True,
        dest="domains",
        help="Domain to include (repeatable)",
    )
    place.add_argument("--save-key", action="store_true", default=False)
    place.add_argument(
        "--force-challenge",
        default=None,
        metavar="TYPE",
        help="Require this challenge type (http-01 or dns-01)",
    )
    execute = order_sub.add_parser("execute", help="Validate and finalize an order")
    execute.add_argument("--certificate-id", required=True, help="Certificate UUID")
    execute.add_argument(
        "--timeout",
        type=int,
        default=None,
        metavar="SECONDS",
        help="Cancel remaining work after this many seconds",
    )

    # db
    db_parser = subparsers.add_parser("db", help="Database management")
    db_sub = db_parser.add_subparsers(dest="db_command")
    db_sub.add_parser("status", help="Check database connectivity")

    return parser


def _print_error(message: str) -> None:
    """Print a user-facing error to stderr."""
    print(f"error: {message}", file=sys.stderr)  # noqa: T201


def main(argv: list[str] | None = None) -> None:
    """CLI entry point.  Parses arguments, loads config, dispatches."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    config_path = Path(args.config)
    if not config_path.is_file():
        _print_error(f"configuration file not found: {config_path}")
        sys.exit(1)

    # -- bootstrap logging early (basic stderr until config is loaded) ---
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        from acmeman.config import AcmeManagerConfig, ConfigValidationError

        config = AcmeManagerConfig(config_file=str(config_path))
    except ConfigValidationError as exc:
        _print_error(str(exc))
        sys.exit(1)
    except Exception as exc:
        if args.debug:
            raise
        _print_error(f"failed to load configuration: {exc}")
        sys.exit(1)

    from acmeman.logging import configure_logging

    configure_logging(config.settings.logging)

    if args.validate_only:
        _print_settings_summary(config)
        sys.exit(0)

    command = args.command
    if command == "agent":
        from acmeman.cli.commands.agent import run_agent

        run_agent(config, args)
    elif command == "agents":
        from acmeman.cli.commands.agents import run_agents

        run_agents(config, args)
    elif command == "account":
        from acmeman.cli.commands.account import run_account

        run_account(config, args)
    elif command == "order":
        from acmeman.cli.commands.order import run_order

        run_order(config, args)
    elif command == "db":
        from acmeman.cli.commands.db import run_db

        run_db(config, args)
    else:
        parser.print_help()
        sys.exit(2)


def _print_settings_summary(config) -> None:
    """Print a short summary of the loaded configuration."""
    s = config.settings
    lines = [
        f"config:        {config.data.get('_source', '?')}",
        f"database:      {s.database.user}@{s.database.host}:{s.database.port}/{s.database.database}",
        f"orchestration: workers={s.orchestration.max_workers} "
        f"attempts={s.orchestration.max_attempts} "
        f"retry={s.orchestration.default_retry_seconds}s "
        f"preferred={s.orchestration.preferred_challenge}",
        f"agents:        health={'on' if s.agents.health.enabled else 'off'} "
        f"poll={s.agents.health.poll_seconds}s",
        f"dns01:         {'configured' if s.dns01.create_script else 'not configured'}",
    ]
    print("\n".join(lines))  # noqa: T201
