"""Agent registry subcommands (orchestrator side)."""

from __future__ import annotations

import logging
import sys
import uuid

log = logging.getLogger(__name__)


def run_agents(config, args) -> None:
    """Handle agents subcommands."""
    if args.agents_command == "add":
        _add(config, args)
    elif args.agents_command == "list":
        _list(config)
    elif args.agents_command == "check":
        _check(config)
    else:
        sys.exit(1)


def _container(config):
    from acmeman.context import Container
    from acmeman.db import init_database

    db = init_database(config.settings.database)
    return Container(db, config.settings)


def _add(config, args) -> None:
    from acmeman.models.agent import Agent

    container = _container(config)
    if container.agents.find_by({"name": args.name}):
        log.error("Agent %s is already registered", args.name)
        sys.exit(1)

    agent = container.agents.create(
        Agent(
            id=uuid.uuid4(),
            name=args.name,
            url=args.url.rstrip("/"),
            token=args.token,
            domains=tuple(d.lower() for d in args.domains),
        ),
    )
    print(f"{agent.id}  {agent.name}  {agent.url}")  # noqa: T201


def _list(config) -> None:
    container = _container(config)
    for agent in container.agents.find_all():
        state = "connected" if agent.is_connected else "disconnected"
        print(  # noqa: T201
            f"{agent.id}  {agent.name:<20} {state:<12} {agent.url}  {','.join(agent.domains)}",
        )


def _check(config) -> None:
    """Run one health pass; exit non-zero if any agent is unhealthy."""
    container = _container(config)
    results = container.health_worker.check_all()
    for name, healthy in sorted(results.items()):
        print(f"{name:<20} {'ok' if healthy else 'unreachable'}")  # noqa: T201
    if not all(results.values()):
        sys.exit(1)
