"""Account management subcommands."""

from __future__ import annotations

import logging
import sys

log = logging.getLogger(__name__)


def run_account(config, args) -> None:
    """Handle account subcommands."""
    if args.account_command == "create":
        _create(config, args)
    else:
        sys.exit(1)


def _create(config, args) -> None:
    """Register a new key with the provider and store the account."""
    from acmeman.context import Container
    from acmeman.core.errors import AcmeManagerError
    from acmeman.core.types import AcmeProvider
    from acmeman.db import init_database

    try:
        provider = AcmeProvider(args.provider)
    except ValueError:
        log.error(
            "Unknown provider %s (known: %s)",
            args.provider,
            ", ".join(p.value for p in AcmeProvider),
        )
        sys.exit(1)

    db = init_database(config.settings.database)
    container = Container(db, config.settings)

    try:
        account = container.binder.create_account(provider, args.email)
    except AcmeManagerError as exc:
        log.error("Account registration failed: %s", exc.detail)
        sys.exit(1)

    container.accounts.create(account)
    print(f"{account.id}  {account.account_location}")  # noqa: T201
