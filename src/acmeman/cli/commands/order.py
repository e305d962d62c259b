"""Order subcommands: place and execute."""

from __future__ import annotations

import logging
import sys
import uuid

log = logging.getLogger(__name__)


def run_order(config, args) -> None:
    """Handle order subcommands."""
    if args.order_command == "place":
        _place(config, args)
    elif args.order_command == "execute":
        _execute(config, args)
    else:
        sys.exit(1)


def _container(config):
    from acmeman.context import Container
    from acmeman.db import init_database

    db = init_database(config.settings.database)
    return Container(db, config.settings)


def _parse_uuid(value: str, what: str) -> uuid.UUID:
    try:
        return uuid.UUID(value)
    except ValueError:
        log.error("Invalid %s: %s", what, value)
        sys.exit(1)


def _place(config, args) -> None:
    """Place an order through the dispatcher and print its requests."""
    from acmeman.core.errors import AcmeManagerError
    from acmeman.core.types import ChallengeType

    account_id = _parse_uuid(args.account_id, "account id")
    requested = None
    if args.force_challenge:
        try:
            requested = ChallengeType(args.force_challenge)
        except ValueError:
            log.error("Unknown challenge type: %s", args.force_challenge)
            sys.exit(1)

    container = _container(config)
    account = container.accounts.find_by_id(account_id)
    if account is None:
        log.error("Account %s not found", account_id)
        sys.exit(1)

    kwargs = {}
    if requested is not None:
        kwargs = {"force_challenge_type": True, "requested_type": requested}

    try:
        future = container.dispatcher.submit_place(
            account,
            args.domains,
            account.provider,
            args.save_key,
            **kwargs,
        )
        certificate = future.result()
    except AcmeManagerError as exc:
        log.error("Order placement failed: %s", exc.detail)
        sys.exit(1)
    finally:
        container.close()

    print(f"certificate {certificate.id}  order {certificate.order_location}")  # noqa: T201
    for request in certificate.validation_requests:
        print(  # noqa: T201
            f"  {request.domain:<40} {request.challenge_type:<8} {request.status}",
        )


def _execute(config, args) -> None:
    """Execute an order; Ctrl-C cancels outstanding work."""
    from acmeman.core.errors import AcmeManagerError

    certificate_id = _parse_uuid(args.certificate_id, "certificate id")
    container = _container(config)

    certificate = container.orchestrator.load(certificate_id)
    if certificate is None:
        log.error("Certificate %s not found", certificate_id)
        sys.exit(1)
    account = container.accounts.find_by_id(certificate.account_id)
    if account is None:
        log.error("Account %s for certificate %s not found", certificate.account_id, certificate_id)
        sys.exit(1)

    if config.settings.agents.health.enabled:
        # Route with fresh connectivity, then keep it current for the run.
        container.health_worker.check_all()
        container.health_worker.start()

    future = container.dispatcher.submit_execute(
        account,
        certificate,
        timeout_seconds=args.timeout,
    )
    try:
        try:
            result = future.result()
        except KeyboardInterrupt:
            container.dispatcher.cancel_all()
            result = future.result()
    except AcmeManagerError as exc:
        log.error("Order execution failed: %s", exc.detail)
        if exc.result is not None:
            _print_outcomes(exc.result.outcomes)
        sys.exit(1)
    finally:
        container.close()

    _print_outcomes(result.outcomes)
    print(  # noqa: T201
        f"order status: {result.order_status or 'unknown'}"
        f"{' (cancelled)' if result.cancelled else ''}",
    )
    if result.key_path:
        print(f"key material: {result.key_path}")  # noqa: T201
    if not result.succeeded:
        sys.exit(1)


def _print_outcomes(outcomes) -> None:
    for domain, outcome in outcomes.items():
        status = "ok" if outcome.success else f"failed: {outcome.error_message}"
        print(f"  {domain:<40} {status}")  # noqa: T201
