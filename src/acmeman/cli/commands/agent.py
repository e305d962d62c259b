"""Agent subcommand: run the HTTP-01 challenge responder."""

from __future__ import annotations

import logging
import sys

log = logging.getLogger(__name__)


def run_agent(config, args) -> None:
    """Handle agent subcommands."""
    if args.agent_command == "serve":
        _serve(config, args)
    else:
        sys.exit(1)


def _serve(config, args) -> None:
    """Start the agent service; the challenge store lives in this process."""
    from acmeman.agent import create_agent_app

    settings = config.settings.agent_server
    if not settings.api_key:
        log.error("agent_server.api_key is not configured; refusing to start")
        sys.exit(1)

    app = create_agent_app(settings)

    if args.dev:
        log.info("Starting development server (not for production)")
        app.run(
            host=settings.bind,
            port=settings.port,
            debug=True,
            use_reloader=False,
        )
    else:
        from acmeman.server.gunicorn_app import run_gunicorn

        run_gunicorn(app, settings)
