"""Flask application factory for the agent service.

Usage::

    from acmeman.agent import create_agent_app
    from acmeman.config import get_config

    app = create_agent_app(get_config().settings.agent_server)
"""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING

from flask import Flask, g

from acmeman.agent.errors import register_error_handlers
from acmeman.agent.routes import agent_bp
from acmeman.agent.store import ChallengeStore

if TYPE_CHECKING:
    from acmeman.config.settings import AgentServerSettings

log = logging.getLogger(__name__)


def create_agent_app(
    settings: AgentServerSettings,
    store: ChallengeStore | None = None,
) -> Flask:
    """Create the agent WSGI application.

    Parameters
    ----------
    settings:
        The ``agent_server`` config section.
    store:
        Challenge store to serve from; a fresh one is created when
        ``None``.  The store lives as long as the application.

    """
    app = Flask("acmeman.agent")
    app.config["JSON_SORT_KEYS"] = False
    app.extensions["acmeman"] = {
        "settings": settings,
        "store": store if store is not None else ChallengeStore(),
    }

    @app.before_request
    def _assign_request_id() -> None:
        g.request_id = uuid.uuid4().hex[:16]

    app.register_blueprint(agent_bp)
    register_error_handlers(app)

    log.info("Agent application %s created (version %s)", settings.name, settings.version)
    return app
