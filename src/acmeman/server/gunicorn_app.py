"""Programmatic gunicorn runner for the agent service.

Starts gunicorn with settings derived from the ``agent_server`` config
section rather than a separate gunicorn config file.  The challenge
store lives in process memory, so the agent always runs one worker
process; concurrency comes from worker threads.

Usage::

    from acmeman.server.gunicorn_app import run_gunicorn

    run_gunicorn(agent_app, settings.agent_server)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from gunicorn.app.base import BaseApplication

if TYPE_CHECKING:
    from flask import Flask

    from acmeman.config.settings import AgentServerSettings

log = logging.getLogger(__name__)

_THREADS = 8


class AgentApplication(BaseApplication):
    def __init__(self, flask_app: Flask, settings: AgentServerSettings) -> None:
        self.application = flask_app
        self._settings = settings
        super().__init__()

    def load_config(self) -> None:
        s = self._settings
        self.cfg.set("bind", f"{s.bind}:{s.port}")
        self.cfg.set("workers", s.workers)
        self.cfg.set("worker_class", s.worker_class)
        self.cfg.set("threads", _THREADS)
        self.cfg.set("timeout", s.timeout)
        self.cfg.set("graceful_timeout", s.graceful_timeout)
        self.cfg.set("keepalive", s.keepalive)
        self.cfg.set("accesslog", None)

    def load(self) -> Flask:
        return self.application


def run_gunicorn(app: Flask, settings: AgentServerSettings) -> None:
    """Serve *app* with gunicorn (Unix only)."""
    log.info(
        "Starting agent %s on %s:%s (%s)",
        settings.name,
        settings.bind,
        settings.port,
        settings.worker_class,
    )
    AgentApplication(app, settings).run()
