"""Agent HTTP service: serves HTTP-01 challenge responses for one host.

Public API::

    from acmeman.agent import create_agent_app

    app = create_agent_app(settings.agent_server)
"""

from acmeman.agent.app import create_agent_app
from acmeman.agent.store import ChallengeStore

__all__ = ["ChallengeStore", "create_agent_app"]
