"""Caller identity: one concept with two authority levels.

A caller is either anonymous or an agent administrator (holder of the
agent's shared secret).  The authority enum is the tag; ``agent_name``
carries the administrator variant's payload.
"""

from __future__ import annotations

import hmac
from dataclasses import dataclass

from acmeman.core.types import Authority


@dataclass(frozen=True)
class CallerIdentity:
    authority: Authority
    agent_name: str | None = None

    @classmethod
    def anonymous(cls) -> CallerIdentity:
        return cls(authority=Authority.ANONYMOUS)

    @classmethod
    def agent_admin(cls, agent_name: str) -> CallerIdentity:
        return cls(authority=Authority.AGENT_ADMIN, agent_name=agent_name)

    def has(self, authority: Authority) -> bool:
        return self.authority is authority


def identify_by_api_key(
    presented: str | None,
    expected: str,
    agent_name: str,
) -> CallerIdentity:
    """Resolve a presented shared secret into a :class:`CallerIdentity`.

    Comparison is constant-time.  A missing or wrong key yields an
    anonymous identity; an empty *expected* key never authenticates.
    """
    if not presented or not expected:
        return CallerIdentity.anonymous()
    if hmac.compare_digest(presented.encode("utf-8"), expected.encode("utf-8")):
        return CallerIdentity.agent_admin(agent_name)
    return CallerIdentity.anonymous()
