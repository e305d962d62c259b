"""Challenge selection policy.

Unforced selection prefers HTTP-01 (no DNS propagation delay) and falls
back to DNS-01.  A forced type must be offered exactly; there is no
fallback.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from acmeman.core.errors import NoSupportedChallengeError, UnsupportedChallengeError
from acmeman.core.types import ChallengeType

if TYPE_CHECKING:
    from acmeman.provider.base import ProviderAuthorization, ProviderChallenge

DNS01_RECORD_PREFIX = "_acme-challenge."

_PREFERENCE = (ChallengeType.HTTP_01, ChallengeType.DNS_01)


@dataclass(frozen=True)
class SelectedChallenge:
    """The challenge chosen for one authorization.

    For HTTP-01 ``token``/``authorization`` are the file name and body the
    agent serves at ``/.well-known/acme-challenge/{token}``.  For DNS-01
    ``token`` is the TXT record name and ``authorization`` its value.
    """

    domain: str
    type: ChallengeType
    token: str
    authorization: str


def dns_record_name(domain: str) -> str:
    """Return ``_acme-challenge.<domain>`` (wildcard prefix stripped)."""
    return DNS01_RECORD_PREFIX + domain.removeprefix("*.")


def describe(challenge: ProviderChallenge, domain: str) -> SelectedChallenge:
    """Build the :class:`SelectedChallenge` for an offered *challenge*."""
    if challenge.type == ChallengeType.HTTP_01:
        return SelectedChallenge(
            domain=domain,
            type=ChallengeType.HTTP_01,
            token=challenge.token,
            authorization=challenge.key_authorization(),
        )
    return SelectedChallenge(
        domain=domain,
        type=ChallengeType.DNS_01,
        token=dns_record_name(domain),
        authorization=challenge.dns_digest(),
    )


def select_challenge(
    authorization: ProviderAuthorization,
    requested_type: ChallengeType | str = ChallengeType.HTTP_01,
    force_type: bool = False,  # noqa: FBT001, FBT002
) -> SelectedChallenge:
    """Pick the challenge to satisfy for *authorization*.

    Parameters
    ----------
    authorization:
        The provider authorization for one domain.
    requested_type:
        The challenge type wanted when *force_type* is set.
    force_type:
        Require exactly *requested_type*.

    Raises
    ------
    UnsupportedChallengeError
        *force_type* is set and *requested_type* is not offered.
    NoSupportedChallengeError
        Neither HTTP-01 nor DNS-01 is offered.

    """
    domain = authorization.identifier

    if force_type:
        wanted = ChallengeType(requested_type)
        challenge = authorization.find_challenge(wanted)
        if challenge is None:
            offered = sorted(str(c.type) for c in authorization.challenges)
            msg = f"{domain}: forced challenge type {wanted.value} not offered (offered: {offered})"
            raise UnsupportedChallengeError(msg)
        return describe(challenge, domain)

    for candidate in _PREFERENCE:
        challenge = authorization.find_challenge(candidate)
        if challenge is not None:
            return describe(challenge, domain)

    offered = sorted(str(c.type) for c in authorization.challenges)
    msg = f"{domain}: found no supported challenge (offered: {offered})"
    raise NoSupportedChallengeError(msg)
