"""Abstract provider object model.

The orchestrator only talks to these classes.  Each stateful object
exposes ``update()``, which refreshes remote state and returns the
provider-recommended retry instant (or ``None``), and a ``status``
property reading the last fetched state.  That pair is exactly what
:func:`acmeman.services.polling.wait_for_completion` consumes.

All provider rejections surface as
:class:`~acmeman.core.errors.ProtocolError`.
"""

from __future__ import annotations

import abc
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime

    from cryptography import x509
    from cryptography.hazmat.primitives.asymmetric import ec

    from acmeman.core.types import AcmeProvider, ChallengeType, ValidationStatus


class ProviderChallenge(abc.ABC):
    """One challenge offered inside an authorization."""

    @property
    @abc.abstractmethod
    def type(self) -> ChallengeType | str:
        """Challenge type (unrecognised types are returned as plain strings)."""

    @property
    @abc.abstractmethod
    def token(self) -> str: ...

    @property
    @abc.abstractmethod
    def status(self) -> ValidationStatus: ...

    @property
    @abc.abstractmethod
    def error(self) -> str | None: ...

    @abc.abstractmethod
    def key_authorization(self) -> str:
        """Return the HTTP-01 response body (``token.thumbprint``)."""

    @abc.abstractmethod
    def dns_digest(self) -> str:
        """Return the DNS-01 TXT record value (base64url SHA-256)."""

    @abc.abstractmethod
    def update(self) -> datetime | None: ...

    @abc.abstractmethod
    def trigger(self) -> None:
        """Tell the provider the challenge is ready to be validated."""


class ProviderAuthorization(abc.ABC):
    """The provider's authorization for one identifier of an order."""

    @property
    @abc.abstractmethod
    def domain(self) -> str: ...

    @property
    @abc.abstractmethod
    def wildcard(self) -> bool: ...

    @property
    @abc.abstractmethod
    def status(self) -> ValidationStatus: ...

    @property
    @abc.abstractmethod
    def challenges(self) -> list[ProviderChallenge]: ...

    def find_challenge(self, challenge_type: ChallengeType | str) -> ProviderChallenge | None:
        """Return the offered challenge of *challenge_type*, or ``None``."""
        wanted = str(challenge_type)
        for challenge in self.challenges:
            if str(challenge.type) == wanted:
                return challenge
        return None

    @property
    def identifier(self) -> str:
        """Domain as ordered (``*.`` restored for wildcard authorizations)."""
        return f"*.{self.domain}" if self.wildcard else self.domain


class ProviderOrder(abc.ABC):
    @property
    @abc.abstractmethod
    def location(self) -> str: ...

    @property
    @abc.abstractmethod
    def status(self) -> ValidationStatus: ...

    @property
    @abc.abstractmethod
    def expires(self) -> datetime | None: ...

    @property
    @abc.abstractmethod
    def error(self) -> str | None: ...

    @abc.abstractmethod
    def authorizations(self) -> list[ProviderAuthorization]:
        """Fetch the order's authorizations in provider order."""

    @abc.abstractmethod
    def update(self) -> datetime | None: ...

    @abc.abstractmethod
    def finalize(self, csr: x509.CertificateSigningRequest) -> None: ...

    @abc.abstractmethod
    def certificate(self) -> str | None:
        """Download the issued PEM chain, or ``None`` if not issued yet."""


class ProviderSession(abc.ABC):
    """A logged-in account at one provider."""

    @property
    @abc.abstractmethod
    def account_location(self) -> str: ...

    @abc.abstractmethod
    def new_order(self, domains: list[str]) -> ProviderOrder: ...

    @abc.abstractmethod
    def bind_order(self, location: str) -> ProviderOrder:
        """Re-attach to an existing order by its location URL."""


class ProviderConnector(abc.ABC):
    """Opens sessions against a provider directory."""

    @abc.abstractmethod
    def connect(
        self,
        provider: AcmeProvider,
        key: ec.EllipticCurvePrivateKey,
        email: str | None = None,
        *,
        only_existing: bool = False,
    ) -> ProviderSession:
        """Find-or-create the account for *key* and return a session.

        With ``only_existing`` no account is created; a key unknown to
        the provider raises :class:`~acmeman.core.errors.ProtocolError`.
        """

    @abc.abstractmethod
    def directory_url(self, provider: AcmeProvider) -> str: ...
