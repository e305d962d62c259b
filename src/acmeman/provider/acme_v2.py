"""ACME v2 provider implementation on top of the ``acme`` client library.

Orders are created without a CSR (the domain key is generated only at
execution time), so order creation and resource fetching go through
the client's signed POST / POST-as-GET primitives and parse the
responses with :mod:`acme.messages`.

Usage::

    connector = AcmeV2Connector(settings.acme)
    session = connector.connect(AcmeProvider.LETS_ENCRYPT, key, "ops@example.com")
    order = session.new_order(["example.com"])
"""

from __future__ import annotations

import contextlib
import logging
from datetime import UTC
from typing import TYPE_CHECKING

import josepy as jose
import requests
from acme import challenges, client, errors, messages
from cryptography.hazmat.primitives.asymmetric import ec

from acmeman.core.errors import ProtocolError
from acmeman.core.types import ChallengeType, ValidationStatus
from acmeman.provider.base import (
    ProviderAuthorization,
    ProviderChallenge,
    ProviderConnector,
    ProviderOrder,
    ProviderSession,
)

if TYPE_CHECKING:
    from collections.abc import Iterator
    from datetime import datetime

    from cryptography import x509

    from acmeman.config.settings import AcmeSettings
    from acmeman.core.types import AcmeProvider

log = logging.getLogger(__name__)

# Provider statuses that end polling without success.
_FAILED_STATUSES = frozenset({"invalid", "expired", "deactivated", "revoked"})


@contextlib.contextmanager
def _protocol_errors(action: str) -> Iterator[None]:
    """Convert ``acme`` and transport failures into :class:`ProtocolError`."""
    try:
        yield
    except errors.Error as exc:
        msg = f"ACME provider rejected {action}: {exc}"
        raise ProtocolError(msg) from exc
    except requests.exceptions.RequestException as exc:
        msg = f"ACME provider unreachable during {action}: {exc}"
        raise ProtocolError(msg, retryable=True) from exc


def _to_status(status: messages.Status | None) -> ValidationStatus:
    name = status.name if status is not None else "pending"
    if name in _FAILED_STATUSES:
        return ValidationStatus.INVALID
    try:
        return ValidationStatus(name)
    except ValueError:
        return ValidationStatus.PENDING


def _to_error(error: messages.Error | None) -> str | None:
    if error is None:
        return None
    return error.detail or error.description or str(error)


def _retry_at(response: requests.Response) -> datetime | None:
    """Return the Retry-After instant as an aware UTC datetime, if sent."""
    if "Retry-After" not in response.headers:
        return None
    at = client.ClientV2.retry_after(response, default=0)
    # acme returns naive local time; astimezone() interprets it as such.
    return at.astimezone(UTC)


def _alg_for(key: ec.EllipticCurvePrivateKey) -> jose.JWASignature:
    return jose.ES384 if isinstance(key.curve, ec.SECP384R1) else jose.ES256


# ---------------------------------------------------------------------------
# Challenge / authorization / order
# ---------------------------------------------------------------------------


class AcmeV2Challenge(ProviderChallenge):
    def __init__(self, session: AcmeV2Session, body: messages.ChallengeBody) -> None:
        self._session = session
        self._body = body

    @property
    def type(self) -> ChallengeType | str:
        typ = self._body.chall.typ
        try:
            return ChallengeType(typ)
        except ValueError:
            return typ

    @property
    def token(self) -> str:
        return self._body.chall.encode("token")

    @property
    def status(self) -> ValidationStatus:
        return _to_status(self._body.status)

    @property
    def error(self) -> str | None:
        return _to_error(self._body.error)

    def key_authorization(self) -> str:
        return self._body.chall.validation(self._session.jwk)

    def dns_digest(self) -> str:
        if not isinstance(self._body.chall, challenges.DNS01):
            msg = f"{self._body.chall.typ} challenge has no DNS digest"
            raise ProtocolError(msg)
        return self._body.chall.validation(self._session.jwk)

    def update(self) -> datetime | None:
        with _protocol_errors("challenge fetch"):
            response = self._session.acme._post_as_get(self._body.uri)  # noqa: SLF001
            self._body = messages.ChallengeBody.from_json(response.json())
        return _retry_at(response)

    def trigger(self) -> None:
        with _protocol_errors("challenge trigger"):
            resource = self._session.acme.answer_challenge(
                self._body,
                self._body.chall.response(self._session.jwk),
            )
        self._body = resource.body


class AcmeV2Authorization(ProviderAuthorization):
    def __init__(self, session: AcmeV2Session, body: messages.Authorization) -> None:
        self._session = session
        self._body = body

    @property
    def domain(self) -> str:
        return self._body.identifier.value

    @property
    def wildcard(self) -> bool:
        return bool(self._body.wildcard)

    @property
    def status(self) -> ValidationStatus:
        return _to_status(self._body.status)

    @property
    def challenges(self) -> list[ProviderChallenge]:
        return [AcmeV2Challenge(self._session, c) for c in self._body.challenges]


class AcmeV2Order(ProviderOrder):
    def __init__(
        self,
        session: AcmeV2Session,
        location: str,
        body: messages.Order,
    ) -> None:
        self._session = session
        self._location = location
        self._body = body

    @property
    def location(self) -> str:
        return self._location

    @property
    def status(self) -> ValidationStatus:
        return _to_status(self._body.status)

    @property
    def expires(self) -> datetime | None:
        return self._body.expires

    @property
    def error(self) -> str | None:
        return _to_error(self._body.error)

    def authorizations(self) -> list[ProviderAuthorization]:
        result: list[ProviderAuthorization] = []
        with _protocol_errors("authorization fetch"):
            for url in self._body.authorizations:
                response = self._session.acme._post_as_get(url)  # noqa: SLF001
                body = messages.Authorization.from_json(response.json())
                result.append(AcmeV2Authorization(self._session, body))
        return result

    def update(self) -> datetime | None:
        with _protocol_errors("order fetch"):
            response = self._session.acme._post_as_get(self._location)  # noqa: SLF001
            self._body = messages.Order.from_json(response.json())
        return _retry_at(response)

    def finalize(self, csr: x509.CertificateSigningRequest) -> None:
        with _protocol_errors("order finalization"):
            response = self._session.acme._post(  # noqa: SLF001
                self._body.finalize,
                messages.CertificateRequest(csr=csr),
            )
            self._body = messages.Order.from_json(response.json())

    def certificate(self) -> str | None:
        if not self._body.certificate:
            return None
        with _protocol_errors("certificate download"):
            response = self._session.acme._post_as_get(self._body.certificate)  # noqa: SLF001
        return response.text


# ---------------------------------------------------------------------------
# Session / connector
# ---------------------------------------------------------------------------


class AcmeV2Session(ProviderSession):
    def __init__(
        self,
        acme_client: client.ClientV2,
        jwk: jose.JWK,
        account_location: str,
    ) -> None:
        self.acme = acme_client
        self.jwk = jwk
        self._account_location = account_location

    @property
    def account_location(self) -> str:
        return self._account_location

    def new_order(self, domains: list[str]) -> ProviderOrder:
        identifiers = [
            messages.Identifier(typ=messages.IDENTIFIER_FQDN, value=d) for d in domains
        ]
        with _protocol_errors("new order"):
            response = self.acme._post(  # noqa: SLF001
                self.acme.directory["newOrder"],
                messages.NewOrder(identifiers=identifiers),
            )
            body = messages.Order.from_json(response.json())
        location = response.headers.get("Location")
        if not location:
            msg = "ACME provider returned an order without a Location header"
            raise ProtocolError(msg)
        return AcmeV2Order(self, location, body)

    def bind_order(self, location: str) -> ProviderOrder:
        with _protocol_errors("order fetch"):
            response = self.acme._post_as_get(location)  # noqa: SLF001
            body = messages.Order.from_json(response.json())
        return AcmeV2Order(self, location, body)


class AcmeV2Connector(ProviderConnector):
    """Opens :class:`AcmeV2Session` objects using ``acme.client.ClientV2``."""

    def __init__(self, settings: AcmeSettings) -> None:
        self._settings = settings

    def directory_url(self, provider: AcmeProvider) -> str:
        return self._settings.directory_overrides.get(provider.value, provider.directory_url)

    def connect(
        self,
        provider: AcmeProvider,
        key: ec.EllipticCurvePrivateKey,
        email: str | None = None,
        *,
        only_existing: bool = False,
    ) -> ProviderSession:
        jwk = jose.JWKEC(key=key)
        net = client.ClientNetwork(
            jwk,
            alg=_alg_for(key),
            verify_ssl=self._settings.verify_ssl,
            user_agent=self._settings.user_agent,
            timeout=self._settings.timeout_seconds,
        )
        url = self.directory_url(provider)

        with _protocol_errors("account registration"):
            directory = client.ClientV2.get_directory(url, net)
            acme_client = client.ClientV2(directory, net)
            if only_existing:
                registration = messages.NewRegistration(
                    key=jwk.public_key(),
                    only_return_existing=True,
                )
            else:
                registration = messages.NewRegistration.from_data(
                    email=email,
                    terms_of_service_agreed=True,
                )
            try:
                location = acme_client.new_account(registration).uri
            except errors.ConflictError as exc:
                # The provider already knows this key; it answers with the
                # existing account's location.
                location = exc.location
                net.account = messages.RegistrationResource(
                    uri=location,
                    body=messages.Registration(),
                )

        log.debug("Bound ACME account %s at %s", location, url)
        return AcmeV2Session(acme_client, jwk, location)
