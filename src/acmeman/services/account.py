"""ACME account binding.

:meth:`AccountBinder.bind` performs find-or-create against the provider
for a key pair; :meth:`AccountBinder.login` re-binds a stored account
and verifies that the provider still maps its key to the same location.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING

from acmeman.core.errors import IntegrityError
from acmeman.core.identity import account_identity
from acmeman.core.types import KeyCurve
from acmeman.models.account import Account
from acmeman.services.keys import generate_key, load_private_key, serialize_private_key

if TYPE_CHECKING:
    from cryptography.hazmat.primitives.asymmetric import ec

    from acmeman.core.types import AcmeProvider
    from acmeman.provider.base import ProviderConnector, ProviderSession

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccountHandle:
    """A provider session plus the identity it resolved to."""

    session: ProviderSession
    account_location: str
    account_identity: str


class AccountBinder:
    """Binds local key pairs to provider accounts."""

    def __init__(self, connector: ProviderConnector) -> None:
        self._connector = connector

    def bind(
        self,
        provider: AcmeProvider,
        key: ec.EllipticCurvePrivateKey,
        email: str | None,
    ) -> AccountHandle:
        """Find-or-create the provider account for *key*.

        Raises
        ------
        ProtocolError
            The provider rejected the registration.

        """
        session = self._connector.connect(provider, key, email)
        location = session.account_location
        return AccountHandle(
            session=session,
            account_location=location,
            account_identity=account_identity(location),
        )

    def login(self, provider: AcmeProvider, stored_account: Account) -> AccountHandle:
        """Re-bind *stored_account* and verify its identity.

        Raises
        ------
        ProtocolError
            The provider does not know the stored key.
        IntegrityError
            The provider resolved the key to a different account location.

        """
        key = load_private_key(stored_account.private_key_pem)
        session = self._connector.connect(provider, key, only_existing=True)
        location = session.account_location
        identity = account_identity(location)
        if identity != stored_account.account_identity:
            log.error(
                "Account identity mismatch for account %s: stored %s, provider %s",
                stored_account.id,
                stored_account.account_identity,
                identity,
                extra={"account_location": location},
            )
            msg = (
                f"Account {stored_account.id} resolved to {location}, whose identity "
                f"does not match the stored identity"
            )
            raise IntegrityError(msg)
        return AccountHandle(
            session=session,
            account_location=location,
            account_identity=identity,
        )

    def create_account(self, provider: AcmeProvider, email: str) -> Account:
        """Register a new secp384r1 account key and return the unsaved model."""
        key = generate_key(KeyCurve.SECP384R1)
        handle = self.bind(provider, key, email)
        log.info(
            "Bound %s account %s for %s",
            provider.value,
            handle.account_location,
            email,
        )
        return Account(
            id=uuid.uuid4(),
            server_uri=self._connector.directory_url(provider),
            provider=provider,
            account_identity=handle.account_identity,
            account_location=handle.account_location,
            email=email,
            private_key_pem=serialize_private_key(key),
        )
