"""Order orchestration: placement with deduplication, then execution.

Placement creates (or re-finds) the provider order and records one
:class:`~acmeman.models.validation_request.ValidationRequest` per
authorization.  Execution makes each selected challenge servable,
triggers and polls it, then finalizes the order with a fresh domain key
and persists the terminal status.

Per-domain failures (routing, provider rejections of a single challenge,
invalid challenges) are converted into :class:`DomainOutcome` entries.
Order-level failures (finalization, order polling, polling timeouts,
a challenge type that is no longer offered) abort the call.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from acmeman.core.errors import (
    AcmeManagerError,
    CancelledError,
    KeyPersistenceError,
    ProtocolError,
    RoutingError,
    UnsupportedChallengeError,
)
from acmeman.core.identity import order_identity as compute_order_identity
from acmeman.core.state import is_terminal, log_transition
from acmeman.core.types import (
    CertificateStatus,
    ChallengeType,
    KeyCurve,
    ValidationStatus,
)
from acmeman.models.certificate import Certificate
from acmeman.models.validation_request import ValidationRequest
from acmeman.services.keys import build_csr, generate_key, persist_key_material
from acmeman.services.polling import wait_for_completion
from acmeman.services.selector import SelectedChallenge, select_challenge

if TYPE_CHECKING:
    from collections.abc import Sequence
    from uuid import UUID

    from cryptography.hazmat.primitives.asymmetric import ec

    from acmeman.config.settings import OrchestrationSettings
    from acmeman.core.types import AcmeProvider
    from acmeman.models.account import Account
    from acmeman.provider.base import ProviderAuthorization, ProviderOrder
    from acmeman.repositories.certificate import CertificateRepository
    from acmeman.repositories.validation_request import ValidationRequestRepository
    from acmeman.services.account import AccountBinder
    from acmeman.services.propagator import ChallengeRouter

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class DomainOutcome:
    success: bool
    error_message: str | None = None


@dataclass(frozen=True)
class ExecutionResult:
    """Per-domain outcomes of one :meth:`OrderOrchestrator.execute_order` call.

    ``order_status`` is ``None`` when the run was cancelled before the
    order reached a terminal status.
    """

    outcomes: dict[str, DomainOutcome] = field(default_factory=dict)
    order_status: ValidationStatus | None = None
    cancelled: bool = False
    key_path: str | None = None

    @property
    def succeeded(self) -> bool:
        return (
            not self.cancelled
            and self.order_status == ValidationStatus.VALID
            and all(o.success for o in self.outcomes.values())
        )


class OrderOrchestrator:
    """Places and executes ACME orders.

    Parameters
    ----------
    binder:
        Logs stored accounts in with the provider.
    certificate_repo:
        Persists the order aggregate.
    validation_repo:
        Persists validation requests.
    router:
        Makes challenges servable (agents for HTTP-01, DNS for DNS-01).
    settings:
        The ``orchestration`` config section.

    """

    def __init__(
        self,
        binder: AccountBinder,
        certificate_repo: CertificateRepository,
        validation_repo: ValidationRequestRepository,
        router: ChallengeRouter,
        settings: OrchestrationSettings,
    ) -> None:
        self._binder = binder
        self._certificates = certificate_repo
        self._validations = validation_repo
        self._router = router
        self._settings = settings

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def load(self, certificate_id: UUID) -> Certificate | None:
        """Return the certificate with its validation requests attached."""
        certificate = self._certificates.find_by_id(certificate_id)
        if certificate is None:
            return None
        return self._with_requests(certificate)

    def _with_requests(self, certificate: Certificate) -> Certificate:
        requests = tuple(self._validations.find_by_certificate(certificate.id))
        return dataclasses.replace(certificate, validation_requests=requests)

    # ------------------------------------------------------------------
    # Placement
    # ------------------------------------------------------------------

    def place_order(  # noqa: PLR0913
        self,
        account: Account,
        domains: Sequence[str],
        provider: AcmeProvider,
        save_key_pair: bool,  # noqa: FBT001
        *,
        force_challenge_type: bool | None = None,
        requested_type: ChallengeType | str | None = None,
    ) -> Certificate:
        """Create the provider order for *domains*, or return the known one.

        A later authorization failing selection leaves the validation
        requests created before it in place; the error propagates.

        Raises
        ------
        ProtocolError
            The provider rejected the order.
        UnsupportedChallengeError, NoSupportedChallengeError
            An authorization offers no acceptable challenge.

        """
        force = (
            self._settings.force_challenge_type
            if force_challenge_type is None
            else force_challenge_type
        )
        wanted = ChallengeType(requested_type or self._settings.preferred_challenge)

        handle = self._binder.login(provider, account)
        order = handle.session.new_order(list(domains))
        identity = compute_order_identity(order.location)
        ctx = {"order_identity": identity}

        existing = self._certificates.find_by_order_identity(identity)
        if existing is not None:
            log.info(
                "Order %s already recorded as certificate %s",
                order.location,
                existing.id,
                extra=ctx,
            )
            return self._with_requests(existing)

        certificate, created = self._certificates.create_or_get(
            Certificate(
                id=uuid.uuid4(),
                account_id=account.id,
                order_identity=identity,
                order_location=order.location,
                domains=tuple(domains),
                save_key_pair=save_key_pair,
                provider=provider,
                status=CertificateStatus.PENDING,
            ),
        )
        if not created:
            log.info(
                "Order %s recorded concurrently as certificate %s",
                order.location,
                certificate.id,
                extra=ctx,
            )
            return self._with_requests(certificate)

        log.info(
            "Placed order %s for %s",
            order.location,
            ", ".join(domains),
            extra=ctx,
        )

        requests: list[ValidationRequest] = []
        order_status = ValidationStatus(order.status)
        for position, authorization in enumerate(order.authorizations()):
            selected = select_challenge(authorization, wanted, force)
            request = ValidationRequest(
                id=uuid.uuid4(),
                certificate_id=certificate.id,
                domain=selected.domain,
                status=order_status,
                order_location=order.location,
                order_identity=identity,
                challenge_type=selected.type,
                challenge_token=selected.token,
                challenge_authorization=selected.authorization,
                expires_at=order.expires,
                position=position,
            )
            self._validations.create(request)
            requests.append(request)
            log.info(
                "Validation request for %s uses %s",
                selected.domain,
                selected.type,
                extra={**ctx, "domain": selected.domain},
            )

        return dataclasses.replace(certificate, validation_requests=tuple(requests))

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def execute_order(
        self,
        account: Account,
        certificate: Certificate,
        *,
        deadline: datetime | None = None,
        cancel_event: threading.Event | None = None,
        key_curve: KeyCurve | str = KeyCurve.PRIME256V1,
    ) -> ExecutionResult:
        """Validate every domain of *certificate* and finalize its order.

        Parameters
        ----------
        account:
            The account that placed the order.
        certificate:
            The order aggregate; validation requests are loaded when the
            tuple is empty.
        deadline:
            Aware datetime after which remaining work is cancelled.
        cancel_event:
            Setting this event cancels remaining work.
        key_curve:
            Curve of the generated domain key.

        Returns
        -------
        ExecutionResult
            Per-domain outcomes and the terminal order status.  When
            cancelled, ``cancelled`` is set and unfinished domains carry
            a cancellation outcome.

        Raises
        ------
        ProtocolError
            Finalization or order polling was rejected.  Errors raised
            after domain validation carry the outcomes on ``result``.
        PollingTimeoutError
            A challenge or the order never reached a terminal status.
        UnsupportedChallengeError
            The stored challenge type is no longer offered.
        KeyPersistenceError
            The order is valid but the key could not be written.

        """
        event = cancel_event if cancel_event is not None else threading.Event()
        identity = certificate.order_identity
        ctx = {"order_identity": identity}

        domain_key = generate_key(key_curve)
        handle = self._binder.login(certificate.provider, account)
        order = handle.session.bind_order(certificate.order_location)

        requests = certificate.validation_requests or tuple(
            self._validations.find_by_certificate(certificate.id),
        )
        authorizations = {a.identifier: a for a in order.authorizations()}

        outcomes: dict[str, DomainOutcome] = {}
        for index, request in enumerate(requests):
            try:
                outcome = self._validate(
                    request,
                    authorizations.get(request.domain),
                    event,
                    deadline,
                )
            except CancelledError as exc:
                return self._cancelled(outcomes, requests[index:], exc, ctx)
            outcomes[request.domain] = outcome

        failed = sorted(d for d, o in outcomes.items() if not o.success)
        if failed:
            log.warning(
                "Order %s: %d of %d domain(s) failed validation: %s",
                identity,
                len(failed),
                len(outcomes),
                ", ".join(failed),
                extra=ctx,
            )

        try:
            order_status, finalized = self._finalize(
                order,
                certificate,
                domain_key,
                event,
                deadline,
            )
        except CancelledError as exc:
            return self._cancelled(outcomes, (), exc, ctx)
        except AcmeManagerError as exc:
            exc.result = ExecutionResult(outcomes=outcomes)
            raise

        self._persist_status(certificate, requests, order_status)
        result = ExecutionResult(outcomes=outcomes, order_status=order_status)

        # Only a key submitted in this call's CSR matches the issued certificate.
        if finalized and order_status == ValidationStatus.VALID and certificate.save_key_pair:
            chain = self._download_chain(order, identity)
            try:
                key_path = persist_key_material(
                    self._settings.key_storage_path,
                    identity,
                    domain_key,
                    chain,
                )
            except KeyPersistenceError as exc:
                exc.result = result
                raise
            result = dataclasses.replace(result, key_path=str(key_path))

        return result

    def _validate(
        self,
        request: ValidationRequest,
        authorization: ProviderAuthorization | None,
        event: threading.Event,
        deadline: datetime | None,
    ) -> DomainOutcome:
        """Drive one domain's challenge; return its outcome."""
        ctx = {"order_identity": request.order_identity, "domain": request.domain}
        _check_cancelled(event, deadline, request.domain)

        if authorization is None:
            msg = f"Provider order has no authorization for {request.domain}"
            log.warning(msg, extra=ctx)
            return DomainOutcome(success=False, error_message=msg)

        challenge = authorization.find_challenge(request.challenge_type)
        if challenge is None:
            msg = f"{request.domain}: {request.challenge_type} challenge is no longer offered"
            raise UnsupportedChallengeError(msg)

        if challenge.status == ValidationStatus.VALID:
            log.info("Challenge for %s already valid", request.domain, extra=ctx)
            return DomainOutcome(success=True)

        selected = SelectedChallenge(
            domain=request.domain,
            type=request.challenge_type,
            token=request.challenge_token,
            authorization=request.challenge_authorization,
        )
        try:
            self._router.publish(selected)
        except RoutingError as exc:
            log.warning(
                "Could not make challenge for %s servable: %s",
                request.domain,
                exc.detail,
                extra=ctx,
            )
            return DomainOutcome(success=False, error_message=exc.detail)

        try:
            challenge.trigger()
            status = wait_for_completion(
                lambda: challenge.status,
                challenge.update,
                max_attempts=self._settings.max_attempts,
                default_delay=self._settings.default_retry_seconds,
                cancel_event=event,
                deadline=deadline,
                label=f"challenge {request.domain}",
                context=ctx,
            )
        except ProtocolError as exc:
            log.warning(
                "Provider rejected challenge for %s: %s",
                request.domain,
                exc.detail,
                extra=ctx,
            )
            return DomainOutcome(success=False, error_message=exc.detail)
        finally:
            self._withdraw(selected, ctx)

        if status == ValidationStatus.VALID:
            log.info("Challenge for %s is valid", request.domain, extra=ctx)
            return DomainOutcome(success=True)

        error = challenge.error or f"challenge ended {status}"
        log.warning("Challenge for %s is %s: %s", request.domain, status, error, extra=ctx)
        return DomainOutcome(success=False, error_message=error)

    def _withdraw(self, selected: SelectedChallenge, ctx: dict) -> None:
        try:
            self._router.withdraw(selected)
        except RoutingError as exc:
            log.warning(
                "Could not withdraw challenge for %s: %s",
                selected.domain,
                exc.detail,
                extra=ctx,
            )

    def _finalize(
        self,
        order: ProviderOrder,
        certificate: Certificate,
        domain_key: ec.EllipticCurvePrivateKey,
        event: threading.Event,
        deadline: datetime | None,
    ) -> tuple[ValidationStatus, bool]:
        """Submit the CSR and poll the order to a terminal status.

        Returns the order status and whether this call submitted the CSR.
        An order that is already terminal is left alone.
        """
        identity = certificate.order_identity
        ctx = {"order_identity": identity}
        _check_cancelled(event, deadline, f"order {identity}")

        order.update()
        if is_terminal(order.status):
            log.info("Order %s already %s; not finalizing", identity, order.status, extra=ctx)
            return ValidationStatus(order.status), False

        order.finalize(build_csr(domain_key, list(certificate.domains)))
        status = wait_for_completion(
            lambda: order.status,
            order.update,
            max_attempts=self._settings.max_attempts,
            default_delay=self._settings.default_retry_seconds,
            cancel_event=event,
            deadline=deadline,
            label=f"order {identity}",
            context=ctx,
        )
        if status != ValidationStatus.VALID:
            log.warning("Order %s is %s: %s", identity, status, order.error, extra=ctx)
        return ValidationStatus(status), True

    def _persist_status(
        self,
        certificate: Certificate,
        requests: Sequence[ValidationRequest],
        status: ValidationStatus,
    ) -> None:
        for request in requests:
            self._validations.update_status(request.id, status)
            log_transition(
                "validation_request",
                request.id,
                request.status,
                status,
                order_identity=request.order_identity,
                domain=request.domain,
            )
        new_status = CertificateStatus(status.value)
        self._certificates.update_status(certificate.id, new_status)
        log_transition(
            "certificate",
            certificate.id,
            certificate.status,
            new_status,
            order_identity=certificate.order_identity,
        )

    def _download_chain(self, order: ProviderOrder, identity: str) -> str | None:
        try:
            return order.certificate()
        except ProtocolError as exc:
            log.warning(
                "Could not download certificate chain for order %s: %s",
                identity,
                exc.detail,
                extra={"order_identity": identity},
            )
            return None

    @staticmethod
    def _cancelled(
        outcomes: dict[str, DomainOutcome],
        remaining: Sequence[ValidationRequest],
        exc: CancelledError,
        ctx: dict,
    ) -> ExecutionResult:
        partial = dict(outcomes)
        for request in remaining:
            partial.setdefault(
                request.domain,
                DomainOutcome(success=False, error_message=f"CancelledError: {exc.detail}"),
            )
        log.warning(
            "Execution cancelled with %d domain(s) unfinished: %s",
            len(remaining),
            exc.detail,
            extra=ctx,
        )
        return ExecutionResult(outcomes=partial, order_status=None, cancelled=True)


def _check_cancelled(event: threading.Event, deadline: datetime | None, label: str) -> None:
    if event.is_set():
        msg = f"{label}: cancelled"
        raise CancelledError(msg)
    if deadline is not None and datetime.now(UTC) >= deadline:
        msg = f"{label}: deadline exceeded"
        raise CancelledError(msg)
