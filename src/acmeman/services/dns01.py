"""DNS-01 record publishing through callback scripts.

Record management is delegated to operator-supplied scripts:

- ``create_script <domain> <record_name> <record_value>``
- ``delete_script <domain> <record_name>``

After creation the publisher can wait until the TXT value is visible
through the configured resolvers before the challenge is triggered.
"""

from __future__ import annotations

import logging
import subprocess
import threading
import time
from typing import TYPE_CHECKING

import dns.exception
import dns.resolver

from acmeman.core.errors import RoutingError

if TYPE_CHECKING:
    from acmeman.config.settings import Dns01Settings

log = logging.getLogger(__name__)


class CallbackDnsPublisher:
    """Create and delete ``_acme-challenge`` TXT records via scripts.

    Script failures raise :class:`RoutingError` so they are recorded as
    a failure of the affected domain only.
    """

    def __init__(
        self,
        settings: Dns01Settings,
        stop_event: threading.Event | None = None,
    ) -> None:
        if not settings.create_script or not settings.delete_script:
            msg = "DNS publisher requires both create_script and delete_script"
            raise ValueError(msg)
        self._settings = settings
        self._stop_event = stop_event or threading.Event()

    def create(self, domain: str, record_name: str, record_value: str) -> None:
        log.info(
            "DNS create: %s for %s via %s",
            record_name,
            domain,
            self._settings.create_script,
            extra={"domain": domain},
        )
        self._run([self._settings.create_script, domain, record_name, record_value], domain)
        if self._settings.verify_propagation:
            self.wait_for_propagation(record_name, record_value)

    def delete(self, domain: str, record_name: str) -> None:
        log.info(
            "DNS delete: %s for %s via %s",
            record_name,
            domain,
            self._settings.delete_script,
            extra={"domain": domain},
        )
        self._run([self._settings.delete_script, domain, record_name], domain)

    def _run(self, argv: list[str], domain: str) -> None:
        try:
            subprocess.run(  # noqa: S603
                argv,
                check=True,
                timeout=self._settings.script_timeout,
                capture_output=True,
                text=True,
            )
        except subprocess.CalledProcessError as exc:
            stderr = (exc.stderr or "").strip()[:200]
            msg = f"DNS script {argv[0]} failed for {domain} (exit {exc.returncode}): {stderr}"
            raise RoutingError(msg) from exc
        except subprocess.TimeoutExpired as exc:
            msg = (
                f"DNS script {argv[0]} timed out for {domain} "
                f"after {self._settings.script_timeout}s"
            )
            raise RoutingError(msg, retryable=True) from exc
        except OSError as exc:
            msg = f"DNS script {argv[0]} could not be run for {domain}: {exc}"
            raise RoutingError(msg) from exc

    def _resolver(self) -> dns.resolver.Resolver:
        resolver = dns.resolver.Resolver()
        if self._settings.resolvers:
            resolver.nameservers = list(self._settings.resolvers)
        resolver.lifetime = self._settings.propagation_poll_seconds
        return resolver

    def lookup(self, record_name: str) -> list[str]:
        """Return the TXT values currently visible for *record_name*."""
        try:
            answer = self._resolver().resolve(record_name, "TXT")
        except (dns.resolver.NXDOMAIN, dns.resolver.NoAnswer):
            return []
        except dns.exception.DNSException as exc:
            log.debug("TXT lookup for %s failed: %s", record_name, exc)
            return []
        return [b"".join(rdata.strings).decode("ascii", errors="replace") for rdata in answer]

    def wait_for_propagation(self, record_name: str, record_value: str) -> None:
        """Poll until *record_value* is visible at *record_name*.

        Raises
        ------
        RoutingError
            The value did not appear within the propagation timeout.

        """
        deadline = time.monotonic() + self._settings.propagation_timeout_seconds
        while True:
            if record_value in self.lookup(record_name):
                log.info("TXT record %s has propagated", record_name)
                return
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            if self._stop_event.wait(min(self._settings.propagation_poll_seconds, remaining)):
                break

        msg = (
            f"TXT record {record_name} not visible after "
            f"{self._settings.propagation_timeout_seconds}s"
        )
        raise RoutingError(msg, retryable=True)
