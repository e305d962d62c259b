"""Key material: EC key generation, PEM round trips, CSRs, persistence.

Domain keys default to ``prime256v1``; account keys use ``secp384r1``.
Private keys are serialised as unencrypted PEM (``BEGIN EC PRIVATE
KEY``) so stored accounts round-trip through
:meth:`~acmeman.services.account.AccountBinder.login`.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from acmeman.core.errors import KeyPersistenceError
from acmeman.core.types import KeyCurve

if TYPE_CHECKING:
    from collections.abc import Sequence

log = logging.getLogger(__name__)

PRIVATE_KEY_FILENAME = "private.key"
CERTIFICATE_FILENAME = "certificate.crt"

_CURVES = {
    KeyCurve.PRIME256V1: ec.SECP256R1,
    KeyCurve.SECP384R1: ec.SECP384R1,
}


def generate_key(curve: KeyCurve | str = KeyCurve.PRIME256V1) -> ec.EllipticCurvePrivateKey:
    """Generate a new EC private key on *curve*."""
    curve_cls = _CURVES[KeyCurve(curve)]
    return ec.generate_private_key(curve_cls())


def serialize_private_key(key: ec.EllipticCurvePrivateKey) -> str:
    """Return *key* as unencrypted traditional-OpenSSL PEM text."""
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")


def load_private_key(pem: str | bytes) -> ec.EllipticCurvePrivateKey:
    """Parse a PEM private key produced by :func:`serialize_private_key`.

    Raises :class:`ValueError` if the PEM does not hold an EC key.
    """
    data = pem.encode("ascii") if isinstance(pem, str) else pem
    key = serialization.load_pem_private_key(data, password=None)
    if not isinstance(key, ec.EllipticCurvePrivateKey):
        msg = f"Expected an EC private key, got {type(key).__name__}"
        raise ValueError(msg)
    return key


def build_csr(
    key: ec.EllipticCurvePrivateKey,
    domains: Sequence[str],
) -> x509.CertificateSigningRequest:
    """Build a CSR for *domains* signed by *key*.

    The first domain becomes the subject CN; every domain is listed in
    the subjectAltName extension.
    """
    if not domains:
        msg = "At least one domain is required to build a CSR"
        raise ValueError(msg)
    return (
        x509.CertificateSigningRequestBuilder()
        .subject_name(x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, domains[0])]))
        .add_extension(
            x509.SubjectAlternativeName([x509.DNSName(d) for d in domains]),
            critical=False,
        )
        .sign(key, hashes.SHA256())
    )


def persist_key_material(
    base_dir: str | Path,
    order_identity: str,
    key: ec.EllipticCurvePrivateKey,
    certificate_pem: str | None = None,
) -> Path:
    """Write the domain key (and chain, when given) under ``base_dir/order_identity``.

    Returns the path of the written private key.  Existing key material
    is never replaced: the order directory must not exist yet.

    Raises
    ------
    KeyPersistenceError
        If the directory already exists, cannot be created, or a file
        cannot be written.

    """
    directory = Path(base_dir) / order_identity
    key_path = directory / PRIVATE_KEY_FILENAME
    try:
        directory.parent.mkdir(parents=True, exist_ok=True)
        directory.mkdir()
        write_private_file(key_path, serialize_private_key(key))
        if certificate_pem:
            (directory / CERTIFICATE_FILENAME).write_text(certificate_pem, encoding="ascii")
    except OSError as exc:
        log.exception(
            "Failed to persist key material for order %s",
            order_identity,
            extra={"order_identity": order_identity},
        )
        msg = f"Could not write key material to {directory}: {exc}"
        raise KeyPersistenceError(msg, path=str(directory)) from exc

    log.info(
        "Key material saved to %s",
        directory,
        extra={"order_identity": order_identity},
    )
    return key_path


def write_private_file(path: Path, content: str) -> None:
    """Create *path* readable by the owner only and write *content*; never overwrites."""
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
    with os.fdopen(fd, "w", encoding="ascii") as fh:
        fh.write(content)
