"""Terminal statuses and status-change logging.

Polling stops on the terminal statuses defined here, and every
persisted status change is emitted through :func:`log_transition`.

Usage::

    from acmeman.core.state import TERMINAL_STATUSES, is_terminal

    if is_terminal(ValidationStatus.VALID):
        ...
"""

from __future__ import annotations

import logging

from acmeman.core.types import ValidationStatus

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Polling terminates on valid / invalid only.  ``expired`` is a status the
# provider may report, but it is mapped to ``invalid`` by the adapter.
# ---------------------------------------------------------------------------

TERMINAL_STATUSES: frozenset[str] = frozenset(
    {
        ValidationStatus.VALID.value,
        ValidationStatus.INVALID.value,
    }
)


def is_terminal(status) -> bool:
    """Return ``True`` if *status* ends a polling loop."""
    value = status.value if hasattr(status, "value") else str(status)
    return value in TERMINAL_STATUSES


def log_transition(
    resource_type: str,
    resource_id,
    from_status,
    to_status,
    *,
    reason: str | None = None,
    **context,
) -> None:
    """Emit a structured log entry for a status change.

    Parameters
    ----------
    resource_type:
        ``"certificate"`` or ``"validation_request"``.
    resource_id:
        The UUID of the resource.
    from_status:
        The previous status value.
    to_status:
        The new status value.
    reason:
        Optional human-readable reason for the transition.
    context:
        Extra structured fields (``order_identity``, ``domain``).

    """
    extra = {
        "event": "state_transition",
        "resource_type": resource_type,
        "resource_id": str(resource_id),
        "from_status": from_status.value if hasattr(from_status, "value") else str(from_status),
        "to_status": to_status.value if hasattr(to_status, "value") else str(to_status),
    }
    extra.update({k: v for k, v in context.items() if v is not None})
    if reason:
        extra["reason"] = reason
    log.info(
        "%s %s: %s -> %s%s",
        resource_type,
        resource_id,
        extra["from_status"],
        extra["to_status"],
        f" ({reason})" if reason else "",
        extra=extra,
    )
