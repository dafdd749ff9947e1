# backend/app/domain/order_states.py
"""
Purchase order lifecycle.

    PENDING --validate--> VALIDATED --receive--> RECEIVED
       \\--cancel--> CANCELLED

RECEIVED is never stored on its own: it is what a reception date means.
Everything that needs the status of an order goes through
``effective_status`` so the enum column and the date cannot drift apart.
"""
from __future__ import annotations
from typing import Dict, Final, Tuple

PENDING: Final[str] = "PENDING"
VALIDATED: Final[str] = "VALIDATED"
RECEIVED: Final[str] = "RECEIVED"
CANCELLED: Final[str] = "CANCELLED"

ORDER_STATUSES: Final[Tuple[str, ...]] = (PENDING, VALIDATED, RECEIVED, CANCELLED)
TERMINAL_STATUSES: Final[Tuple[str, ...]] = (RECEIVED, CANCELLED)

# deleting an order in one of these needs the administrative override
GUARDED_DELETE_STATUSES: Final[Tuple[str, ...]] = (VALIDATED, RECEIVED)

# amounts counted in Job.TotalOrdered
COMMITTED_STATUSES: Final[Tuple[str, ...]] = (VALIDATED, RECEIVED)

STATUS_LABELS: Final[Dict[str, str]] = {
    PENDING: "En attente",
    VALIDATED: "Validé",
    RECEIVED: "Réceptionné",
    CANCELLED: "Annulé",
}

# action -> (allowed source statuses, target status)
TRANSITIONS: Final[Dict[str, Tuple[Tuple[str, ...], str]]] = {
    "validate": ((PENDING,), VALIDATED),
    "cancel": ((PENDING,), CANCELLED),
    "receive": ((VALIDATED,), RECEIVED),
}


def effective_status(order) -> str:
    """Status of an order, the reception date taking precedence."""
    if getattr(order, "ReceptionDate", None) is not None:
        return RECEIVED
    return order.Status_s


def next_status(current: str, action: str) -> str:
    """Target status for ``action`` or ValueError when not allowed from ``current``."""
    sources, target = TRANSITIONS[action]
    if current not in sources:
        raise ValueError(f"cannot {action} an order in status {current}")
    return target


def requires_override(order) -> bool:
    return effective_status(order) in GUARDED_DELETE_STATUSES
