"""
Payment status normalization.

Providers report status strings in whatever vocabulary they like
("COMPLETED", "Declined", "processing", ...). Everything persisted or
broadcast goes through normalize() first, so the rest of the system only
ever sees an OrderStatus.
"""
from typing import Any

from domain.enums import OrderStatus

_STATUS_ALIASES: dict[str, OrderStatus] = {}
for _status, _aliases in (
    (OrderStatus.SUCCESSFUL, ("successful", "success", "paid", "completed")),
    (OrderStatus.FAILED, ("failed", "error", "cancelled", "canceled", "declined", "expired")),
    (OrderStatus.REFUNDED, ("refunded", "refund")),
    (OrderStatus.PENDING, ("pending", "processing", "created")),
):
    for _alias in _aliases:
        _STATUS_ALIASES[_alias] = _status


def normalize(raw_status: Any) -> OrderStatus:
    """
    Map a provider-reported status to its canonical OrderStatus.

    Case-insensitive and whitespace-tolerant. Unknown, empty or None input
    falls back to PENDING; this never raises.
    """
    if raw_status is None:
        return OrderStatus.PENDING
    if isinstance(raw_status, OrderStatus):
        return raw_status
    value = str(raw_status).strip().lower()
    return _STATUS_ALIASES.get(value, OrderStatus.PENDING)
