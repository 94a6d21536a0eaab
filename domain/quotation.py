"""
Domain: Quotation entity and lifecycle.

Contract:
- New quotations are PENDING, or REJECTED when the submission was refused.
- Quotations expire `validity_days` after creation (default 7); only PENDING
  quotations expire.
- Allowed status changes:
  - PENDING -> CONTACTED | CANCELLED
  - CONTACTED -> ACCEPTED | CANCELLED
- A quotation without a pricing rule is still stored (unpriced lead) with zero
  values so the lead is not lost.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Mapping, Optional, Tuple

from .errors import InvalidStatusTransitionError
from .pricing import QuotationValues, VehicleCategory
from .time import require_utc_timestamp

DEFAULT_VALIDITY_DAYS = 7


class QuotationStatus(str, Enum):
    PENDING = "PENDING"
    CONTACTED = "CONTACTED"
    ACCEPTED = "ACCEPTED"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"
    REJECTED = "REJECTED"


VALID_TRANSITIONS: Mapping[QuotationStatus, Tuple[QuotationStatus, ...]] = {
    QuotationStatus.PENDING: (QuotationStatus.CONTACTED, QuotationStatus.CANCELLED),
    QuotationStatus.CONTACTED: (QuotationStatus.ACCEPTED, QuotationStatus.CANCELLED),
}


@dataclass(frozen=True, slots=True)
class Quotation:
    quotation_id: str
    category: VehicleCategory
    fipe_value: Decimal
    values: QuotationValues
    status: QuotationStatus
    created_at: datetime
    expires_at: datetime
    seller_id: Optional[str] = None
    pricing_rule_id: Optional[str] = None
    rejection_reason: Optional[str] = None
    contacted_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)
        require_utc_timestamp("expires_at", self.expires_at)
        if self.expires_at < self.created_at:
            raise ValueError("expires_at must be >= created_at")
        if self.contacted_at is not None:
            require_utc_timestamp("contacted_at", self.contacted_at)
        if self.accepted_at is not None:
            require_utc_timestamp("accepted_at", self.accepted_at)

    @property
    def is_priced(self) -> bool:
        return self.pricing_rule_id is not None

    def is_expired(self, as_of: datetime) -> bool:
        """Whether a PENDING quotation has passed its expiry at `as_of`."""

        require_utc_timestamp("as_of", as_of)
        return self.status == QuotationStatus.PENDING and as_of > self.expires_at

    def with_status(self, status: QuotationStatus, at: datetime) -> "Quotation":
        """
        Return a copy in `status`, stamping contacted_at / accepted_at.

        Raises:
            InvalidStatusTransitionError: for changes outside VALID_TRANSITIONS.
        """

        require_utc_timestamp("at", at)
        status = QuotationStatus(status)
        if status not in VALID_TRANSITIONS.get(self.status, ()):
            raise InvalidStatusTransitionError(self.status.value, status.value)

        if status == QuotationStatus.CONTACTED:
            return replace(self, status=status, contacted_at=at)
        if status == QuotationStatus.ACCEPTED:
            return replace(self, status=status, accepted_at=at)
        return replace(self, status=status)

    def expired(self) -> "Quotation":
        return replace(self, status=QuotationStatus.EXPIRED)


def can_transition(current: QuotationStatus, requested: QuotationStatus) -> bool:
    return requested in VALID_TRANSITIONS.get(current, ())


def expiry_for(created_at: datetime, validity_days: int = DEFAULT_VALIDITY_DAYS) -> datetime:
    require_utc_timestamp("created_at", created_at)
    if validity_days < 0:
        raise ValueError("validity_days must be >= 0")
    return created_at + timedelta(days=validity_days)


__all__ = [
    "DEFAULT_VALIDITY_DAYS",
    "QuotationStatus",
    "VALID_TRANSITIONS",
    "Quotation",
    "can_transition",
    "expiry_for",
]
