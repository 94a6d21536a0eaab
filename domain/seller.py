"""
Domain: Seller entity and assignment write-back.

A Seller is read-only input to round-robin selection. The selector never mutates
a Seller; after a selection the caller persists the `AssignmentUpdate` built by
`prepare_assignment_update`.

Invariants:
- last_assignment_at and created_at are UTC timestamps.
- assignment_count increments by exactly 1 per assignment and
  last_assignment_at never moves backwards.
- Only ACTIVE sellers that participate in round-robin can receive leads.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Optional

from .time import require_utc_timestamp


class SellerStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    VACATION = "VACATION"


class SellerRole(str, Enum):
    SELLER = "SELLER"
    ADMIN = "ADMIN"


@dataclass(frozen=True, slots=True)
class Seller:
    """
    Seller as seen by lead distribution.

    Admins are sellers too and take part in round-robin like anyone else.
    """

    seller_id: str
    name: str
    status: SellerStatus
    created_at: datetime
    role: SellerRole = SellerRole.SELLER
    last_assignment_at: Optional[datetime] = None
    assignment_count: int = 0
    pending_count: int = 0
    participates_in_round_robin: bool = True
    queue_position: Optional[int] = None

    # Historical metrics used by the weighted distribution methods
    conversion_rate: float = 0.0  # 0..1
    avg_response_time_hours: Optional[float] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)
        if self.last_assignment_at is not None:
            require_utc_timestamp("last_assignment_at", self.last_assignment_at)
        if self.assignment_count < 0:
            raise ValueError("assignment_count must be >= 0")
        if self.pending_count < 0:
            raise ValueError("pending_count must be >= 0")

    @property
    def is_active(self) -> bool:
        return self.status == SellerStatus.ACTIVE

    @property
    def in_rotation(self) -> bool:
        """Active and opted in to automatic distribution (load not considered)."""
        return self.is_active and self.participates_in_round_robin

    @property
    def never_assigned(self) -> bool:
        return self.last_assignment_at is None


@dataclass(frozen=True, slots=True)
class AssignmentUpdate:
    """
    Fields the caller writes back for the seller that received a lead.

    With a manual queue the same row write also moves the seller to
    `queue_position` (the tail), guarded by `expected_queue_position`, so the
    turn and the rotation are consumed together or not at all.
    """

    seller_id: str
    last_assignment_at: datetime
    assignment_count: int
    expected_assignment_count: int  # value read before selection (compare-and-set guard)
    queue_position: Optional[int] = None
    expected_queue_position: Optional[int] = None

    @property
    def moves_in_queue(self) -> bool:
        return self.queue_position is not None


def prepare_assignment_update(
    seller: Seller,
    now: datetime,
    queue_tail: Optional[int] = None,
) -> AssignmentUpdate:
    """
    Build the write-back for a seller that was just assigned a lead.

    When `queue_tail` is given the seller is moved there in the same write.

    Raises:
        ValueError: if `now` is not UTC or is earlier than the seller's last assignment.
    """

    require_utc_timestamp("now", now)
    if seller.last_assignment_at is not None and now < seller.last_assignment_at:
        raise ValueError("now must be >= last_assignment_at")

    return AssignmentUpdate(
        seller_id=seller.seller_id,
        last_assignment_at=now,
        assignment_count=seller.assignment_count + 1,
        expected_assignment_count=seller.assignment_count,
        queue_position=queue_tail,
        expected_queue_position=seller.queue_position if queue_tail is not None else None,
    )


def apply_assignment_update(seller: Seller, update: AssignmentUpdate) -> Seller:
    """Return a new Seller reflecting a persisted assignment (used by simulations and tests)."""

    if update.seller_id != seller.seller_id:
        raise ValueError("update does not belong to this seller")
    return replace(
        seller,
        last_assignment_at=update.last_assignment_at,
        assignment_count=update.assignment_count,
        queue_position=update.queue_position if update.moves_in_queue else seller.queue_position,
    )


__all__ = [
    "SellerStatus",
    "SellerRole",
    "Seller",
    "AssignmentUpdate",
    "prepare_assignment_update",
    "apply_assignment_update",
]
