"""
Domain: Manually orderable round-robin queue.

The queue is the materialized distribution order shown to administrators. Once
positions are persisted, SEQUENTIAL distribution follows them and every
automatic assignment rotates the assigned seller to the tail, so manual
reordering and automatic selection share a single ordering.

Reorder and reset write 0-based dense positions. An assignment moves the
seller past the current tail (see `round_robin.queue_tail_for`), so gaps appear
between resets; the order is the same one `rotate_queue` produces.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence

from .errors import InvalidQueueOrderError
from .round_robin import RoundRobinConfig, is_overloaded, sort_key_for
from .seller import Seller


@dataclass(frozen=True, slots=True)
class QueueItem:
    seller: Seller
    position: int  # 1-based, for display
    is_next: bool
    pending_count: int
    overloaded: bool


def build_queue(sellers: Sequence[Seller], config: Optional[RoundRobinConfig] = None) -> List[QueueItem]:
    """
    Materialize the distribution order of all sellers in rotation.

    Overloaded sellers stay in the queue (flagged) so the order is stable; the
    head marked `is_next` is the first seller that would actually be selected.
    """

    config = config or RoundRobinConfig()
    in_rotation = [s for s in sellers if s.in_rotation]
    ordered = sorted(in_rotation, key=sort_key_for(config, sellers))

    next_id: Optional[str] = None
    for seller in ordered:
        if not (config.skip_overloaded and is_overloaded(seller, config)):
            next_id = seller.seller_id
            break

    return [
        QueueItem(
            seller=seller,
            position=index + 1,
            is_next=seller.seller_id == next_id,
            pending_count=seller.pending_count,
            overloaded=is_overloaded(seller, config),
        )
        for index, seller in enumerate(ordered)
    ]


def reorder_queue(sellers: Sequence[Seller], ordered_ids: Sequence[str]) -> Dict[str, int]:
    """
    Validate an administrator's order and return the positions to persist.

    Raises:
        InvalidQueueOrderError: if ids repeat, are unknown, or leave out a seller in rotation.
    """

    if len(set(ordered_ids)) != len(ordered_ids):
        raise InvalidQueueOrderError("Queue order contains duplicate seller ids")

    expected = {s.seller_id for s in sellers if s.in_rotation}
    given = set(ordered_ids)

    unknown = sorted(given - expected)
    if unknown:
        raise InvalidQueueOrderError(f"Sellers not in rotation: {unknown}")
    missing = sorted(expected - given)
    if missing:
        raise InvalidQueueOrderError(f"Queue order is missing sellers: {missing}")

    return {seller_id: index for index, seller_id in enumerate(ordered_ids)}


def reset_queue_alphabetical(sellers: Sequence[Seller]) -> Dict[str, int]:
    """Re-seed queue positions by name. Assignment history is left untouched."""

    in_rotation = [s for s in sellers if s.in_rotation]
    ordered = sorted(in_rotation, key=lambda s: (s.name.casefold(), s.seller_id))
    return {s.seller_id: index for index, s in enumerate(ordered)}


def rotate_queue(positions: Mapping[str, int], seller_id: str) -> Dict[str, int]:
    """
    Move `seller_id` to the tail and close the gap it leaves (dense form of
    the order an assignment leaves behind).

    Sellers absent from `positions` are ignored; an unknown `seller_id` leaves
    the order unchanged.
    """

    ordered = sorted(positions, key=lambda sid: (positions[sid], sid))
    if seller_id in positions:
        ordered.remove(seller_id)
        ordered.append(seller_id)
    return {sid: index for index, sid in enumerate(ordered)}


def current_positions(sellers: Sequence[Seller]) -> Dict[str, int]:
    """Persisted positions of the sellers in rotation (unqueued sellers omitted)."""

    return {
        s.seller_id: s.queue_position
        for s in sellers
        if s.in_rotation and s.queue_position is not None
    }


__all__ = [
    "QueueItem",
    "build_queue",
    "reorder_queue",
    "reset_queue_alphabetical",
    "rotate_queue",
    "current_positions",
]
