"""
Tests for `domain/seller.py`.

Covers contract rules:
- created_at / last_assignment_at must be UTC timestamps.
- Counters are never negative.
- The assignment write-back increments assignment_count by exactly 1, carries
  the compare-and-set guard, and never moves last_assignment_at backwards.
- A manual-queue write-back moves the seller past the tail, guarded on its
  old position.
- Sellers are immutable.
"""

from __future__ import annotations

from dataclasses import FrozenInstanceError
from datetime import datetime, timedelta, timezone

import pytest

from domain.seller import (
    Seller,
    SellerStatus,
    apply_assignment_update,
    prepare_assignment_update,
)

T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)


def _seller(**overrides) -> Seller:
    fields = dict(seller_id="s1", name="Ana", status=SellerStatus.ACTIVE, created_at=T0)
    fields.update(overrides)
    return Seller(**fields)


def test_seller_timestamps_must_be_utc() -> None:
    """Verify naive and non-UTC timestamps are rejected."""

    with pytest.raises(ValueError):
        _seller(created_at=datetime(2025, 1, 1))

    with pytest.raises(ValueError):
        _seller(last_assignment_at=datetime(2025, 1, 1, tzinfo=timezone(timedelta(hours=-3))))


@pytest.mark.parametrize("field", ["assignment_count", "pending_count"])
def test_seller_counters_not_negative(field: str) -> None:
    """Verify negative counters are rejected."""

    with pytest.raises(ValueError):
        _seller(**{field: -1})


@pytest.mark.parametrize(
    "status,participates,expected",
    [
        (SellerStatus.ACTIVE, True, True),
        (SellerStatus.ACTIVE, False, False),
        (SellerStatus.INACTIVE, True, False),
        (SellerStatus.VACATION, True, False),
    ],
)
def test_in_rotation(status: SellerStatus, participates: bool, expected: bool) -> None:
    """Verify only active, participating sellers are in rotation."""

    assert _seller(status=status, participates_in_round_robin=participates).in_rotation is expected


def test_prepare_assignment_update_increments_count() -> None:
    """Verify the write-back increments by one and records the guard value."""

    seller = _seller(assignment_count=4, last_assignment_at=T0)
    now = T0 + timedelta(hours=1)

    update = prepare_assignment_update(seller, now)

    assert update.seller_id == "s1"
    assert update.last_assignment_at == now
    assert update.assignment_count == 5
    assert update.expected_assignment_count == 4
    assert update.moves_in_queue is False
    # Selection never mutates the input
    assert seller.assignment_count == 4


def test_prepare_assignment_update_rejects_time_going_backwards() -> None:
    """Verify last_assignment_at cannot move backwards."""

    seller = _seller(last_assignment_at=T0 + timedelta(days=1))

    with pytest.raises(ValueError):
        prepare_assignment_update(seller, T0)


def test_apply_assignment_update() -> None:
    """Verify an update applies to its own seller only."""

    seller = _seller()
    update = prepare_assignment_update(seller, T0)

    applied = apply_assignment_update(seller, update)
    assert applied.last_assignment_at == T0
    assert applied.assignment_count == 1

    with pytest.raises(ValueError):
        apply_assignment_update(_seller(seller_id="other"), update)


def test_assignment_update_moves_seller_past_queue_tail() -> None:
    """Verify a queue tail moves the seller and guards on its old position."""

    seller = _seller(queue_position=0)
    update = prepare_assignment_update(seller, T0, queue_tail=3)

    assert update.moves_in_queue is True
    assert update.queue_position == 3
    assert update.expected_queue_position == 0

    applied = apply_assignment_update(seller, update)
    assert applied.queue_position == 3
    assert applied.assignment_count == 1

    # Without a tail the position is left alone
    assert apply_assignment_update(seller, prepare_assignment_update(seller, T0)).queue_position == 0


def test_seller_is_immutable() -> None:
    """Verify Seller fields cannot be reassigned."""

    seller = _seller()
    with pytest.raises(FrozenInstanceError):
        seller.assignment_count = 3  # type: ignore[misc]
