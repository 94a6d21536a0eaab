"""
Tests for `services/assignment_service.py`.

Covers contract rules:
- The selected seller is written back with a compare-and-set guard and the
  quotation is linked to the seller.
- A lost compare-and-set re-reads the roster and selects again.
- Exhausted attempts raise AssignmentConflictError.
- No eligible seller / all overloaded leave the lead unassigned without writes.
- With a manual queue in SEQUENTIAL mode the assigned seller moves past the
  tail in the same guarded write, so an interleaved request never takes the
  same queue head twice.
- Excluded sellers are never claimed.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from domain.errors import InvalidConfigurationError, InvalidQueueOrderError
from domain.round_robin import AssignmentReason, DistributionMethod, RoundRobinConfig
from domain.seller import Seller, SellerStatus, apply_assignment_update
from domain.seller_queue import rotate_queue
from repositories import quotation_repository, seller_repository
from services import assignment_service
from services.assignment_service import AssignmentConflictError, assign_next_seller

T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)
NOW = T0 + timedelta(days=60)


class FakeSellerTable:
    """In-memory sellers table with a compare-and-set update."""

    def __init__(self, sellers, config=None):
        self.sellers = {s.seller_id: s for s in sellers}
        self.config = config or RoundRobinConfig()
        self.records = []
        self.saved_positions = []
        self.linked = []
        self.lose_next = 0  # number of record_assignment calls that lose the race
        # One-shot hooks run around the next row write, to interleave a concurrent request
        self.before_write = None
        self.after_write = None

    def list_sellers(self):
        return list(self.sellers.values())

    def record_assignment(self, update):
        self.records.append(update)
        if self.before_write is not None:
            hook, self.before_write = self.before_write, None
            hook()
        current = self.sellers[update.seller_id]
        if self.lose_next:
            self.lose_next -= 1
            # Someone else took this seller's turn
            self.sellers[update.seller_id] = replace(
                current, assignment_count=current.assignment_count + 1, last_assignment_at=NOW - timedelta(seconds=1),
            )
            return False
        if current.assignment_count != update.expected_assignment_count:
            return False
        if update.moves_in_queue and current.queue_position != update.expected_queue_position:
            return False
        self.sellers[update.seller_id] = apply_assignment_update(current, update)
        if self.after_write is not None:
            hook, self.after_write = self.after_write, None
            hook()
        return True

    def save_queue_positions(self, positions):
        self.saved_positions.append(dict(positions))
        for seller_id, position in positions.items():
            self.sellers[seller_id] = replace(self.sellers[seller_id], queue_position=position)

    def save_config(self, config):
        self.config = config
        return config


@pytest.fixture
def table(monkeypatch):
    fake = FakeSellerTable([
        Seller(seller_id="a", name="Ana", status=SellerStatus.ACTIVE, created_at=T0),
        Seller(seller_id="b", name="Bruno", status=SellerStatus.ACTIVE, created_at=T0 + timedelta(days=1)),
    ])
    monkeypatch.setattr(seller_repository, "list_sellers", fake.list_sellers)
    monkeypatch.setattr(seller_repository, "record_assignment", fake.record_assignment)
    monkeypatch.setattr(seller_repository, "save_queue_positions", fake.save_queue_positions)
    monkeypatch.setattr(seller_repository, "get_round_robin_config", lambda: fake.config)
    monkeypatch.setattr(seller_repository, "save_round_robin_config", fake.save_config)
    monkeypatch.setattr(
        quotation_repository, "set_seller", lambda quotation_id, seller_id: fake.linked.append((quotation_id, seller_id))
    )
    return fake


def test_assign_next_seller_writes_back_and_links(table) -> None:
    """Verify the head seller is recorded and linked to the quotation."""

    decision = assign_next_seller("q1", now=NOW)

    assert decision.reason == AssignmentReason.ASSIGNED
    assert decision.seller.seller_id == "a"
    assert table.records[0].expected_assignment_count == 0
    assert table.sellers["a"].assignment_count == 1
    assert table.linked == [("q1", "a")]
    # No manual queue, nothing rotated
    assert table.saved_positions == []


def test_consecutive_assignments_rotate(table) -> None:
    """Verify each assignment consumes one turn."""

    picks = [assign_next_seller(now=NOW + timedelta(minutes=i)).seller.seller_id for i in range(4)]

    assert picks == ["a", "b", "a", "b"]


def test_lost_race_retries_with_fresh_roster(table) -> None:
    """Verify a lost compare-and-set re-reads and picks the next seller."""

    table.lose_next = 1

    decision = assign_next_seller("q1", now=NOW)

    assert decision.seller.seller_id == "b"
    assert [r.seller_id for r in table.records] == ["a", "b"]
    assert table.linked == [("q1", "b")]


def test_conflict_after_max_attempts(table) -> None:
    """Verify exhausted attempts raise and nothing is linked."""

    table.lose_next = 10

    with pytest.raises(AssignmentConflictError) as exc:
        assign_next_seller("q1", now=NOW)

    assert exc.value.attempts == 3
    assert len(table.records) == 3
    assert table.linked == []


def test_no_eligible_seller(table) -> None:
    """Verify an empty rotation returns NO_ELIGIBLE_SELLER without writes."""

    for seller_id, seller in list(table.sellers.items()):
        table.sellers[seller_id] = replace(seller, status=SellerStatus.VACATION)

    decision = assign_next_seller("q1", now=NOW)

    assert decision.reason == AssignmentReason.NO_ELIGIBLE_SELLER
    assert table.records == []
    assert table.linked == []


def test_all_overloaded(table, caplog) -> None:
    """Verify ALL_OVERLOADED is logged and requests admin notification."""

    table.config = RoundRobinConfig(pending_lead_limit=1)
    for seller_id, seller in list(table.sellers.items()):
        table.sellers[seller_id] = replace(seller, pending_count=1)

    decision = assign_next_seller("q1", now=NOW)

    assert decision.reason == AssignmentReason.ALL_OVERLOADED
    assert decision.notify_admin is True
    assert table.records == []
    assert "pending-lead limit" in caplog.text


def test_manual_queue_rotates_after_assignment(table) -> None:
    """Verify the assigned seller moves past the tail of a manual queue in the same write."""

    assignment_service.reorder_seller_queue(["b", "a"])

    decision = assign_next_seller(now=NOW)

    assert decision.seller.seller_id == "b"
    assert decision.update.expected_queue_position == 0
    assert table.sellers["b"].queue_position == 2
    # Only the reorder touched positions; the rotation rode on the assignment write
    assert table.saved_positions == [{"b": 0, "a": 1}]
    assert assign_next_seller(now=NOW + timedelta(minutes=1)).seller.seller_id == "a"
    assert table.sellers["a"].queue_position == 3


def test_manual_queue_order_matches_rotation(table) -> None:
    """Verify the order left by an assignment is the rotated queue order."""

    positions = assignment_service.reorder_seller_queue(["b", "a"])

    assign_next_seller(now=NOW)

    stored = sorted(table.sellers.values(), key=lambda s: s.queue_position)
    rotated = rotate_queue(positions, "b")
    assert [s.seller_id for s in stored] == sorted(rotated, key=rotated.get)


def test_concurrent_assignment_after_write_sees_rotated_queue(table) -> None:
    """Verify a request arriving right after a write does not pick the same queue head."""

    assignment_service.reorder_seller_queue(["a", "b"])
    picks = []
    table.after_write = lambda: picks.append(assign_next_seller(now=NOW).seller.seller_id)

    picks.insert(0, assign_next_seller(now=NOW).seller.seller_id)

    assert picks == ["a", "b"]
    assert table.sellers["a"].assignment_count == 1
    assert table.sellers["b"].assignment_count == 1


def test_concurrent_assignment_before_write_loses_and_retries(table) -> None:
    """Verify a request beaten to the queue head re-reads and takes the next seller."""

    assignment_service.reorder_seller_queue(["a", "b"])
    picks = []
    table.before_write = lambda: picks.append(assign_next_seller(now=NOW).seller.seller_id)

    picks.append(assign_next_seller(now=NOW).seller.seller_id)

    assert picks == ["a", "b"]
    assert table.sellers["a"].assignment_count == 1
    assert table.sellers["b"].assignment_count == 1
    assert table.sellers["a"].queue_position == 2
    assert table.sellers["b"].queue_position == 3


def test_queue_reorder_during_assignment_forces_retry(table) -> None:
    """Verify a moved queue position fails the guarded write even with an unchanged count."""

    assignment_service.reorder_seller_queue(["a", "b"])
    table.before_write = lambda: assignment_service.reorder_seller_queue(["b", "a"])

    decision = assign_next_seller("q1", now=NOW)

    assert [r.seller_id for r in table.records] == ["a", "b"]
    assert decision.seller.seller_id == "b"
    assert table.sellers["a"].assignment_count == 0
    assert table.linked == [("q1", "b")]


def test_claim_next_seller_skips_excluded(table) -> None:
    """Verify excluded sellers are never picked and nothing is linked."""

    decision = assignment_service.claim_next_seller(NOW, exclude={"a"})

    assert decision.seller.seller_id == "b"
    assert table.sellers["b"].assignment_count == 1
    assert table.sellers["a"].assignment_count == 0
    assert table.linked == []


def test_claim_next_seller_with_everyone_excluded(table) -> None:
    """Verify excluding the whole roster leaves the lead unassigned without writes."""

    decision = assignment_service.claim_next_seller(NOW, exclude={"a", "b"})

    assert decision.reason == AssignmentReason.NO_ELIGIBLE_SELLER
    assert table.records == []


def test_reorder_rejects_incomplete_order(table) -> None:
    """Verify an incomplete order is rejected before saving."""

    with pytest.raises(InvalidQueueOrderError):
        assignment_service.reorder_seller_queue(["a"])
    assert table.saved_positions == []


def test_reset_queue_and_get_queue(table) -> None:
    """Verify reset seeds alphabetical positions reflected by get_queue."""

    assert assignment_service.reset_seller_queue() == {"a": 0, "b": 1}

    config, queue = assignment_service.get_queue()
    assert config == table.config
    assert [item.seller.seller_id for item in queue] == ["a", "b"]
    assert queue[0].is_next


def test_update_round_robin_config_merges(table) -> None:
    """Verify partial config updates keep unspecified fields and validate."""

    config = assignment_service.update_round_robin_config({"method": "SPEED", "unknown": 1})

    assert config.method == DistributionMethod.SPEED
    assert config.skip_overloaded is True
    assert table.config == config

    with pytest.raises(InvalidConfigurationError):
        assignment_service.update_round_robin_config({"pending_lead_limit": 500})
