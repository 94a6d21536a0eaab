"""
Lead assignment service.

Wraps the pure round-robin selector with the read-select-write sequence:

1. Read the roster (with pending counts) and the round-robin configuration
2. Select the next seller (`domain.round_robin.decide_assignment`)
3. Write back last_assignment_at / assignment_count with a compare-and-set
   guard on assignment_count
4. On a lost race, re-read and select again (bounded attempts)

The guard makes every assignment consume exactly one round-robin turn under
concurrent quote submissions. With a manual queue in SEQUENTIAL mode, the
same guarded row update moves the assigned seller past the queue tail, so
a concurrent request that re-reads sees the next seller at the head.

Also exposes the queue administration operations (view, reorder, reset,
configure).
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Collection, Dict, List, Mapping, Optional, Sequence

from domain.round_robin import (
    AssignmentDecision,
    AssignmentReason,
    RoundRobinConfig,
    decide_assignment,
)
from domain.seller_queue import (
    QueueItem,
    build_queue,
    reorder_queue,
    reset_queue_alphabetical,
)
from domain.time import utc_now
from repositories import quotation_repository, seller_repository
from services.settings import get_settings

logger = logging.getLogger(__name__)


class AssignmentConflictError(Exception):
    """Raised when every compare-and-set attempt lost to a concurrent assignment."""
    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f"Could not record seller assignment after {attempts} attempts")


def claim_next_seller(
    now: Optional[datetime] = None,
    exclude: Collection[str] = (),
) -> AssignmentDecision:
    """
    Select the next seller and record the turn with a compare-and-set write.

    Sellers in `exclude` are never picked. Returns the decision;
    `decision.seller` is None when nobody can take the lead.

    Raises:
        AssignmentConflictError: if every attempt lost to a concurrent assignment.
    """

    max_attempts = get_settings().assignment_max_attempts
    config = seller_repository.get_round_robin_config()

    for attempt in range(1, max_attempts + 1):
        sellers = seller_repository.list_sellers()
        decision = decide_assignment(sellers, config, now or utc_now(), exclude=exclude)

        if decision.seller is None or decision.update is None:
            if decision.reason == AssignmentReason.ALL_OVERLOADED:
                logger.warning(
                    "All sellers are over the pending-lead limit (%s); lead left unassigned%s",
                    config.pending_lead_limit,
                    " - notifying admin" if decision.notify_admin else "",
                )
            else:
                logger.warning("No active sellers available for assignment")
            return decision

        if seller_repository.record_assignment(decision.update):
            logger.debug(
                "Seller %s took turn #%d (%s)",
                decision.seller.seller_id, decision.update.assignment_count, config.method.value,
            )
            return decision

        logger.warning(
            "Assignment to seller %s lost a concurrent update (attempt %d/%d)",
            decision.seller.seller_id, attempt, max_attempts,
        )

    raise AssignmentConflictError(max_attempts)


def assign_next_seller(
    quotation_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> AssignmentDecision:
    """
    Pick the next seller, persist the assignment and (optionally) link the quotation.

    Raises:
        AssignmentConflictError: if every attempt lost to a concurrent assignment.
    """

    decision = claim_next_seller(now)
    if decision.seller is None or decision.update is None:
        return decision

    if quotation_id is not None:
        quotation_repository.set_seller(quotation_id, decision.seller.seller_id)
    logger.info(
        "Assigned %s to seller %s (assignment #%d)",
        quotation_id or "lead", decision.seller.seller_id, decision.update.assignment_count,
    )
    return decision


def get_queue() -> tuple[RoundRobinConfig, List[QueueItem]]:
    """Current configuration and the materialized distribution order."""

    config = seller_repository.get_round_robin_config()
    return config, build_queue(seller_repository.list_sellers(), config)


def update_round_robin_config(data: Mapping[str, Any]) -> RoundRobinConfig:
    """
    Merge `data` into the stored configuration and save it.

    Raises:
        InvalidConfigurationError: on an unknown method or out-of-range limit.
    """

    current = seller_repository.get_round_robin_config().to_mapping()
    current.update({key: value for key, value in data.items() if key in current})
    config = RoundRobinConfig.from_mapping(current)
    saved = seller_repository.save_round_robin_config(config)
    logger.info("Round-robin config updated: %s", saved.to_mapping())
    return saved


def reorder_seller_queue(ordered_ids: Sequence[str]) -> Dict[str, int]:
    """
    Persist an administrator's manual order.

    Raises:
        InvalidQueueOrderError: if the ids do not match the sellers in rotation.
    """

    positions = reorder_queue(seller_repository.list_sellers(), ordered_ids)
    seller_repository.save_queue_positions(positions)
    return positions


def reset_seller_queue() -> Dict[str, int]:
    """Re-seed the queue alphabetically; assignment history is untouched."""

    positions = reset_queue_alphabetical(seller_repository.list_sellers())
    seller_repository.save_queue_positions(positions)
    logger.info("Round-robin queue reset to alphabetical order")
    return positions


__all__ = [
    "AssignmentConflictError",
    "claim_next_seller",
    "assign_next_seller",
    "get_queue",
    "update_round_robin_config",
    "reorder_seller_queue",
    "reset_seller_queue",
]
