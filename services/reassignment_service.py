"""
Lead reassignment service.

Moves PENDING leads off a seller, either spread over the other sellers by
round-robin (EQUAL) or handed to one chosen seller (SPECIFIC). Also drives
seller status changes, which can take the seller's pending leads along.

EQUAL reuses the assignment flow: each lead claims the next turn with the
source seller excluded, through the same compare-and-set write as a new
quote. SPECIFIC moves do not consume a round-robin turn.

Every lead move is guarded on the lead still being PENDING with the source
seller; leads that changed meanwhile are reported as skipped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Sequence

from domain.errors import InvalidReassignmentError
from domain.seller import Seller, SellerStatus
from domain.time import utc_now
from repositories import quotation_repository, seller_repository
from services.assignment_service import claim_next_seller

logger = logging.getLogger(__name__)


class LeadDistribution(str, Enum):
    EQUAL = "equal"
    SPECIFIC = "specific"


class PendingLeadsAction(str, Enum):
    KEEP = "keep"
    REDISTRIBUTE = "redistribute"
    ASSIGN = "assign"


@dataclass(slots=True)
class ReassignmentResult:
    """Where each lead went; `unassigned` leads stay with the source seller."""

    reassigned: Dict[str, str] = field(default_factory=dict)
    skipped: List[str] = field(default_factory=list)
    unassigned: List[str] = field(default_factory=list)

    @property
    def reassigned_count(self) -> int:
        return len(self.reassigned)

    @property
    def to_sellers(self) -> List[str]:
        return sorted(set(self.reassigned.values()))


@dataclass(frozen=True, slots=True)
class SellerStatusChange:
    seller: Seller
    reassignment: Optional[ReassignmentResult] = None


def _require_target(from_seller_id: str, to_seller_id: Optional[str]) -> Seller:
    if not to_seller_id:
        raise InvalidReassignmentError("A target seller is required for specific distribution")
    if to_seller_id == from_seller_id:
        raise InvalidReassignmentError("Leads cannot be reassigned to the same seller")
    target = seller_repository.get_seller(to_seller_id)
    if target is None:
        raise InvalidReassignmentError(f"Seller {to_seller_id} not found")
    if not target.is_active:
        raise InvalidReassignmentError(f"Seller {to_seller_id} is {target.status.value}")
    return target


def reassign_leads(
    from_seller_id: str,
    quotation_ids: Sequence[str],
    distribution: LeadDistribution,
    to_seller_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> ReassignmentResult:
    """
    Move the given PENDING leads away from `from_seller_id`.

    Ids that are not PENDING leads of the source seller are skipped. With
    EQUAL distribution, leads left over once no other seller can take one
    are reported as unassigned.

    Raises:
        InvalidReassignmentError: on an empty selection or a missing, inactive
            or identical target for SPECIFIC.
        AssignmentConflictError: if an EQUAL turn kept losing to concurrent assignments.
    """

    distribution = LeadDistribution(distribution)
    if not quotation_ids:
        raise InvalidReassignmentError("No leads selected")
    target = _require_target(from_seller_id, to_seller_id) if distribution == LeadDistribution.SPECIFIC else None

    pending = set(quotation_repository.list_pending_ids(from_seller_id))
    result = ReassignmentResult()
    now = now or utc_now()

    for quotation_id in dict.fromkeys(quotation_ids):
        if quotation_id not in pending:
            result.skipped.append(quotation_id)
            continue
        if result.unassigned:
            result.unassigned.append(quotation_id)
            continue

        if target is not None:
            seller_id = target.seller_id
        else:
            decision = claim_next_seller(now, exclude={from_seller_id})
            if decision.seller is None:
                result.unassigned.append(quotation_id)
                continue
            seller_id = decision.seller.seller_id

        if quotation_repository.move_to_seller(quotation_id, from_seller_id, seller_id):
            result.reassigned[quotation_id] = seller_id
        else:
            logger.warning("Quotation %s changed during reassignment; left as is", quotation_id)
            result.skipped.append(quotation_id)

    logger.info(
        "Reassigned %d/%d leads from seller %s (%s)",
        result.reassigned_count, len(result.reassigned) + len(result.skipped) + len(result.unassigned),
        from_seller_id, distribution.value,
    )
    if result.unassigned:
        logger.warning(
            "%d leads stayed with seller %s: no other seller available",
            len(result.unassigned), from_seller_id,
        )
    return result


def change_seller_status(
    seller_id: str,
    status: SellerStatus,
    pending_leads_action: PendingLeadsAction = PendingLeadsAction.KEEP,
    to_seller_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Optional[SellerStatusChange]:
    """
    Set a seller's status, first moving their pending leads if asked.

    Returns None if the seller does not exist.

    Raises:
        InvalidReassignmentError: when ASSIGN has no usable target seller.
    """

    status = SellerStatus(status)
    pending_leads_action = PendingLeadsAction(pending_leads_action)
    if seller_repository.get_seller(seller_id) is None:
        return None

    reassignment: Optional[ReassignmentResult] = None
    if pending_leads_action != PendingLeadsAction.KEEP:
        distribution = (
            LeadDistribution.SPECIFIC if pending_leads_action == PendingLeadsAction.ASSIGN
            else LeadDistribution.EQUAL
        )
        if distribution == LeadDistribution.SPECIFIC:
            _require_target(seller_id, to_seller_id)
        pending_ids = quotation_repository.list_pending_ids(seller_id)
        if pending_ids:
            reassignment = reassign_leads(seller_id, pending_ids, distribution, to_seller_id, now)
        else:
            reassignment = ReassignmentResult()

    updated = seller_repository.update_status(seller_id, status)
    if updated is None:
        return None
    logger.info("Seller %s status set to %s", seller_id, status.value)
    return SellerStatusChange(seller=updated, reassignment=reassignment)


__all__ = [
    "LeadDistribution",
    "PendingLeadsAction",
    "ReassignmentResult",
    "SellerStatusChange",
    "reassign_leads",
    "change_seller_status",
]
