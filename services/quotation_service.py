"""
Quotation service: the quote submission flow and status lifecycle.

Submission:
1. Resolve the vehicle category (explicit, or from vehicle type / client
   category / usage)
2. Price it (`services.pricing_service`)
3. Persist the quotation; unpriced or rejected submissions are kept as
   REJECTED leads with zero values
4. Assign a seller via round-robin (priced quotations only)

Assignment failures never fail the submission: the quotation stays stored
without a seller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import uuid4

from domain.errors import InvalidStatusTransitionError
from domain.money import to_decimal
from domain.pricing import QuotationValues, VehicleCategory
from domain.quotation import Quotation, QuotationStatus, expiry_for
from domain.round_robin import AssignmentDecision
from domain.time import require_utc_timestamp, utc_now
from domain.vehicle import ClientCategory, UsageType, VehicleType, determine_category
from repositories import quotation_repository
from services.assignment_service import AssignmentConflictError, assign_next_seller
from services.pricing_service import PricingOutcome, quote_vehicle
from services.settings import get_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class QuotationSubmission:
    """
    Incoming quote request.

    Either `category` is given, or `vehicle_type` is, in which case the
    category is derived with `client_category` and `usage_type`.
    """
    fipe_value: Decimal
    category: Optional[VehicleCategory] = None
    vehicle_type: Optional[VehicleType] = None
    client_category: ClientCategory = ClientCategory.LEVE
    usage_type: UsageType = UsageType.PARTICULAR
    is_rejected: bool = False
    rejection_reason: Optional[str] = None

    def resolve_category(self) -> VehicleCategory:
        if self.category is not None:
            return VehicleCategory(self.category)
        if self.vehicle_type is None:
            raise ValueError("Either category or vehicle_type is required")
        return determine_category(self.vehicle_type, self.client_category, self.usage_type)


@dataclass(frozen=True, slots=True)
class SubmissionResult:
    quotation: Quotation
    pricing: Optional[PricingOutcome]
    assignment: Optional[AssignmentDecision]


def submit_quotation(submission: QuotationSubmission, now: Optional[datetime] = None) -> SubmissionResult:
    """
    Price, store and assign a quotation.

    Example:
        result = submit_quotation(QuotationSubmission(
            fipe_value=Decimal("45000"), category=VehicleCategory.NORMAL,
        ))
        print(result.quotation.status, result.quotation.seller_id)
    """

    now = now or utc_now()
    require_utc_timestamp("now", now)
    category = submission.resolve_category()

    pricing: Optional[PricingOutcome] = None
    rejection_reason = submission.rejection_reason
    values = QuotationValues.zero()
    rule_id: Optional[str] = None

    if not submission.is_rejected:
        pricing = quote_vehicle(category, submission.fipe_value)
        if pricing.priced and pricing.values is not None and pricing.rule is not None:
            values = pricing.values
            rule_id = pricing.rule.rule_id
        else:
            rejection_reason = pricing.status.value

    status = QuotationStatus.PENDING if rule_id is not None else QuotationStatus.REJECTED
    quotation = Quotation(
        quotation_id=str(uuid4()),
        category=category,
        fipe_value=to_decimal(submission.fipe_value),
        values=values,
        status=status,
        created_at=now,
        expires_at=expiry_for(now, get_settings().quotation_validity_days),
        pricing_rule_id=rule_id,
        rejection_reason=rejection_reason,
    )
    quotation_repository.insert_quotation(quotation)

    if status == QuotationStatus.REJECTED:
        logger.info("Stored quotation %s as unpriced lead (%s)", quotation.quotation_id, rejection_reason)
        return SubmissionResult(quotation=quotation, pricing=pricing, assignment=None)

    try:
        decision = assign_next_seller(quotation.quotation_id, now=now)
    except AssignmentConflictError:
        logger.exception("Quotation %s stored without a seller", quotation.quotation_id)
        return SubmissionResult(quotation=quotation, pricing=pricing, assignment=None)

    if decision.seller is not None:
        quotation = replace(quotation, seller_id=decision.seller.seller_id)
    return SubmissionResult(quotation=quotation, pricing=pricing, assignment=decision)


def change_status(
    quotation_id: str,
    status: QuotationStatus,
    seller_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Optional[Quotation]:
    """
    Move a quotation to a new status. Returns None if it does not exist.

    Raises:
        PermissionError: when `seller_id` is given and the quotation belongs to another seller.
        InvalidStatusTransitionError: for a change outside the allowed transitions,
            or when another change to the quotation landed first.
    """

    current = quotation_repository.get_quotation(quotation_id)
    if current is None:
        return None
    if seller_id is not None and current.seller_id != seller_id:
        raise PermissionError(f"Quotation {quotation_id} is not assigned to seller {seller_id}")

    updated = current.with_status(status, now or utc_now())
    if not quotation_repository.save_status(updated, current.status):
        latest = quotation_repository.get_quotation(quotation_id)
        latest_status = latest.status.value if latest is not None else current.status.value
        logger.warning(
            "Quotation %s changed concurrently (%s -> %s); %s not applied",
            quotation_id, current.status.value, latest_status, updated.status.value,
        )
        raise InvalidStatusTransitionError(latest_status, updated.status.value)
    logger.info("Quotation %s: %s -> %s", quotation_id, current.status.value, updated.status.value)
    return updated


def expire_quotations(now: Optional[datetime] = None) -> int:
    """Expire overdue PENDING quotations; returns how many changed."""

    count = quotation_repository.expire_pending_before(now or utc_now())
    if count:
        logger.info("Expired %d quotations", count)
    return count


__all__ = [
    "QuotationSubmission",
    "SubmissionResult",
    "submit_quotation",
    "change_status",
    "expire_quotations",
]
