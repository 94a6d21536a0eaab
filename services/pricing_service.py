"""
Pricing service for quoting vehicles and authoring pricing rules.

Quoting:
1. Check the category's FIPE ceiling (over the ceiling -> OVER_LIMIT)
2. Find the active rule whose inclusive range contains the FIPE value
   (no rule -> NO_RULE)
3. Derive monthly fee, enrollment fee, discounted enrollment fee and quota

OVER_LIMIT and NO_RULE are outcomes, not errors: the caller captures the
submission as an unpriced lead.

Authoring validates the resulting rule set before anything is written, so
overlapping active ranges never reach the table.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, List, Mapping, Optional

from domain.errors import InvalidPricingRuleError
from domain.money import MoneyInput, to_decimal
from domain.pricing import (
    PricingRule,
    QuotationValues,
    VehicleCategory,
    calculate_quotation_values,
    find_pricing_rule,
    validate_rule_set,
)
from domain.time import utc_now
from domain.vehicle import check_fipe_limit
from repositories import pricing_repository
from services.settings import get_settings

logger = logging.getLogger(__name__)


class PricingStatus(str, Enum):
    PRICED = "PRICED"
    OVER_LIMIT = "OVER_LIMIT"
    NO_RULE = "NO_RULE"


@dataclass(frozen=True, slots=True)
class PricingOutcome:
    """
    Result of pricing one vehicle.

    `values` and `rule` are set only when status is PRICED. `limit` is the
    category's FIPE ceiling.
    """
    status: PricingStatus
    category: VehicleCategory
    fipe_value: Decimal
    limit: Decimal
    values: Optional[QuotationValues] = None
    rule: Optional[PricingRule] = None

    @property
    def priced(self) -> bool:
        return self.status == PricingStatus.PRICED


def price_vehicle(
    rules: Iterable[PricingRule],
    category: VehicleCategory,
    fipe_value: MoneyInput,
    discount_percent: MoneyInput,
) -> PricingOutcome:
    """Price a vehicle against an in-memory rule set (no I/O)."""

    category = VehicleCategory(category)
    amount = to_decimal(fipe_value)
    if amount < 0:
        raise ValueError("fipe_value must be >= 0")

    limit_check = check_fipe_limit(category, amount)
    if not limit_check.allowed:
        logger.info(
            "FIPE value %s above %s ceiling %s; capturing as lead",
            amount, category.value, limit_check.limit,
        )
        return PricingOutcome(
            status=PricingStatus.OVER_LIMIT,
            category=category,
            fipe_value=amount,
            limit=limit_check.limit,
        )

    rule = find_pricing_rule(rules, category, amount)
    if rule is None:
        logger.warning("No active %s pricing rule covers FIPE value %s", category.value, amount)
        return PricingOutcome(
            status=PricingStatus.NO_RULE,
            category=category,
            fipe_value=amount,
            limit=limit_check.limit,
        )

    values = calculate_quotation_values(
        rule.monthly_fee,
        rule.participation_quota,
        discount_percent=discount_percent,
    )
    return PricingOutcome(
        status=PricingStatus.PRICED,
        category=category,
        fipe_value=amount,
        limit=limit_check.limit,
        values=values,
        rule=rule,
    )


def quote_vehicle(category: VehicleCategory, fipe_value: MoneyInput) -> PricingOutcome:
    """
    Price a vehicle using the active rules stored for its category.

    Example:
        outcome = quote_vehicle(VehicleCategory.NORMAL, Decimal("45000"))
        if outcome.priced:
            print(outcome.values.monthly_fee)
    """

    rules = pricing_repository.list_pricing_rules(VehicleCategory(category), active_only=True)
    return price_vehicle(rules, category, fipe_value, get_settings().discount_percent)


def create_pricing_rule(
    category: VehicleCategory,
    range_min: MoneyInput,
    range_max: MoneyInput,
    monthly_fee: MoneyInput,
    participation_quota: Optional[MoneyInput] = None,
) -> PricingRule:
    """
    Validate and store a new active rule.

    Raises:
        InvalidPricingRuleError: malformed rule.
        InvalidConfigurationError: range overlaps an active rule of the category.
    """

    rule = PricingRule.create(
        rule_id=pricing_repository.new_rule_id(),
        category=category,
        range_min=range_min,
        range_max=range_max,
        monthly_fee=monthly_fee,
        participation_quota=participation_quota,
        created_at=utc_now(),
    )
    existing = pricing_repository.list_pricing_rules(rule.category, active_only=True)
    validate_rule_set([*existing, rule])

    created = pricing_repository.insert_pricing_rule(rule)
    logger.info(
        "Created %s pricing rule %s [%s, %s] monthly %s",
        created.category.value, created.rule_id, created.range_min, created.range_max, created.monthly_fee,
    )
    return created


_UPDATABLE_FIELDS = ("range_min", "range_max", "monthly_fee", "participation_quota", "is_active")


def update_pricing_rule(rule_id: str, changes: Mapping[str, Any]) -> Optional[PricingRule]:
    """
    Apply partial changes to a rule. Returns None if the rule does not exist.

    Money fields accept anything `domain.money.to_decimal` accepts;
    `participation_quota` may be set to None to clear it.
    """

    unknown = sorted(set(changes) - set(_UPDATABLE_FIELDS))
    if unknown:
        raise InvalidPricingRuleError(f"Fields cannot be updated: {unknown}")

    current = pricing_repository.get_pricing_rule(rule_id)
    if current is None:
        return None

    fields: dict[str, Any] = {}
    for name in ("range_min", "range_max", "monthly_fee"):
        if name in changes:
            fields[name] = to_decimal(changes[name])
    if "participation_quota" in changes:
        quota = changes["participation_quota"]
        fields["participation_quota"] = to_decimal(quota) if quota is not None else None
    if "is_active" in changes:
        fields["is_active"] = bool(changes["is_active"])

    updated = replace(current, **fields)
    if updated.is_active:
        others = [
            r for r in pricing_repository.list_pricing_rules(updated.category, active_only=True)
            if r.rule_id != rule_id
        ]
        validate_rule_set([*others, updated])

    saved = pricing_repository.replace_pricing_rule(updated)
    logger.info("Updated pricing rule %s: %s", rule_id, ", ".join(sorted(fields)))
    return saved


def delete_pricing_rule(rule_id: str) -> Optional[PricingRule]:
    """Soft delete (deactivate) a rule."""

    rule = pricing_repository.deactivate_pricing_rule(rule_id)
    if rule is not None:
        logger.info("Deactivated pricing rule %s", rule_id)
    return rule


def list_rules(category: Optional[VehicleCategory] = None, active_only: bool = True) -> List[PricingRule]:
    return pricing_repository.list_pricing_rules(category, active_only=active_only)


__all__ = [
    "PricingStatus",
    "PricingOutcome",
    "price_vehicle",
    "quote_vehicle",
    "create_pricing_rule",
    "update_pricing_rule",
    "delete_pricing_rule",
    "list_rules",
]
