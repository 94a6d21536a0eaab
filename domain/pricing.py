"""
Domain: Tiered pricing rules and quotation values.

Contract:
- A PricingRule covers an inclusive FIPE value range [range_min, range_max]
  for one vehicle category.
- Active rules of a category must not overlap, so lookup yields exactly one
  rule or none. Overlaps are data errors, caught when rules are authored and
  again if they ever reach a lookup.
- enrollment_fee = monthly_fee x 2
- discounted_enrollment_fee = enrollment_fee x (1 - discount_percent / 100),
  default discount 20%
- participation_quota is copied from the rule (or None)

Arithmetic runs on integer cents (see `domain.money`).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, Iterable, List, Optional

from .errors import InvalidConfigurationError, InvalidPricingRuleError
from .money import MoneyInput, apply_percent, from_cents, to_cents, to_decimal
from .time import require_utc_timestamp

DEFAULT_ENROLLMENT_MULTIPLIER = 2
DEFAULT_DISCOUNT_PERCENT = Decimal("20")


class VehicleCategory(str, Enum):
    NORMAL = "NORMAL"  # standard
    ESPECIAL = "ESPECIAL"  # special / premium
    UTILITARIO = "UTILITARIO"  # utility
    MOTO = "MOTO"  # motorcycle


@dataclass(frozen=True, slots=True)
class PricingRule:
    """One pricing tier. Monetary fields are two-place Decimals."""

    rule_id: str
    category: VehicleCategory
    range_min: Decimal
    range_max: Decimal
    monthly_fee: Decimal
    participation_quota: Optional[Decimal] = None
    is_active: bool = True
    created_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if not isinstance(self.category, VehicleCategory):
            raise InvalidPricingRuleError(f"Unknown vehicle category: {self.category!r}")
        if self.range_min < 0:
            raise InvalidPricingRuleError("range_min must be >= 0")
        if self.range_min > self.range_max:
            raise InvalidPricingRuleError(
                f"range_min ({self.range_min}) must be <= range_max ({self.range_max})"
            )
        if self.monthly_fee < 0:
            raise InvalidPricingRuleError("monthly_fee must be >= 0")
        if self.participation_quota is not None and self.participation_quota < 0:
            raise InvalidPricingRuleError("participation_quota must be >= 0")
        if self.created_at is not None:
            require_utc_timestamp("created_at", self.created_at)

    @staticmethod
    def create(
        *,
        rule_id: str,
        category: VehicleCategory | str,
        range_min: MoneyInput,
        range_max: MoneyInput,
        monthly_fee: MoneyInput,
        participation_quota: Optional[MoneyInput] = None,
        is_active: bool = True,
        created_at: Optional[datetime] = None,
    ) -> "PricingRule":
        """Build a rule from loosely typed input, normalizing money and category."""

        try:
            resolved_category = VehicleCategory(category)
        except ValueError as e:
            raise InvalidPricingRuleError(f"Unknown vehicle category: {category!r}") from e
        try:
            return PricingRule(
                rule_id=rule_id,
                category=resolved_category,
                range_min=to_decimal(range_min),
                range_max=to_decimal(range_max),
                monthly_fee=to_decimal(monthly_fee),
                participation_quota=(
                    to_decimal(participation_quota) if participation_quota is not None else None
                ),
                is_active=is_active,
                created_at=created_at,
            )
        except (TypeError, InvalidPricingRuleError):
            raise
        except ValueError as e:
            raise InvalidPricingRuleError(str(e)) from e

    def contains(self, value: Decimal) -> bool:
        """Inclusive on both bounds."""
        return self.range_min <= value <= self.range_max

    def overlaps(self, other: "PricingRule") -> bool:
        return (
            self.category == other.category
            and self.range_min <= other.range_max
            and other.range_min <= self.range_max
        )


@dataclass(frozen=True, slots=True)
class QuotationValues:
    monthly_fee: Decimal
    enrollment_fee: Decimal
    discounted_enrollment_fee: Decimal
    participation_quota: Optional[Decimal]

    @staticmethod
    def zero() -> "QuotationValues":
        """Values stored on unpriced leads and rejected submissions."""
        return QuotationValues(
            monthly_fee=from_cents(0),
            enrollment_fee=from_cents(0),
            discounted_enrollment_fee=from_cents(0),
            participation_quota=None,
        )


def find_overlaps(rules: Iterable[PricingRule]) -> List[tuple[PricingRule, PricingRule]]:
    """Pairs of active rules of the same category whose ranges intersect."""

    by_category: Dict[VehicleCategory, List[PricingRule]] = {}
    for rule in rules:
        if rule.is_active:
            by_category.setdefault(rule.category, []).append(rule)

    overlaps: List[tuple[PricingRule, PricingRule]] = []
    for category_rules in by_category.values():
        ordered = sorted(category_rules, key=lambda r: (r.range_min, r.range_max))
        for i, rule in enumerate(ordered):
            for other in ordered[i + 1:]:
                if other.range_min > rule.range_max:
                    break
                overlaps.append((rule, other))
    return overlaps


def validate_rule_set(rules: Iterable[PricingRule]) -> None:
    """
    Raise if active ranges overlap within a category.

    Raises:
        InvalidConfigurationError: naming the first overlapping pair.
    """

    overlaps = find_overlaps(rules)
    if overlaps:
        first, second = overlaps[0]
        raise InvalidConfigurationError(
            f"Overlapping {first.category.value} pricing rules: "
            f"{first.rule_id} [{first.range_min}, {first.range_max}] and "
            f"{second.rule_id} [{second.range_min}, {second.range_max}]"
        )


def find_pricing_rule(
    rules: Iterable[PricingRule],
    category: VehicleCategory | str,
    value: MoneyInput,
) -> Optional[PricingRule]:
    """
    Find the active rule of `category` whose range contains `value`.

    Returns None when the value is outside every configured range.

    Raises:
        InvalidConfigurationError: if more than one active rule matches.
    """

    category = VehicleCategory(category)
    amount = to_decimal(value)

    matches = [
        rule for rule in rules
        if rule.is_active and rule.category == category and rule.contains(amount)
    ]
    if not matches:
        return None
    if len(matches) > 1:
        ids = ", ".join(rule.rule_id for rule in matches)
        raise InvalidConfigurationError(
            f"Ambiguous pricing for {category.value} {amount}: rules {ids} overlap"
        )
    return matches[0]


def calculate_quotation_values(
    monthly_fee: MoneyInput,
    participation_quota: Optional[MoneyInput] = None,
    discount_percent: MoneyInput = DEFAULT_DISCOUNT_PERCENT,
    enrollment_multiplier: int = DEFAULT_ENROLLMENT_MULTIPLIER,
) -> QuotationValues:
    """
    Derive the quotation's monetary fields from a monthly fee.

    Example:
        calculate_quotation_values(Decimal("201.67"))
        # monthly 201.67, enrollment 403.34, discounted 322.67, quota None
    """

    discount = Decimal(str(discount_percent))
    if not Decimal("0") <= discount <= Decimal("100"):
        raise InvalidConfigurationError("discount_percent must be between 0 and 100")
    if enrollment_multiplier < 0:
        raise InvalidConfigurationError("enrollment_multiplier must be >= 0")

    monthly_cents = to_cents(monthly_fee)
    if monthly_cents < 0:
        raise ValueError("monthly_fee must be >= 0")

    enrollment_cents = monthly_cents * enrollment_multiplier
    discounted_cents = apply_percent(enrollment_cents, Decimal("100") - discount)

    return QuotationValues(
        monthly_fee=from_cents(monthly_cents),
        enrollment_fee=from_cents(enrollment_cents),
        discounted_enrollment_fee=from_cents(discounted_cents),
        participation_quota=(
            to_decimal(participation_quota) if participation_quota is not None else None
        ),
    )


__all__ = [
    "DEFAULT_ENROLLMENT_MULTIPLIER",
    "DEFAULT_DISCOUNT_PERCENT",
    "VehicleCategory",
    "PricingRule",
    "QuotationValues",
    "find_overlaps",
    "validate_rule_set",
    "find_pricing_rule",
    "calculate_quotation_values",
]
