"""
Pricing repository for reading and authoring pricing rules.

Rules live in the `pricing_rules` table. Deletion is a soft delete
(is_active = false). Overlap validation happens in the pricing service before
anything is written here.
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional
from uuid import uuid4

from domain.pricing import PricingRule, VehicleCategory
from repositories.client import check_response, get_supabase
from repositories.timestamps import parse_optional_datetime, to_iso_utc

_PRICING_TABLE: str = "pricing_rules"


def _row_to_rule(row: Mapping[str, Any]) -> PricingRule:
    """Convert a Supabase row into a PricingRule (money arrives as numeric strings)."""

    return PricingRule.create(
        rule_id=str(row["id"]),
        category=str(row["categoria"]),
        range_min=str(row["faixa_min"]),
        range_max=str(row["faixa_max"]),
        monthly_fee=str(row["mensalidade"]),
        participation_quota=(
            str(row["cota_participacao"]) if row.get("cota_participacao") is not None else None
        ),
        is_active=bool(row.get("is_active", True)),
        created_at=parse_optional_datetime(row.get("created_at")),
    )


def _rule_to_row(rule: PricingRule) -> dict[str, Any]:
    row: dict[str, Any] = {
        "id": rule.rule_id,
        "categoria": rule.category.value,
        "faixa_min": str(rule.range_min),
        "faixa_max": str(rule.range_max),
        "mensalidade": str(rule.monthly_fee),
        "cota_participacao": (
            str(rule.participation_quota) if rule.participation_quota is not None else None
        ),
        "is_active": rule.is_active,
    }
    if rule.created_at is not None:
        row["created_at"] = to_iso_utc(rule.created_at, name="created_at")
    return row


def list_pricing_rules(
    category: Optional[VehicleCategory] = None,
    active_only: bool = True,
) -> List[PricingRule]:
    """
    List pricing rules, optionally filtered by category and active flag.

    Example:
        rules = list_pricing_rules(VehicleCategory.MOTO)
    """

    query = get_supabase().table(_PRICING_TABLE).select("*")
    if active_only:
        query = query.eq("is_active", True)
    if category is not None:
        query = query.eq("categoria", category.value)

    rows = check_response(query.order("faixa_min").execute(), "list pricing rules")
    return [_row_to_rule(row) for row in rows]


def get_pricing_rule(rule_id: str) -> Optional[PricingRule]:
    response = get_supabase().table(_PRICING_TABLE).select("*").eq("id", rule_id).limit(1).execute()
    rows = check_response(response, "get pricing rule")
    return _row_to_rule(rows[0]) if rows else None


def new_rule_id() -> str:
    return str(uuid4())


def insert_pricing_rule(rule: PricingRule) -> PricingRule:
    response = get_supabase().table(_PRICING_TABLE).insert(_rule_to_row(rule)).execute()
    rows = check_response(response, "create pricing rule")
    return _row_to_rule(rows[0]) if rows else rule


def replace_pricing_rule(rule: PricingRule) -> PricingRule:
    """Overwrite every mutable column of an existing rule."""

    payload = _rule_to_row(rule)
    payload.pop("id")
    payload.pop("created_at", None)
    response = get_supabase().table(_PRICING_TABLE).update(payload).eq("id", rule.rule_id).execute()
    rows = check_response(response, "update pricing rule")
    return _row_to_rule(rows[0]) if rows else rule


def deactivate_pricing_rule(rule_id: str) -> Optional[PricingRule]:
    """Soft delete. Returns None if the rule does not exist."""

    response = (
        get_supabase().table(_PRICING_TABLE)
        .update({"is_active": False})
        .eq("id", rule_id)
        .execute()
    )
    rows = check_response(response, "deactivate pricing rule")
    return _row_to_rule(rows[0]) if rows else None


__all__ = [
    "list_pricing_rules",
    "get_pricing_rule",
    "new_rule_id",
    "insert_pricing_rule",
    "replace_pricing_rule",
    "deactivate_pricing_rule",
]
