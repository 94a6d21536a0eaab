"""
Quotation repository (persistence).

Stores quotations with their derived pricing fields and assigned seller. Status
rules and expiry math live in `domain.quotation`.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, List, Mapping, Optional

from domain.pricing import QuotationValues, VehicleCategory
from domain.quotation import Quotation, QuotationStatus
from repositories.client import check_response, get_supabase
from repositories.timestamps import parse_optional_datetime, parse_utc_datetime, to_iso_utc

_QUOTATIONS_TABLE: str = "quotations"


def _money(value: Any) -> Decimal:
    return Decimal(str(value)).quantize(Decimal("0.01"))


def _row_to_quotation(row: Mapping[str, Any]) -> Quotation:
    quota = row.get("cota_participacao")
    return Quotation(
        quotation_id=str(row["id"]),
        category=VehicleCategory(str(row["categoria"])),
        fipe_value=_money(row["valor_fipe"]),
        values=QuotationValues(
            monthly_fee=_money(row["mensalidade"]),
            enrollment_fee=_money(row["adesao"]),
            discounted_enrollment_fee=_money(row["adesao_desconto"]),
            participation_quota=_money(quota) if quota is not None else None,
        ),
        status=QuotationStatus(str(row["status"])),
        created_at=parse_utc_datetime(row["created_at"]),
        expires_at=parse_utc_datetime(row["expires_at"]),
        seller_id=str(row["seller_id"]) if row.get("seller_id") else None,
        pricing_rule_id=str(row["pricing_rule_id"]) if row.get("pricing_rule_id") else None,
        rejection_reason=row.get("rejection_reason"),
        contacted_at=parse_optional_datetime(row.get("contacted_at")),
        accepted_at=parse_optional_datetime(row.get("accepted_at")),
    )


def _quotation_to_row(quotation: Quotation) -> dict[str, Any]:
    values = quotation.values
    return {
        "id": quotation.quotation_id,
        "categoria": quotation.category.value,
        "valor_fipe": str(quotation.fipe_value),
        "mensalidade": str(values.monthly_fee),
        "adesao": str(values.enrollment_fee),
        "adesao_desconto": str(values.discounted_enrollment_fee),
        "cota_participacao": (
            str(values.participation_quota) if values.participation_quota is not None else None
        ),
        "status": quotation.status.value,
        "seller_id": quotation.seller_id,
        "pricing_rule_id": quotation.pricing_rule_id,
        "rejection_reason": quotation.rejection_reason,
        "created_at": to_iso_utc(quotation.created_at, name="created_at"),
        "expires_at": to_iso_utc(quotation.expires_at, name="expires_at"),
        "contacted_at": (
            to_iso_utc(quotation.contacted_at, name="contacted_at") if quotation.contacted_at else None
        ),
        "accepted_at": (
            to_iso_utc(quotation.accepted_at, name="accepted_at") if quotation.accepted_at else None
        ),
    }


def insert_quotation(quotation: Quotation) -> Quotation:
    response = get_supabase().table(_QUOTATIONS_TABLE).insert(_quotation_to_row(quotation)).execute()
    check_response(response, "create quotation")
    return quotation


def get_quotation(quotation_id: str) -> Optional[Quotation]:
    response = (
        get_supabase().table(_QUOTATIONS_TABLE)
        .select("*")
        .eq("id", quotation_id)
        .limit(1)
        .execute()
    )
    rows = check_response(response, "get quotation")
    return _row_to_quotation(rows[0]) if rows else None


def set_seller(quotation_id: str, seller_id: str) -> None:
    response = (
        get_supabase().table(_QUOTATIONS_TABLE)
        .update({"seller_id": seller_id})
        .eq("id", quotation_id)
        .execute()
    )
    check_response(response, "assign quotation seller")


def save_status(quotation: Quotation, previous_status: QuotationStatus) -> bool:
    """
    Persist status and the contacted/accepted stamps of an already-validated change.

    Only applies while the stored status is still `previous_status`; returns
    False when a concurrent change got there first.
    """

    row = _quotation_to_row(quotation)
    payload = {key: row[key] for key in ("status", "contacted_at", "accepted_at")}
    response = (
        get_supabase().table(_QUOTATIONS_TABLE)
        .update(payload)
        .eq("id", quotation.quotation_id)
        .eq("status", QuotationStatus(previous_status).value)
        .execute()
    )
    rows = check_response(response, "update quotation status")
    return bool(rows)


def list_pending_ids(seller_id: str) -> List[str]:
    """Ids of the PENDING quotations assigned to a seller, oldest first."""

    response = (
        get_supabase().table(_QUOTATIONS_TABLE)
        .select("id")
        .eq("seller_id", seller_id)
        .eq("status", QuotationStatus.PENDING.value)
        .order("created_at")
        .execute()
    )
    rows = check_response(response, "list pending quotations")
    return [str(row["id"]) for row in rows]


def move_to_seller(quotation_id: str, from_seller_id: str, to_seller_id: str) -> bool:
    """
    Hand a PENDING quotation from one seller to another.

    Guarded on the current seller and status; returns False if the quotation
    was changed or reassigned meanwhile.
    """

    response = (
        get_supabase().table(_QUOTATIONS_TABLE)
        .update({"seller_id": to_seller_id})
        .eq("id", quotation_id)
        .eq("seller_id", from_seller_id)
        .eq("status", QuotationStatus.PENDING.value)
        .execute()
    )
    rows = check_response(response, "reassign quotation")
    return bool(rows)


def expire_pending_before(as_of: datetime) -> int:
    """Mark PENDING quotations whose expires_at is before `as_of` as EXPIRED. Returns the count."""

    response = (
        get_supabase().table(_QUOTATIONS_TABLE)
        .update({"status": QuotationStatus.EXPIRED.value})
        .eq("status", QuotationStatus.PENDING.value)
        .lt("expires_at", to_iso_utc(as_of, name="as_of"))
        .execute()
    )
    rows = check_response(response, "expire quotations")
    return len(rows)


__all__ = [
    "insert_quotation",
    "get_quotation",
    "set_seller",
    "save_status",
    "list_pending_ids",
    "move_to_seller",
    "expire_pending_before",
]
