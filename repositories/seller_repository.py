"""
Seller repository (persistence).

Reads the seller roster and round-robin configuration, and writes back
assignment tracking and queue positions. No selection rules live here; see
`domain.round_robin`.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Any, List, Mapping, Optional

from domain.round_robin import RoundRobinConfig
from domain.seller import AssignmentUpdate, Seller, SellerRole, SellerStatus
from repositories.client import check_response, get_supabase
from repositories.timestamps import parse_optional_datetime, parse_utc_datetime, to_iso_utc

logger = logging.getLogger(__name__)

# Keep these aligned with your database schema.
_SELLERS_TABLE: str = "sellers"
_CONFIG_TABLE: str = "round_robin_config"
_QUOTATIONS_TABLE: str = "quotations"


def _row_to_seller(row: Mapping[str, Any], pending_count: int = 0) -> Seller:
    """Convert a Supabase row into a Seller."""

    avg_response = row.get("avg_response_time_hours")
    position = row.get("round_robin_position")
    return Seller(
        seller_id=str(row["id"]),
        name=str(row["name"]),
        status=SellerStatus(str(row.get("status") or SellerStatus.ACTIVE.value)),
        role=SellerRole(str(row.get("role") or SellerRole.SELLER.value)),
        created_at=parse_utc_datetime(row["created_at"]),
        last_assignment_at=parse_optional_datetime(row.get("last_assignment_at")),
        assignment_count=int(row.get("assignment_count") or 0),
        pending_count=pending_count,
        participates_in_round_robin=bool(row.get("participate_round_robin", True)),
        queue_position=int(position) if position is not None else None,
        conversion_rate=float(row.get("conversion_rate") or 0.0),
        avg_response_time_hours=float(avg_response) if avg_response is not None else None,
    )


def count_pending_leads() -> Counter[str]:
    """Number of PENDING quotations per seller id."""

    response = (
        get_supabase().table(_QUOTATIONS_TABLE)
        .select("seller_id")
        .eq("status", "PENDING")
        .not_.is_("seller_id", "null")
        .execute()
    )
    rows = check_response(response, "count pending leads")
    return Counter(str(row["seller_id"]) for row in rows)


def list_sellers() -> List[Seller]:
    """All sellers with their current pending-lead counts."""

    response = get_supabase().table(_SELLERS_TABLE).select("*").execute()
    rows = check_response(response, "list sellers")
    pending = count_pending_leads()
    return [_row_to_seller(row, pending.get(str(row["id"]), 0)) for row in rows]


def get_seller(seller_id: str) -> Optional[Seller]:
    response = get_supabase().table(_SELLERS_TABLE).select("*").eq("id", seller_id).limit(1).execute()
    rows = check_response(response, "get seller")
    if not rows:
        return None
    return _row_to_seller(rows[0], count_pending_leads().get(seller_id, 0))


def update_status(seller_id: str, status: SellerStatus) -> Optional[Seller]:
    """Set a seller's status. Returns None if the seller does not exist."""

    response = (
        get_supabase().table(_SELLERS_TABLE)
        .update({"status": status.value})
        .eq("id", seller_id)
        .execute()
    )
    rows = check_response(response, "update seller status")
    return _row_to_seller(rows[0]) if rows else None


def record_assignment(update: AssignmentUpdate) -> bool:
    """
    Persist an assignment write-back with a compare-and-set guard.

    The row is only updated while its assignment_count still equals
    `update.expected_assignment_count` and, for a manual-queue move, its
    round_robin_position still equals `update.expected_queue_position`.
    Returns False when another request got there first; the caller should
    re-read and select again.
    """

    payload: dict[str, Any] = {
        "last_assignment_at": to_iso_utc(update.last_assignment_at, name="last_assignment_at"),
        "assignment_count": update.assignment_count,
    }
    if update.moves_in_queue:
        payload["round_robin_position"] = update.queue_position

    query = (
        get_supabase().table(_SELLERS_TABLE)
        .update(payload)
        .eq("id", update.seller_id)
        .eq("assignment_count", update.expected_assignment_count)
    )
    if update.moves_in_queue:
        if update.expected_queue_position is None:
            query = query.is_("round_robin_position", "null")
        else:
            query = query.eq("round_robin_position", update.expected_queue_position)

    response = query.execute()
    rows = check_response(response, "record seller assignment")
    return bool(rows)


def save_queue_positions(positions: Mapping[str, int]) -> None:
    """Persist manual queue positions (seller id -> 0-based position)."""

    client = get_supabase()
    for seller_id, position in positions.items():
        response = (
            client.table(_SELLERS_TABLE)
            .update({"round_robin_position": position})
            .eq("id", seller_id)
            .execute()
        )
        check_response(response, "save queue position")
    logger.info("Saved round-robin queue positions for %d sellers", len(positions))


def get_round_robin_config() -> RoundRobinConfig:
    """
    Load the round-robin configuration.

    Falls back to defaults when no row exists. Malformed stored values raise
    InvalidConfigurationError.
    """

    response = get_supabase().table(_CONFIG_TABLE).select("*").limit(1).execute()
    rows = check_response(response, "fetch round-robin config")
    if not rows:
        return RoundRobinConfig()
    return RoundRobinConfig.from_mapping(rows[0])


def save_round_robin_config(config: RoundRobinConfig) -> RoundRobinConfig:
    """Replace the stored configuration; the config is validated on construction."""

    client = get_supabase()
    response = client.table(_CONFIG_TABLE).select("id").limit(1).execute()
    rows = check_response(response, "fetch round-robin config")

    payload = config.to_mapping()
    if rows:
        response = client.table(_CONFIG_TABLE).update(payload).eq("id", rows[0]["id"]).execute()
    else:
        response = client.table(_CONFIG_TABLE).insert(payload).execute()
    check_response(response, "save round-robin config")
    return config


__all__ = [
    "count_pending_leads",
    "list_sellers",
    "get_seller",
    "update_status",
    "record_assignment",
    "save_queue_positions",
    "get_round_robin_config",
    "save_round_robin_config",
]
