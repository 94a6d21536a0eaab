"""
Domain: Round-robin lead distribution.

Selection rules:
- Eligible sellers are ACTIVE, participate in round-robin and, when
  `skip_overloaded` is set with a pending-lead limit, have fewer pending leads
  than the limit. A limit of 0 means unlimited.
- The configured method contributes a leading sort key; the round-robin key
  always follows it:
  1. last_assignment_at is None sorts first (never assigned),
  2. then oldest last_assignment_at,
  3. then oldest created_at.
- SEQUENTIAL with a manual queue (any participating seller has a
  queue_position) orders by queue position instead; unqueued sellers follow
  the queued ones in round-robin order. The assignment write-back moves the
  selected seller past the tail in the same guarded row update.

All functions are pure. Nothing here mutates a Seller.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Collection, Mapping, Optional, Sequence, Tuple

from .errors import InvalidConfigurationError
from .seller import AssignmentUpdate, Seller, prepare_assignment_update

MAX_PENDING_LEAD_LIMIT = 100


class DistributionMethod(str, Enum):
    SEQUENTIAL = "SEQUENTIAL"
    LOAD_BALANCE = "LOAD_BALANCE"
    PERFORMANCE = "PERFORMANCE"
    SPEED = "SPEED"

    @staticmethod
    def parse(value: Any) -> "DistributionMethod":
        """Resolve a method name; unknown names are configuration errors."""

        if isinstance(value, DistributionMethod):
            return value
        try:
            return DistributionMethod(str(value).strip().upper())
        except ValueError as e:
            allowed = ", ".join(m.value for m in DistributionMethod)
            raise InvalidConfigurationError(
                f"Unknown distribution method {value!r}; expected one of: {allowed}"
            ) from e


def _read_flag(data: Mapping[str, Any], name: str, default: bool = True) -> bool:
    """Missing or NULL takes the default; anything but a real bool is rejected."""

    value = data.get(name)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise InvalidConfigurationError(f"{name} must be true or false, got {value!r}")
    return value


@dataclass(frozen=True, slots=True)
class RoundRobinConfig:
    method: DistributionMethod = DistributionMethod.SEQUENTIAL
    pending_lead_limit: Optional[int] = None
    skip_overloaded: bool = True
    notify_when_all_overloaded: bool = True

    def __post_init__(self) -> None:
        if not isinstance(self.method, DistributionMethod):
            raise InvalidConfigurationError("method must be a DistributionMethod")
        limit = self.pending_lead_limit
        if limit is not None:
            if isinstance(limit, bool) or not isinstance(limit, int):
                raise InvalidConfigurationError("pending_lead_limit must be an integer or None")
            if not 0 <= limit <= MAX_PENDING_LEAD_LIMIT:
                raise InvalidConfigurationError(
                    f"pending_lead_limit must be between 0 and {MAX_PENDING_LEAD_LIMIT}"
                )

    @staticmethod
    def from_mapping(data: Mapping[str, Any]) -> "RoundRobinConfig":
        """
        Build a config from a stored row or request payload.

        Accepts snake_case keys. Missing keys take defaults; malformed values raise
        InvalidConfigurationError here, at load time, never during selection.
        """

        limit = data.get("pending_lead_limit")
        if limit is not None and not isinstance(limit, int):
            try:
                limit = int(str(limit))
            except ValueError as e:
                raise InvalidConfigurationError(f"Invalid pending_lead_limit: {limit!r}") from e

        return RoundRobinConfig(
            method=DistributionMethod.parse(data.get("method") or DistributionMethod.SEQUENTIAL),
            pending_lead_limit=limit,
            skip_overloaded=_read_flag(data, "skip_overloaded"),
            notify_when_all_overloaded=_read_flag(data, "notify_when_all_overloaded"),
        )

    def to_mapping(self) -> dict[str, Any]:
        return {
            "method": self.method.value,
            "pending_lead_limit": self.pending_lead_limit,
            "skip_overloaded": self.skip_overloaded,
            "notify_when_all_overloaded": self.notify_when_all_overloaded,
        }


class AssignmentReason(str, Enum):
    ASSIGNED = "ASSIGNED"
    NO_ELIGIBLE_SELLER = "NO_ELIGIBLE_SELLER"
    ALL_OVERLOADED = "ALL_OVERLOADED"


@dataclass(frozen=True, slots=True)
class AssignmentDecision:
    """Outcome of one selection round; `seller` is None when nobody can take the lead."""

    seller: Optional[Seller]
    reason: AssignmentReason
    update: Optional[AssignmentUpdate] = None
    notify_admin: bool = False

    @property
    def assigned(self) -> bool:
        return self.seller is not None


SortKey = Tuple[Any, ...]


def round_robin_key(seller: Seller) -> SortKey:
    """Never-assigned first, then oldest assignment, then oldest seller."""

    if seller.last_assignment_at is None:
        return (0, seller.created_at, seller.created_at)
    return (1, seller.last_assignment_at, seller.created_at)


def _queue_key(seller: Seller) -> SortKey:
    if seller.queue_position is None:
        return (1, 0) + round_robin_key(seller)
    return (0, seller.queue_position) + round_robin_key(seller)


def _load_key(seller: Seller) -> SortKey:
    return (seller.pending_count,) + round_robin_key(seller)


def _performance_key(seller: Seller) -> SortKey:
    return (-seller.conversion_rate,) + round_robin_key(seller)


def _speed_key(seller: Seller) -> SortKey:
    hours = seller.avg_response_time_hours
    if hours is None:
        return (1, 0.0) + round_robin_key(seller)
    return (0, hours) + round_robin_key(seller)


_METHOD_KEYS: dict[DistributionMethod, Callable[[Seller], SortKey]] = {
    DistributionMethod.SEQUENTIAL: round_robin_key,
    DistributionMethod.LOAD_BALANCE: _load_key,
    DistributionMethod.PERFORMANCE: _performance_key,
    DistributionMethod.SPEED: _speed_key,
}


def uses_manual_queue(sellers: Sequence[Seller]) -> bool:
    """True once an administrator has materialized the queue for participating sellers."""

    return any(s.queue_position is not None for s in sellers if s.in_rotation)


def sort_key_for(config: RoundRobinConfig, sellers: Sequence[Seller]) -> Callable[[Seller], SortKey]:
    if config.method == DistributionMethod.SEQUENTIAL and uses_manual_queue(sellers):
        return _queue_key
    return _METHOD_KEYS[config.method]


def is_overloaded(seller: Seller, config: RoundRobinConfig) -> bool:
    """A limit of None or 0 means unlimited."""
    limit = config.pending_lead_limit
    return bool(limit) and seller.pending_count >= limit


def queue_tail_for(sellers: Sequence[Seller], config: RoundRobinConfig) -> Optional[int]:
    """
    Position past the current tail of the manual queue, or None when
    assignments do not follow a manual queue.

    Gaps are fine: only the relative order of positions matters.
    """

    if config.method != DistributionMethod.SEQUENTIAL or not uses_manual_queue(sellers):
        return None
    return max(s.queue_position for s in sellers if s.queue_position is not None) + 1


def eligible_sellers(sellers: Sequence[Seller], config: RoundRobinConfig) -> list[Seller]:
    """Sellers that may receive the next lead, in input order."""

    return [
        s for s in sellers
        if s.in_rotation and not (config.skip_overloaded and is_overloaded(s, config))
    ]


def order_sellers(sellers: Sequence[Seller], config: Optional[RoundRobinConfig] = None) -> list[Seller]:
    """Eligible sellers sorted into distribution order (head receives the next lead)."""

    config = config or RoundRobinConfig()
    candidates = eligible_sellers(sellers, config)
    return sorted(candidates, key=sort_key_for(config, sellers))


def select_next_seller(
    sellers: Sequence[Seller],
    config: Optional[RoundRobinConfig] = None,
) -> Optional[Seller]:
    """
    Pick the seller who receives the next lead.

    Returns None when no seller is eligible; that is an expected outcome, not an error.
    """

    ordered = order_sellers(sellers, config)
    return ordered[0] if ordered else None


def decide_assignment(
    sellers: Sequence[Seller],
    config: RoundRobinConfig,
    now: datetime,
    exclude: Collection[str] = (),
) -> AssignmentDecision:
    """
    Select a seller and build the write-back the caller must persist.

    Sellers whose id is in `exclude` are never selected (used when moving a
    seller's leads to the others). With a manual queue the write-back also
    moves the selected seller past the tail of the whole roster.

    When every active participating seller was skipped for load the reason is
    ALL_OVERLOADED and `notify_admin` follows `notify_when_all_overloaded`.
    """

    pool = [s for s in sellers if s.seller_id not in exclude]
    seller = select_next_seller(pool, config)
    if seller is not None:
        return AssignmentDecision(
            seller=seller,
            reason=AssignmentReason.ASSIGNED,
            update=prepare_assignment_update(seller, now, queue_tail_for(sellers, config)),
        )

    in_rotation = [s for s in pool if s.in_rotation]
    if in_rotation and config.skip_overloaded and all(is_overloaded(s, config) for s in in_rotation):
        return AssignmentDecision(
            seller=None,
            reason=AssignmentReason.ALL_OVERLOADED,
            notify_admin=config.notify_when_all_overloaded,
        )

    return AssignmentDecision(seller=None, reason=AssignmentReason.NO_ELIGIBLE_SELLER)


__all__ = [
    "DistributionMethod",
    "RoundRobinConfig",
    "AssignmentReason",
    "AssignmentDecision",
    "round_robin_key",
    "uses_manual_queue",
    "sort_key_for",
    "is_overloaded",
    "queue_tail_for",
    "eligible_sellers",
    "order_sellers",
    "select_next_seller",
    "decide_assignment",
]
