#!/usr/bin/env python3
"""
Round-Robin Simulation

Runs the lead distribution offline against a synthetic roster and prints how
many leads each seller received. Useful to check fairness and the effect of
a distribution method or pending-lead limit before changing the live config.

Usage:
    python simulate_round_robin.py --sellers 4 --leads 20
    python simulate_round_robin.py --sellers 5 --leads 50 --method LOAD_BALANCE --limit 3
"""

from __future__ import annotations

import argparse
import random
import sys
from collections import Counter
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Add parent directory to path to import modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from domain.errors import InvalidConfigurationError
from domain.round_robin import DistributionMethod, RoundRobinConfig, decide_assignment
from domain.seller import Seller, SellerStatus, apply_assignment_update


def build_roster(count: int, seed: int) -> list[Seller]:
    rng = random.Random(seed)
    base = datetime(2025, 1, 1, tzinfo=timezone.utc)
    return [
        Seller(
            seller_id=f"seller-{i + 1}",
            name=f"Seller {i + 1}",
            status=SellerStatus.ACTIVE,
            created_at=base + timedelta(days=i),
            conversion_rate=round(rng.uniform(0.05, 0.4), 2),
            avg_response_time_hours=round(rng.uniform(0.5, 12.0), 1),
        )
        for i in range(count)
    ]


def simulate(
    sellers: list[Seller],
    leads: int,
    config: RoundRobinConfig,
    close_probability: float,
    seed: int,
) -> tuple[Counter, int]:
    """
    Distribute `leads` leads one minute apart.

    After each lead, every seller's pending leads close with
    `close_probability` so load-based limits have something to do.
    Returns (leads per seller, unassigned leads).
    """
    rng = random.Random(seed)
    roster = {s.seller_id: s for s in sellers}
    received: Counter = Counter()
    unassigned = 0
    now = datetime(2025, 2, 1, tzinfo=timezone.utc)

    for _ in range(leads):
        now += timedelta(minutes=1)
        decision = decide_assignment(list(roster.values()), config, now)
        if decision.seller is None or decision.update is None:
            unassigned += 1
        else:
            seller = apply_assignment_update(decision.seller, decision.update)
            roster[seller.seller_id] = replace(seller, pending_count=seller.pending_count + 1)
            received[seller.seller_id] += 1

        for seller_id, seller in roster.items():
            if seller.pending_count and rng.random() < close_probability:
                roster[seller_id] = replace(seller, pending_count=seller.pending_count - 1)

    return received, unassigned


def main() -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Simulate round-robin lead distribution",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--sellers", type=int, default=3, help="Number of sellers (default: 3)")
    parser.add_argument("--leads", type=int, default=9, help="Number of leads (default: 9)")
    parser.add_argument(
        "--method",
        default=DistributionMethod.SEQUENTIAL.value,
        help="SEQUENTIAL, LOAD_BALANCE, PERFORMANCE or SPEED (default: SEQUENTIAL)"
    )
    parser.add_argument("--limit", type=int, default=None, help="Pending-lead limit (default: none)")
    parser.add_argument(
        "--close-probability",
        type=float,
        default=0.3,
        help="Chance a pending lead closes after each new lead (default: 0.3)"
    )
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")

    args = parser.parse_args()

    try:
        config = RoundRobinConfig.from_mapping({"method": args.method, "pending_lead_limit": args.limit})
    except InvalidConfigurationError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2

    sellers = build_roster(args.sellers, args.seed)
    received, unassigned = simulate(sellers, args.leads, config, args.close_probability, args.seed)

    print("=" * 60)
    print(f"SIMULATION: {args.leads} leads, {args.sellers} sellers, {config.method.value}")
    print("=" * 60)
    for seller in sellers:
        print(
            f"{seller.name:<12} leads={received[seller.seller_id]:<4} "
            f"conversion={seller.conversion_rate:<5} response_h={seller.avg_response_time_hours}"
        )
    print()
    print(f"Unassigned:       {unassigned}")
    if received:
        print(f"Spread (max-min): {max(received.values()) - min(received[s.seller_id] for s in sellers)}")
    print("=" * 60)
    return 0


if __name__ == "__main__":
    sys.exit(main())
