#!/usr/bin/env python3
"""
Pricing Rule Seeding Script

Loads pricing tiers from a CSV file into the pricing_rules table with:
- Per-row validation (category, inclusive range, non-negative fees)
- Overlap check across the whole file before anything is written
- Summary statistics and error listing

CSV columns: categoria, faixa_min, faixa_max, mensalidade, cota_participacao
(cota_participacao may be empty).

Usage:
    python seed_pricing_rules.py path/to/rules.csv
    python seed_pricing_rules.py path/to/rules.csv --dry-run
"""

from __future__ import annotations

import argparse
import csv
import sys
from dataclasses import dataclass, field
from pathlib import Path

# Add parent directory to path to import modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from domain.errors import InvalidConfigurationError
from domain.pricing import PricingRule, validate_rule_set
from services.pricing_service import create_pricing_rule

REQUIRED_COLUMNS = ("categoria", "faixa_min", "faixa_max", "mensalidade")


@dataclass
class SeedResult:
    """Results from a seeding run."""
    total_rows: int = 0
    created: int = 0
    failed: int = 0
    errors: list[dict] = field(default_factory=list)


def parse_rules(csv_path: str, result: SeedResult) -> list[PricingRule]:
    """
    Parse and validate every row; invalid rows are recorded in `result.errors`.

    Rules get placeholder ids (row numbers) until they are stored.
    """
    rules: list[PricingRule] = []

    with open(csv_path, "r", encoding="utf-8-sig") as f:
        reader = csv.DictReader(f)
        missing = [c for c in REQUIRED_COLUMNS if c not in (reader.fieldnames or [])]
        if missing:
            raise ValueError(f"CSV is missing columns: {', '.join(missing)}")

        for row_num, row in enumerate(reader, start=2):
            result.total_rows += 1
            quota = (row.get("cota_participacao") or "").strip()
            try:
                rules.append(PricingRule.create(
                    rule_id=f"row-{row_num}",
                    category=row["categoria"].strip().upper(),
                    range_min=row["faixa_min"].strip(),
                    range_max=row["faixa_max"].strip(),
                    monthly_fee=row["mensalidade"].strip(),
                    participation_quota=quota or None,
                ))
            except (TypeError, ValueError) as e:
                result.failed += 1
                result.errors.append({"row_num": row_num, "error": str(e)})

    return rules


def seed_rules(csv_path: str, dry_run: bool = False) -> SeedResult:
    result = SeedResult()
    rules = parse_rules(csv_path, result)

    try:
        validate_rule_set(rules)
    except InvalidConfigurationError as e:
        result.errors.append({"row_num": "N/A", "error": str(e)})
        result.failed += len(rules)
        return result

    if dry_run:
        print(f"Dry run: {len(rules)} rules parsed, nothing written")
        return result

    for rule in rules:
        try:
            create_pricing_rule(
                category=rule.category,
                range_min=rule.range_min,
                range_max=rule.range_max,
                monthly_fee=rule.monthly_fee,
                participation_quota=rule.participation_quota,
            )
            result.created += 1
        except Exception as e:
            result.failed += 1
            result.errors.append({"row_num": rule.rule_id, "error": str(e)})

    return result


def print_summary(result: SeedResult) -> None:
    """Print seeding summary statistics."""
    print()
    print("=" * 60)
    print("SEEDING SUMMARY")
    print("=" * 60)
    print(f"Total Rows:       {result.total_rows}")
    print(f"Created:          {result.created}")
    print(f"Failed:           {result.failed}")
    print()

    if result.errors:
        print("Errors:")
        for error in result.errors[:10]:
            print(f"  - Row {error['row_num']}: {error['error']}")
        if len(result.errors) > 10:
            print(f"  ... and {len(result.errors) - 10} more")
    else:
        print("No errors!")

    print("=" * 60)


def main() -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Seed pricing rules from CSV into Supabase",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Validate only
  python seed_pricing_rules.py rules.csv --dry-run

  # Create the rules
  python seed_pricing_rules.py rules.csv
        """
    )

    parser.add_argument(
        "csv_path",
        help="Path to the CSV file with pricing tiers"
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Parse and validate without writing to the database"
    )

    args = parser.parse_args()

    try:
        result = seed_rules(args.csv_path, dry_run=args.dry_run)
        print_summary(result)
        return 1 if result.failed else 0

    except KeyboardInterrupt:
        print("\n\nSeeding interrupted by user")
        return 130

    except Exception as e:
        print(f"\nFATAL ERROR: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
