"""
main.py
--------
Demo runner for the Spending Pattern & Insight Engine.

Reads a transactions CSV, runs pattern detection plus insight generation
and prints a console summary. Nothing is written to disk.

Usage (from the project root):
    python main.py --input path/to/transactions.csv

    # With optional arguments:
    python main.py --input txns.csv --bucket quarterly
    python main.py --input txns.csv --min-significance high
"""

import sys
import os
import argparse
import logging
import pandas as pd

# Ensure project root is on path (for runs from any working directory)
PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, PROJECT_ROOT)

from core.models import Significance
from pipeline import SpendingInsightsPipeline, insights_to_frame, patterns_to_frame, projections_to_frame


logger = logging.getLogger("main")


# =============================================================================
# ARGUMENT PARSING
# =============================================================================

def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Spending Pattern & Insight Engine: detect patterns and generate insights with projections."
    )
    parser.add_argument(
        "--input", type=str, required=True,
        help="Path to input transactions CSV (columns: id, date, amount, type, category, ...)."
    )
    parser.add_argument(
        "--bucket", type=str, default="monthly",
        choices=["weekly", "monthly", "quarterly", "yearly"],
        help="Period bucket for insights and projections. Default: monthly."
    )
    parser.add_argument(
        "--min-significance", type=str, default="low",
        choices=["low", "medium", "high", "critical"],
        help="Minimum pattern significance to display. Default: low (show all)."
    )
    parser.add_argument(
        "--log-level", type=str, default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    return parser.parse_args(argv)


# =============================================================================
# MAIN
# =============================================================================

def main(argv=None):
    args = parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # --- Load transactions ---
    logger.info(f"Loading transactions from: {args.input}")
    if not os.path.exists(args.input):
        logger.error(f"Input file not found: {args.input}")
        sys.exit(1)

    transactions = pd.read_csv(args.input)
    logger.info(f"Loaded {len(transactions):,} transactions.")

    # --- Run engine ---
    pipeline = SpendingInsightsPipeline()
    patterns = pipeline.detect_patterns(transactions)
    insights, projections, summary = pipeline.run(transactions, args.bucket)

    # --- Apply significance filter ---
    min_rank = Significance(args.min_significance).rank
    shown = [p for p in patterns if p.significance.rank >= min_rank]
    logger.info(
        f"After filtering (>= {args.min_significance}): {len(shown):,} of {len(patterns):,} patterns."
    )

    _print_summary(patterns_to_frame(shown), insights_to_frame(insights), projections_to_frame(projections), summary)


def _print_summary(patterns: pd.DataFrame, insights: pd.DataFrame, projections: pd.DataFrame, summary) -> None:
    """Prints a clean summary table to the console."""
    print("\n" + "=" * 80)
    print("  SPENDING PATTERNS")
    print("=" * 80)
    if patterns.empty:
        print("\n  No patterns to display.\n")
    else:
        for _, row in patterns.iterrows():
            print(f"    [{row['significance']:8s}] {row['name']:45s} conf={row['confidence']:.2f}")

    print("\n" + "=" * 80)
    print("  INSIGHTS")
    print("=" * 80)
    if insights.empty:
        print("\n  No insights to display.\n")
    else:
        for _, row in insights.iterrows():
            print(f"    [{row['severity']:8s}] {row['title']}")
            print(f"               {row['description']}")

    print("\n" + "=" * 80)
    print("  PROJECTIONS")
    print("=" * 80)
    if projections.empty:
        print("\n  Not enough history to project.\n")
    else:
        for _, row in projections.iterrows():
            print(
                f"    {row['period']:12s} spend={row['predicted_spending']:>10,.2f}  "
                f"income={row['predicted_income']:>10,.2f}  conf={row['confidence']:.0f}%  trend={row['trend']}"
            )

    print(f"\n  Periods: {summary.total_periods}, average spend: {summary.average_spending:,.2f}, "
          f"average income: {summary.average_income:,.2f}, overall: {summary.overall_trend.value}")
    print("=" * 80 + "\n")


if __name__ == "__main__":
    main()
