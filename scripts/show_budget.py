#!/usr/bin/env python3
"""Print this month's budget, category progress and forecast for a user."""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import date
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from budget_dashboard import analytics, db
from budget_dashboard import budget_engine as engine
from budget_dashboard.config import DEFAULT_USER_ID, get_db_path
from budget_dashboard.export import (
    categories_to_csv,
    export_filename,
    save_export,
    transactions_to_csv,
)
from budget_dashboard.formatting import format_currency


def main(user_id: str, db_path: str, export: bool = False) -> None:
    profile = db.ensure_profile(user_id, db_path)
    categories = db.ensure_default_categories(user_id, db_path)
    transactions = db.get_transactions(user_id, db_path=db_path)

    today = date.today()
    month_txns = analytics.this_month(transactions, today)
    summary = engine.compute_budget_summary(profile.target_income, categories, month_txns)
    progress = engine.compute_category_progress(categories, month_txns, summary.disposable_income)
    forecast = engine.forecast_month_end(month_txns, profile.target_income, summary.fixed_costs, today)

    print(f"Budget for {user_id}, {today:%B %Y}")
    print(f"  Income:      {format_currency(summary.total_income)}")
    print(f"  Fixed costs: {format_currency(summary.fixed_costs)}")
    print(f"  Disposable:  {format_currency(summary.disposable_income)}")
    print(f"  Spent:       {format_currency(summary.variable_spent)}")
    print(f"  Remaining:   {format_currency(summary.remaining)}")

    print("\nCategories:")
    print(analytics.target_gaps(progress).to_string(index=False))

    print(
        f"\nForecast ({forecast.status}): {format_currency(forecast.projected_expense)} by month end, "
        f"gap {format_currency(forecast.budget_gap)}"
    )

    if export:
        for prefix, data in (
            ('transactions', transactions_to_csv(transactions, categories)),
            ('categories', categories_to_csv(categories)),
        ):
            path = save_export(data, export_filename(prefix, today))
            print(f"Wrote {path}")


if __name__ == '__main__':
    parser = argparse.ArgumentParser(description="Show this month's budget.")
    parser.add_argument('--user', default=DEFAULT_USER_ID, help='User whose budget to show')
    parser.add_argument('--db', default=get_db_path(), help='Path to the sqlite database')
    parser.add_argument('--export', action='store_true', help='Also write CSV exports to data/exports')
    parser.add_argument('--verbose', action='store_true', help='Enable debug logging')
    args = parser.parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)
    main(args.user, args.db, export=args.export)
