"""Period analytics over transactions and category progress.

These helpers turn the engine's records into pandas DataFrames for the
dashboard tables and charts: a flat transaction table, trailing monthly
income and expense totals, expense breakdown by category and the
target gap table.
"""

from __future__ import annotations

from datetime import date
from typing import Dict, List, Optional, Sequence

import pandas as pd

from .models import (
    UNCATEGORIZED,
    Category,
    CategoryWithSpend,
    MonthlyStats,
    Transaction,
    to_number,
)

TRANSACTION_COLUMNS = ['Date', 'Type', 'Amount', 'Category', 'Category Type', 'Description']
BREAKDOWN_COLUMNS = ['Category', 'Amount', 'Percent']
GAP_COLUMNS = ['Category', 'Type', 'Target', 'Spent', 'Gap', 'Gap %']


def transactions_frame(
    transactions: Sequence[Transaction],
    categories: Sequence[Category],
) -> pd.DataFrame:
    """Build a flat transaction table joined to category names.

    Args:
        transactions: Transactions to tabulate
        categories: Categories used to resolve ``category_id``

    Returns:
        DataFrame with columns Date, Type, Amount, Category, Category Type
        and Description. Transactions whose category is missing show as
        ``Uncategorized`` with an empty Category Type.
    """
    if not transactions:
        return pd.DataFrame(columns=TRANSACTION_COLUMNS)

    index = {c.id: c for c in categories}
    rows = []
    for txn in transactions:
        category = index.get(txn.category_id) if txn.category_id else None
        rows.append({
            'Date': pd.Timestamp(txn.date),
            'Type': txn.type,
            'Amount': txn.amount,
            'Category': category.name if category else UNCATEGORIZED,
            'Category Type': category.type if category else '',
            'Description': txn.description or '',
        })
    return pd.DataFrame(rows, columns=TRANSACTION_COLUMNS)


def this_month(transactions: Sequence[Transaction], now: Optional[date] = None) -> List[Transaction]:
    """Return the transactions dated in ``now``'s calendar month."""
    if now is None:
        now = date.today()
    return [t for t in transactions if t.date.year == now.year and t.date.month == now.month]


def monthly_stats(
    transactions: Sequence[Transaction],
    now: Optional[date] = None,
    months: int = 6,
) -> List[MonthlyStats]:
    """Calculate income and expense totals for the trailing months.

    Args:
        transactions: Transactions to aggregate
        now: Reference day, its month is the last one reported
        months: Number of calendar months to report

    Returns:
        List of MonthlyStats in chronological order. Months with no
        transactions report zero income and zero expense.

    Example:
        >>> stats = monthly_stats(transactions, date(2026, 4, 15), months=3)
        >>> [s.month for s in stats]
        ['2026-02', '2026-03', '2026-04']
    """
    if now is None:
        now = date.today()
    if months <= 0:
        return []

    end = pd.Period(pd.Timestamp(now), freq='M')
    keys = [str(p) for p in pd.period_range(end=end, periods=months, freq='M')]

    totals = pd.DataFrame(0, index=keys, columns=['income', 'expense'])
    if transactions:
        df = pd.DataFrame({
            'Month': [t.date.strftime('%Y-%m') for t in transactions],
            'Type': [t.type for t in transactions],
            'Amount': [t.amount for t in transactions],
        })
        df = df[df['Month'].isin(keys) & df['Type'].isin(['income', 'expense'])]
        if not df.empty:
            summed = df.groupby(['Month', 'Type'])['Amount'].sum().unstack(fill_value=0)
            totals = totals.add(summed.reindex(index=keys, columns=totals.columns, fill_value=0), fill_value=0)

    return [
        MonthlyStats(
            month=key,
            income=to_number(totals.at[key, 'income']),
            expense=to_number(totals.at[key, 'expense']),
        )
        for key in keys
    ]


def monthly_stats_frame(stats: Sequence[MonthlyStats]) -> pd.DataFrame:
    """Tabulate MonthlyStats with a Surplus column."""
    return pd.DataFrame(
        [{'Month': s.month, 'Income': s.income, 'Expense': s.expense, 'Surplus': s.surplus} for s in stats],
        columns=['Month', 'Income', 'Expense', 'Surplus'],
    )


def category_breakdown(
    categories: Sequence[Category],
    transactions: Sequence[Transaction],
) -> pd.DataFrame:
    """Summarise expenses per category as amounts and shares.

    Args:
        categories: Categories used to resolve names
        transactions: Transactions to summarise; income is ignored

    Returns:
        DataFrame with Category, Amount and Percent (of total expense),
        sorted by Amount descending.
    """
    df = transactions_frame(transactions, categories)
    if df.empty:
        return pd.DataFrame(columns=BREAKDOWN_COLUMNS)

    expenses = df[df['Type'] == 'expense']
    if expenses.empty:
        return pd.DataFrame(columns=BREAKDOWN_COLUMNS)

    by_category = expenses.groupby('Category', sort=False)['Amount'].sum().sort_values(ascending=False)
    total = by_category.sum()
    result = by_category.reset_index()
    result['Percent'] = result['Amount'] / total * 100 if total > 0 else 0.0
    return result[BREAKDOWN_COLUMNS].reset_index(drop=True)


def target_gaps(progress: Sequence[CategoryWithSpend]) -> pd.DataFrame:
    """Tabulate target versus spend per category.

    Gap is ``target - spent``; negative means the category is over
    budget. Gap % is the gap relative to the target and is zero when the
    category has no positive target. Rows are ordered by ascending gap so
    the most overspent categories come first.
    """
    if not progress:
        return pd.DataFrame(columns=GAP_COLUMNS)

    rows = []
    for item in progress:
        gap = item.gap
        rows.append({
            'Category': item.name,
            'Type': item.type,
            'Target': item.target,
            'Spent': item.current_spend,
            'Gap': gap,
            'Gap %': gap / item.target * 100 if item.target > 0 else 0.0,
        })
    frame = pd.DataFrame(rows, columns=GAP_COLUMNS)
    return frame.sort_values('Gap', kind='stable').reset_index(drop=True)


def gap_totals(frame: pd.DataFrame) -> Dict[str, float]:
    """Sum the positive and negative gaps of a :func:`target_gaps` table.

    ``over_budget`` is reported as a positive amount.
    """
    if frame.empty:
        return {'under_budget': 0.0, 'over_budget': 0.0}
    gaps = frame['Gap'].astype(float)
    return {
        'under_budget': float(gaps[gaps > 0].sum()),
        'over_budget': float(-gaps[gaps < 0].sum()),
    }
