from datetime import date

import pandas as pd

from budget_dashboard import analytics
from budget_dashboard.budget_engine import compute_category_progress
from budget_dashboard.models import Category, Transaction


def _categories():
    return [
        Category(id='rent', user_id='u1', name='Rent', type='fixed', target_amount=85000),
        Category(id='food', user_id='u1', name='Food', type='variable', target_percentage=10),
        Category(id='fun', user_id='u1', name='Entertainment', type='variable', target_percentage=5),
    ]


def _sample_transactions():
    return [
        Transaction(id='pay', user_id='u1', amount=300000, date=date(2026, 4, 1), type='income'),
        Transaction(id='t1', user_id='u1', amount=85000, date=date(2026, 4, 1), type='expense', category_id='rent'),
        Transaction(id='t2', user_id='u1', amount=30000, date=date(2026, 4, 3), type='expense', category_id='food',
                    description='groceries'),
        Transaction(id='t3', user_id='u1', amount=5000, date=date(2026, 4, 4), type='expense', category_id='gone'),
        Transaction(id='t4', user_id='u1', amount=500, date=date(2026, 2, 10), type='expense', category_id='food'),
        Transaction(id='t5', user_id='u1', amount=700, date=date(2025, 12, 31), type='expense', category_id='food'),
    ]


def test_transactions_frame_resolves_category_names():
    df = analytics.transactions_frame(_sample_transactions(), _categories())

    assert list(df.columns) == analytics.TRANSACTION_COLUMNS
    assert len(df) == 6
    row = df[df['Description'] == 'groceries'].iloc[0]
    assert row['Category'] == 'Food'
    assert row['Category Type'] == 'variable'
    orphan = df.iloc[3]
    assert orphan['Category'] == 'Uncategorized'
    assert orphan['Category Type'] == ''


def test_transactions_frame_empty():
    df = analytics.transactions_frame([], _categories())

    assert df.empty
    assert list(df.columns) == analytics.TRANSACTION_COLUMNS


def test_this_month_filters_by_calendar_month():
    result = analytics.this_month(_sample_transactions(), date(2026, 4, 20))

    assert [t.id for t in result] == ['pay', 't1', 't2', 't3']


def test_monthly_stats_reports_zero_for_empty_months():
    stats = analytics.monthly_stats(_sample_transactions(), date(2026, 4, 15), months=3)

    assert [s.month for s in stats] == ['2026-02', '2026-03', '2026-04']
    assert (stats[0].income, stats[0].expense) == (0, 500)
    assert (stats[1].income, stats[1].expense) == (0, 0)
    assert (stats[2].income, stats[2].expense) == (300000, 120000)
    assert stats[2].surplus == 180000


def test_monthly_stats_crosses_year_boundary():
    stats = analytics.monthly_stats(_sample_transactions(), date(2026, 1, 5), months=2)

    assert [s.month for s in stats] == ['2025-12', '2026-01']
    assert stats[0].expense == 700


def test_monthly_stats_without_transactions():
    stats = analytics.monthly_stats([], date(2026, 4, 15), months=6)

    assert len(stats) == 6
    assert all(s.income == 0 and s.expense == 0 for s in stats)


def test_monthly_stats_frame_has_surplus_column():
    stats = analytics.monthly_stats(_sample_transactions(), date(2026, 4, 15), months=2)
    df = analytics.monthly_stats_frame(stats)

    assert list(df['Surplus']) == [0, 180000]


def test_category_breakdown_sorted_with_percentages():
    april = analytics.this_month(_sample_transactions(), date(2026, 4, 15))
    df = analytics.category_breakdown(_categories(), april)

    assert list(df['Category']) == ['Rent', 'Food', 'Uncategorized']
    assert list(df['Amount']) == [85000, 30000, 5000]
    assert abs(df['Percent'].sum() - 100) < 1e-9


def test_category_breakdown_ignores_income_only():
    income = [t for t in _sample_transactions() if t.is_income]

    assert analytics.category_breakdown(_categories(), income).empty


def test_target_gaps_sorted_by_gap():
    april = analytics.this_month(_sample_transactions(), date(2026, 4, 15))
    progress = compute_category_progress(_categories(), april, 215000)
    gaps = analytics.target_gaps(progress)

    assert list(gaps['Category']) == ['Food', 'Rent', 'Entertainment']
    food = gaps.iloc[0]
    assert food['Target'] == 21500
    assert food['Gap'] == -8500
    assert round(food['Gap %'], 1) == -39.5

    totals = analytics.gap_totals(gaps)
    assert totals == {'under_budget': 10750.0, 'over_budget': 8500.0}


def test_gap_totals_of_empty_table():
    assert analytics.gap_totals(pd.DataFrame(columns=analytics.GAP_COLUMNS)) == {
        'under_budget': 0.0,
        'over_budget': 0.0,
    }
