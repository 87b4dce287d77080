from datetime import date

from budget_dashboard.budget_engine import (
    classify_transactions,
    compute_budget_summary,
    compute_category_progress,
    forecast_month_end,
    project_yearly,
)
from budget_dashboard.models import Category, Transaction


def _categories():
    return [
        Category(id='rent', user_id='u1', name='Rent', type='fixed', target_amount=85000),
        Category(id='phone', user_id='u1', name='Phone', type='fixed'),
        Category(id='food', user_id='u1', name='Food', type='variable', target_percentage=15),
        Category(id='fun', user_id='u1', name='Entertainment', type='variable', target_percentage=0),
    ]


def _txn(txn_id, amount, category_id=None, txn_type='expense', day=5):
    return Transaction(
        id=txn_id,
        user_id='u1',
        amount=amount,
        date=date(2026, 4, day),
        type=txn_type,
        category_id=category_id,
    )


def _sample_transactions():
    return [
        _txn('t1', 85000, 'rent'),
        _txn('t2', 16000, 'food'),
        _txn('t3', 2000, 'fun'),
    ]


def test_summary_with_target_income_and_fixed_rent():
    summary = compute_budget_summary(300000, _categories(), [_txn('t1', 85000, 'rent')])

    assert summary.total_income == 300000
    assert summary.fixed_costs == 85000
    assert summary.disposable_income == 215000
    assert summary.variable_spent == 0
    assert summary.remaining == 215000


def test_summary_identities_hold():
    summary = compute_budget_summary(300000, _categories(), _sample_transactions())

    assert summary.disposable_income + summary.fixed_costs == summary.total_income
    assert summary.remaining == summary.disposable_income - summary.variable_spent
    assert summary.variable_spent == 18000


def test_summary_uses_actual_income_when_above_target():
    transactions = _sample_transactions() + [_txn('pay', 350000, txn_type='income')]
    summary = compute_budget_summary(300000, _categories(), transactions)

    assert summary.total_income == 350000
    assert summary.disposable_income == 265000


def test_summary_with_no_transactions_is_all_zero_spend():
    summary = compute_budget_summary(0, _categories(), [])

    assert summary.total_income == 0
    assert summary.fixed_costs == 0
    assert summary.variable_spent == 0
    assert summary.remaining == 0


def test_summary_allows_negative_disposable_income():
    summary = compute_budget_summary(50000, _categories(), [_txn('t1', 85000, 'rent')])

    assert summary.disposable_income == -35000
    assert summary.remaining == -35000


def test_variable_progress_against_disposable_income():
    progress = compute_category_progress(_categories(), [_txn('t2', 16000, 'food')], 215000)
    food = next(p for p in progress if p.id == 'food')

    assert food.target == 32250
    assert round(food.progress, 1) == 49.6
    assert food.gap == 16250
    assert not food.is_over_budget


def test_fixed_category_without_target_amount_reads_as_fully_used():
    progress = compute_category_progress(_categories(), [_txn('t4', 7000, 'phone')], 215000)
    phone = next(p for p in progress if p.id == 'phone')

    assert phone.target == 7000
    assert phone.progress == 100


def test_zero_target_means_zero_progress():
    progress = compute_category_progress(_categories(), [_txn('t3', 2000, 'fun')], 215000)
    fun = next(p for p in progress if p.id == 'fun')

    assert fun.target == 0
    assert fun.current_spend == 2000
    assert fun.progress == 0


def test_progress_is_not_capped():
    progress = compute_category_progress(_categories(), [_txn('t1', 170000, 'rent')], 215000)
    rent = next(p for p in progress if p.id == 'rent')

    assert rent.progress == 200
    assert rent.is_over_budget


def test_progress_keeps_category_order():
    categories = _categories()
    progress = compute_category_progress(categories, _sample_transactions(), 215000)

    assert [p.id for p in progress] == [c.id for c in categories]


def test_adding_expense_only_moves_its_own_category():
    categories = _categories()
    before = compute_category_progress(categories, _sample_transactions(), 215000)
    after = compute_category_progress(categories, _sample_transactions() + [_txn('t9', 500, 'food')], 215000)

    for old, new in zip(before, after):
        if old.id == 'food':
            assert new.current_spend > old.current_spend
            assert new.progress > old.progress
        else:
            assert new == old


def test_income_does_not_count_as_category_spend():
    transactions = [_txn('pay', 300000, 'food', txn_type='income')]
    progress = compute_category_progress(_categories(), transactions, 215000)

    assert all(p.current_spend == 0 for p in progress)


def test_engine_functions_are_idempotent_and_do_not_mutate_inputs():
    categories = _categories()
    transactions = _sample_transactions()
    snapshot = list(transactions)

    assert compute_budget_summary(300000, categories, transactions) == compute_budget_summary(
        300000, categories, transactions
    )
    assert compute_category_progress(categories, transactions, 215000) == compute_category_progress(
        categories, transactions, 215000
    )
    now = date(2026, 4, 10)
    assert forecast_month_end(transactions, 300000, 85000, now) == forecast_month_end(
        transactions, 300000, 85000, now
    )
    assert project_yearly(transactions, 300000, now) == project_yearly(transactions, 300000, now)
    assert categories == _categories()
    assert transactions == snapshot


def test_classify_puts_orphaned_and_missing_categories_in_uncategorized():
    transactions = [
        _txn('t1', 85000, 'rent'),
        _txn('t2', 1000, 'deleted-category'),
        _txn('t3', 500, None),
        _txn('pay', 300000, None, txn_type='income'),
    ]
    buckets = classify_transactions(_categories(), transactions)

    assert [t.id for t in buckets['fixed']] == ['t1']
    assert [t.id for t in buckets['uncategorized']] == ['t2', 't3']
    assert [t.id for t in buckets['income']] == ['pay']
    assert buckets['variable'] == []


def test_uncategorized_expenses_are_outside_fixed_and_variable():
    transactions = _sample_transactions() + [_txn('t5', 9999, 'deleted-category')]
    summary = compute_budget_summary(300000, _categories(), transactions)

    assert summary.fixed_costs == 85000
    assert summary.variable_spent == 18000
