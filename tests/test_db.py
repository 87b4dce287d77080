"""Tests for the sqlite data layer.

Each test works on its own temporary database file.
"""

from __future__ import annotations

from datetime import date

import pytest

from budget_dashboard import db
from budget_dashboard.budget_engine import classify_transactions
from budget_dashboard.models import (
    UNSET,
    CategoryUpdate,
    ProfileUpdate,
    TransactionFilters,
    TransactionUpdate,
)

USER = 'user-1'


@pytest.fixture
def db_path(tmp_path):
    path = tmp_path / 'budget.db'
    db.init_db(path)
    return path


def _add(db_path, amount, when, txn_type='expense', category_id=None, description=None, user=USER):
    return db.create_transaction(
        user, amount, when, txn_type, category_id=category_id, description=description, db_path=db_path
    )


# Profiles


def test_ensure_profile_creates_defaults(db_path):
    assert db.get_profile(USER, db_path) is None

    profile = db.ensure_profile(USER, db_path)
    assert profile.id == USER
    assert profile.target_income == 300000
    assert profile.salary_day == 25
    assert profile.subscription_tier == 'free'
    assert db.ensure_profile(USER, db_path) == profile


def test_update_profile_only_touches_set_fields(db_path):
    db.ensure_profile(USER, db_path)

    profile = db.update_profile(USER, ProfileUpdate(target_income=280000), db_path)
    assert profile.target_income == 280000
    assert profile.salary_day == 25

    profile = db.update_subscription_tier(USER, 'pro', db_path)
    assert profile.is_pro
    assert profile.target_income == 280000


def test_update_salary_day_rejects_out_of_range(db_path):
    db.ensure_profile(USER, db_path)

    assert db.update_salary_day(USER, 0, db_path) is None
    assert db.update_salary_day(USER, 32, db_path) is None
    assert db.get_profile(USER, db_path).salary_day == 25
    assert db.update_salary_day(USER, 10, db_path).salary_day == 10


def test_update_profile_rejects_invalid_values(db_path):
    with pytest.raises(ValueError):
        db.update_profile(USER, ProfileUpdate(subscription_tier='gold'), db_path)
    with pytest.raises(ValueError):
        db.update_target_income(USER, -1, db_path)


# Categories


def test_default_categories_are_created_once(db_path):
    assert not db.has_categories(USER, db_path)

    categories = db.ensure_default_categories(USER, db_path)
    assert len(categories) == 10
    assert db.has_categories(USER, db_path)
    assert len(db.ensure_default_categories(USER, db_path)) == 10

    types = [c.type for c in categories]
    assert types == ['fixed'] * 5 + ['variable'] * 5
    fixed_names = [c.name for c in categories if c.is_fixed]
    assert fixed_names == sorted(fixed_names)
    food = next(c for c in categories if c.name == 'Food')
    assert food.target_percentage == 15
    rent = next(c for c in categories if c.name == 'Rent')
    assert rent.target_amount is None


def test_categories_are_per_user(db_path):
    db.ensure_default_categories(USER, db_path)

    assert db.get_categories('someone-else', db_path) == []


def test_create_category_validates(db_path):
    with pytest.raises(ValueError):
        db.create_category(USER, 'Pets', 'sometimes', db_path=db_path)
    with pytest.raises(ValueError):
        db.create_category(USER, '  ', 'variable', db_path=db_path)
    with pytest.raises(ValueError):
        db.create_category(USER, 'Rent', 'fixed', target_amount=-5, db_path=db_path)

    category = db.create_category(USER, 'Pets', 'variable', target_percentage=3, color='#123456', db_path=db_path)
    assert (category.name, category.type, category.target_percentage, category.color) == (
        'Pets', 'variable', 3, '#123456'
    )


def test_update_category_partial_and_clearing(db_path):
    rent = db.create_category(USER, 'Rent', 'fixed', target_amount=85000, db_path=db_path)

    renamed = db.update_category(rent.id, CategoryUpdate(name='Housing'), db_path)
    assert renamed.name == 'Housing'
    assert renamed.target_amount == 85000

    cleared = db.update_category(rent.id, CategoryUpdate(target_amount=None), db_path)
    assert cleared.target_amount is None
    assert cleared.name == 'Housing'

    assert db.update_category('missing', CategoryUpdate(name='x'), db_path) is None


def test_delete_category_leaves_transactions_orphaned(db_path):
    food = db.create_category(USER, 'Food', 'variable', target_percentage=15, db_path=db_path)
    _add(db_path, 1200, date(2026, 4, 2), category_id=food.id)

    assert db.delete_category(food.id, db_path)
    assert not db.delete_category(food.id, db_path)

    transactions = db.get_transactions(USER, db_path=db_path)
    assert transactions[0].category_id == food.id
    buckets = classify_transactions(db.get_categories(USER, db_path), transactions)
    assert len(buckets['uncategorized']) == 1


# Transactions


def test_create_transaction_validates(db_path):
    with pytest.raises(ValueError):
        _add(db_path, -100, date(2026, 4, 1))
    with pytest.raises(ValueError):
        _add(db_path, 100, date(2026, 4, 1), txn_type='refund')
    with pytest.raises(ValueError):
        _add(db_path, 'lots', date(2026, 4, 1))


def test_transactions_are_newest_first(db_path):
    first = _add(db_path, 100, date(2026, 4, 1))
    second = _add(db_path, 200, '2026-04-03')
    third = _add(db_path, 300, date(2026, 4, 3))

    ids = [t.id for t in db.get_transactions(USER, db_path=db_path)]
    assert ids == [third.id, second.id, first.id]
    assert second.date == date(2026, 4, 3)


def test_transaction_filters(db_path):
    food = db.create_category(USER, 'Food', 'variable', target_percentage=15, db_path=db_path)
    _add(db_path, 300000, date(2026, 4, 25), txn_type='income')
    _add(db_path, 1200, date(2026, 4, 2), category_id=food.id)
    _add(db_path, 800, date(2026, 3, 30), category_id=food.id)
    _add(db_path, 500, date(2026, 4, 10))
    _add(db_path, 999, date(2026, 4, 10), user='other')

    april = TransactionFilters(start_date=date(2026, 4, 1), end_date=date(2026, 4, 30))
    assert len(db.get_transactions(USER, april, db_path)) == 3

    expenses = TransactionFilters(type='expense', category_id=food.id)
    assert [t.amount for t in db.get_transactions(USER, expenses, db_path)] == [1200, 800]

    assert len(db.get_transactions(USER, TransactionFilters(limit=2), db_path)) == 2


def test_update_transaction_partial(db_path):
    food = db.create_category(USER, 'Food', 'variable', target_percentage=15, db_path=db_path)
    txn = _add(db_path, 1200, date(2026, 4, 2), category_id=food.id, description='lunch')

    updated = db.update_transaction(txn.id, TransactionUpdate(amount=1500), db_path)
    assert updated.amount == 1500
    assert updated.description == 'lunch'
    assert updated.category_id == food.id

    detached = db.update_transaction(txn.id, TransactionUpdate(category_id=None, description=UNSET), db_path)
    assert detached.category_id is None
    assert detached.description == 'lunch'

    with pytest.raises(ValueError):
        db.update_transaction(txn.id, TransactionUpdate(type='transfer'), db_path)


def test_delete_transaction(db_path):
    txn = _add(db_path, 100, date(2026, 4, 1))

    assert db.delete_transaction(txn.id, db_path)
    assert db.get_transactions(USER, db_path=db_path) == []
    assert not db.delete_transaction(txn.id, db_path)


def test_monthly_stats_and_category_spending(db_path):
    food = db.create_category(USER, 'Food', 'variable', target_percentage=15, db_path=db_path)
    fun = db.create_category(USER, 'Fun', 'variable', target_percentage=5, db_path=db_path)
    _add(db_path, 300000, date(2026, 4, 25), txn_type='income')
    _add(db_path, 1200, date(2026, 4, 2), category_id=food.id)
    _add(db_path, 800, date(2026, 4, 30), category_id=food.id)
    _add(db_path, 3000, date(2026, 4, 5), category_id=fun.id)
    _add(db_path, 700, date(2026, 4, 6))
    _add(db_path, 5000, date(2026, 5, 1), category_id=food.id)

    assert db.get_monthly_stats(USER, 2026, 4, db_path) == {'income': 300000, 'expense': 5700}
    assert db.get_monthly_stats(USER, 2026, 12, db_path) == {'income': 0, 'expense': 0}

    spending = db.get_category_spending(USER, date(2026, 4, 1), date(2026, 4, 30), db_path)
    assert spending == [
        {'category_id': fun.id, 'total': 3000},
        {'category_id': food.id, 'total': 2000},
    ]
