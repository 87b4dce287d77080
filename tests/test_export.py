from datetime import date

from budget_dashboard.export import (
    categories_to_csv,
    export_filename,
    save_export,
    transactions_to_csv,
)
from budget_dashboard.models import Category, Transaction


def _categories():
    return [
        Category(id='rent', user_id='u1', name='Rent', type='fixed', target_amount=85000, color='#ef4444'),
        Category(id='food', user_id='u1', name='Food', type='variable', target_percentage=15, color='#8b5cf6'),
    ]


def _sample_transactions():
    return [
        Transaction(id='t1', user_id='u1', amount=1200, date=date(2026, 4, 5), type='expense',
                    category_id='food', description='lunch, with a friend'),
        Transaction(id='t2', user_id='u1', amount=300000, date=date(2026, 4, 25), type='income'),
        Transaction(id='t3', user_id='u1', amount=500, date=date(2026, 4, 6), type='expense', category_id='gone'),
    ]


def test_transactions_csv_layout():
    data = transactions_to_csv(_sample_transactions(), _categories())

    assert data.startswith(b'\xef\xbb\xbf')
    lines = data.decode('utf-8-sig').splitlines()
    assert lines[0] == 'Date,Type,Category,Amount,Description'
    assert lines[1] == '2026-04-05,Expense,Food,1200,"lunch, with a friend"'
    assert lines[2] == '2026-04-25,Income,,300000,'
    assert lines[3] == '2026-04-06,Expense,,500,'


def test_transactions_csv_without_rows_has_header_only():
    lines = transactions_to_csv([], _categories()).decode('utf-8-sig').splitlines()

    assert lines == ['Date,Type,Category,Amount,Description']


def test_categories_csv_layout():
    lines = categories_to_csv(_categories()).decode('utf-8-sig').splitlines()

    assert lines == [
        'Name,Type,Target Amount,Target %,Color',
        'Rent,Fixed,85000,,#ef4444',
        'Food,Variable,,15,#8b5cf6',
    ]


def test_export_filename_uses_date():
    assert export_filename('transactions', date(2026, 4, 5)) == 'transactions_20260405.csv'


def test_save_export_writes_bytes(tmp_path):
    path = save_export(b'abc', 'categories_20260405.csv', tmp_path / 'exports')

    assert path.read_bytes() == b'abc'
