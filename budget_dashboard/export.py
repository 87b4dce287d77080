"""CSV export of transactions and categories.

Files are UTF-8 with a byte order mark so spreadsheet applications
detect the encoding.
"""

from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Optional, Sequence

import pandas as pd

from .config import EXPORTS_DIR
from .models import Category, Transaction

CSV_ENCODING = 'utf-8-sig'
TRANSACTION_EXPORT_COLUMNS = ['Date', 'Type', 'Category', 'Amount', 'Description']
CATEGORY_EXPORT_COLUMNS = ['Name', 'Type', 'Target Amount', 'Target %', 'Color']


def _cell(value: object) -> str:
    # str() keeps whole targets without a trailing .0
    return '' if value is None else str(value)


def _encode(df: pd.DataFrame) -> bytes:
    return df.to_csv(index=False, lineterminator='\n').encode(CSV_ENCODING)


def transactions_frame_for_export(
    transactions: Sequence[Transaction],
    categories: Sequence[Category],
) -> pd.DataFrame:
    names = {c.id: c.name for c in categories}
    rows = [
        {
            'Date': t.date.isoformat(),
            'Type': 'Income' if t.is_income else 'Expense',
            'Category': names.get(t.category_id, '') if t.category_id else '',
            'Amount': t.amount,
            'Description': t.description or '',
        }
        for t in transactions
    ]
    return pd.DataFrame(rows, columns=TRANSACTION_EXPORT_COLUMNS)


def transactions_to_csv(
    transactions: Sequence[Transaction],
    categories: Sequence[Category],
) -> bytes:
    """Render transactions as CSV bytes.

    Columns are Date, Type (Income or Expense), Category (name, empty
    when unknown), Amount and Description.
    """
    return _encode(transactions_frame_for_export(transactions, categories))


def categories_to_csv(categories: Sequence[Category]) -> bytes:
    """Render categories as CSV bytes. Absent targets are left empty."""
    rows = [
        {
            'Name': c.name,
            'Type': 'Fixed' if c.is_fixed else 'Variable',
            'Target Amount': _cell(c.target_amount),
            'Target %': _cell(c.target_percentage),
            'Color': c.color,
        }
        for c in categories
    ]
    return _encode(pd.DataFrame(rows, columns=CATEGORY_EXPORT_COLUMNS))


def export_filename(prefix: str, now: Optional[date] = None) -> str:
    """Build ``<prefix>_YYYYMMDD.csv`` for ``now`` (default today)."""
    if now is None:
        now = date.today()
    return f"{prefix}_{now.strftime('%Y%m%d')}.csv"


def save_export(data: bytes, filename: str, directory: Optional[Path] = None) -> Path:
    """Write export bytes under ``directory`` (default the exports folder)."""
    target_dir = Path(directory) if directory is not None else EXPORTS_DIR
    target_dir.mkdir(parents=True, exist_ok=True)
    path = target_dir / filename
    path.write_bytes(data)
    return path
