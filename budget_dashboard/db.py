from __future__ import annotations

import logging
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, Set, Union

from .config import ensure_data_directories, get_db_path
from .models import (
    CATEGORY_TYPES,
    SUBSCRIPTION_TIERS,
    TRANSACTION_TYPES,
    Category,
    CategoryUpdate,
    Number,
    Profile,
    ProfileUpdate,
    Transaction,
    TransactionFilters,
    TransactionUpdate,
    to_date,
    to_number,
)
from .settings import get_config_value

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

SCHEMA_SQL = """
PRAGMA journal_mode=WAL;
PRAGMA synchronous=NORMAL;

CREATE TABLE IF NOT EXISTS profiles (
    id TEXT PRIMARY KEY,
    target_income REAL NOT NULL DEFAULT 300000,
    salary_day INTEGER NOT NULL DEFAULT 25,
    subscription_tier TEXT NOT NULL DEFAULT 'free',
    created_at TEXT,
    updated_at TEXT
);

CREATE TABLE IF NOT EXISTS categories (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    name TEXT NOT NULL,
    type TEXT NOT NULL CHECK (type IN ('fixed', 'variable')),
    target_amount REAL,
    target_percentage REAL,
    color TEXT,
    created_at TEXT
);

CREATE TABLE IF NOT EXISTS transactions (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    category_id TEXT,
    amount REAL NOT NULL CHECK (amount >= 0),
    date TEXT NOT NULL,
    type TEXT NOT NULL CHECK (type IN ('income', 'expense')),
    description TEXT,
    created_at TEXT
);

CREATE INDEX IF NOT EXISTS ix_cat_user ON categories (user_id);
CREATE INDEX IF NOT EXISTS ix_txn_user_date ON transactions (user_id, date);
CREATE INDEX IF NOT EXISTS ix_txn_category ON transactions (category_id);
"""

# Databases whose schema has been applied in this process
_initialized: Set[str] = set()


def _resolve(db_path: Optional[PathLike]) -> Path:
    return Path(db_path if db_path is not None else get_db_path())


def _now() -> str:
    return datetime.now().isoformat(timespec='microseconds')


def _new_id() -> str:
    return str(uuid.uuid4())


@contextmanager
def connect(db_path: Optional[PathLike] = None) -> Iterator[sqlite3.Connection]:
    """Open a connection with ``sqlite3.Row`` rows.

    The schema is applied the first time a database is opened. Storage
    errors raised inside the block are logged and re-raised.
    """
    path = _resolve(db_path)
    if db_path is None:
        ensure_data_directories()
    path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(str(path))
    conn.row_factory = sqlite3.Row
    try:
        key = str(path.resolve())
        if key not in _initialized:
            conn.executescript(SCHEMA_SQL)
            _initialized.add(key)
        yield conn
    except sqlite3.Error as e:
        logger.error("Database error on %s: %s", path, e)
        raise
    finally:
        conn.close()


def init_db(db_path: Optional[PathLike] = None) -> None:
    with connect(db_path) as conn:
        conn.executescript(SCHEMA_SQL)
        conn.commit()
    logger.info("Initialised database at %s", _resolve(db_path))


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def _check_choice(field: str, value: Any, allowed: Sequence[str]) -> str:
    if value not in allowed:
        raise ValueError(f"Invalid {field}: {value!r} (expected one of {', '.join(allowed)})")
    return value


def _check_amount(field: str, value: Any, optional: bool = False) -> Optional[Number]:
    if value is None:
        if optional:
            return None
        raise ValueError(f"{field} is required")
    number = to_number(value, default=None)
    if isinstance(value, bool) or number is None:
        raise ValueError(f"Invalid {field}: {value!r}")
    if number < 0:
        raise ValueError(f"{field} must not be negative: {value!r}")
    return number


def _check_percentage(value: Any) -> Optional[Number]:
    number = _check_amount('target_percentage', value, optional=True)
    if number is not None and number > 100:
        raise ValueError(f"target_percentage must be between 0 and 100: {value!r}")
    return number


def _check_name(value: Any) -> str:
    name = str(value or '').strip()
    if not name:
        raise ValueError("Category name must not be empty")
    return name


def _iso(value: Any) -> str:
    return to_date(value).isoformat()


def _apply_update(
    conn: sqlite3.Connection,
    table: str,
    row_id: str,
    changes: Dict[str, Any],
) -> int:
    assignments = ", ".join(f"{column} = ?" for column in changes)
    params = list(changes.values()) + [row_id]
    cur = conn.execute(f"UPDATE {table} SET {assignments} WHERE id = ?", params)
    conn.commit()
    return cur.rowcount


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------


def get_profile(user_id: str, db_path: Optional[PathLike] = None) -> Optional[Profile]:
    with connect(db_path) as conn:
        row = conn.execute("SELECT * FROM profiles WHERE id = ?", (user_id,)).fetchone()
    return Profile.from_record(dict(row)) if row else None


def ensure_profile(user_id: str, db_path: Optional[PathLike] = None) -> Profile:
    """Return the user's profile, creating it with preset defaults if needed."""
    profile = get_profile(user_id, db_path)
    if profile is not None:
        return profile

    defaults = get_config_value('budget', 'profile', default={}) or {}
    now = _now()
    with connect(db_path) as conn:
        conn.execute(
            "INSERT OR IGNORE INTO profiles (id, target_income, salary_day, subscription_tier, created_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (
                user_id,
                defaults.get('target_income', 300000),
                defaults.get('salary_day', 25),
                defaults.get('subscription_tier', 'free'),
                now,
                now,
            ),
        )
        conn.commit()
    logger.info("Created profile for %s", user_id)
    return get_profile(user_id, db_path)


def update_profile(
    user_id: str,
    update: ProfileUpdate,
    db_path: Optional[PathLike] = None,
) -> Optional[Profile]:
    """Apply the set fields of ``update`` to the user's profile.

    Raises:
        ValueError: If a field holds an invalid value
    """
    changes = update.changes()
    if 'target_income' in changes:
        changes['target_income'] = _check_amount('target_income', changes['target_income'])
    if 'salary_day' in changes:
        day = changes['salary_day']
        if isinstance(day, bool) or not isinstance(day, int) or not 1 <= day <= 31:
            raise ValueError(f"Invalid salary_day: {day!r} (expected 1-31)")
    if 'subscription_tier' in changes:
        _check_choice('subscription_tier', changes['subscription_tier'], SUBSCRIPTION_TIERS)

    ensure_profile(user_id, db_path)
    if changes:
        changes['updated_at'] = _now()
        with connect(db_path) as conn:
            _apply_update(conn, 'profiles', user_id, changes)
    return get_profile(user_id, db_path)


def update_target_income(user_id: str, target_income: Number, db_path: Optional[PathLike] = None) -> Optional[Profile]:
    return update_profile(user_id, ProfileUpdate(target_income=target_income), db_path)


def update_salary_day(user_id: str, salary_day: int, db_path: Optional[PathLike] = None) -> Optional[Profile]:
    """Set the salary day. Days outside 1-31 are rejected with ``None``."""
    if not isinstance(salary_day, int) or isinstance(salary_day, bool) or not 1 <= salary_day <= 31:
        logger.error("Invalid salary day: %r", salary_day)
        return None
    return update_profile(user_id, ProfileUpdate(salary_day=salary_day), db_path)


def update_subscription_tier(user_id: str, tier: str, db_path: Optional[PathLike] = None) -> Optional[Profile]:
    return update_profile(user_id, ProfileUpdate(subscription_tier=tier), db_path)


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------


def get_categories(user_id: str, db_path: Optional[PathLike] = None) -> List[Category]:
    """Return the user's categories, fixed before variable, then by name."""
    with connect(db_path) as conn:
        rows = conn.execute(
            "SELECT * FROM categories WHERE user_id = ? ORDER BY type ASC, name ASC",
            (user_id,),
        ).fetchall()
    return [Category.from_record(dict(r)) for r in rows]


def get_category(category_id: str, db_path: Optional[PathLike] = None) -> Optional[Category]:
    with connect(db_path) as conn:
        row = conn.execute("SELECT * FROM categories WHERE id = ?", (category_id,)).fetchone()
    return Category.from_record(dict(row)) if row else None


def _category_row(
    user_id: str,
    name: Any,
    category_type: Any,
    target_amount: Any = None,
    target_percentage: Any = None,
    color: Optional[str] = None,
) -> tuple:
    return (
        _new_id(),
        user_id,
        _check_name(name),
        _check_choice('category type', category_type, CATEGORY_TYPES),
        _check_amount('target_amount', target_amount, optional=True),
        _check_percentage(target_percentage),
        color or '#64748b',
        _now(),
    )


_INSERT_CATEGORY_SQL = (
    "INSERT INTO categories (id, user_id, name, type, target_amount, target_percentage, color, created_at) "
    "VALUES (?, ?, ?, ?, ?, ?, ?, ?)"
)


def create_category(
    user_id: str,
    name: str,
    category_type: str,
    target_amount: Optional[Number] = None,
    target_percentage: Optional[Number] = None,
    color: Optional[str] = None,
    db_path: Optional[PathLike] = None,
) -> Category:
    """Create a category.

    Raises:
        ValueError: If the name is empty, the type is unknown or a target
            is negative
    """
    row = _category_row(user_id, name, category_type, target_amount, target_percentage, color)
    with connect(db_path) as conn:
        conn.execute(_INSERT_CATEGORY_SQL, row)
        conn.commit()
    return get_category(row[0], db_path)


def create_default_categories(user_id: str, db_path: Optional[PathLike] = None) -> List[Category]:
    """Insert the preset categories for a new user."""
    presets = get_config_value('budget', 'default_categories', default=[]) or []
    rows = [
        _category_row(
            user_id,
            preset['name'],
            preset['type'],
            preset.get('target_amount'),
            preset.get('target_percentage'),
            preset.get('color'),
        )
        for preset in presets
    ]
    with connect(db_path) as conn:
        conn.executemany(_INSERT_CATEGORY_SQL, rows)
        conn.commit()
    logger.info("Created %d default categories for %s", len(rows), user_id)
    return get_categories(user_id, db_path)


def update_category(
    category_id: str,
    update: CategoryUpdate,
    db_path: Optional[PathLike] = None,
) -> Optional[Category]:
    """Apply the set fields of ``update``. Returns ``None`` if the category is gone."""
    changes = update.changes()
    if 'name' in changes:
        changes['name'] = _check_name(changes['name'])
    if 'type' in changes:
        _check_choice('category type', changes['type'], CATEGORY_TYPES)
    if 'target_amount' in changes:
        changes['target_amount'] = _check_amount('target_amount', changes['target_amount'], optional=True)
    if 'target_percentage' in changes:
        changes['target_percentage'] = _check_percentage(changes['target_percentage'])

    if changes:
        with connect(db_path) as conn:
            _apply_update(conn, 'categories', category_id, changes)
    return get_category(category_id, db_path)


def delete_category(category_id: str, db_path: Optional[PathLike] = None) -> bool:
    """Delete a category. Its transactions keep the now dangling reference."""
    with connect(db_path) as conn:
        cur = conn.execute("DELETE FROM categories WHERE id = ?", (category_id,))
        conn.commit()
        return cur.rowcount > 0


def has_categories(user_id: str, db_path: Optional[PathLike] = None) -> bool:
    with connect(db_path) as conn:
        row = conn.execute("SELECT COUNT(*) FROM categories WHERE user_id = ?", (user_id,)).fetchone()
    return row[0] > 0


def ensure_default_categories(user_id: str, db_path: Optional[PathLike] = None) -> List[Category]:
    """Bootstrap a first-time user with the preset categories."""
    if not has_categories(user_id, db_path):
        return create_default_categories(user_id, db_path)
    return get_categories(user_id, db_path)


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------


def get_transactions(
    user_id: str,
    filters: Optional[TransactionFilters] = None,
    db_path: Optional[PathLike] = None,
) -> List[Transaction]:
    """Return the user's transactions, newest first."""
    where: List[str] = ["user_id = ?"]
    params: List[Any] = [user_id]

    if filters is not None:
        if filters.start_date:
            where.append("date >= ?")
            params.append(_iso(filters.start_date))
        if filters.end_date:
            where.append("date <= ?")
            params.append(_iso(filters.end_date))
        if filters.type:
            where.append("type = ?")
            params.append(filters.type)
        if filters.category_id:
            where.append("category_id = ?")
            params.append(filters.category_id)

    sql = "SELECT * FROM transactions WHERE " + " AND ".join(where)
    sql += " ORDER BY date DESC, created_at DESC, rowid DESC"
    if filters is not None and filters.limit:
        sql += " LIMIT ?"
        params.append(int(filters.limit))

    with connect(db_path) as conn:
        rows = conn.execute(sql, params).fetchall()
    return [Transaction.from_record(dict(r)) for r in rows]


def get_transaction(transaction_id: str, db_path: Optional[PathLike] = None) -> Optional[Transaction]:
    with connect(db_path) as conn:
        row = conn.execute("SELECT * FROM transactions WHERE id = ?", (transaction_id,)).fetchone()
    return Transaction.from_record(dict(row)) if row else None


def create_transaction(
    user_id: str,
    amount: Number,
    txn_date: Union[date, str],
    txn_type: str,
    category_id: Optional[str] = None,
    description: Optional[str] = None,
    db_path: Optional[PathLike] = None,
) -> Transaction:
    """Record a transaction.

    Raises:
        ValueError: If the type is unknown, the amount is negative or the
            date cannot be parsed
    """
    row = (
        _new_id(),
        user_id,
        category_id or None,
        _check_amount('amount', amount),
        _iso(txn_date),
        _check_choice('transaction type', txn_type, TRANSACTION_TYPES),
        description or None,
        _now(),
    )
    with connect(db_path) as conn:
        conn.execute(
            "INSERT INTO transactions (id, user_id, category_id, amount, date, type, description, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            row,
        )
        conn.commit()
    return get_transaction(row[0], db_path)


def update_transaction(
    transaction_id: str,
    update: TransactionUpdate,
    db_path: Optional[PathLike] = None,
) -> Optional[Transaction]:
    """Apply the set fields of ``update``. Returns ``None`` if the transaction is gone."""
    changes = update.changes()
    if 'amount' in changes:
        changes['amount'] = _check_amount('amount', changes['amount'])
    if 'type' in changes:
        _check_choice('transaction type', changes['type'], TRANSACTION_TYPES)
    if 'date' in changes:
        changes['date'] = _iso(changes['date'])
    if 'category_id' in changes:
        changes['category_id'] = changes['category_id'] or None

    if changes:
        with connect(db_path) as conn:
            _apply_update(conn, 'transactions', transaction_id, changes)
    return get_transaction(transaction_id, db_path)


def delete_transaction(transaction_id: str, db_path: Optional[PathLike] = None) -> bool:
    with connect(db_path) as conn:
        cur = conn.execute("DELETE FROM transactions WHERE id = ?", (transaction_id,))
        conn.commit()
        return cur.rowcount > 0


def _month_bounds(year: int, month: int) -> tuple:
    start = date(year, month, 1)
    end = date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1)
    return start.isoformat(), end.isoformat()


def get_monthly_stats(
    user_id: str,
    year: int,
    month: int,
    db_path: Optional[PathLike] = None,
) -> Dict[str, Number]:
    """Total income and expense recorded in a calendar month."""
    start, end = _month_bounds(year, month)
    with connect(db_path) as conn:
        rows = conn.execute(
            "SELECT type, SUM(amount) AS total FROM transactions "
            "WHERE user_id = ? AND date >= ? AND date < ? GROUP BY type",
            (user_id, start, end),
        ).fetchall()
    stats: Dict[str, Number] = {'income': 0, 'expense': 0}
    for r in rows:
        key = 'income' if r['type'] == 'income' else 'expense'
        stats[key] += to_number(r['total'])
    return stats


def get_category_spending(
    user_id: str,
    start_date: Union[date, str],
    end_date: Union[date, str],
    db_path: Optional[PathLike] = None,
) -> List[Dict[str, Any]]:
    """Expense totals per category between two dates, inclusive.

    Uncategorised expenses are left out.
    """
    with connect(db_path) as conn:
        rows = conn.execute(
            "SELECT category_id, SUM(amount) AS total FROM transactions "
            "WHERE user_id = ? AND type = 'expense' AND date >= ? AND date <= ? "
            "AND category_id IS NOT NULL AND category_id != '' "
            "GROUP BY category_id ORDER BY total DESC",
            (user_id, _iso(start_date), _iso(end_date)),
        ).fetchall()
    return [{'category_id': r['category_id'], 'total': to_number(r['total'])} for r in rows]
