"""Record types shared by the engine, the data layer and the UI.

Stored records (``Category``, ``Transaction``, ``Profile``) mirror the
rows of the database.  Derived records (``BudgetSummary`` and friends)
are recomputed from stored records on every read and are never
persisted.  The ``*Update`` classes list every attribute a partial
update may touch; fields left at ``UNSET`` are not written.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import date, datetime
from typing import Any, Dict, Mapping, Optional, Union

CATEGORY_TYPES = ('fixed', 'variable')
TRANSACTION_TYPES = ('income', 'expense')
SUBSCRIPTION_TIERS = ('free', 'pro')
FORECAST_STATUSES = ('good', 'warning', 'danger')

UNCATEGORIZED = 'Uncategorized'

Number = Union[int, float]


class _Unset:
    """Marker for update fields that should be left untouched."""

    _instance: Optional['_Unset'] = None

    def __new__(cls) -> '_Unset':
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return 'UNSET'

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


def to_number(value: Any, default: Number = 0) -> Number:
    """Coerce a stored amount to int when it is whole, float otherwise."""
    if value is None or isinstance(value, str) and not value.strip():
        return default
    if hasattr(value, 'item'):  # numpy scalar
        value = value.item()
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        number = value
    else:
        try:
            number = float(str(value).replace(',', '').strip())
        except ValueError:
            return default
    if isinstance(number, float):
        if number != number:  # NaN
            return default
        if number.is_integer():
            return int(number)
    return number


def _optional_number(value: Any) -> Optional[Number]:
    if value is None or value == '':
        return None
    return to_number(value)


def to_date(value: Any) -> date:
    """Accept ``date``, ``datetime`` or ISO ``YYYY-MM-DD`` text."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if hasattr(value, 'to_pydatetime'):
        return value.to_pydatetime().date()
    text = str(value).strip()
    return date.fromisoformat(text[:10])


# ---------------------------------------------------------------------------
# Stored records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Category:
    id: str
    user_id: str
    name: str
    type: str  # 'fixed' | 'variable'
    target_amount: Optional[Number] = None  # yen, active for 'fixed'
    target_percentage: Optional[Number] = None  # 0-100 of disposable income, active for 'variable'
    color: str = '#64748b'

    @property
    def is_fixed(self) -> bool:
        return self.type == 'fixed'

    @property
    def is_variable(self) -> bool:
        return self.type == 'variable'

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> 'Category':
        return cls(
            id=str(record['id']),
            user_id=str(record.get('user_id') or ''),
            name=str(record.get('name') or ''),
            type=str(record.get('type') or 'variable'),
            target_amount=_optional_number(record.get('target_amount')),
            target_percentage=_optional_number(record.get('target_percentage')),
            color=str(record.get('color') or '#64748b'),
        )

    def to_record(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class Transaction:
    id: str
    user_id: str
    amount: Number
    date: date
    type: str  # 'income' | 'expense'
    category_id: Optional[str] = None
    description: Optional[str] = None
    created_at: str = ''

    @property
    def is_income(self) -> bool:
        return self.type == 'income'

    @property
    def is_expense(self) -> bool:
        return self.type == 'expense'

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> 'Transaction':
        category_id = record.get('category_id')
        return cls(
            id=str(record['id']),
            user_id=str(record.get('user_id') or ''),
            amount=to_number(record.get('amount')),
            date=to_date(record['date']),
            type=str(record.get('type') or 'expense'),
            category_id=str(category_id) if category_id not in (None, '') else None,
            description=record.get('description'),
            created_at=str(record.get('created_at') or ''),
        )

    def to_record(self) -> Dict[str, Any]:
        record = {f.name: getattr(self, f.name) for f in fields(self)}
        record['date'] = self.date.isoformat()
        return record


@dataclass(frozen=True)
class Profile:
    id: str
    target_income: Number = 300000
    salary_day: int = 25
    subscription_tier: str = 'free'

    @property
    def is_pro(self) -> bool:
        return self.subscription_tier == 'pro'

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> 'Profile':
        return cls(
            id=str(record['id']),
            target_income=to_number(record.get('target_income'), 300000),
            salary_day=int(record.get('salary_day') or 25),
            subscription_tier=str(record.get('subscription_tier') or 'free'),
        )


# ---------------------------------------------------------------------------
# Partial updates and query filters
# ---------------------------------------------------------------------------


@dataclass
class _Update:
    def changes(self) -> Dict[str, Any]:
        """Return only the fields that were explicitly set."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not UNSET
        }


@dataclass
class CategoryUpdate(_Update):
    name: Any = UNSET
    type: Any = UNSET
    target_amount: Any = UNSET  # None clears it
    target_percentage: Any = UNSET  # None clears it
    color: Any = UNSET


@dataclass
class TransactionUpdate(_Update):
    category_id: Any = UNSET  # None detaches the category
    amount: Any = UNSET
    date: Any = UNSET
    type: Any = UNSET
    description: Any = UNSET  # None clears it


@dataclass
class ProfileUpdate(_Update):
    target_income: Any = UNSET
    salary_day: Any = UNSET
    subscription_tier: Any = UNSET


@dataclass(frozen=True)
class TransactionFilters:
    start_date: Optional[date] = None  # on or after
    end_date: Optional[date] = None  # on or before
    type: Optional[str] = None
    category_id: Optional[str] = None
    limit: Optional[int] = None


# ---------------------------------------------------------------------------
# Derived records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BudgetSummary:
    total_income: Number
    fixed_costs: Number
    disposable_income: Number
    variable_spent: Number
    remaining: Number


@dataclass(frozen=True)
class CategoryWithSpend:
    category: Category
    current_spend: Number
    target: Number
    progress: float  # percent of target consumed, uncapped

    @property
    def id(self) -> str:
        return self.category.id

    @property
    def name(self) -> str:
        return self.category.name

    @property
    def type(self) -> str:
        return self.category.type

    @property
    def color(self) -> str:
        return self.category.color

    @property
    def gap(self) -> Number:
        return self.target - self.current_spend

    @property
    def is_over_budget(self) -> bool:
        return self.progress > 100


@dataclass(frozen=True)
class Forecast:
    current_expense: Number
    daily_average: float
    projected_expense: float
    projected_savings: float
    budget_gap: float
    days_passed: int
    days_remaining: int
    status: str  # 'good' | 'warning' | 'danger'


@dataclass(frozen=True)
class YearlyStats:
    year: int
    months_passed: int
    income: Number
    expense: Number
    savings: Number
    expected_income: Number
    income_gap: Number
    projected_yearly_expense: float
    projected_yearly_savings: float


@dataclass(frozen=True)
class MonthlyStats:
    month: str  # 'YYYY-MM'
    income: Number = 0
    expense: Number = 0

    @property
    def surplus(self) -> Number:
        return self.income - self.expense
