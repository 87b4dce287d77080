"""Budget aggregation and forecasting engine.

This module holds the arithmetic behind the dashboard: classifying
transactions against categories, summarising the month's budget,
measuring per-category progress, projecting month-end spending and
projecting the year's savings.

Every function here is pure.  Inputs are only read, outputs are newly
allocated, and all functions are defined for empty collections and for
zero or negative income, so callers never need to guard them.
"""

from __future__ import annotations

import calendar
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence

from .models import (
    BudgetSummary,
    Category,
    CategoryWithSpend,
    Forecast,
    Number,
    Transaction,
    YearlyStats,
    to_date,
)
from .settings import get_config_value

# Yen. A projected overshoot smaller than this is a warning, larger is danger.
DEFAULT_WARNING_GAP = -20000


def _category_index(categories: Iterable[Category]) -> Dict[str, Category]:
    return {c.id: c for c in categories}


def _total(transactions: Iterable[Transaction]) -> Number:
    return sum((t.amount for t in transactions), 0)


def classify_transactions(
    categories: Sequence[Category],
    transactions: Sequence[Transaction],
) -> Dict[str, List[Transaction]]:
    """Bucket transactions by how they count against the budget.

    Args:
        categories: Categories of the user
        transactions: Transactions to classify

    Returns:
        Dictionary with keys ``income``, ``fixed``, ``variable`` and
        ``uncategorized``. Income is bucketed regardless of category.
        Expenses without a category, or whose category no longer exists,
        are ``uncategorized``.

    Example:
        >>> buckets = classify_transactions(categories, transactions)
        >>> sum(t.amount for t in buckets['fixed'])
        85000
    """
    index = _category_index(categories)
    buckets: Dict[str, List[Transaction]] = {
        'income': [],
        'fixed': [],
        'variable': [],
        'uncategorized': [],
    }
    for txn in transactions:
        if txn.is_income:
            buckets['income'].append(txn)
            continue
        if not txn.is_expense:
            continue
        category = index.get(txn.category_id) if txn.category_id else None
        if category is None:
            buckets['uncategorized'].append(txn)
        elif category.is_fixed:
            buckets['fixed'].append(txn)
        elif category.is_variable:
            buckets['variable'].append(txn)
        else:
            buckets['uncategorized'].append(txn)
    return buckets


def compute_budget_summary(
    target_income: Number,
    categories: Sequence[Category],
    transactions: Sequence[Transaction],
) -> BudgetSummary:
    """Summarise income, fixed costs and variable spending.

    ``total_income`` reconciles the target with what was actually
    received: it is the larger of the two. Disposable income is what is
    left of it after fixed costs, and ``remaining`` is what is left of
    disposable income after variable spending. Neither is clamped.

    Args:
        target_income: Monthly income the user budgets against
        categories: Categories of the user
        transactions: Transactions of the period being summarised

    Returns:
        BudgetSummary for the period

    Example:
        >>> summary = compute_budget_summary(300000, categories, transactions)
        >>> summary.disposable_income
        215000
    """
    buckets = classify_transactions(categories, transactions)
    fixed_costs = _total(buckets['fixed'])
    variable_spent = _total(buckets['variable'])
    actual_income = _total(buckets['income'])

    total_income = max(target_income, actual_income)
    disposable_income = total_income - fixed_costs

    return BudgetSummary(
        total_income=total_income,
        fixed_costs=fixed_costs,
        disposable_income=disposable_income,
        variable_spent=variable_spent,
        remaining=disposable_income - variable_spent,
    )


def category_target(
    category: Category,
    disposable_income: Number,
    current_spend: Number = 0,
) -> Number:
    """Return the spending target of a category.

    Fixed categories target their absolute amount. A fixed category
    without an amount targets whatever has been spent so far, so it reads
    as fully used rather than as an error. Variable categories target a
    percentage of disposable income.
    """
    if category.is_fixed:
        if category.target_amount is None:
            return current_spend
        return category.target_amount
    return disposable_income * (category.target_percentage or 0) / 100


def progress_percent(current_spend: Number, target: Number) -> float:
    """Percent of ``target`` consumed. Zero when there is no positive target."""
    if target <= 0:
        return 0.0
    return current_spend / target * 100


def compute_category_progress(
    categories: Sequence[Category],
    transactions: Sequence[Transaction],
    disposable_income: Number,
) -> List[CategoryWithSpend]:
    """Calculate how far each category has consumed its target.

    Args:
        categories: Categories to report on; output keeps their order
        transactions: Transactions of the period
        disposable_income: Income left after fixed costs, the base for
            percentage targets

    Returns:
        One CategoryWithSpend per category. Progress is not capped, so an
        overspent category reports more than 100.

    Example:
        >>> rows = compute_category_progress(categories, transactions, 215000)
        >>> round(rows[0].progress, 1)
        49.6
    """
    spend_by_category: Dict[str, Number] = {}
    for txn in transactions:
        if txn.is_expense and txn.category_id:
            spend_by_category[txn.category_id] = spend_by_category.get(txn.category_id, 0) + txn.amount

    results: List[CategoryWithSpend] = []
    for category in categories:
        current_spend = spend_by_category.get(category.id, 0)
        target = category_target(category, disposable_income, current_spend)
        results.append(CategoryWithSpend(
            category=category,
            current_spend=current_spend,
            target=target,
            progress=progress_percent(current_spend, target),
        ))
    return results


def _warning_gap() -> Number:
    return get_config_value('budget', 'forecast', 'warning_gap', default=DEFAULT_WARNING_GAP)


def forecast_status(budget_gap: float, warning_gap: Optional[Number] = None) -> str:
    """Map a projected budget gap to ``good``, ``warning`` or ``danger``."""
    if warning_gap is None:
        warning_gap = _warning_gap()
    if budget_gap >= 0:
        return 'good'
    if budget_gap >= warning_gap:
        return 'warning'
    return 'danger'


def forecast_month_end(
    transactions: Sequence[Transaction],
    target_income: Number,
    fixed_costs: Number,
    now: Optional[date] = None,
    *,
    warning_gap: Optional[Number] = None,
) -> Forecast:
    """Project month-end spending from this month's daily average.

    Args:
        transactions: Transactions to project from; expenses dated on or
            after the first of ``now``'s month count towards this month
        target_income: Monthly income the user budgets against
        fixed_costs: Fixed costs of the month
        now: Reference day, defaults to today
        warning_gap: Overshoot (negative yen) still rated ``warning``;
            defaults to the configured preset

    Returns:
        Forecast for the month containing ``now``

    Example:
        >>> forecast = forecast_month_end(transactions, 300000, 85000, date(2026, 4, 10))
        >>> forecast.projected_expense
        90000.0
    """
    if now is None:
        now = date.today()
    now = to_date(now)
    days_in_month = calendar.monthrange(now.year, now.month)[1]
    days_passed = now.day
    days_remaining = days_in_month - days_passed

    month_start = now.replace(day=1)
    current_expense = _total(
        t for t in transactions if t.is_expense and t.date >= month_start
    )

    daily_average = current_expense / days_passed if days_passed > 0 else 0.0
    projected_expense = current_expense + daily_average * days_remaining

    budget = target_income - fixed_costs
    budget_gap = budget - projected_expense + fixed_costs

    return Forecast(
        current_expense=current_expense,
        daily_average=daily_average,
        projected_expense=projected_expense,
        projected_savings=target_income - projected_expense,
        budget_gap=budget_gap,
        days_passed=days_passed,
        days_remaining=days_remaining,
        status=forecast_status(budget_gap, warning_gap),
    )


def project_yearly(
    transactions: Sequence[Transaction],
    target_income: Number,
    now: Optional[date] = None,
) -> YearlyStats:
    """Project the year's savings from the year-to-date pace.

    Income falls back to the target pace (``target_income`` per elapsed
    month) until real income has been recorded, so an empty ledger
    projects the baseline.

    Args:
        transactions: Transactions to project from; only those dated in
            ``now``'s year are counted
        target_income: Monthly income the user budgets against
        now: Reference day, defaults to today

    Returns:
        YearlyStats for ``now``'s year
    """
    if now is None:
        now = date.today()
    now = to_date(now)
    year = now.year
    months_passed = now.month

    this_year = [t for t in transactions if t.date.year == year]
    yearly_income = _total(t for t in this_year if t.is_income)
    yearly_expense = _total(t for t in this_year if t.is_expense)

    expected_income = target_income * months_passed
    income = yearly_income if yearly_income > 0 else expected_income
    income_gap = yearly_income - expected_income if yearly_income > 0 else 0

    projected_yearly_expense = yearly_expense / months_passed * 12 if months_passed > 0 else 0.0

    return YearlyStats(
        year=year,
        months_passed=months_passed,
        income=income,
        expense=yearly_expense,
        savings=income - yearly_expense,
        expected_income=expected_income,
        income_gap=income_gap,
        projected_yearly_expense=projected_yearly_expense,
        projected_yearly_savings=target_income * 12 - projected_yearly_expense,
    )
