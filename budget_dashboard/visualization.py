"""Plotly visualisation helpers for the budget dashboard.

Each function takes a record or DataFrame produced by
:mod:`budget_engine` or :mod:`analytics` and returns a
``plotly.graph_objects.Figure`` that Streamlit renders via
``st.plotly_chart``.  Empty input yields an empty figure titled
"No data to display".
"""

from __future__ import annotations

from typing import Sequence

import numpy as np
import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

from .models import BudgetSummary, CategoryWithSpend, MonthlyStats

POSITIVE_COLOR = "#10b981"
NEGATIVE_COLOR = "#ef4444"
FIXED_COLOR = "#6366f1"
SPENT_COLOR = "#f59e0b"


def _empty_figure(title: str = "No data to display") -> go.Figure:
    fig = go.Figure()
    fig.update_layout(title=title)
    return fig


def create_budget_breakdown_chart(summary: BudgetSummary, title: str | None = None) -> go.Figure:
    """Donut of the month's income split into fixed costs, spending and what is left.

    Parameters
    ----------
    summary : BudgetSummary
        Output of :func:`budget_engine.compute_budget_summary`.
    title : str, optional
        Chart title.

    Returns
    -------
    plotly.graph_objects.Figure
        Donut chart.  A negative remainder is drawn as zero.
    """
    values = [
        max(summary.fixed_costs, 0),
        max(summary.variable_spent, 0),
        max(summary.remaining, 0),
    ]
    if sum(values) <= 0:
        return _empty_figure()
    fig = go.Figure(
        go.Pie(
            labels=["Fixed costs", "Variable spending", "Remaining"],
            values=values,
            hole=0.55,
            marker={"colors": [FIXED_COLOR, SPENT_COLOR, POSITIVE_COLOR]},
            sort=False,
        )
    )
    fig.update_layout(title=title or "Budget breakdown")
    return fig


def create_category_progress_chart(
    progress: Sequence[CategoryWithSpend],
    title: str | None = None,
) -> go.Figure:
    """Horizontal bars of target consumption per category.

    Bar length is clamped at 100% so a single overspent category does not
    squash the rest; the hover text and label show the real percentage
    and overspent bars are drawn in red.

    Parameters
    ----------
    progress : sequence of CategoryWithSpend
        Output of :func:`budget_engine.compute_category_progress`.
    title : str, optional
        Chart title.

    Returns
    -------
    plotly.graph_objects.Figure
        Horizontal bar chart.
    """
    if not progress:
        return _empty_figure()
    actual = np.array([item.progress for item in progress], dtype=float)
    colors = np.where(actual > 100, NEGATIVE_COLOR, [item.color for item in progress])
    fig = go.Figure(
        go.Bar(
            x=np.minimum(actual, 100),
            y=[item.name for item in progress],
            orientation="h",
            marker_color=colors,
            text=[f"{p:.0f}%" for p in actual],
            textposition="auto",
            customdata=np.stack(
                [[item.current_spend for item in progress], [item.target for item in progress]],
                axis=-1,
            ),
            hovertemplate="%{y}: ¥%{customdata[0]:,.0f} of ¥%{customdata[1]:,.0f}<extra></extra>",
        )
    )
    fig.update_layout(
        title=title or "Category progress",
        xaxis={"title": "Percent of target", "range": [0, 100]},
        yaxis={"autorange": "reversed"},
    )
    return fig


def create_monthly_savings_chart(stats: Sequence[MonthlyStats], title: str | None = None) -> go.Figure:
    """Bar chart of monthly surplus with deficit months highlighted.

    Parameters
    ----------
    stats : sequence of MonthlyStats
        Output of :func:`analytics.monthly_stats`.
    title : str, optional
        Chart title.

    Returns
    -------
    plotly.graph_objects.Figure
        Bar chart of income minus expense per month.
    """
    if not stats:
        return _empty_figure()
    surplus = np.array([s.surplus for s in stats], dtype=float)
    fig = go.Figure(
        go.Bar(
            x=[s.month for s in stats],
            y=surplus,
            marker_color=np.where(surplus < 0, NEGATIVE_COLOR, POSITIVE_COLOR),
            hovertemplate="%{x}: ¥%{y:,.0f}<extra></extra>",
        )
    )
    fig.update_layout(
        title=title or "Monthly savings",
        xaxis_title="Month",
        yaxis_title="Savings (¥)",
    )
    return fig


def create_target_gap_chart(gaps: pd.DataFrame, title: str | None = None) -> go.Figure:
    """Horizontal bars of target minus spend per category.

    Parameters
    ----------
    gaps : pandas.DataFrame
        Output of :func:`analytics.target_gaps`.
    title : str, optional
        Chart title.

    Returns
    -------
    plotly.graph_objects.Figure
        Bars to the right are money left, bars to the left overspending.
    """
    if gaps.empty:
        return _empty_figure()
    values = gaps["Gap"].astype(float).to_numpy()
    fig = go.Figure(
        go.Bar(
            x=values,
            y=gaps["Category"],
            orientation="h",
            marker_color=np.where(values < 0, NEGATIVE_COLOR, POSITIVE_COLOR),
            hovertemplate="%{y}: ¥%{x:,.0f}<extra></extra>",
        )
    )
    fig.update_layout(
        title=title or "Gap to target",
        xaxis_title="Target minus spent (¥)",
        yaxis={"autorange": "reversed"},
    )
    return fig


def create_category_pie_chart(breakdown: pd.DataFrame, title: str | None = None) -> go.Figure:
    """Pie chart of expenses by category from :func:`analytics.category_breakdown`."""
    if breakdown.empty:
        return _empty_figure()
    fig = px.pie(breakdown, names="Category", values="Amount")
    fig.update_layout(title=title or "Spending by category")
    return fig
