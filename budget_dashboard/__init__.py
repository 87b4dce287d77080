"""Top-level package for the budget dashboard.

The primary modules are:

* ``budget_engine`` - budget summary, category progress, month-end forecast and yearly projection
* ``analytics`` - pandas tables for monthly trends, category breakdowns and target gaps
* ``db`` - sqlite storage for profiles, categories and transactions
* ``ai_gateway`` - AI advice, challenges, expense parsing and chat with local fallbacks
* ``visualization`` - functions that generate Plotly figures
* ``dashboard`` - the Streamlit app that ties everything together

To run the dashboard from the command line you can execute:

```bash
streamlit run budget_dashboard/dashboard.py
```

or use ``run_dashboard.py`` at the project root.
"""

from . import budget_engine  # noqa: F401  # re-exported for convenience
from . import analytics  # noqa: F401  # re-exported for convenience
from . import visualization  # noqa: F401  # re-exported for convenience
# Import dashboard lazily.  Streamlit may not be installed in all
# environments (e.g. during unit testing).  If the import fails,
# assign ``None``.
try:
    from . import dashboard  # type: ignore  # noqa: F401
except ModuleNotFoundError:
    dashboard = None  # type: ignore


__all__ = ["budget_engine", "analytics", "visualization", "dashboard"]
