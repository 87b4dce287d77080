"""Configuration management for the budget dashboard.

This module centralizes paths, AI gateway settings and environment
variable overrides.  Values that users are expected to tune (default
categories, forecast thresholds, parser keywords) live in the JSON
presets under ``settings/`` instead.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

# Base project root - assumes this file is in budget_dashboard/
_PROJECT_ROOT = Path(__file__).parent.parent.resolve()

# Data directories
DATA_DIR = Path(os.getenv("BUDGET_DATA_DIR", _PROJECT_ROOT / "data"))
EXPORTS_DIR = DATA_DIR / "exports"

# Database
DB_PATH = Path(
    os.getenv("BUDGET_DB_PATH", DATA_DIR / "budget.db")
).resolve()

# User whose data the local dashboard shows
DEFAULT_USER_ID = os.getenv("BUDGET_USER_ID", "local-user")

# AI gateway
AI_MODEL = os.getenv("BUDGET_AI_MODEL", "gpt-4o-mini")
AI_VISION_MODEL = os.getenv("BUDGET_AI_VISION_MODEL", "gpt-4o")
AI_TIMEOUT_SECONDS = float(os.getenv("BUDGET_AI_TIMEOUT", "30"))


def get_openai_api_key() -> Optional[str]:
    """Return the hosted LLM key, or None when AI calls should use local fallbacks.

    Read on every call so a key exported after import is picked up.
    """
    key = os.getenv("OPENAI_API_KEY", "").strip()
    return key or None


def ensure_data_directories() -> None:
    """Create all required data directories if they don't exist."""
    for directory in [DATA_DIR, EXPORTS_DIR]:
        directory.mkdir(parents=True, exist_ok=True)


def get_db_path() -> str:
    """Get the database path as a string."""
    return str(DB_PATH)
