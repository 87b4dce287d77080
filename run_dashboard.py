#!/usr/bin/env python3
"""Launcher for the budget dashboard.

Runs Streamlit from the budget_dashboard directory so the pages/
subdirectory is discovered automatically.
"""

import os
import subprocess
import sys
from pathlib import Path

project_root = Path(__file__).parent.resolve()
app_dir = project_root / "budget_dashboard"

if __name__ == "__main__":
    os.chdir(app_dir)
    env = dict(os.environ)
    env["PYTHONPATH"] = os.pathsep.join(filter(None, [str(project_root), env.get("PYTHONPATH")]))
    sys.exit(subprocess.run(
        [sys.executable, "-m", "streamlit", "run", "dashboard.py", *sys.argv[1:]],
        env=env,
    ).returncode)
