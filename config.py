"""Runtime configuration for the back-office dashboard.

Every value can be overridden through an environment variable of the same
name.  Read once at import time.
"""

from __future__ import annotations

import os
from pathlib import Path

# ---------------------------------------------------------------------------
# Upstream API
# ---------------------------------------------------------------------------
BACKOFFICE_API_URL = os.getenv(
    "BACKOFFICE_API_URL", "https://tajmahal-server.gofastapi.com"
)
REQUEST_TIMEOUT_SECONDS = float(os.getenv("REQUEST_TIMEOUT_SECONDS", "15"))

# ---------------------------------------------------------------------------
# Polling
# ---------------------------------------------------------------------------
REFRESH_INTERVAL_SECONDS = float(os.getenv("REFRESH_INTERVAL_SECONDS", "10"))

# ---------------------------------------------------------------------------
# Time estimates (minutes)
# ---------------------------------------------------------------------------
TIME_ESTIMATE_CHOICES = ("10", "20", "30")
DEFAULT_TIME_ESTIMATE = os.getenv("DEFAULT_TIME_ESTIMATE", "10")

# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------
TEMPLATE_PATH = Path(
    os.getenv(
        "DASHBOARD_TEMPLATE_PATH",
        str(Path(__file__).parent / "dashboard_template.html"),
    )
)
OUTPUT_DIR = os.getenv("DASHBOARD_OUTPUT_DIR", "dashboard_analytics")
