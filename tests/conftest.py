"""Pytest configuration.

The search service lives in a flat `src/` namespace. Put the repository root on `sys.path` so
`import src...` works when running `pytest` from a checkout without installing the package.
"""

from __future__ import annotations

import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT))
