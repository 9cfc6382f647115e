"""Pytest configuration.

The repository uses a flat `src/` namespace without requiring an installed package. This conftest
ensures tests can import from `src.*` when running `pytest` from a plain checkout.
"""

from __future__ import annotations

import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT))
