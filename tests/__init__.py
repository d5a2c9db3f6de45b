"""Test suite for fairline.

The suite runs against the ``src`` tree directly, so a checkout works
without an editable install.
"""

from __future__ import annotations

import sys
from pathlib import Path

SRC = Path(__file__).resolve().parents[1] / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))
