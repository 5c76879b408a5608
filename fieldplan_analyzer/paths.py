"""Centralized path constants for the Field Plan Analyzer.

Every file and directory path used by the analyzer is defined here as a
module-level constant. Source files import from this module instead of
constructing ad-hoc ``Path(...)`` literals scattered throughout the codebase.

Design rules:
  1. This module imports ONLY ``pathlib.Path`` -- no project imports, no
     config imports, no runtime validation.  This prevents circular-import
     chains and keeps the module importable at any point.
  2. No path existence checks at import time.  Callers create directories
     as needed (``mkdir(parents=True, exist_ok=True)``).
"""

from pathlib import Path

# ---------------------------------------------------------------------------
# -- Project Root --
# ---------------------------------------------------------------------------

PROJECT_ROOT: Path = Path(__file__).resolve().parent.parent
"""Absolute path to the project root directory (one level above ``fieldplan_analyzer/``)."""

# ---------------------------------------------------------------------------
# -- Config Paths --
# ---------------------------------------------------------------------------

CONFIG_DIR: Path = PROJECT_ROOT / "config"
"""Directory containing analyzer configuration files."""

ANALYZER_CONFIG_PATH: Path = CONFIG_DIR / "analyzer_config.json"
"""Main analyzer configuration (recipients, cost targets, thresholds)."""

# ---------------------------------------------------------------------------
# -- Data Paths --
# ---------------------------------------------------------------------------

DATA_DIR: Path = PROJECT_ROOT / "data"
"""Top-level data directory for the form-response workbook and state."""

WORKBOOK_PATH: Path = DATA_DIR / "field_coordination.xlsx"
"""Form-response workbook holding the budget and field plan sheets."""

STATE_DIR: Path = DATA_DIR / "state"
"""Persisted analyzer state (tracking records, row cursors)."""

PROPERTIES_PATH: Path = STATE_DIR / "properties.json"
"""Flat string-keyed property map shared by the tracker and row cursor."""
