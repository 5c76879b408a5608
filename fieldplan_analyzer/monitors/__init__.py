"""Monitors for state that must be watched across scheduled runs.

Exports:
    Direction                  -- which half of a budget/field plan pair is missing
    CounterpartAlert           -- outcome of one threshold-exceeded record
    MissingCounterpartTracker  -- records, resolves and escalates missing pairs
"""

from fieldplan_analyzer.monitors.missing_counterpart import (
    CounterpartAlert,
    Direction,
    MissingCounterpartTracker,
)

__all__ = [
    "CounterpartAlert",
    "Direction",
    "MissingCounterpartTracker",
]
