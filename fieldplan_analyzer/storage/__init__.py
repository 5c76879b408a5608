"""Persistence backends: the tabular system of record and the property map."""

from fieldplan_analyzer.storage.properties import (
    InMemoryPropertyStore,
    JsonFilePropertyStore,
    PropertyStore,
)
from fieldplan_analyzer.storage.tabular import (
    InMemoryTabularStore,
    TableNotFoundError,
    TabularStore,
    WorkbookTabularStore,
)

__all__ = [
    "InMemoryPropertyStore",
    "InMemoryTabularStore",
    "JsonFilePropertyStore",
    "PropertyStore",
    "TableNotFoundError",
    "TabularStore",
    "WorkbookTabularStore",
]
