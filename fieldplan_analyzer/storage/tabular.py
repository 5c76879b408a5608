"""Tabular store: the row-oriented system of record for form responses.

Each table is a sheet whose first row is a header. Row indexes are 0-based
*data* row indexes (header excluded) and serve as a stable identity for a
submission: rows are appended, never reordered or deleted.

Implementations:
    InMemoryTabularStore  -- dict of lists, for tests and dry runs
    WorkbookTabularStore  -- XLSX workbook via openpyxl, saved atomically
"""

import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Sequence

from openpyxl import Workbook, load_workbook

from fieldplan_analyzer.config import ConfigurationError

logger = logging.getLogger(__name__)


class TableNotFoundError(ConfigurationError):
    """The requested table (sheet) does not exist in the store."""

    def __init__(self, table: str):
        self.table = table
        super().__init__(f"Table not found: {table!r}")


class TabularStore(ABC):
    """Row-oriented read/write interface over named tables."""

    @abstractmethod
    def has_table(self, table: str) -> bool:
        ...

    @abstractmethod
    def list_rows(self, table: str) -> list[list[Any]]:
        """All data rows of ``table`` in index order (header excluded)."""
        ...

    @abstractmethod
    def append_row(self, table: str, row: Sequence[Any]) -> int:
        """Append a data row and return its index."""
        ...

    @abstractmethod
    def set_cell(self, table: str, row_index: int, column: int, value: Any) -> None:
        """Overwrite one cell (0-based row and column)."""
        ...

    def get_row(self, table: str, row_index: int) -> list[Any]:
        rows = self.list_rows(table)
        if not 0 <= row_index < len(rows):
            raise IndexError(
                f"Row {row_index} out of range for table {table!r} ({len(rows)} rows)"
            )
        return rows[row_index]

    def row_count(self, table: str) -> int:
        return len(self.list_rows(table))

    def require_tables(self, *tables: str) -> None:
        """Raise TableNotFoundError for the first missing table."""
        for table in tables:
            if not self.has_table(table):
                raise TableNotFoundError(table)


class InMemoryTabularStore(TabularStore):
    """Tables held in memory as lists of rows.

    Args:
        tables: Optional initial ``{table: [row, ...]}`` data (no header rows).
    """

    def __init__(self, tables: dict[str, list[Sequence[Any]]] | None = None):
        self._tables: dict[str, list[list[Any]]] = {
            name: [list(row) for row in rows] for name, rows in (tables or {}).items()
        }

    def create_table(self, table: str) -> None:
        self._tables.setdefault(table, [])

    def has_table(self, table: str) -> bool:
        return table in self._tables

    def _rows(self, table: str) -> list[list[Any]]:
        try:
            return self._tables[table]
        except KeyError:
            raise TableNotFoundError(table) from None

    def list_rows(self, table: str) -> list[list[Any]]:
        return [list(row) for row in self._rows(table)]

    def append_row(self, table: str, row: Sequence[Any]) -> int:
        rows = self._rows(table)
        rows.append(list(row))
        return len(rows) - 1

    def set_cell(self, table: str, row_index: int, column: int, value: Any) -> None:
        rows = self._rows(table)
        if not 0 <= row_index < len(rows):
            raise IndexError(f"Row {row_index} out of range for table {table!r}")
        row = rows[row_index]
        if column >= len(row):
            row.extend([None] * (column + 1 - len(row)))
        row[column] = value


class WorkbookTabularStore(TabularStore):
    """Tables backed by the sheets of an XLSX workbook.

    The workbook is opened twice: once with ``data_only=True`` so reads see
    the cached result of formula cells instead of the formula text, and once
    as-is so saves keep the formulas. Every write goes to both handles.
    openpyxl never evaluates formulas, so a formula cell reads as None until
    a spreadsheet application has recalculated and saved the file.

    Every mutation is saved immediately via a temp file in the same
    directory followed by ``os.replace()``, so a crash never leaves a
    half-written workbook behind.

    Args:
        path: Workbook location. Must exist unless ``create`` is True.
        create: Start an empty workbook when ``path`` does not exist.
    """

    def __init__(self, path: Path, create: bool = False):
        self.path = Path(path)
        if self.path.exists():
            try:
                self._wb = load_workbook(self.path)
                self._values = load_workbook(self.path, data_only=True)
            except (OSError, ValueError, KeyError) as exc:
                raise ConfigurationError(
                    f"Cannot open workbook {self.path}: {exc}"
                ) from exc
            logger.debug("Loaded workbook %s (sheets: %s)", self.path, self._wb.sheetnames)
        elif create:
            self._wb = Workbook()
            self._wb.remove(self._wb.active)
            self._values = Workbook()
            self._values.remove(self._values.active)
        else:
            raise ConfigurationError(f"Workbook not found: {self.path}")

    def create_table(self, table: str, header: Sequence[str]) -> None:
        """Add a sheet with a header row (no-op when it already exists)."""
        if table in self._wb.sheetnames:
            return
        for wb in (self._wb, self._values):
            wb.create_sheet(title=table).append(list(header))
        self.save()

    def has_table(self, table: str) -> bool:
        return table in self._wb.sheetnames

    def _sheets(self, table: str):
        if table not in self._wb.sheetnames:
            raise TableNotFoundError(table)
        return self._wb[table], self._values[table]

    def list_rows(self, table: str) -> list[list[Any]]:
        _, values = self._sheets(table)
        return [list(row) for row in values.iter_rows(min_row=2, values_only=True)]

    def append_row(self, table: str, row: Sequence[Any]) -> int:
        ws, values = self._sheets(table)
        # Header occupies sheet row 1; an empty sheet still reserves it.
        next_row = max(ws.max_row, 1) + 1
        for column, value in enumerate(row, start=1):
            ws.cell(row=next_row, column=column, value=value)
            values.cell(row=next_row, column=column, value=value)
        self.save()
        return next_row - 2

    def set_cell(self, table: str, row_index: int, column: int, value: Any) -> None:
        ws, values = self._sheets(table)
        if not 0 <= row_index < ws.max_row - 1:
            raise IndexError(f"Row {row_index} out of range for table {table!r}")
        ws.cell(row=row_index + 2, column=column + 1, value=value)
        values.cell(row=row_index + 2, column=column + 1, value=value)
        self.save()

    def save(self) -> None:
        """Write the workbook atomically."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.stem}_", suffix=".xlsx",
        )
        os.close(fd)
        try:
            self._wb.save(tmp_name)
            os.replace(tmp_name, self.path)
        except Exception:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise
        logger.debug("Saved workbook %s", self.path)
