"""Persisted string-to-string property map.

Holds the small amount of state the analyzer must remember between
scheduled runs: missing-counterpart tracking records and the field plan
row cursor. Keys are flat strings with conventional prefixes
(``MISSING_PLAN_``, ``MISSING_BUDGET_``, ``LAST_PROCESSED_ROW``).

Security considerations:
    - JSON size limit: 10 MB cap via ``stat().st_size`` before ``json.load()``
    - Atomic write: tmp file + ``os.replace()`` with cleanup on exception
    - All file I/O uses ``encoding="utf-8"``

Concurrency:
    Assumes a single writer. Scheduled runs must not overlap.
"""

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path

logger = logging.getLogger(__name__)

MAX_STATE_FILE_SIZE: int = 10 * 1024 * 1024  # 10 MB


class PropertyStore(ABC):
    """Minimal key-value interface with prefix listing."""

    @abstractmethod
    def get(self, key: str) -> str | None:
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove ``key``; missing keys are ignored."""
        ...

    @abstractmethod
    def list_prefix(self, prefix: str) -> dict[str, str]:
        ...


class InMemoryPropertyStore(PropertyStore):
    """Dict-backed store; state is lost when the process exits."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = str(value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def list_prefix(self, prefix: str) -> dict[str, str]:
        return {k: v for k, v in self._data.items() if k.startswith(prefix)}


class JsonFilePropertyStore(PropertyStore):
    """Properties persisted as a single JSON object on disk.

    The file is read on every access and rewritten atomically on every
    mutation, so separate processes (and separate runs) always see the
    latest committed state.

    A missing, oversized, or corrupt file reads as empty; the next write
    replaces it.

    Args:
        path: JSON file location. Parent directories are created on write.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}

        try:
            file_size = self.path.stat().st_size
        except OSError:
            logger.warning("Cannot stat properties file %s", self.path)
            return {}

        if file_size > MAX_STATE_FILE_SIZE:
            logger.warning(
                "Properties file %s exceeds size limit (%d bytes > %d), "
                "treating as empty",
                self.path, file_size, MAX_STATE_FILE_SIZE,
            )
            return {}

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as exc:
            logger.warning(
                "Corrupt properties file %s: %s (treating as empty)", self.path, exc,
            )
            return {}

        if not isinstance(data, dict):
            logger.warning("Properties file %s is not a JSON object, ignoring", self.path)
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _save(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)

        # Atomic write: tmp file + os.replace
        tmp_fd = tempfile.NamedTemporaryFile(
            dir=str(self.path.parent),
            suffix=".json",
            mode="w",
            encoding="utf-8",
            delete=False,
        )
        tmp_name = tmp_fd.name
        try:
            json.dump(data, tmp_fd, indent=2, ensure_ascii=False, sort_keys=True)
            tmp_fd.close()
            os.replace(tmp_name, str(self.path))
        except Exception:
            tmp_fd.close()
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise

    def get(self, key: str) -> str | None:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = str(value)
        self._save(data)
        logger.debug("Set property %s", key)

    def delete(self, key: str) -> None:
        data = self._load()
        if data.pop(key, None) is not None:
            self._save(data)
            logger.debug("Deleted property %s", key)

    def list_prefix(self, prefix: str) -> dict[str, str]:
        return {k: v for k, v in self._load().items() if k.startswith(prefix)}
