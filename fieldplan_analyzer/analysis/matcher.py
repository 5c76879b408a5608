"""Organization name matching between budgets and field plans.

Matching is exact on the normalized name (hidden characters stripped,
whitespace collapsed, trimmed) and case-sensitive. When an organization
submitted more than once, the submission with the highest row index wins.

Fuzzy suggestions (rapidfuzz WRatio) are diagnostic only: they help a
human spot a typo in an alert email and are never used to pair records.
"""

import logging
from typing import Generic, Iterable, Protocol, TypeVar

from rapidfuzz import fuzz, process

from fieldplan_analyzer.utils import normalize_text

logger = logging.getLogger(__name__)


class _OrgRecord(Protocol):
    org_name: str
    row_index: int


T = TypeVar("T", bound=_OrgRecord)


class OrganizationMatcher(Generic[T]):
    """Index of records keyed by normalized organization name.

    Works for both directions: index field plans to find a budget's plan,
    or index budgets to find a plan's budget.

    Args:
        records: Budgets or field plans. Records with a blank name are skipped.
        score_cutoff: Minimum WRatio score for a suggestion (0-100).
        suggestion_limit: Maximum number of suggestions returned.
    """

    def __init__(
        self,
        records: Iterable[T],
        score_cutoff: float = 80,
        suggestion_limit: int = 3,
    ):
        self.score_cutoff = score_cutoff
        self.suggestion_limit = suggestion_limit
        self._index: dict[str, T] = {}
        for record in records:
            key = normalize_text(record.org_name)
            if not key:
                continue
            current = self._index.get(key)
            if current is None or record.row_index > current.row_index:
                self._index[key] = record
        logger.debug("Indexed %d organization(s)", len(self._index))

    def __len__(self) -> int:
        return len(self._index)

    def __contains__(self, org_name: str) -> bool:
        return self.find(org_name) is not None

    @property
    def names(self) -> list[str]:
        return list(self._index)

    def find(self, org_name: str) -> T | None:
        """Most recent record whose normalized name equals ``org_name``'s."""
        key = normalize_text(org_name)
        if not key:
            return None
        return self._index.get(key)

    def suggest(self, org_name: str) -> list[str]:
        """Near-miss organization names for an unmatched ``org_name``.

        Returns an empty list for exact matches, blank names, or an empty
        index.
        """
        key = normalize_text(org_name)
        if not key or not self._index or key in self._index or self.suggestion_limit <= 0:
            return []
        results = process.extract(
            key,
            self.names,
            scorer=fuzz.WRatio,
            limit=self.suggestion_limit,
            score_cutoff=self.score_cutoff,
        )
        if results:
            logger.debug(
                "Suggestions for '%s': %s",
                key, ", ".join(f"{name} ({score:.0f})" for name, score, _ in results),
            )
        return [name for name, _score, _idx in results]
