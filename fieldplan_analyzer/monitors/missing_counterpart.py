"""Missing-counterpart tracking across scheduled runs.

A budget is useless without its field plan and vice versa. When one side
of the pair is seen without the other, the tracker records the first time
it noticed. If the counterpart still has not arrived after the threshold
(default 72 hours), one alert email goes out and the record is dropped.

State machine, per (direction, organization):

  Unobserved -> Tracking   first detection; timestamp recorded (set-if-absent)
  Tracking   -> Unobserved counterpart appears; record deleted, no alert
  Tracking   -> Unobserved threshold exceeded; alert sent, record deleted

A failed alert send keeps the record so the next sweep retries it. A
delivered alert deletes the record in the same step, so it never repeats.

Records live in the persisted property store as
``MISSING_PLAN_<org>`` / ``MISSING_BUDGET_<org>`` -> ISO-8601 UTC timestamp.
"""

import enum
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from fieldplan_analyzer.config import AnalyzerConfig
from fieldplan_analyzer.notifications.notifier import Notification, Notifier
from fieldplan_analyzer.reports.emails import (
    render_missing_counterpart_email,
    with_test_banner,
)
from fieldplan_analyzer.storage.properties import PropertyStore
from fieldplan_analyzer.utils import normalize_text

logger = logging.getLogger(__name__)


class Direction(enum.Enum):
    """Which half of the budget/field plan pair is missing."""

    MISSING_PLAN = "MISSING_PLAN"
    MISSING_BUDGET = "MISSING_BUDGET"

    @property
    def prefix(self) -> str:
        return f"{self.value}_"


@dataclass(frozen=True)
class _DirectionText:
    title: str
    submitted: str
    missing: str
    consequence: str


_DIRECTION_TEXT = {
    Direction.MISSING_PLAN: _DirectionText(
        title="Missing Field Plan",
        submitted="budget",
        missing="field plan",
        consequence=(
            "The budget analysis cannot be completed without a corresponding field plan."
        ),
    ),
    Direction.MISSING_BUDGET: _DirectionText(
        title="Missing Budget",
        submitted="field plan",
        missing="budget",
        consequence="Cost efficiency analysis cannot be performed without budget data.",
    ),
}


@dataclass(frozen=True)
class CounterpartAlert:
    """Outcome of one threshold-exceeded record during a sweep."""
    direction: Direction
    org_name: str
    first_seen: datetime
    delivered: bool


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(value: str) -> datetime | None:
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class MissingCounterpartTracker:
    """Record, resolve and escalate missing budget/field plan counterparts.

    Args:
        properties: Persisted property store holding the tracking records.
        notifier:   Used for threshold alerts.
        config:     Recipients, subject prefixing and threshold hours.
        clock:      Callable returning an aware UTC datetime.
                    Defaults to the wall clock. Inject a mock for tests.
    """

    def __init__(
        self,
        properties: PropertyStore,
        notifier: Notifier,
        config: AnalyzerConfig,
        clock: Callable[[], datetime] | None = None,
    ):
        self.properties = properties
        self.notifier = notifier
        self.config = config
        self._clock = clock or _utc_now

    @property
    def threshold(self) -> timedelta:
        return timedelta(hours=self.config.missing_counterpart_threshold_hours)

    @staticmethod
    def key(direction: Direction, org_name: str) -> str:
        return f"{direction.prefix}{normalize_text(org_name)}"

    def is_tracking(self, direction: Direction, org_name: str) -> bool:
        return self.properties.get(self.key(direction, org_name)) is not None

    def track_missing(self, direction: Direction, org_name: str) -> bool:
        """Start tracking ``org_name`` unless it is already tracked.

        Returns:
            True when a new record was created.
        """
        org = normalize_text(org_name)
        if not org:
            return False
        key = self.key(direction, org)
        if self.properties.get(key) is not None:
            logger.debug("Already tracking %s", key)
            return False
        self.properties.set(key, self._clock().isoformat())
        logger.info("Started tracking %s for %s", direction.value, org)
        return True

    def resolve(self, direction: Direction, org_name: str) -> bool:
        """Stop tracking because the counterpart arrived.

        Returns:
            True when a record existed and was removed.
        """
        key = self.key(direction, org_name)
        if self.properties.get(key) is None:
            return False
        self.properties.delete(key)
        logger.info("Resolved %s for %s", direction.value, normalize_text(org_name))
        return True

    def resolve_all(self, org_name: str) -> None:
        """Both halves are present: drop tracking in either direction."""
        for direction in Direction:
            self.resolve(direction, org_name)

    def tracked(self, direction: Direction) -> dict[str, str]:
        """Tracked organizations for ``direction`` -> raw recorded timestamp."""
        return {
            key[len(direction.prefix):]: value
            for key, value in self.properties.list_prefix(direction.prefix).items()
        }

    def sweep(
        self,
        direction: Direction,
        suggest: Callable[[str], list[str]] | None = None,
    ) -> list[CounterpartAlert]:
        """Alert on every record in ``direction`` older than the threshold.

        Args:
            direction: Which records to examine.
            suggest:   Optional lookup of similar counterpart names, listed
                       in the alert body to help spot spelling differences.

        Returns:
            One CounterpartAlert per threshold-exceeded record.
        """
        now = self._clock()
        alerts: list[CounterpartAlert] = []

        for org_name, raw_timestamp in sorted(self.tracked(direction).items()):
            key = self.key(direction, org_name)
            first_seen = _parse_timestamp(raw_timestamp)
            if first_seen is None:
                logger.warning(
                    "Unparseable timestamp %r for %s, restarting its clock",
                    raw_timestamp, key,
                )
                self.properties.set(key, now.isoformat())
                continue

            if now - first_seen <= self.threshold:
                continue

            try:
                suggestions = suggest(org_name) if suggest else []
                delivered = self.notifier.send(
                    self._build_alert(direction, org_name, suggestions)
                )
            except Exception:
                logger.exception("Error sending %s alert for %s", direction.value, org_name)
                delivered = False
            if delivered:
                self.properties.delete(key)
                logger.info("Sent %s alert for %s", direction.value, org_name)
            else:
                logger.error(
                    "%s alert for %s was not delivered, will retry next sweep",
                    direction.value, org_name,
                )
            alerts.append(CounterpartAlert(
                direction=direction,
                org_name=org_name,
                first_seen=first_seen,
                delivered=delivered,
            ))

        logger.info(
            "%s sweep: %d record(s) past threshold, %d alert(s) delivered",
            direction.value, len(alerts), sum(1 for a in alerts if a.delivered),
        )
        return alerts

    def sweep_all(
        self,
        suggest: Callable[[Direction, str], list[str]] | None = None,
    ) -> list[CounterpartAlert]:
        alerts: list[CounterpartAlert] = []
        for direction in Direction:
            per_direction = (
                (lambda org, d=direction: suggest(d, org)) if suggest else None
            )
            alerts.extend(self.sweep(direction, per_direction))
        return alerts

    def _build_alert(
        self, direction: Direction, org_name: str, suggestions: list[str],
    ) -> Notification:
        text = _DIRECTION_TEXT[direction]
        body = render_missing_counterpart_email(
            title=f"{text.title} Alert",
            org_name=org_name,
            submitted=text.submitted,
            missing=text.missing,
            consequence=text.consequence,
            threshold_hours=self.config.missing_counterpart_threshold_hours,
            suggestions=suggestions,
        )
        return Notification(
            recipients=self.config.active_recipients(),
            subject=self.config.subject(f"{text.title}: {org_name}"),
            body=with_test_banner(body, self.config.test_mode),
            reply_to=self.config.reply_to,
            sender_name=self.config.sender_name,
            metadata={"direction": direction.value, "org_name": org_name},
        )
