"""Outreach tactic variants and their per-type constants.

Each field plan may describe up to seven outreach tactics, one four-cell
block per tactic (program length in weeks, weekly volunteers, weekly hours
per volunteer, hourly contact attempts). A block with any non-empty cell is
*present* and must hold four positive numbers; a block with all cells empty
yields no tactic.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from fieldplan_analyzer.utils import format_number, is_blank, parse_number

logger = logging.getLogger(__name__)


class TacticType(str, Enum):
    """Outreach tactic kinds, in the order the form lists them."""

    PHONE = "PHONE"
    DOOR = "DOOR"
    OPEN = "OPEN"
    RELATIONAL = "RELATIONAL"
    REGISTRATION = "REGISTRATION"
    TEXT = "TEXT"
    MAIL = "MAIL"


class AttemptBand(str, Enum):
    """How realistic a tactic's hourly attempt expectation is."""

    REASONABLE = "reasonable"
    AT_RISK = "at_risk"
    UNREALISTIC = "unrealistic"


@dataclass(frozen=True)
class TacticProfile:
    """Fixed constants for one tactic type."""

    label: str
    contact_rate_low: float
    contact_rate_high: float
    reasonable_hourly_attempts: float


# Fraction of attempts expected to reach someone, and the per-volunteer
# hourly attempt ceiling considered reasonable.
TACTIC_PROFILES: dict[TacticType, TacticProfile] = {
    TacticType.PHONE: TacticProfile("Phone Banking", 0.05, 0.10, 30),
    TacticType.DOOR: TacticProfile("Door Canvassing", 0.05, 0.10, 30),
    TacticType.OPEN: TacticProfile("Open Canvassing", 0.10, 0.20, 60),
    TacticType.RELATIONAL: TacticProfile("Relational Organizing", 0.50, 0.70, 30),
    TacticType.REGISTRATION: TacticProfile("Voter Registration", 0.10, 0.30, 5),
    TacticType.TEXT: TacticProfile("Text Banking", 0.01, 0.05, 2000),
    TacticType.MAIL: TacticProfile("Mail", 0.70, 0.90, 1000),
}

# First column of each tactic's four-cell block in the field plan sheet.
TACTIC_COLUMNS: dict[TacticType, int] = {
    TacticType.PHONE: 26,
    TacticType.DOOR: 30,
    TacticType.OPEN: 34,
    TacticType.RELATIONAL: 38,
    TacticType.REGISTRATION: 42,
    TacticType.TEXT: 46,
    TacticType.MAIL: 50,
}

TACTIC_FIELDS: tuple[str, ...] = (
    "program_length",
    "weekly_volunteers",
    "weekly_hours",
    "hourly_attempts",
)

# Attempts above the reasonable ceiling but within this margin are "at risk".
AT_RISK_MARGIN = 10


class TacticValidationError(ValueError):
    """A present tactic block holds a non-numeric or non-positive input."""

    def __init__(self, tactic_type: TacticType, field: str, value: object, reason: str):
        self.tactic_type = tactic_type
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(
            f"{tactic_type.value} {field} must be "
            f"{'a number' if reason == 'not_a_number' else 'greater than 0'}, "
            f"got {value!r}"
        )


@dataclass(frozen=True)
class Tactic:
    """One validated outreach tactic from a field plan.

    All four inputs are positive finite numbers; construct through
    ``from_row`` or ``build`` so that invariant holds.
    """

    tactic_type: TacticType
    program_length: float
    weekly_volunteers: float
    weekly_hours: float
    hourly_attempts: float

    @classmethod
    def build(cls, tactic_type: TacticType, **values: object) -> Tactic:
        """Validate raw inputs and construct a Tactic.

        Raises:
            TacticValidationError: an input is missing, non-numeric, or <= 0.
        """
        parsed: dict[str, float] = {}
        for name in TACTIC_FIELDS:
            raw = values.get(name)
            number = parse_number(raw)
            if number is None:
                raise TacticValidationError(tactic_type, name, raw, "not_a_number")
            if number <= 0:
                raise TacticValidationError(tactic_type, name, raw, "not_positive")
            parsed[name] = number
        return cls(tactic_type=tactic_type, **parsed)

    @classmethod
    def from_row(cls, tactic_type: TacticType, row: list | tuple) -> Tactic | None:
        """Read a tactic block from a field plan row.

        Returns:
            The Tactic, or None when every cell of the block is empty.

        Raises:
            TacticValidationError: the block is present but invalid.
        """
        start = TACTIC_COLUMNS[tactic_type]
        cells = [row[i] if i < len(row) else None for i in range(start, start + 4)]
        if all(is_blank(cell) for cell in cells):
            return None
        return cls.build(tactic_type, **dict(zip(TACTIC_FIELDS, cells)))

    @property
    def profile(self) -> TacticProfile:
        return TACTIC_PROFILES[self.tactic_type]

    @property
    def label(self) -> str:
        return self.profile.label

    @property
    def weekly_volunteer_hours(self) -> float:
        return self.weekly_volunteers * self.weekly_hours

    @property
    def program_volunteer_hours(self) -> float:
        return self.weekly_volunteers * self.weekly_hours * self.program_length

    @property
    def weekly_attempts(self) -> float:
        return self.weekly_volunteers * self.weekly_hours * self.hourly_attempts

    @property
    def program_attempts(self) -> float:
        return (
            self.program_length
            * self.weekly_volunteers
            * self.weekly_hours
            * self.hourly_attempts
        )

    def attempt_band(self) -> AttemptBand:
        """Classify hourly attempts against the tactic's reasonable ceiling."""
        ceiling = self.profile.reasonable_hourly_attempts
        if self.hourly_attempts <= ceiling:
            return AttemptBand.REASONABLE
        if self.hourly_attempts <= ceiling + AT_RISK_MARGIN:
            return AttemptBand.AT_RISK
        return AttemptBand.UNREALISTIC

    def expected_contacts(self) -> tuple[float, float]:
        """Low and high estimates of successful contacts over the program."""
        attempts = self.program_attempts
        return (
            attempts * self.profile.contact_rate_low,
            attempts * self.profile.contact_rate_high,
        )

    def attempt_narrative(self, org_name: str) -> str:
        attempts = format_number(self.hourly_attempts)
        band = self.attempt_band()
        if band is AttemptBand.REASONABLE:
            return (
                f"{org_name} has a reasonable hourly attempt where each volunteer "
                f"is only expected to attempt to contact {attempts} people per hour."
            )
        if band is AttemptBand.AT_RISK:
            return (
                f"{org_name} is at risk of expecting too many attempts for each "
                f"volunteer. They expect {attempts} attempts per hour per volunteer."
            )
        return (
            f"{org_name} is expecting an unrealistic number of attempts per hour "
            f"for their volunteers. They expect {attempts} contacts each hour "
            f"per volunteer."
        )

    def contacts_narrative(self, org_name: str) -> str:
        low, high = self.expected_contacts()
        return (
            f"{org_name} intends to successfully reach between {format_number(low)} "
            f"and {format_number(high)} people during the course of their "
            f"{format_number(self.program_length)} week program."
        )
