"""Funding gap analysis.

For every budget category with a stated gap, decide whether the funder
could cover the gap without pushing the linked tactic's cost per attempt
past the top of its target band. Gaps are sometimes entered as negative
numbers; the magnitude is used and the inversion is disclosed in the
recommendation text.
"""

import logging
from dataclasses import dataclass

from fieldplan_analyzer.config import CostTarget
from fieldplan_analyzer.schemas.models import BUDGET_CATEGORIES, Budget
from fieldplan_analyzer.schemas.tactics import Tactic, TacticType
from fieldplan_analyzer.utils import format_dollars

logger = logging.getLogger(__name__)

# Budget category -> tactics whose attempts it pays for, in preference order.
CATEGORY_TACTICS: dict[str, tuple[TacticType, ...]] = {
    "canvass": (TacticType.DOOR, TacticType.OPEN),
    "phone": (TacticType.PHONE,),
    "text": (TacticType.TEXT,),
}

SIGN_INVERSION_NOTE = "(gap was originally negative, converted to positive for analysis)"


@dataclass(frozen=True)
class GapRecommendation:
    """Whether a category's funding gap could be covered efficiently."""
    category: str
    requested_amount: float
    gap_amount: float
    can_increase: bool
    was_negative: bool
    linked_tactic: TacticType | None
    recommendation: str


def linked_tactic(category: str, tactics: list[Tactic]) -> Tactic | None:
    """The plan's tactic funded by ``category``, if any."""
    by_type = {t.tactic_type: t for t in tactics}
    for tactic_type in CATEGORY_TACTICS.get(category, ()):
        if tactic_type in by_type:
            return by_type[tactic_type]
    return None


def can_increase_funding(
    requested: float,
    gap_amount: float,
    tactic: Tactic | None,
    cost_targets: dict[str, CostTarget],
) -> bool:
    """True when covering the gap keeps cost per attempt at or under the band top."""
    if tactic is None:
        return True
    target = cost_targets.get(tactic.tactic_type.value)
    if target is None or tactic.program_attempts <= 0:
        return True
    new_cost = (requested + gap_amount) / tactic.program_attempts
    return round(new_cost, 10) <= round(target.target + target.std_dev, 10)


def gap_recommendation_text(
    category: str, gap_amount: float, can_increase: bool, was_negative: bool,
) -> str:
    if can_increase:
        text = (
            f"Consider increasing {category} funding by up to "
            f"{format_dollars(gap_amount, cents=True)} while maintaining cost efficiency."
        )
    else:
        text = (
            f"Gap identified in {category} but increasing funding would "
            f"exceed efficiency targets."
        )
    if was_negative:
        text = f"{text} {SIGN_INVERSION_NOTE}"
    return text


def analyze_gaps(
    budget: Budget,
    tactics: list[Tactic],
    cost_targets: dict[str, CostTarget],
) -> list[GapRecommendation]:
    """One recommendation per category with a nonzero stated gap, in sheet order."""
    results: list[GapRecommendation] = []
    for category in BUDGET_CATEGORIES:
        stored = budget.gap_for(category)
        if stored == 0:
            continue
        gap_amount = abs(stored)
        was_negative = stored < 0
        requested = budget.requested_for(category)
        tactic = linked_tactic(category, tactics)
        can_increase = can_increase_funding(requested, gap_amount, tactic, cost_targets)
        if was_negative:
            logger.debug(
                "%s: %s gap stored as %.2f, analyzing as %.2f",
                budget.org_name, category, stored, gap_amount,
            )
        results.append(GapRecommendation(
            category=category,
            requested_amount=requested,
            gap_amount=gap_amount,
            can_increase=can_increase,
            was_negative=was_negative,
            linked_tactic=tactic.tactic_type if tactic else None,
            recommendation=gap_recommendation_text(
                category, gap_amount, can_increase, was_negative,
            ),
        ))
    return results
