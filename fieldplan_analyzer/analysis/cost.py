"""Tactic cost-efficiency analysis.

Compares the dollars a budget requests for an outreach tactic against the
contact attempts the field plan promises for it, and classifies the
resulting cost per attempt against a target band (target +/- std_dev).

Only tactics with a matching budget line are analyzed:

    DOOR, OPEN -> canvass
    PHONE      -> phone
    TEXT       -> text

RELATIONAL, REGISTRATION and MAIL have no dedicated funding line.
"""

import logging
import math
from dataclasses import dataclass

from fieldplan_analyzer.config import CostTarget
from fieldplan_analyzer.schemas.models import Budget
from fieldplan_analyzer.schemas.tactics import Tactic, TacticType

logger = logging.getLogger(__name__)

TACTIC_FUNDING_CATEGORY: dict[TacticType, str] = {
    TacticType.DOOR: "canvass",
    TacticType.OPEN: "canvass",
    TacticType.PHONE: "phone",
    TacticType.TEXT: "text",
}

STATUS_BELOW = "below"
STATUS_WITHIN = "within"
STATUS_ABOVE = "above"

# Bounds like 0.66 - 0.15 are not exact in binary floating point.
_COMPARE_PLACES = 10

_RECOMMENDATIONS = {
    STATUS_WITHIN: "{tactic} funding is appropriately aligned with planned activities.",
    STATUS_BELOW: (
        "{tactic} funding is below the standard range. Consider increasing "
        "funding to better support planned activities."
    ),
    STATUS_ABOVE: (
        "{tactic} funding exceeds the standard range. Review if the funding "
        "request aligns with realistic program expectations."
    ),
}


@dataclass(frozen=True)
class TacticCostAnalysis:
    """Cost per attempt for one tactic and where it falls against target."""
    tactic_type: TacticType
    tactic_label: str
    funding_category: str
    funding_requested: float
    program_attempts: float
    cost_per_attempt: float
    target_cost: float
    lower_bound: float
    upper_bound: float
    status: str
    recommendation: str


def classify_cost(cost_per_attempt: float, target: CostTarget) -> str:
    """Return ``below``, ``within`` or ``above`` for a cost per attempt.

    Both bounds are inclusive on the outside: a cost equal to the lower
    bound is ``below`` and a cost equal to the upper bound is ``above``.
    """
    if math.isinf(cost_per_attempt):
        return STATUS_ABOVE
    cost = round(cost_per_attempt, _COMPARE_PLACES)
    lower = round(target.target - target.std_dev, _COMPARE_PLACES)
    upper = round(target.target + target.std_dev, _COMPARE_PLACES)
    if cost <= lower:
        return STATUS_BELOW
    if cost >= upper:
        return STATUS_ABOVE
    return STATUS_WITHIN


def tactic_recommendation(tactic_type: TacticType, status: str) -> str:
    return _RECOMMENDATIONS[status].format(tactic=tactic_type.value)


def analyze_tactic(
    budget: Budget,
    tactic: Tactic,
    cost_targets: dict[str, CostTarget],
) -> TacticCostAnalysis | None:
    """Cost-analyze one tactic against the budget's matching funding line.

    Returns:
        The analysis, or None for tactics without a funding line or without
        a configured cost target.
    """
    category = TACTIC_FUNDING_CATEGORY.get(tactic.tactic_type)
    if category is None:
        return None
    target = cost_targets.get(tactic.tactic_type.value)
    if target is None:
        logger.warning("No cost target configured for %s", tactic.tactic_type.value)
        return None

    funding = budget.requested_for(category)
    attempts = tactic.program_attempts
    cost = funding / attempts if attempts > 0 else math.inf
    status = classify_cost(cost, target)

    logger.debug(
        "%s %s: $%.2f / %.0f attempts = $%.4f per attempt (%s)",
        budget.org_name, tactic.tactic_type.value, funding, attempts, cost, status,
    )
    return TacticCostAnalysis(
        tactic_type=tactic.tactic_type,
        tactic_label=tactic.label,
        funding_category=category,
        funding_requested=funding,
        program_attempts=attempts,
        cost_per_attempt=cost,
        target_cost=target.target,
        lower_bound=target.target - target.std_dev,
        upper_bound=target.target + target.std_dev,
        status=status,
        recommendation=tactic_recommendation(tactic.tactic_type, status),
    )


def analyze_tactics(
    budget: Budget,
    tactics: list[Tactic],
    cost_targets: dict[str, CostTarget],
) -> list[TacticCostAnalysis]:
    """Cost-analyze every fundable tactic, in plan order."""
    results = []
    for tactic in tactics:
        analysis = analyze_tactic(budget, tactic, cost_targets)
        if analysis is not None:
            results.append(analysis)
    return results
