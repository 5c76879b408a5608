"""Assemble the full analysis of one budget against its field plan."""

import logging
from dataclasses import dataclass, field

from fieldplan_analyzer.analysis.cost import TacticCostAnalysis, analyze_tactics
from fieldplan_analyzer.analysis.gaps import GapRecommendation, analyze_gaps
from fieldplan_analyzer.config import AnalyzerConfig
from fieldplan_analyzer.schemas.models import Budget, FieldPlan
from fieldplan_analyzer.schemas.tactics import TacticType
from fieldplan_analyzer.utils import format_dollars, format_number

logger = logging.getLogger(__name__)


def _percent(part: float, whole: float) -> float:
    return (part / whole) * 100 if whole else 0.0


@dataclass(frozen=True)
class ReportSummary:
    """Headline figures and sentences for the top of the analysis email."""
    not_outreach_total: float
    not_outreach_percent: float
    outreach_total: float
    outreach_percent: float
    data_requested: float
    data_stipend_hours: float
    request_summary: str
    not_outreach_text: str
    outreach_text: str
    data_stipend_text: str


@dataclass(frozen=True)
class TacticNarrative:
    """Plain-language description of one planned tactic."""
    tactic_type: TacticType
    tactic_label: str
    attempt_text: str
    contacts_text: str


@dataclass
class AnalysisReport:
    """Everything produced by analyzing one budget with its field plan."""
    budget: Budget
    field_plan: FieldPlan
    summary: ReportSummary
    tactic_analyses: list[TacticCostAnalysis] = field(default_factory=list)
    gap_recommendations: list[GapRecommendation] = field(default_factory=list)
    narratives: list[TacticNarrative] = field(default_factory=list)

    @property
    def org_name(self) -> str:
        return self.budget.org_name


@dataclass(frozen=True)
class WeeklySummary:
    """Status counts and dollar totals across all submitted budgets."""
    generated_on: str
    analyzed: int
    pending: int
    waiting_for_plans: int
    total_requested: float
    total_gap: float

    @property
    def total(self) -> int:
        return self.analyzed + self.pending

    def status_text(self) -> str:
        return (
            f"So far, {self.analyzed} budgets have been analyzed and "
            f"{self.pending} remain to be analyzed."
        )


def build_summary(budget: Budget, data_hourly_rate: float) -> ReportSummary:
    org = budget.org_name
    requested_total = budget.requested_total

    not_outreach = budget.not_outreach_total
    not_outreach_pct = _percent(not_outreach, requested_total)
    outreach = budget.outreach_total
    outreach_pct = _percent(outreach, requested_total)

    data_requested = budget.requested_for("data")
    stipend_hours = data_requested / data_hourly_rate if data_hourly_rate else 0.0
    if data_requested:
        data_text = (
            f"{org} is requesting {format_dollars(data_requested, cents=True)} in data "
            f"funding. This represents {format_number(round(stipend_hours, 2))} hours "
            f"of labor that can be offset by a data stipend."
        )
    else:
        data_text = f"{org} did not request data funding."

    return ReportSummary(
        not_outreach_total=not_outreach,
        not_outreach_percent=not_outreach_pct,
        outreach_total=outreach,
        outreach_percent=outreach_pct,
        data_requested=data_requested,
        data_stipend_hours=stipend_hours,
        request_summary=budget.request_summary(),
        not_outreach_text=(
            f"{org} is requesting {format_dollars(not_outreach, cents=True)} in "
            f"resources for indirect costs. That represents {not_outreach_pct:.1f}% "
            f"of their total funding request."
        ),
        outreach_text=(
            f"{org} is requesting {format_dollars(outreach, cents=True)} in resources "
            f"for outreach costs. That represents {outreach_pct:.1f}% of their total "
            f"funding request."
        ),
        data_stipend_text=data_text,
    )


def build_narratives(field_plan: FieldPlan) -> list[TacticNarrative]:
    return [
        TacticNarrative(
            tactic_type=tactic.tactic_type,
            tactic_label=tactic.label,
            attempt_text=tactic.attempt_narrative(field_plan.org_name),
            contacts_text=tactic.contacts_narrative(field_plan.org_name),
        )
        for tactic in field_plan.tactics
    ]


def build_report(
    budget: Budget, field_plan: FieldPlan, config: AnalyzerConfig,
) -> AnalysisReport:
    """Run cost and gap analysis and gather the summary for one budget."""
    report = AnalysisReport(
        budget=budget,
        field_plan=field_plan,
        summary=build_summary(budget, config.data_stipend_hourly_rate),
        tactic_analyses=analyze_tactics(budget, field_plan.tactics, config.cost_targets),
        gap_recommendations=analyze_gaps(budget, field_plan.tactics, config.cost_targets),
        narratives=build_narratives(field_plan),
    )
    logger.info(
        "Built report for %s: %d tactic analyses, %d gap recommendations",
        budget.org_name, len(report.tactic_analyses), len(report.gap_recommendations),
    )
    return report
