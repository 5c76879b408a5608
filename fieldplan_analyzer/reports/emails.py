"""HTML email bodies for analysis reports, alerts and summaries.

Every value that came from a form response is escaped before it is
interpolated. Renderers return the body only; subjects and recipients are
chosen by the caller.
"""

import logging
from html import escape

from fieldplan_analyzer.analysis.report import AnalysisReport, WeeklySummary
from fieldplan_analyzer.schemas.models import FieldPlan
from fieldplan_analyzer.schemas.tactics import Tactic
from fieldplan_analyzer.utils import format_dollars, format_number

logger = logging.getLogger(__name__)

NOT_SPECIFIED = "None specified"

_TEST_BANNER = (
    '<div style="background-color: #ffffcc; padding: 10px; '
    'border: 2px solid #ffcc00; margin-bottom: 20px;">'
    "<strong>TEST MODE EMAIL</strong> - This message was sent to test "
    "recipients only.</div>"
)


def with_test_banner(body: str, test_mode: bool) -> str:
    return _TEST_BANNER + body if test_mode else body


def _list_text(items: list[str]) -> str:
    return escape(", ".join(items)) if items else NOT_SPECIFIED


def _text_or(value: str, default: str) -> str:
    return escape(value) if value else default


def _status_label(status: str) -> str:
    return f"{status} target range"


# ── Budget analysis ──

def render_analysis_email(report: AnalysisReport) -> str:
    """Budget analysis: summary, tactic costs, gaps and field plan details."""
    summary = report.summary
    plan = report.field_plan
    parts = [
        f"<h2>Budget Analysis for {escape(report.org_name)}</h2>",
        "<h3>Summary</h3>",
        f"<p>{escape(summary.request_summary)}</p>",
        f"<p>{escape(summary.not_outreach_text)}</p>",
        f"<p>{escape(summary.outreach_text)}</p>",
        f"<p>{escape(summary.data_stipend_text)}</p>",
        "<h3>Tactic Cost Analysis</h3>",
    ]

    if not report.tactic_analyses:
        parts.append("<p>No fundable tactics were found in the field plan.</p>")
    for analysis in report.tactic_analyses:
        parts.extend([
            f"<h4>{escape(analysis.tactic_label)}</h4>",
            "<ul>",
            f"<li>Funding Requested: {format_dollars(analysis.funding_requested, cents=True)}</li>",
            f"<li>Program Attempts: {format_number(analysis.program_attempts)}</li>",
            f"<li>Cost Per Attempt: {format_dollars(analysis.cost_per_attempt, cents=True)}</li>",
            f"<li>Target Range: {format_dollars(analysis.lower_bound, cents=True)} - "
            f"{format_dollars(analysis.upper_bound, cents=True)}</li>",
            f"<li>Status: {_status_label(analysis.status)}</li>",
            "</ul>",
            f"<p><strong>Recommendation:</strong> {escape(analysis.recommendation)}</p>",
        ])

    if report.gap_recommendations:
        parts.append("<h3>Funding Gap Analysis</h3>")
        for gap in report.gap_recommendations:
            parts.append(
                f"<p><strong>{escape(gap.category)}:</strong> {escape(gap.recommendation)}</p>"
            )

    if report.narratives:
        parts.append("<h3>Field Tactic Expectations</h3>")
        for narrative in report.narratives:
            parts.extend([
                f"<h4>{escape(narrative.tactic_label)}</h4>",
                f"<p>{escape(narrative.attempt_text)}</p>",
                f"<p>{escape(narrative.contacts_text)}</p>",
            ])

    submitted = plan.submitted_at or "an unknown date"
    parts.extend([
        "<h3>Field Plan Details</h3>",
        f"<p>This analysis is based on the field plan submitted on {escape(submitted)}</p>",
        f"<p>Confidence Level: {format_number(plan.plan_confidence)}/10</p>",
        f"<p>{escape(plan.coaching_message())}</p>",
    ])
    return "\n".join(parts)


# ── New field plan ──

def render_tactic_metrics(tactic: Tactic, org_name: str) -> str:
    return "\n".join([
        f"<h4>{escape(tactic.label)} Metrics</h4>",
        "<ul>",
        f"<li>Program Length: {format_number(tactic.program_length)} weeks</li>",
        f"<li>Weekly Volunteers: {format_number(tactic.weekly_volunteers)}</li>",
        f"<li>Weekly Hours per Volunteer: {format_number(tactic.weekly_hours)}</li>",
        f"<li>Total Program Hours: {format_number(tactic.program_volunteer_hours)}</li>",
        f"<li>Weekly Contact Attempts: {format_number(tactic.weekly_attempts)}</li>",
        f"<li>Total Program Attempts: {format_number(tactic.program_attempts)}</li>",
        "</ul>",
        f"<p>{escape(tactic.attempt_narrative(org_name))}</p>",
        f"<p>{escape(tactic.contacts_narrative(org_name))}</p>",
    ])


def render_field_plan_email(plan: FieldPlan) -> str:
    """Summary of a newly submitted field plan."""
    parts = [
        "<h2>New Field Plan Entry</h2>",
        "<h3>Contact Information</h3>",
        f"<p><strong>Organization:</strong> {_text_or(plan.org_name, 'Not specified')}</p>",
        f"<p><strong>Contact:</strong> {_text_or(plan.contact_name, 'Not provided')}</p>",
        f"<p><strong>Email:</strong> {_text_or(plan.contact_email, 'Not provided')}</p>",
        f"<p><strong>Phone:</strong> {_text_or(plan.contact_phone, 'Not provided')}</p>",
        "<h3>Program Details</h3>",
        f"<p><strong>Data Storage:</strong> {_list_text(plan.data_storage)}</p>",
        f"<p><strong>VAN Committee:</strong> {_text_or(plan.van_committee, NOT_SPECIFIED)}</p>",
        f"<p><strong>Program Tools:</strong> {_list_text(plan.program_tools)}</p>",
        f"<p><strong>Field Tactics:</strong> {_list_text(plan.field_tactics)}</p>",
        f"<p><strong>Field Counties:</strong> {_list_text(plan.field_counties)}</p>",
        "<h3>Demographics</h3>",
        f"<p><strong>Race:</strong> {_list_text(plan.demo_race)}</p>",
        f"<p><strong>Age:</strong> {_list_text(plan.demo_age)}</p>",
        f"<p><strong>Gender:</strong> {_list_text(plan.demo_gender)}</p>",
        f"<p><strong>Affinity Groups:</strong> {_list_text(plan.demo_affinity)}</p>",
        "<h3>Coaching Assessment</h3>",
        f"<p>{escape(plan.coaching_message())}</p>",
    ]

    if plan.tactics:
        parts.append("<h3>Field Tactic Analysis</h3>")
        for tactic in plan.tactics:
            parts.append(
                f'<div class="tactic-section">\n{render_tactic_metrics(tactic, plan.org_name)}\n</div>'
            )
    else:
        parts.append("<p>No field tactics were specified in this plan.</p>")

    if plan.tactic_errors:
        parts.append("<h3>Tactic Data Problems</h3>")
        parts.append("<ul>")
        for error in plan.tactic_errors:
            parts.append(f"<li>{escape(str(error))}</li>")
        parts.append("</ul>")
    return "\n".join(parts)


# ── Alerts ──

def render_missing_counterpart_email(
    title: str,
    org_name: str,
    submitted: str,
    missing: str,
    consequence: str,
    threshold_hours: float,
    suggestions: list[str] | None = None,
) -> str:
    """Alert that an organization's counterpart submission never arrived."""
    parts = [
        f"<h2>{escape(title)}</h2>",
        f"<p><strong>Organization:</strong> {escape(org_name)}</p>",
        f"<p>This organization submitted a {submitted} more than "
        f"{format_number(threshold_hours)} hours ago but has not yet submitted a {missing}.</p>",
        f"<p>{escape(consequence)}</p>",
        f"<p>Please follow up with the organization to request their {missing} submission.</p>",
    ]
    if suggestions:
        parts.append(
            f"<p>Similar organization names on file for the {missing}: "
            f"{escape(', '.join(suggestions))}. Check for a spelling difference "
            f"between the two forms.</p>"
        )
    return "\n".join(parts)


def render_error_email(org_name: str, error_message: str) -> str:
    return "\n".join([
        "<h2>Budget Analysis Error</h2>",
        f"<p><strong>Organization:</strong> {escape(org_name or 'Unknown')}</p>",
        f"<p><strong>Error:</strong> {escape(error_message)}</p>",
        "<p>The budget analysis encountered an error and could not be completed.</p>",
        "<p>Please check the analyzer logs for more details.</p>",
    ])


def render_weekly_summary_email(summary: WeeklySummary) -> str:
    return "\n".join([
        "<h2>Weekly Budget Analysis Summary</h2>",
        f"<p>Report generated on: {escape(summary.generated_on)}</p>",
        "<h3>Analysis Status</h3>",
        "<ul>",
        f"<li>Budgets Analyzed: {summary.analyzed}</li>",
        f"<li>Budgets Pending: {summary.pending}</li>",
        f"<li>Waiting for Field Plans: {summary.waiting_for_plans}</li>",
        "</ul>",
        "<h3>Financial Summary</h3>",
        "<ul>",
        f"<li>Total Requested: {format_dollars(summary.total_requested, cents=True)}</li>",
        f"<li>Total Gap Identified: {format_dollars(summary.total_gap, cents=True)}</li>",
        "</ul>",
        f"<p>{escape(summary.status_text())}</p>",
    ])
