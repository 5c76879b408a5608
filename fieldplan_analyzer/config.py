"""Runtime configuration for the Field Plan Analyzer.

A single ``AnalyzerConfig`` object is built once at process start (from
``config/analyzer_config.json`` or defaults) and passed to every component
constructor. Components never read ambient global state for recipients,
thresholds or cost targets.

Example config file::

    {
        "test_mode": false,
        "recipients": ["field-ops@example.org"],
        "cost_targets": {"PHONE": {"target": 0.66, "std_dev": 0.15}},
        "missing_counterpart_threshold_hours": 72
    }
"""

import json
import logging
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError, field_validator

from fieldplan_analyzer.paths import (
    ANALYZER_CONFIG_PATH,
    PROPERTIES_PATH,
    WORKBOOK_PATH,
)

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Raised when the environment the analyzer depends on is unusable.

    Covers a missing sheet/table, an unreadable config file, or a config
    file that fails validation. Fatal for the current pass.
    """


# ── Cost targets ──

class CostTarget(BaseModel):
    """Expected cost-per-attempt band for one tactic."""

    target: float = Field(..., gt=0, description="Expected dollars per contact attempt")
    std_dev: float = Field(..., ge=0, description="Allowed deviation either side of target")


DEFAULT_COST_TARGETS: dict[str, CostTarget] = {
    "DOOR": CostTarget(target=1.00, std_dev=0.20),
    "PHONE": CostTarget(target=0.66, std_dev=0.15),
    "TEXT": CostTarget(target=0.02, std_dev=0.01),
    "OPEN": CostTarget(target=0.40, std_dev=0.10),
}


# ── Nested sections ──

class TableNames(BaseModel):
    """Sheet names in the tabular store."""

    budget: str = Field(default="2025_field_budget", description="Budget form responses")
    field_plan: str = Field(default="2025_field_plan", description="Field plan form responses")


class SmtpSettings(BaseModel):
    """Outbound mail server settings for ``SmtpNotifier``."""

    host: str = Field(default="localhost")
    port: int = Field(default=587, gt=0)
    use_tls: bool = Field(default=True)
    username: str | None = Field(default=None)
    password_env: str = Field(
        default="FIELDPLAN_SMTP_PASSWORD",
        description="Environment variable holding the SMTP password",
    )
    sender_address: str = Field(default="field-analyzer@example.org")


class NotifierSettings(BaseModel):
    """Retry policy applied at the notifier boundary."""

    max_attempts: int = Field(default=3, ge=1)
    retry_delay_seconds: float = Field(default=1.0, ge=0)
    smtp: SmtpSettings = Field(default_factory=SmtpSettings)


# ── Top-level config ──

class AnalyzerConfig(BaseModel):
    """Everything the analyzer needs to know about its deployment."""

    recipients: list[str] = Field(
        default_factory=lambda: ["field-ops@example.org", "data-team@example.org"],
        description="Production recipients for analysis and alert emails",
    )
    test_recipients: list[str] = Field(
        default_factory=lambda: ["analyzer-test@example.org"],
        description="Recipients used instead of production ones in test mode",
    )
    error_recipients: list[str] = Field(
        default_factory=lambda: ["data-team@example.org"],
        description="Operations recipients for error reports",
    )
    reply_to: str = Field(default="field-ops@example.org")
    sender_name: str = Field(default="Field Plan Analyzer")
    test_mode: bool = Field(default=False)
    dry_run: bool = Field(
        default=False,
        description="Log emails instead of sending; never write the workbook or saved state",
    )
    cost_targets: dict[str, CostTarget] = Field(
        default_factory=lambda: dict(DEFAULT_COST_TARGETS),
    )
    missing_counterpart_threshold_hours: float = Field(default=72, gt=0)
    data_stipend_hourly_rate: float = Field(default=20, gt=0)
    tables: TableNames = Field(default_factory=TableNames)
    protected_phrases: list[str] = Field(
        default_factory=lambda: [
            "St. Clair",
            "Black or African American",
            "American Indian or Alaska Native",
            "Native Hawaiian or Other Pacific Islander",
            "Hispanic or Latino",
            "Middle Eastern or North African",
        ],
        description="Multi-word values kept whole when splitting on whitespace",
    )
    suggestion_score_cutoff: float = Field(default=80, ge=0, le=100)
    suggestion_limit: int = Field(default=3, ge=0)
    notifier: NotifierSettings = Field(default_factory=NotifierSettings)
    workbook_path: Path = Field(default=WORKBOOK_PATH)
    properties_path: Path = Field(default=PROPERTIES_PATH)

    @field_validator("cost_targets", mode="before")
    @classmethod
    def merge_cost_targets(cls, v):
        """Overlay partial cost targets onto the defaults, upper-casing keys."""
        if not isinstance(v, dict):
            return v
        merged: dict = {k: t.model_dump() for k, t in DEFAULT_COST_TARGETS.items()}
        for key, value in v.items():
            merged[str(key).upper()] = value
        return merged

    def active_recipients(self) -> list[str]:
        """Recipients for analysis/alert emails, honoring test mode."""
        return list(self.test_recipients if self.test_mode else self.recipients)

    def subject(self, text: str) -> str:
        """Prefix a subject line with ``[TEST]`` in test mode."""
        return f"[TEST] {text}" if self.test_mode else text


def load_config(path: Path | None = None) -> AnalyzerConfig:
    """Load the analyzer configuration.

    Args:
        path: Explicit config file. When omitted, the default
            ``config/analyzer_config.json`` is used if present, otherwise
            built-in defaults apply.

    Returns:
        Validated AnalyzerConfig.

    Raises:
        ConfigurationError: An explicit path is missing, or the file is not
            valid JSON, or it fails validation.
    """
    if path is None:
        path = ANALYZER_CONFIG_PATH
        if not path.exists():
            logger.info("No config file at %s, using defaults", path)
            return AnalyzerConfig()
    elif not path.exists():
        raise ConfigurationError(f"Config file not found: {path}")

    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError) as exc:
        raise ConfigurationError(f"Cannot read config file {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a JSON object")

    try:
        config = AnalyzerConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid config file {path}: {exc}") from exc

    logger.debug("Loaded config from %s", path)
    return config
