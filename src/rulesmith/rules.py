"""Post-processing for generated rules.

Maps a RuleRecord returned by the analysis service onto a storable rule
definition (severity band, normalized decision, category) and gives a
rough impact estimate against the uploaded dataset.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel

from rulesmith.models.dataset import Dataset
from rulesmith.models.result import RuleRecord

Severity = Literal["high", "medium", "low"]
Decision = Literal["allow", "deny", "review"]

DEFAULT_CONFIDENCE_LEVEL = 70.0
DEFAULT_FALSE_POSITIVE_RATE = 0.05


class RuleDefinition(BaseModel):
    """A rule in the shape the rule store expects."""

    model_config = {"extra": "forbid"}

    name: str
    description: str
    category: str
    condition: str
    severity: Severity
    decision: Decision
    status: Literal["active", "inactive", "draft"] = "active"
    log_only: bool = False
    source: Literal["ai_generated"] = "ai_generated"


class RuleImpact(BaseModel):
    """Estimated effect of a rule on the analysed dataset."""

    would_catch: int
    false_positives: int
    potential_fraud_prevented: int


def severity_for(risk_score: float) -> Severity:
    """Band a 0-100 risk score: >=80 high, >=60 medium, else low."""
    if risk_score >= 80:
        return "high"
    if risk_score >= 60:
        return "medium"
    return "low"


def normalize_decision(decision: str | None) -> Decision:
    """Normalize a free-text decision; anything unrecognized means review."""
    normalized = (decision or "").strip().lower()
    if normalized == "allow":
        return "allow"
    if normalized == "deny":
        return "deny"
    return "review"


def _metadata_value(rule: RuleRecord, key: str) -> object:
    return (rule.metadata or {}).get(key)


def to_rule_definition(rule: RuleRecord, log_only: bool = False) -> RuleDefinition:
    """Convert a generated rule into a storable RuleDefinition."""
    category = _metadata_value(rule, "pattern_type")
    return RuleDefinition(
        name=rule.name,
        description=rule.description,
        category=str(category) if category else "General",
        condition=rule.condition,
        severity=severity_for(rule.risk_score),
        decision=normalize_decision(rule.decision),
        log_only=log_only,
    )


def _as_float(value: object, default: float) -> float:
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
    return number if number else default


def estimate_rule_impact(rule: RuleRecord, dataset: Dataset) -> RuleImpact:
    """Estimate how many transactions a rule would catch.

    Uses the rule's stated confidence level and expected false-positive
    rate with the dataset's mean ``amount``. A simplified heuristic,
    not a replay of the rule condition.
    """
    total = dataset.record_count
    if total == 0:
        return RuleImpact(would_catch=0, false_positives=0, potential_fraud_prevented=0)

    catch_rate = _as_float(_metadata_value(rule, "confidence_level"), DEFAULT_CONFIDENCE_LEVEL)
    false_positive_rate = _as_float(
        _metadata_value(rule, "expected_false_positive_rate"), DEFAULT_FALSE_POSITIVE_RATE
    )

    would_catch = round(total * (catch_rate / 100))
    false_positives = round(would_catch * false_positive_rate)

    amounts = [_as_float(record.get("amount"), 0.0) for record in dataset.records]
    average_amount = sum(amounts) / total

    return RuleImpact(
        would_catch=would_catch,
        false_positives=false_positives,
        potential_fraud_prevented=round(would_catch * average_amount),
    )
