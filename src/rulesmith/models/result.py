"""Result data models for analysis outputs.

These models encode the client's output contract: the pre-flight token
estimate, the rules returned by the analysis service, and the final
results of the single-call and streaming paths. Results are frozen so
a finished run can be handed to callers as an immutable snapshot.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator


class TokenEstimate(BaseModel):
    """Pre-flight size estimate and sampling decision for a dataset."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    original_record_count: int = 0
    original_token_count: int = 0
    processed_record_count: int = 0
    processed_token_count: int = 0
    sampling_applied: bool = False
    estimated_cost: float = 0.0


class RuleRecord(BaseModel):
    """A single fraud-detection rule proposed by the analysis service.

    Field names follow the service's wire format via aliases
    (rule_name, conditions). Only the shape is checked: null or
    mistyped scalar fields fall back to their defaults, and the rule
    semantics are left to the caller.
    """

    model_config = ConfigDict(frozen=True, extra="allow", populate_by_name=True)

    name: str = Field(default="", alias="rule_name")
    description: str = ""
    risk_score: float = 0.0
    condition: str = Field(default="", alias="conditions")
    decision: str | None = None
    metadata: dict[str, Any] | None = None

    @field_validator("name", "description", "condition", mode="before")
    @classmethod
    def _text_or_empty(cls, value: Any) -> Any:
        if value is None:
            return ""
        if isinstance(value, (int, float)):
            return str(value)
        return value

    @field_validator("risk_score", mode="before")
    @classmethod
    def _score_or_zero(cls, value: Any) -> float:
        if value is None or isinstance(value, bool):
            return 0.0
        try:
            return float(value)
        except (TypeError, ValueError):
            return 0.0

    @field_validator("decision", mode="before")
    @classmethod
    def _decision_text(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value
        return str(value)

    @field_validator("metadata", mode="before")
    @classmethod
    def _metadata_mapping(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else None


class AnalysisPayload(BaseModel):
    """Structured analysis output: an ordered list of rules."""

    model_config = ConfigDict(frozen=True)

    rules: list[RuleRecord]


def coerce_payload(raw: Any) -> AnalysisPayload | None:
    """Validate the structural shape of an upstream payload.

    Args:
        raw: The decoded ``data`` value from the service (or None).

    Returns:
        AnalysisPayload, or None when no payload was supplied.

    Raises:
        ValueError: If the payload is present but lacks a ``rules`` list.
    """
    if raw is None:
        return None
    if not isinstance(raw, dict) or not isinstance(raw.get("rules"), list):
        raise ValueError(
            "Invalid response format: expected { rules: [...] }"
        )
    try:
        return AnalysisPayload.model_validate(raw)
    except ValidationError as exc:
        raise ValueError(f"Invalid response format: {exc.error_count()} rule error(s)") from exc


class QuickAnalysisResult(BaseModel):
    """Result of the single-call analysis path."""

    model_config = ConfigDict(frozen=True)

    success: bool
    data: AnalysisPayload | None = None
    estimate: TokenEstimate | None = None
    elapsed_seconds: float | None = None
    error: str | None = None


class RunResult(BaseModel):
    """Final result of one streaming analysis run."""

    model_config = ConfigDict(frozen=True)

    success: bool = False
    data: AnalysisPayload | None = None
    thread_id: str | None = None
    assistant_id: str | None = None
    error: str | None = None

    @classmethod
    def failure(cls, error: str) -> RunResult:
        """Build a failed result carrying only an error message."""
        return cls(success=False, error=error)
