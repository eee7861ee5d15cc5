"""Rulesmith data models - re-exports all public model classes."""

from rulesmith.models.config import (
    ClientConfig,
    ConfigurationError,
    EstimatorConfig,
    ProjectConfig,
)
from rulesmith.models.dataset import Dataset, validate_dataset
from rulesmith.models.result import (
    AnalysisPayload,
    QuickAnalysisResult,
    RuleRecord,
    RunResult,
    TokenEstimate,
)

__all__ = [
    "AnalysisPayload",
    "ClientConfig",
    "ConfigurationError",
    "Dataset",
    "EstimatorConfig",
    "ProjectConfig",
    "QuickAnalysisResult",
    "RuleRecord",
    "RunResult",
    "TokenEstimate",
    "validate_dataset",
]
