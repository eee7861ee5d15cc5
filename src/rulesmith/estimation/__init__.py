"""Rulesmith estimation - token budgeting and dataset sampling."""

from rulesmith.estimation.sampler import sample, sample_records, sample_text
from rulesmith.estimation.tokens import (
    CHARS_PER_TOKEN,
    count_records,
    count_tokens,
    estimate_tokens,
    estimate_with_config,
)

__all__ = [
    "CHARS_PER_TOKEN",
    "count_records",
    "count_tokens",
    "estimate_tokens",
    "estimate_with_config",
    "sample",
    "sample_records",
    "sample_text",
]
