"""Pre-flight token estimation and sampling decision.

Uses a fixed characters-per-token heuristic (not a real tokenizer) to
decide, before any network call, whether a dataset exceeds the request
budget and how far it must be reduced.
"""

from __future__ import annotations

import math
from fractions import Fraction

from rulesmith.models.config import EstimatorConfig
from rulesmith.models.result import TokenEstimate

# Heuristic ratio of characters to tokens. Not configurable.
CHARS_PER_TOKEN = 4


def count_records(text: str) -> int:
    """Count data records: non-blank lines minus the header line."""
    lines = [line for line in text.split("\n") if line.strip()]
    return max(0, len(lines) - 1)


def count_tokens(text: str) -> int:
    """Estimate tokens as ceil(characters / CHARS_PER_TOKEN)."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def estimate_tokens(
    text: str,
    *,
    max_records: int = 1000,
    max_tokens: int | None = 50000,
    target_records: int = 800,
    target_tokens: int | None = 40000,
    cost_per_k_tokens: float = 0.01,
) -> TokenEstimate:
    """Estimate token usage and the sampled size for a dataset.

    Sampling triggers when the record count exceeds ``max_records`` or
    the token count exceeds ``max_tokens``. A single ratio,
    min(target_records/records, target_tokens/tokens, 1), scales both
    counts. Passing None for ``max_tokens``/``target_tokens`` turns the
    estimator into a pure record cap (e.g. max_records=50, target_records=50).

    Args:
        text: Raw dataset text (header line first).
        max_records: Record-count trigger threshold.
        max_tokens: Token-count trigger threshold, or None to disable.
        target_records: Record target once sampling triggers.
        target_tokens: Token target once sampling triggers, or None.
        cost_per_k_tokens: Cost per thousand processed tokens.

    Returns:
        TokenEstimate; empty input yields all-zero counts.
    """
    original_records = count_records(text)
    original_tokens = count_tokens(text)

    should_sample = original_records > max_records or (
        max_tokens is not None and original_tokens > max_tokens
    )

    processed_records = original_records
    processed_tokens = original_tokens

    if should_sample:
        # Exact fractions so a pure record cap lands on exactly target_records
        ratios = [Fraction(1)]
        if original_records > 0:
            ratios.append(Fraction(target_records, original_records))
        if target_tokens is not None and original_tokens > 0:
            ratios.append(Fraction(target_tokens, original_tokens))
        sample_ratio = min(ratios)

        processed_records = math.ceil(original_records * sample_ratio)
        processed_tokens = math.ceil(original_tokens * sample_ratio)

    estimated_cost = round((processed_tokens / 1000) * cost_per_k_tokens, 6)

    return TokenEstimate(
        original_record_count=original_records,
        original_token_count=original_tokens,
        processed_record_count=processed_records,
        processed_token_count=processed_tokens,
        sampling_applied=processed_records < original_records,
        estimated_cost=estimated_cost,
    )


def estimate_with_config(text: str, config: EstimatorConfig | None = None) -> TokenEstimate:
    """Run estimate_tokens() with thresholds taken from an EstimatorConfig."""
    config = config or EstimatorConfig()
    return estimate_tokens(text, **config.model_dump())
