"""Uniform sampling without replacement for oversized datasets.

Both raw text and in-memory record collections are reduced with the
same method: a full Fisher-Yates shuffle followed by taking a prefix,
which gives every subset of the target size equal probability.
Output order is not preserved and callers must not depend on it.
"""

from __future__ import annotations

import random
from collections.abc import Sequence
from typing import TypeVar

from rulesmith.models.dataset import Dataset

T = TypeVar("T")


def sample_records(
    records: Sequence[T],
    target: int,
    rng: random.Random | None = None,
) -> list[T]:
    """Return ``target`` records drawn uniformly without replacement.

    Collections already at or under the target come back unchanged
    (as a list, same order).
    """
    if len(records) <= target:
        return list(records)

    shuffled = list(records)
    # random.shuffle is an in-place Fisher-Yates shuffle
    (rng or random).shuffle(shuffled)
    return shuffled[: max(target, 0)]


def sample(
    dataset: Dataset,
    target: int,
    rng: random.Random | None = None,
) -> Dataset:
    """Reduce a dataset to ``target`` records, keeping its header.

    Args:
        dataset: Input dataset.
        target: Desired record count.
        rng: Optional random source (for reproducible samples).

    Returns:
        The input object itself when it already fits, otherwise a new
        Dataset with exactly ``target`` records and an identical header.
    """
    if dataset.record_count <= target:
        return dataset
    return Dataset(
        header=list(dataset.header),
        records=sample_records(dataset.records, target, rng),
    )


def sample_text(text: str, target: int, rng: random.Random | None = None) -> str:
    """Sample raw dataset text down to ``target`` records.

    Lines are kept verbatim: the first non-blank line is the header and a
    uniform subset of the remaining non-blank lines follows it. Text that
    already fits is returned unchanged.
    """
    lines = [line for line in text.split("\n") if line.strip()]
    if len(lines) - 1 <= target:
        return text
    header, data_lines = lines[0], lines[1:]
    return "\n".join([header, *sample_records(data_lines, target, rng)])
