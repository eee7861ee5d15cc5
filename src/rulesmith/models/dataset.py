"""Tabular dataset model for transaction uploads.

A Dataset is an ordered header plus records, where every record carries
exactly the header's columns. Missing cells are stored as empty strings,
never dropped. These are plain dataclasses (not Pydantic) because they
are built and sampled in memory and never serialized directly.
"""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass, field

# Header substrings that mark a file as transaction data.
TRANSACTION_COLUMN_HINTS: tuple[str, ...] = ("amount", "transaction")


def _non_blank_lines(text: str) -> list[str]:
    """Split text on newlines and drop whitespace-only lines."""
    return [line.rstrip("\r") for line in text.split("\n") if line.strip()]


def _split_cells(line: str) -> list[str]:
    """Split one comma-separated line into trimmed, unquoted cells."""
    row = next(csv.reader([line]), [])
    return [cell.strip().replace('"', "") for cell in row]


@dataclass
class Dataset:
    """An ordered sequence of records sharing a single header."""

    header: list[str]
    records: list[dict[str, str]] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.records = [self._normalize(record) for record in self.records]

    def _normalize(self, record: dict[str, str]) -> dict[str, str]:
        return {column: record.get(column, "") or "" for column in self.header}

    @property
    def record_count(self) -> int:
        return len(self.records)

    @classmethod
    def from_text(cls, text: str) -> Dataset:
        """Parse comma-separated text into a Dataset.

        The first non-blank line is the header. Blank lines are skipped,
        short rows are padded with empty strings and extra cells dropped,
        so the record count always equals the non-blank line count minus one.

        Args:
            text: Raw dataset text.

        Returns:
            Parsed Dataset (empty header and no records for empty input).
        """
        lines = _non_blank_lines(text)
        if not lines:
            return cls(header=[])

        header = _split_cells(lines[0])
        records: list[dict[str, str]] = []
        for line in lines[1:]:
            values = _split_cells(line)
            records.append(
                {
                    column: values[index] if index < len(values) else ""
                    for index, column in enumerate(header)
                }
            )
        return cls(header=header, records=records)

    def to_text(self) -> str:
        """Render the dataset back to comma-separated text."""
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(self.header)
        for record in self.records:
            writer.writerow([record[column] for column in self.header])
        return buffer.getvalue().rstrip("\n")


def validate_dataset(text: str) -> tuple[bool, str | None]:
    """Check that dataset text looks like a usable transaction export.

    Args:
        text: Raw dataset text.

    Returns:
        Tuple of (valid, error message or None).
    """
    if not text or not text.strip():
        return (False, "Dataset content is empty")

    lines = _non_blank_lines(text)
    if len(lines) < 2:
        return (False, "Dataset must have at least a header and one data row")

    header = lines[0].lower()
    if not any(hint in header for hint in TRANSACTION_COLUMN_HINTS):
        return (
            False,
            "Dataset should contain transaction-related data "
            "(amount, transaction_id, etc.)",
        )

    return (True, None)
