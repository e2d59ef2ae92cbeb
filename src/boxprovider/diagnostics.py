"""Aggregated diagnostics returned from every lifecycle call.

A lifecycle call never stops at the first failure. Field writes and
orchestration steps append to a Diagnostics list, and the caller receives
the whole list at the end. An empty list means success.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum


class Severity(str, Enum):
    """Diagnostic severities."""

    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class Diagnostic:
    """A single failure or warning record."""

    severity: Severity
    summary: str
    detail: str = ""
    attribute: str | None = None

    def __str__(self) -> str:
        text = self.summary
        if self.attribute:
            text = f"{self.attribute}: {text}"
        if self.detail:
            text = f"{text} ({self.detail})"
        return text


class Diagnostics(list[Diagnostic]):
    """Ordered, append-only collection of Diagnostic records."""

    def __init__(self, records: Iterable[Diagnostic] = ()) -> None:
        super().__init__(records)

    def has_error(self) -> bool:
        """True iff any record has error severity."""
        return any(d.severity is Severity.ERROR for d in self)

    @property
    def errors(self) -> list[Diagnostic]:
        return [d for d in self if d.severity is Severity.ERROR]

    def errorf(self, summary: str, *args: object, attribute: str | None = None) -> None:
        """Append an error record with a %-formatted summary."""
        self.append(
            Diagnostic(Severity.ERROR, summary % args if args else summary, attribute=attribute)
        )

    def warnf(self, summary: str, *args: object, attribute: str | None = None) -> None:
        """Append a warning record with a %-formatted summary."""
        self.append(
            Diagnostic(Severity.WARNING, summary % args if args else summary, attribute=attribute)
        )

    def add_error(self, error: BaseException, summary: str | None = None) -> None:
        """Append an error record wrapping an exception.

        Args:
            error: The exception to report.
            summary: Optional summary. Defaults to the exception message.
        """
        attribute = getattr(error, "attribute", None)
        if summary is None:
            self.append(Diagnostic(Severity.ERROR, str(error), attribute=attribute))
        else:
            self.append(Diagnostic(Severity.ERROR, summary, str(error), attribute=attribute))

    @classmethod
    def from_error(cls, error: BaseException, summary: str | None = None) -> Diagnostics:
        """Build a single-record Diagnostics from an exception."""
        diags = cls()
        diags.add_error(error, summary)
        return diags

    def __add__(self, other: Iterable[Diagnostic]) -> Diagnostics:  # type: ignore[override]
        return Diagnostics([*self, *other])

    def __repr__(self) -> str:
        return f"Diagnostics({list.__repr__(self)})"
