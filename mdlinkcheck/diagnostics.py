"""Aggregation of link outcomes into an ordered, policy-filtered report."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .config import WarningPolicy
from .models import ERROR, WARNING, Document, LinkOccurrence, Outcome, Span

INCOMPLETE_LINK_REASON = "no matching reference definition"


@dataclass(frozen=True)
class Diagnostic:
    """A reportable message tied to exactly one link occurrence."""

    occurrence: LinkOccurrence
    outcome: Outcome
    severity: str

    @property
    def document(self) -> Document:
        return self.occurrence.document

    @property
    def span(self) -> Span:
        return self.occurrence.href_span

    @property
    def reason(self) -> str:
        return self.outcome.reason

    @property
    def notes(self) -> Tuple[str, ...]:
        return self.outcome.notes

    @property
    def message(self) -> str:
        if self.occurrence.kind == "incomplete":
            return f"Did you forget to define a URL for `{self.occurrence.href}`?"
        reason = self.outcome.reason
        return f"{reason[:1].upper()}{reason[1:]}: {self.occurrence.href}"

    def to_dict(self) -> Dict[str, Any]:
        span = self.span
        return {
            "document": self.document.path,
            "span": {
                "start": span.start,
                "end": span.end,
                "line": span.line,
                "column": span.column,
            },
            "severity": self.severity,
            "message": self.message,
            "reason": self.reason,
            "notes": list(self.notes),
        }


@dataclass(frozen=True)
class Anomaly:
    """An internal failure that prevented part of the book from being checked."""

    message: str
    document: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"document": self.document, "message": self.message}


@dataclass
class Report:
    """Ordered diagnostics, anomalies and the overall verdict of a run."""

    diagnostics: List[Diagnostic] = field(default_factory=list)
    anomalies: List[Anomaly] = field(default_factory=list)
    success: bool = True
    checked: int = 0

    @property
    def errors(self) -> List[Diagnostic]:
        return [diagnostic for diagnostic in self.diagnostics if diagnostic.severity == ERROR]

    @property
    def warnings(self) -> List[Diagnostic]:
        return [diagnostic for diagnostic in self.diagnostics if diagnostic.severity == WARNING]

    def render_text(self) -> str:
        """Render the report as compiler-style diagnostics."""
        blocks = [_render_diagnostic(diagnostic) for diagnostic in self.diagnostics]
        for anomaly in self.anomalies:
            location = f" ({anomaly.document})" if anomaly.document else ""
            blocks.append(f"error: internal failure{location}: {anomaly.message}")
        summary = (
            f"{len(self.errors)} error(s), {len(self.warnings)} warning(s), "
            f"{len(self.anomalies)} internal failure(s) in {self.checked} link(s)"
        )
        blocks.append(summary)
        return "\n\n".join(blocks) + "\n"

    def to_json(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "checked": self.checked,
            "diagnostics": [diagnostic.to_dict() for diagnostic in self.diagnostics],
            "anomalies": [anomaly.to_dict() for anomaly in self.anomalies],
        }


def _render_diagnostic(diagnostic: Diagnostic) -> str:
    document = diagnostic.document
    span = diagnostic.span
    source = document.line_text(span.line)
    gutter = " " * len(str(span.line))
    width = _underline_width(document, span, source)
    lines = [
        f"{diagnostic.severity}: {diagnostic.message}",
        f"{gutter}--> {document.path}:{span.line}:{span.column}",
        f"{gutter} |",
        f"{span.line} | {source}",
        f"{gutter} | {' ' * (span.column - 1)}{'^' * width}",
    ]
    lines.extend(f"{gutter} = {note}" for note in diagnostic.notes)
    return "\n".join(lines)


def _underline_width(document: Document, span: Span, source: str) -> int:
    encoded = document.text.encode("utf-8")
    covered = encoded[span.start : span.end].decode("utf-8", errors="replace")
    covered = covered.split("\n", 1)[0]
    available = len(source) - (span.column - 1)
    return max(1, min(len(covered), available))


class DiagnosticsAggregator:
    """Applies the warning policy and orders messages by document then span."""

    def __init__(self, policy: str = WarningPolicy.WARN) -> None:
        if policy not in WarningPolicy.CHOICES:
            raise ValueError(f"Unknown warning policy: {policy}")
        self.policy = policy

    def build(
        self,
        results: Iterable[Tuple[LinkOccurrence, Outcome]],
        documents: Sequence[Document],
        anomalies: Sequence[Anomaly] = (),
    ) -> Report:
        order = {document: index for index, document in enumerate(documents)}
        checked = 0
        diagnostics: List[Diagnostic] = []
        for occurrence, outcome in results:
            checked += 1
            if outcome.is_valid or self.policy == WarningPolicy.IGNORE:
                continue
            severity = ERROR if self.policy == WarningPolicy.ERROR else outcome.status
            diagnostics.append(Diagnostic(occurrence, outcome, severity))

        diagnostics.sort(
            key=lambda diagnostic: (
                order.get(diagnostic.document, len(order)),
                diagnostic.document.path,
                diagnostic.span.start,
            )
        )

        success = not anomalies
        if self.policy == WarningPolicy.ERROR and diagnostics:
            success = False
        return Report(
            diagnostics=diagnostics,
            anomalies=list(anomalies),
            success=success,
            checked=checked,
        )


def incomplete_link_outcome(occurrence: LinkOccurrence, severity: str = WARNING) -> Outcome:
    """Outcome for a ``[label]`` whose label has no reference definition."""
    hint = (
        "help: declare the link's URL. For example: "
        f"`[{occurrence.href}]: http://example.com/`"
    )
    return Outcome(severity, INCOMPLETE_LINK_REASON, (hint,))


__all__ = [
    "Anomaly",
    "Diagnostic",
    "DiagnosticsAggregator",
    "INCOMPLETE_LINK_REASON",
    "Report",
    "incomplete_link_outcome",
]
