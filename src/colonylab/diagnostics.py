"""
ColonyLab: Per-group diagnostics collected during a pipeline run.

A run never aborts because one plate or screen is unusable. Instead, every
recoverable failure is recorded here, keyed by stage and group identity,
and returned alongside the result table. The caller decides whether any
of them constitute a hard failure.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional
import logging

import pandas as pd

from .errors import ColonyLabError

logger = logging.getLogger(__name__)


@dataclass
class Diagnostic:
    """
    One recorded problem.

    Attributes:
        stage: Pipeline stage that detected the problem.
        kind: Error class name (e.g. "NormalizationError").
        message: Human-readable description.
        group: Group identity, mapping key column to value.
        n_rows: Number of colony or score rows affected.
    """
    stage: str
    kind: str
    message: str
    group: Dict[str, Any] = field(default_factory=dict)
    n_rows: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a flat dictionary."""
        return {
            'stage': self.stage,
            'kind': self.kind,
            'message': self.message,
            'n_rows': self.n_rows,
            **{f"group_{k}": v for k, v in self.group.items()},
        }


@dataclass
class DiagnosticsReport:
    """Ordered collection of diagnostics for one run."""
    entries: List[Diagnostic] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(self.entries)

    @property
    def has_errors(self) -> bool:
        """Whether any problem was recorded."""
        return len(self.entries) > 0

    def add(
        self,
        stage: str,
        kind: str,
        message: str,
        group: Optional[Dict[str, Any]] = None,
        n_rows: int = 0,
    ) -> Diagnostic:
        """Append a diagnostic and log it as a warning."""
        entry = Diagnostic(
            stage=stage,
            kind=kind,
            message=message,
            group=dict(group) if group else {},
            n_rows=int(n_rows),
        )
        self.entries.append(entry)
        logger.warning(f"[{stage}] {kind}: {message} {entry.group} ({entry.n_rows} rows)")
        return entry

    def record(
        self,
        error: ColonyLabError,
        n_rows: int = 0,
        stage: Optional[str] = None,
    ) -> Diagnostic:
        """
        Record a caught group error.

        Args:
            error: NormalizationError or JoinMismatchError raised for a group.
            n_rows: Rows affected by the failure.
            stage: Stage name, when the error does not carry one.

        Returns:
            The recorded Diagnostic.
        """
        return self.add(
            stage=stage or getattr(error, 'stage', None) or "unknown",
            kind=type(error).__name__,
            message=getattr(error, 'message', str(error)),
            group=getattr(error, 'group', None),
            n_rows=n_rows,
        )

    def extend(self, other: "DiagnosticsReport") -> None:
        """Append all entries of another report."""
        self.entries.extend(other.entries)

    def by_stage(self, stage: str) -> List[Diagnostic]:
        """Diagnostics recorded by a stage."""
        return [d for d in self.entries if d.stage == stage]

    def by_kind(self, kind: str) -> List[Diagnostic]:
        """Diagnostics of one error kind."""
        return [d for d in self.entries if d.kind == kind]

    def to_frame(self) -> pd.DataFrame:
        """Diagnostics as a DataFrame, one row per entry."""
        columns = ['stage', 'kind', 'message', 'n_rows']
        if not self.entries:
            return pd.DataFrame(columns=columns)
        return pd.DataFrame([d.to_dict() for d in self.entries])

    def summary(self) -> str:
        """Generate human-readable summary."""
        if not self.entries:
            return "No problems recorded."

        lines = [f"{len(self.entries)} problem(s) recorded:"]
        for d in self.entries:
            where = ", ".join(f"{k}={v}" for k, v in d.group.items())
            lines.append(f"  [{d.stage}] {d.kind}: {d.message} ({where}; {d.n_rows} rows)")
        return "\n".join(lines)
