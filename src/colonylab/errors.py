"""
ColonyLab: Exception hierarchy.

Configuration problems are fatal and raised before any stage runs.
Normalization and join problems are recoverable: they are raised inside a
single group's computation, caught by the stage, and recorded in the
run's diagnostics report.
"""

from typing import Any, Dict, Optional


class ColonyLabError(Exception):
    """Base class for all ColonyLab errors."""


class ConfigurationError(ColonyLabError, ValueError):
    """
    Invalid pipeline configuration.

    Raised for replicate counts that are not perfect squares or do not
    match the data, unknown fitting methods, and invalid numeric
    parameters.
    """


class SchemaError(ConfigurationError):
    """Input table is missing required columns or has duplicated colonies."""


class _GroupError(ColonyLabError):
    """Error tied to one group of colonies within a pipeline stage."""

    def __init__(
        self,
        message: str,
        stage: Optional[str] = None,
        group: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.stage = stage
        self.group = dict(group) if group else {}

    def __str__(self) -> str:
        if not self.group:
            return self.message
        where = ", ".join(f"{k}={v!r}" for k, v in self.group.items())
        return f"{self.message} [{where}]"


class NormalizationError(_GroupError):
    """
    A group's reference statistic is undefined.

    Examples: no usable plate controls, an edge band whose factor is
    undefined, or a degenerate surface fit. The affected sizes become
    missing and propagate as missing through later stages.
    """


class JoinMismatchError(_GroupError):
    """Query rows without a matching control row (or vice versa)."""
