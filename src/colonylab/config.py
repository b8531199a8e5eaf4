"""
ColonyLab: Pipeline configuration.

Two interchangeable surface-fitting strategies are available for the
spatial-effect stage:

1. ROBUST (default): polynomial surface fitted with an M-estimator
   - Iteratively reweighted least squares, Huber norm
   - Resistant to a few outlier colonies on a plate

2. LOCAL: locally weighted polynomial regression (loess)
   - Follows non-polynomial gradients
   - Degree limited to 1 or 2

All validation happens when the configuration is built, so a bad
configuration fails before any colony is processed.
"""

from dataclasses import asdict, dataclass, fields
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union
import logging
import math

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


class FitMethod(Enum):
    """
    Surface-fitting strategy for spatial-effect removal.

    ROBUST: Robust polynomial regression (statsmodels RLM)
    LOCAL: Local polynomial regression (loess)
    """
    ROBUST = "robust"
    LOCAL = "local"

    @classmethod
    def coerce(cls, value: Union["FitMethod", str]) -> "FitMethod":
        """Accept an enum member or its string value."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.lower())
            except ValueError:
                pass
        choices = ", ".join(repr(m.value) for m in cls)
        raise ConfigurationError(f"Unknown fitting method {value!r}; expected one of {choices}")


def is_perfect_square(n: int) -> bool:
    """Whether n is a positive perfect square (1, 4, 9, ...)."""
    if n < 1:
        return False
    root = math.isqrt(n)
    return root * root == n


@dataclass
class PipelineConfig:
    """
    Configuration for normalization and scoring.

    Attributes:
        method: Surface-fitting strategy (robust/local).
        degree: Polynomial degree of the spatial surface.
        replicates: Replicates per plate cell. Must be a perfect square and
            match the data; inferred from the data when None.
        min_size: Floor applied to normalized sizes before scoring.
        span: Neighbourhood fraction for local regression.
        slow_growth_fraction: Control-screen colonies smaller than this
            fraction of their plate's control median are excluded.
        blank_strain: Strain name marking empty positions.
    """
    method: FitMethod = FitMethod.ROBUST
    degree: int = 2
    replicates: Optional[int] = None
    min_size: float = 0.01
    span: float = 0.75
    slow_growth_fraction: float = 0.25
    blank_strain: str = "blank"

    def __post_init__(self):
        """Validate configuration."""
        self.method = FitMethod.coerce(self.method)

        if isinstance(self.degree, bool) or not isinstance(self.degree, int):
            raise ConfigurationError(f"degree must be an integer, got {self.degree!r}")
        if self.degree < 1:
            raise ConfigurationError(f"degree must be positive, got {self.degree}")
        if self.method == FitMethod.LOCAL and self.degree > 2:
            raise ConfigurationError(
                f"local regression supports degree 1 or 2, got {self.degree}"
            )

        if self.replicates is not None:
            if isinstance(self.replicates, bool) or not isinstance(self.replicates, int):
                raise ConfigurationError(
                    f"replicates must be an integer, got {self.replicates!r}"
                )
            if not is_perfect_square(self.replicates):
                raise ConfigurationError(
                    f"replicates must be a perfect square (1, 4, 9, ...), got {self.replicates}"
                )

        if not self.min_size > 0:
            raise ConfigurationError(f"min_size must be positive, got {self.min_size}")
        if not self.span > 0:
            raise ConfigurationError(f"span must be positive, got {self.span}")
        if not 0 <= self.slow_growth_fraction < 1:
            raise ConfigurationError(
                f"slow_growth_fraction must be in [0, 1), got {self.slow_growth_fraction}"
            )

    @classmethod
    def from_dict(cls, values: Mapping[str, Any]) -> "PipelineConfig":
        """
        Build a configuration from a plain mapping.

        Args:
            values: Mapping of option name to value, e.g.
                ``{"method": "local", "degree": 2, "replicates": 4}``.

        Returns:
            Validated PipelineConfig.

        Example:
            >>> config = PipelineConfig.from_dict({"method": "local"})
            >>> config.method
            <FitMethod.LOCAL: 'local'>
        """
        known = {f.name for f in fields(cls)}
        unknown = set(values) - known
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {sorted(unknown)}")
        return cls(**dict(values))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        d = asdict(self)
        d["method"] = self.method.value
        return d


def resolve_config(
    config: Union[PipelineConfig, Mapping[str, Any], None] = None,
) -> PipelineConfig:
    """Turn None, a mapping, or a PipelineConfig into a PipelineConfig."""
    if config is None:
        return PipelineConfig()
    if isinstance(config, PipelineConfig):
        return config
    if isinstance(config, Mapping):
        return PipelineConfig.from_dict(config)
    raise ConfigurationError(
        f"config must be PipelineConfig, mapping or None, got {type(config).__name__}"
    )
