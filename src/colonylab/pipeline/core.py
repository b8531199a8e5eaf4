"""
ColonyLab Pipeline: Normalization and scoring entry points.

Stages run in a fixed order, each returning a new table:

1. map_colony_positions   replicate grid coordinates
2. mark_exclusions        review, blank, slow-growth and border exclusions
3. scale_edges            outer-ring edge correction
4. normalize_plates       plate controls to screen controls
5. remove_spatial_effect  smooth plate gradients
6. finalize_sizes         size floor, wild-type reference moments
7. score_interactions     fitness ratios and Z-scores

Configuration problems stop the run before stage 1. Problems confined to
one plate or screen are collected in the diagnostics report and the run
continues.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Union
import logging

import pandas as pd

from ..config import PipelineConfig, resolve_config
from ..diagnostics import DiagnosticsReport
from ..schema import SIZE, SIZE_RAW, validate_colonies
from ..scoring import score_interactions
from ..surface import SurfaceModel, get_surface_model
from .edges import scale_edges
from .exclusion import mark_exclusions
from .moments import finalize_sizes
from .plates import normalize_plates
from .positions import map_colony_positions
from .spatial import remove_spatial_effect

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """
    Output of a normalization and scoring run.

    Attributes:
        scores: ScoreRecord table, one row per strain position of each
            query screen.
        colonies: Normalized colony table (all screens).
        diagnostics: Per-group problems recorded during the run.
        config: Configuration the run used.
    """
    scores: pd.DataFrame
    colonies: pd.DataFrame
    diagnostics: DiagnosticsReport = field(default_factory=DiagnosticsReport)
    config: PipelineConfig = field(default_factory=PipelineConfig)

    @property
    def is_complete(self) -> bool:
        """Whether the run finished without any recorded problem."""
        return not self.diagnostics.has_errors

    @property
    def n_scored(self) -> int:
        """Strain positions with a defined Elogr."""
        return int(self.scores['Elogr'].notna().sum())

    def summary(self) -> str:
        """Generate human-readable summary."""
        lines = [
            "=" * 60,
            "ColonyLab Normalization & Scoring",
            "=" * 60,
            "",
            f"Method: {self.config.method.value} (degree {self.config.degree})",
            f"Colonies: {len(self.colonies)} "
            f"({int(self.colonies[SIZE].notna().sum())} with usable size)",
            f"Strain positions scored: {self.n_scored}/{len(self.scores)}",
            "",
            self.diagnostics.summary(),
        ]
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Convert summary statistics to dictionary."""
        return {
            'config': self.config.to_dict(),
            'n_colonies': len(self.colonies),
            'n_scores': len(self.scores),
            'n_scored': self.n_scored,
            'n_problems': len(self.diagnostics),
            'is_complete': self.is_complete,
        }


def build_surface_model(config: PipelineConfig) -> SurfaceModel:
    """Surface model selected by a configuration."""
    return get_surface_model(config.method, degree=config.degree, span=config.span)


def normalize_colonies(
    colonies: pd.DataFrame,
    config: Union[PipelineConfig, Mapping[str, Any], None] = None,
    diagnostics: Optional[DiagnosticsReport] = None,
) -> pd.DataFrame:
    """
    Run the normalization stages (1-6).

    Args:
        colonies: Raw colony table (see colonylab.schema.REQUIRED_COLUMNS).
        config: PipelineConfig, mapping of options, or None for defaults.
        diagnostics: Report collecting per-group problems.

    Returns:
        Normalized colony table with size_raw, colony_row, colony_col,
        excluded, spatial_trend, size_wt and size_wt_sd.

    Raises:
        ConfigurationError: Invalid configuration or replicate layout.
        SchemaError: Invalid input table.
    """
    config = resolve_config(config)
    model = build_surface_model(config)
    if diagnostics is None:
        diagnostics = DiagnosticsReport()

    df = validate_colonies(colonies)
    df[SIZE_RAW] = df[SIZE]
    df = map_colony_positions(df, replicates=config.replicates)

    logger.info(f"Normalizing {len(df)} colonies with {model!r}")

    df = mark_exclusions(
        df,
        slow_growth_fraction=config.slow_growth_fraction,
        blank_strain=config.blank_strain,
    )
    df = scale_edges(df, diagnostics=diagnostics)
    df = normalize_plates(df, diagnostics=diagnostics)
    df = remove_spatial_effect(df, model=model, diagnostics=diagnostics)
    df = finalize_sizes(df, min_size=config.min_size)
    return df


def normalize_and_score(
    colonies: pd.DataFrame,
    config: Union[PipelineConfig, Mapping[str, Any], None] = None,
) -> PipelineResult:
    """
    Normalize colony sizes and score genetic interactions.

    Args:
        colonies: Raw colony table for one or more query screens and their
            control screens.
        config: PipelineConfig or mapping with keys method ('robust' or
            'local'), degree, replicates, min_size, span,
            slow_growth_fraction, blank_strain.

    Returns:
        PipelineResult with scores, normalized colonies and diagnostics.

    Example:
        >>> result = normalize_and_score(colonies, {"method": "robust", "replicates": 4})
        >>> print(result.summary())
        >>> if not result.is_complete:
        ...     print(result.diagnostics.to_frame())
    """
    config = resolve_config(config)
    diagnostics = DiagnosticsReport()

    normalized = normalize_colonies(colonies, config=config, diagnostics=diagnostics)
    scores = score_interactions(normalized, diagnostics=diagnostics)

    logger.info(
        f"Scored {len(scores)} strain positions; "
        f"{len(diagnostics)} problem(s) recorded"
    )
    return PipelineResult(
        scores=scores,
        colonies=normalized,
        diagnostics=diagnostics,
        config=config,
    )
