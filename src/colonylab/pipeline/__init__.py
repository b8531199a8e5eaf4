"""
ColonyLab Pipeline: Colony-size normalization stages.

Each stage takes a colony table and returns a new one with the same rows
and updated or added columns. Per-plate statistics group by
(query_id, query_name, plate); per-screen statistics by
(query_id, query_name).

Example:
    >>> from colonylab.pipeline import normalize_colonies
    >>> normalized = normalize_colonies(colonies, {"method": "local"})
"""

from .positions import (
    colony_position,
    decode_colony_position,
    map_colony_positions,
    replicate_side,
    row_indices,
)
from .exclusion import border_mask, mark_exclusions, slow_growth_mask
from .edges import edge_bands, scale_edges
from .plates import normalize_plates
from .spatial import remove_spatial_effect
from .moments import clamp_sizes, finalize_sizes, screen_moments
from .core import (
    PipelineResult,
    build_surface_model,
    normalize_and_score,
    normalize_colonies,
)

__all__ = [
    # Positions
    "replicate_side",
    "colony_position",
    "decode_colony_position",
    "row_indices",
    "map_colony_positions",
    # Exclusions
    "slow_growth_mask",
    "border_mask",
    "mark_exclusions",
    # Corrections
    "edge_bands",
    "scale_edges",
    "normalize_plates",
    "remove_spatial_effect",
    "clamp_sizes",
    "screen_moments",
    "finalize_sizes",
    # Orchestration
    "PipelineResult",
    "build_surface_model",
    "normalize_colonies",
    "normalize_and_score",
]
