"""
ColonyLab: Normalization and genetic-interaction scoring for colony screens.

Raw colony sizes from pinned agar plates are confounded by plate position,
plate-to-plate variation and screen-to-screen variation. ColonyLab removes
these step by step:

- Replicate grid positions and exclusions (review, blanks, slow growth, borders)
- Edge-effect scaling of the two outer colony rings
- Plate-to-screen normalization on plate-control colonies
- Spatial-effect removal with a robust polynomial or loess surface
- Fitness ratios and per-query Z-scores against a control screen

Colony tables are assembled from measurement, plate metadata, review and
strain annotation files with the loaders in colonylab.io.

Example:
    >>> from colonylab import assemble_colonies, load_measurements, load_metadata
    >>> from colonylab import normalize_and_score, write_scores
    >>> colonies = assemble_colonies(load_measurements('colonies.tsv'), load_metadata('plates.tsv'))
    >>> result = normalize_and_score(colonies, {"method": "robust", "replicates": 4})
    >>> write_scores(result.scores, 'scores.tsv')

License: MIT
"""

__version__ = "0.1.0"

from .config import FitMethod, PipelineConfig
from .diagnostics import Diagnostic, DiagnosticsReport
from .errors import (
    ColonyLabError,
    ConfigurationError,
    JoinMismatchError,
    NormalizationError,
    SchemaError,
)
from .io import (
    StrainLookup,
    assemble_colonies,
    load_exclusions,
    load_measurements,
    load_metadata,
    write_scores,
)
from .pipeline import PipelineResult, normalize_and_score, normalize_colonies
from .scoring import score_interactions

__all__ = [
    "normalize_and_score",
    "normalize_colonies",
    "score_interactions",
    # I/O
    "load_measurements",
    "load_metadata",
    "load_exclusions",
    "StrainLookup",
    "assemble_colonies",
    "write_scores",
    "PipelineResult",
    "PipelineConfig",
    "FitMethod",
    "Diagnostic",
    "DiagnosticsReport",
    "ColonyLabError",
    "ConfigurationError",
    "SchemaError",
    "NormalizationError",
    "JoinMismatchError",
    "__version__",
]
