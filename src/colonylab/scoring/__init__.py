"""
ColonyLab Scoring: Fitness ratios and interaction Z-scores.
"""

from .interactions import (
    FITNESS_COLUMNS,
    MATCH_KEYS,
    ZSCORE_RTOL,
    aggregate_replicates,
    fitness_terms,
    join_tracks,
    score_interactions,
    split_tracks,
    zscore_by_query,
)

__all__ = [
    "FITNESS_COLUMNS",
    "MATCH_KEYS",
    "ZSCORE_RTOL",
    "split_tracks",
    "join_tracks",
    "aggregate_replicates",
    "fitness_terms",
    "zscore_by_query",
    "score_interactions",
]
