"""
ColonyLab Scoring: Genetic interaction scores.

Query colonies are paired with the colony of the same strain at the same
position in their control screen. After averaging replicates:

    Fi    = size_query_wt / size_control_wt    screen-level scale ratio
    Fj    = size_control  / size_control_wt    control strain fitness
    Fij   = size_query    / size_control_wt    fitness under the query perturbation
    Eij   = Fi * Fj                            expectation with no interaction
    Elogr = log2(Fij / Eij)
    Ediff = Fij - Eij

Elogr and Ediff are then Z-scored within each query. Strains far from zero
in a consistent direction are interaction candidates.
"""

from typing import Optional, Tuple
import logging

import numpy as np
import pandas as pd

from ..diagnostics import DiagnosticsReport
from ..errors import JoinMismatchError
from ..schema import (
    COLUMN,
    CONTROL_SCREEN_ID,
    PLATE,
    QUERY_ID,
    QUERY_NAME,
    REPLICATE,
    ROW,
    SCORE_COLUMNS,
    SCORE_KEYS,
    SCREEN_ID,
    SCREEN_KEYS,
    SIZE,
    SIZE_WT,
    STRAIN_ID,
    STRAIN_NAME,
    group_frame,
    is_control_screen,
    split_keys,
)

logger = logging.getLogger(__name__)

STAGE = "scoring"

# Colony position shared by a query colony and its control colony
MATCH_KEYS = [STRAIN_ID, PLATE, ROW, COLUMN, REPLICATE]

FITNESS_COLUMNS = ['Fi', 'Fj', 'Fij', 'Eij', 'Elogr', 'Ediff']

# Spread at or below this fraction of max(1, |mean|) is rounding noise
ZSCORE_RTOL = 1e-9


def split_tracks(colonies: pd.DataFrame) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Split normalized colonies into query and control tracks.

    Returns:
        (query, control) where control rows have screen_id == control_screen_id.
    """
    control = is_control_screen(colonies)
    return colonies[~control].copy(), colonies[control].copy()


def _report(
    diagnostics: Optional[DiagnosticsReport],
    message: str,
    group: dict,
    n_rows: int,
) -> None:
    error = JoinMismatchError(message, stage=STAGE, group=group)
    if diagnostics is not None:
        diagnostics.record(error, n_rows=n_rows)
    else:
        logger.warning(f"[{STAGE}] {error} ({n_rows} rows)")


def join_tracks(
    query: pd.DataFrame,
    control: pd.DataFrame,
    diagnostics: Optional[DiagnosticsReport] = None,
) -> pd.DataFrame:
    """
    Pair every query colony with its control colony.

    A query colony matches the control colony of its control screen with the
    same strain, plate, row, column and replicate. Query colonies without a
    match keep a missing `size_control`; `size_control_wt` is the control
    screen's reference and is present whenever that screen is.

    Args:
        query: Query-track colonies (normalized, with size_wt).
        control: Control-track colonies (normalized, with size_wt).
        diagnostics: Report receiving a JoinMismatchError per query screen with
            unmatched colonies and per control screen with unused colonies.

    Returns:
        One row per query colony with size_query, size_query_wt,
        size_control and size_control_wt.
    """
    query_track = query[
        [SCREEN_ID, CONTROL_SCREEN_ID, STRAIN_ID, STRAIN_NAME, QUERY_ID, QUERY_NAME]
        + [PLATE, ROW, COLUMN, REPLICATE, SIZE, SIZE_WT]
    ].rename(columns={SIZE: 'size_query', SIZE_WT: 'size_query_wt'})

    control_track = control[[SCREEN_ID] + MATCH_KEYS + [SIZE]].rename(
        columns={SCREEN_ID: CONTROL_SCREEN_ID, SIZE: 'size_control'}
    )

    joined = query_track.merge(
        control_track,
        on=[CONTROL_SCREEN_ID] + MATCH_KEYS,
        how='left',
        validate='many_to_one',
        indicator=True,
    )

    control_wt = control.groupby(SCREEN_ID, sort=False)[SIZE_WT].mean()
    joined['size_control_wt'] = joined[CONTROL_SCREEN_ID].map(control_wt)

    unmatched = joined['_merge'] == 'left_only'
    for key, rows in group_frame(joined[unmatched], [SCREEN_ID, CONTROL_SCREEN_ID]):
        _report(
            diagnostics,
            f"{len(rows)} query colonies have no matching control colony",
            split_keys(key, [SCREEN_ID, CONTROL_SCREEN_ID]),
            len(rows),
        )

    used = query_track[[CONTROL_SCREEN_ID] + MATCH_KEYS].drop_duplicates()
    coverage = control_track.merge(used, on=[CONTROL_SCREEN_ID] + MATCH_KEYS, how='left', indicator=True)
    unused = coverage['_merge'] == 'left_only'
    for key, rows in group_frame(coverage[unused], [CONTROL_SCREEN_ID]):
        _report(
            diagnostics,
            f"{len(rows)} control colonies are not matched by any query colony",
            split_keys(key, [CONTROL_SCREEN_ID]),
            len(rows),
        )

    logger.info(
        f"Joined {len(joined)} query colonies to controls "
        f"({int(unmatched.sum())} unmatched)"
    )
    return joined.drop(columns='_merge')


def aggregate_replicates(joined: pd.DataFrame) -> pd.DataFrame:
    """
    Average replicates of each strain position.

    Means ignore missing sizes; a position without any usable replicate gets
    a missing mean and a count of zero.
    """
    scores = group_frame(joined, SCORE_KEYS).agg(
        size_query_wt=('size_query_wt', 'mean'),
        size_control_wt=('size_control_wt', 'mean'),
        n_query=('size_query', 'count'),
        n_control=('size_control', 'count'),
        size_query=('size_query', 'mean'),
        size_control=('size_control', 'mean'),
    ).reset_index()
    return scores


def fitness_terms(scores: pd.DataFrame) -> pd.DataFrame:
    """Add Fi, Fj, Fij, Eij, Elogr and Ediff; undefined ratios are NaN."""
    df = scores.copy()
    df['Fi'] = df['size_query_wt'] / df['size_control_wt']
    df['Fj'] = df['size_control'] / df['size_control_wt']
    df['Fij'] = df['size_query'] / df['size_control_wt']
    df['Eij'] = df['Fi'] * df['Fj']
    with np.errstate(divide='ignore', invalid='ignore'):
        df['Elogr'] = np.log2(df['Fij'] / df['Eij'])
    df['Ediff'] = df['Fij'] - df['Eij']
    df[FITNESS_COLUMNS] = df[FITNESS_COLUMNS].replace([np.inf, -np.inf], np.nan)
    return df


def zscore_by_query(scores: pd.DataFrame) -> pd.DataFrame:
    """
    Z-score Elogr and Ediff within each (query_id, query_name).

    Uses the group's mean and sample standard deviation, ignoring missing
    values. Groups whose spread is undefined or no larger than rounding
    noise (ZSCORE_RTOL relative to max(1, |mean|)) get missing Z-scores.
    """
    df = scores.copy()
    grouped = group_frame(df, SCREEN_KEYS)

    for source, target in (('Elogr', 'Zlogr'), ('Ediff', 'Zdiff')):
        mean = grouped[source].transform('mean')
        sd = grouped[source].transform('std')
        spread = sd > ZSCORE_RTOL * np.maximum(1.0, mean.abs())
        df[target] = (df[source] - mean) / sd.where(spread)

        degenerate = ~spread & df[source].notna()
        for key, rows in group_frame(df[degenerate], SCREEN_KEYS):
            logger.warning(
                f"{source} has no spread for query {split_keys(key, SCREEN_KEYS)}; "
                f"{target} left undefined for {len(rows)} strains"
            )

    return df


def score_interactions(
    colonies: pd.DataFrame,
    diagnostics: Optional[DiagnosticsReport] = None,
) -> pd.DataFrame:
    """
    Score genetic interactions from normalized colonies.

    Args:
        colonies: Output of the normalization stages (size and size_wt).
        diagnostics: Report receiving join mismatches.

    Returns:
        One ScoreRecord row per (screen, strain, plate, row, column) of every
        query screen, ordered by screen, plate, row and column.

    Example:
        >>> scores = score_interactions(normalized)
        >>> hits = scores[scores['Zlogr'].abs() > 3]
    """
    query, control = split_tracks(colonies)
    logger.info(f"Scoring {len(query)} query colonies against {len(control)} control colonies")

    joined = join_tracks(query, control, diagnostics=diagnostics)
    scores = zscore_by_query(fitness_terms(aggregate_replicates(joined)))

    scores = scores.sort_values([SCREEN_ID, PLATE, ROW, COLUMN], kind='stable')
    return scores[SCORE_COLUMNS].reset_index(drop=True)
