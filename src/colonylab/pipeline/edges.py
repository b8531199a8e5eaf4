"""
ColonyLab Pipeline: Edge-effect scaling.

Colonies near a plate's border grow differently from interior colonies
(more nutrients, less competition). Within each plate, the two outermost
rings of the colony grid are rescaled toward the interior:

    edge1: colony_row or colony_col is 1 or the plate maximum
    edge2: colony_row or colony_col is 2 or maximum - 1, and not edge1

    size(edge1) *= median(interior) / median(edge1)
    size(edge2) *= median(interior) / median(edge2)

Band membership and all three medians come from the sizes as they were
before any scaling.
"""

from typing import Optional, Tuple
import logging

import numpy as np
import pandas as pd

from ..diagnostics import DiagnosticsReport
from ..schema import COLONY_COL, COLONY_ROW, PLATE_KEYS, SIZE, group_frame
from .common import band_median, is_usable, report_group_failures

logger = logging.getLogger(__name__)

STAGE = "edge_scaling"


def edge_bands(
    colony_row,
    colony_col,
    max_row,
    max_col,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Outer and second ring of a colony grid.

    Args:
        colony_row: Colony row positions.
        colony_col: Colony column positions.
        max_row: Largest colony row of the plate (scalar or per colony).
        max_col: Largest colony column of the plate (scalar or per colony).

    Returns:
        (edge1, edge2) boolean arrays. A colony is never in both.

    Example:
        >>> edge1, edge2 = edge_bands([1, 2, 3], [3, 3, 3], 6, 6)
        >>> edge1.tolist(), edge2.tolist()
        ([True, False, False], [False, True, False])
    """
    r = np.asarray(colony_row)
    c = np.asarray(colony_col)
    max_row = np.asarray(max_row)
    max_col = np.asarray(max_col)

    edge1 = (r == 1) | (r == max_row) | (c == 1) | (c == max_col)
    ring2 = (r == 2) | (r == max_row - 1) | (c == 2) | (c == max_col - 1)
    return edge1, ring2 & ~edge1


def _describe(band_name: str, edge_col: str):
    def describe(rows: pd.DataFrame) -> str:
        interior = rows['_interior_median'].iloc[0]
        edge = rows[edge_col].iloc[0]
        if not np.isfinite(interior):
            return f"no interior colonies to scale the {band_name} band toward"
        if edge == 0:
            return f"zero median in the {band_name} band"
        return f"undefined scaling factor for the {band_name} band"
    return describe


def scale_edges(
    colonies: pd.DataFrame,
    diagnostics: Optional[DiagnosticsReport] = None,
) -> pd.DataFrame:
    """
    Rescale the two outer colony rings of each plate toward the interior.

    Args:
        colonies: Colony table with colony_row/colony_col and exclusions
            applied.
        diagnostics: Report receiving a NormalizationError for every band
            whose factor is undefined while it still holds sizes.

    Returns:
        New table with scaled `size`. Interior colonies are unchanged.
    """
    df = colonies.copy()
    size = df[SIZE]

    grouped = group_frame(df, PLATE_KEYS)
    max_row = grouped[COLONY_ROW].transform('max')
    max_col = grouped[COLONY_COL].transform('max')

    edge1, edge2 = edge_bands(df[COLONY_ROW], df[COLONY_COL], max_row, max_col)
    edge1 = pd.Series(edge1, index=df.index)
    edge2 = pd.Series(edge2, index=df.index)
    interior = ~(edge1 | edge2)

    medians = pd.DataFrame({
        '_interior_median': band_median(df, interior, PLATE_KEYS),
        '_edge1_median': band_median(df, edge1, PLATE_KEYS),
        '_edge2_median': band_median(df, edge2, PLATE_KEYS),
    }, index=df.index)

    factor = pd.Series(1.0, index=df.index)
    factor[edge1] = (medians['_interior_median'] / medians['_edge1_median'])[edge1]
    factor[edge2] = (medians['_interior_median'] / medians['_edge2_median'])[edge2]

    defined = is_usable(factor)
    scaled = (size * factor).where(defined)

    failures = pd.concat([df, medians], axis=1)
    n_failed = 0
    for band, name, col in ((edge1, "outer", '_edge1_median'), (edge2, "second", '_edge2_median')):
        lost = band & ~defined & size.notna()
        n_failed += report_group_failures(
            failures, lost, PLATE_KEYS, STAGE, _describe(name, col), diagnostics
        )

    df[SIZE] = scaled

    logger.info(
        f"Edge scaling: {int((edge1 & size.notna()).sum())} outer and "
        f"{int((edge2 & size.notna()).sum())} second-ring colonies rescaled "
        f"across {grouped.ngroups} plates; {n_failed} set missing"
    )
    return df
