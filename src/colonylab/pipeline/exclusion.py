"""
ColonyLab Pipeline: Exclusion marking.

A colony is excluded, and its size set missing, when any of these hold:

- it was excluded on review (excluded_query)
- its strain is the blank placeholder
- it belongs to a control screen and grew to less than a fraction
  (default 25%) of the median control colony on its plate
- it sits in the first or last row, or first or last column, of its plate

Every rule reads the input snapshot, so the slow-growth median is taken
before any other rule removes colonies.
"""

import logging

import pandas as pd

from ..schema import (
    COLUMN,
    EXCLUDED,
    EXCLUDED_QUERY,
    PLATE_KEYS,
    ROW,
    SIZE,
    STRAIN_NAME,
    group_frame,
    is_control_screen,
)
from .positions import row_indices

logger = logging.getLogger(__name__)


def slow_growth_mask(
    colonies: pd.DataFrame,
    fraction: float = 0.25,
) -> pd.Series:
    """
    Control-screen colonies smaller than a fraction of their plate's median.

    The median covers control-screen colonies of the same plate group whose
    size is not already missing.
    """
    control = is_control_screen(colonies)
    control_sizes = colonies[SIZE].where(control)
    plate_median = group_frame(
        colonies.assign(_control_size=control_sizes), PLATE_KEYS
    )['_control_size'].transform('median')
    return control & (colonies[SIZE] < fraction * plate_median)


def border_mask(colonies: pd.DataFrame) -> pd.Series:
    """Colonies in the outermost rows or columns present on their plate."""
    frame = colonies.assign(_row_index=row_indices(colonies[ROW]))
    grouped = group_frame(frame, PLATE_KEYS)

    row_min = grouped['_row_index'].transform('min')
    row_max = grouped['_row_index'].transform('max')
    col_min = grouped[COLUMN].transform('min')
    col_max = grouped[COLUMN].transform('max')

    border_row = (frame['_row_index'] == row_min) | (frame['_row_index'] == row_max)
    border_col = (frame[COLUMN] == col_min) | (frame[COLUMN] == col_max)
    return border_row | border_col


def mark_exclusions(
    colonies: pd.DataFrame,
    slow_growth_fraction: float = 0.25,
    blank_strain: str = "blank",
) -> pd.DataFrame:
    """
    Flag excluded colonies and set their size missing.

    Args:
        colonies: Colony table with positions mapped.
        slow_growth_fraction: Threshold fraction of the control plate median.
        blank_strain: Strain name of empty positions.

    Returns:
        New table with an `excluded` column and updated `size`.

    Example:
        >>> marked = mark_exclusions(colonies)
        >>> marked.loc[marked['excluded'], 'size'].isna().all()
        True
    """
    df = colonies.copy()

    reviewed = df[EXCLUDED_QUERY].astype(bool)
    blank = df[STRAIN_NAME] == blank_strain
    slow = slow_growth_mask(df, fraction=slow_growth_fraction)
    border = border_mask(df)

    excluded = reviewed | blank | slow | border
    newly_missing = excluded & df[SIZE].notna()

    df[EXCLUDED] = excluded
    df[SIZE] = df[SIZE].mask(excluded)

    logger.info(
        f"Excluded {int(excluded.sum())}/{len(df)} colonies "
        f"(review: {int(reviewed.sum())}, blank: {int(blank.sum())}, "
        f"slow growth: {int(slow.sum())}, border: {int(border.sum())}); "
        f"{int(newly_missing.sum())} sizes set missing"
    )
    return df
