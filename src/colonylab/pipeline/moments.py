"""
ColonyLab Pipeline: Size floor and screen reference moments.

Sizes are floored at a small positive value so fitness ratios never divide
by (near) zero. The median and sample standard deviation of the plate
controls of each screen then serve as its wild-type reference and are
attached to every row of the screen.
"""

import logging

import pandas as pd

from ..schema import PLATE_CONTROL, SCREEN_KEYS, SIZE, SIZE_WT, SIZE_WT_SD, group_frame
from .common import control_median

logger = logging.getLogger(__name__)


def clamp_sizes(colonies: pd.DataFrame, min_size: float = 0.01) -> pd.DataFrame:
    """
    Raise sizes below min_size to exactly min_size.

    Missing sizes stay missing.

    Example:
        >>> df = pd.DataFrame({'size': [0.0, 0.5, float('nan')]})
        >>> clamp_sizes(df, min_size=0.01)['size'].tolist()
        [0.01, 0.5, nan]
    """
    df = colonies.copy()
    n_clamped = int((df[SIZE] < min_size).sum())
    df[SIZE] = df[SIZE].clip(lower=min_size)
    logger.debug(f"Clamped {n_clamped} sizes to {min_size}")
    return df


def screen_moments(colonies: pd.DataFrame) -> pd.DataFrame:
    """
    Attach each screen's plate-control median and standard deviation.

    Returns:
        New table with `size_wt` (median) and `size_wt_sd` (sample standard
        deviation, NaN with fewer than two controls).
    """
    df = colonies.copy()
    controls = df[SIZE].where(df[PLATE_CONTROL].astype(bool))

    df[SIZE_WT] = control_median(df, SCREEN_KEYS)
    df[SIZE_WT_SD] = group_frame(df.assign(_control_size=controls), SCREEN_KEYS)[
        '_control_size'
    ].transform('std')

    for key, screen in group_frame(df, SCREEN_KEYS):
        logger.debug(
            f"Screen {key}: wild-type size {screen[SIZE_WT].iloc[0]:.4g} "
            f"+/- {screen[SIZE_WT_SD].iloc[0]:.4g}"
        )
    return df


def finalize_sizes(colonies: pd.DataFrame, min_size: float = 0.01) -> pd.DataFrame:
    """Floor sizes, then attach screen reference moments."""
    return screen_moments(clamp_sizes(colonies, min_size=min_size))
