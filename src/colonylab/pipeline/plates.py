"""
ColonyLab Pipeline: Plate-to-screen control normalization.

Plates of one screen differ in media depth, pinning and incubation. Each
plate carries reference (plate-control) colonies, so every size on a plate
is multiplied by

    median(plate controls in the screen) / median(plate controls on the plate)

which lines the plate's controls up with the screen-wide control level.
"""

from typing import Optional
import logging

import numpy as np
import pandas as pd

from ..diagnostics import DiagnosticsReport
from ..schema import PLATE_KEYS, SCREEN_KEYS, SIZE, group_frame
from .common import control_median, is_usable, report_group_failures

logger = logging.getLogger(__name__)

STAGE = "plate_normalization"


def _describe(rows: pd.DataFrame) -> str:
    plate_median = rows['_plate_median'].iloc[0]
    screen_median = rows['_screen_median'].iloc[0]
    if not np.isfinite(plate_median):
        return "no usable plate controls"
    if plate_median <= 0:
        return f"plate control median is not positive ({plate_median:g})"
    if not np.isfinite(screen_median):
        return "no usable screen controls"
    return "undefined plate normalization factor"


def normalize_plates(
    colonies: pd.DataFrame,
    diagnostics: Optional[DiagnosticsReport] = None,
) -> pd.DataFrame:
    """
    Scale each plate so its control median matches the screen's.

    Args:
        colonies: Edge-scaled colony table.
        diagnostics: Report receiving one NormalizationError per plate whose
            factor is undefined. Every size on such a plate becomes missing.

    Returns:
        New table with plate-normalized `size`.

    Example:
        >>> # Plate controls 2, 4, 6 (median 4) in a screen whose controls
        >>> # have median 8: every size on the plate doubles.
        >>> normalized = normalize_plates(colonies)
    """
    df = colonies.copy()

    plate_median = control_median(df, PLATE_KEYS)
    screen_median = control_median(df, SCREEN_KEYS)

    factor = (screen_median / plate_median).where(plate_median > 0)
    defined = is_usable(factor)

    failures = df.assign(_plate_median=plate_median, _screen_median=screen_median)
    n_failed = report_group_failures(
        failures, ~defined, PLATE_KEYS, STAGE, _describe, diagnostics
    )

    df[SIZE] = (df[SIZE] * factor).where(defined)

    logger.info(
        f"Plate normalization: {group_frame(df, PLATE_KEYS).ngroups} plates in "
        f"{group_frame(df, SCREEN_KEYS).ngroups} screens; "
        f"{n_failed} colonies on unusable plates set missing"
    )
    return df
