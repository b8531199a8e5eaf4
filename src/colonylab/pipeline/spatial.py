"""
ColonyLab Pipeline: Spatial-effect removal.

After edge and plate corrections, plates can still show smooth growth
gradients (uneven agar, humidity). For each plate a trend surface is fitted
to the colony sizes over (colony_col, colony_row) and divided out:

    size *= median(plate controls in the screen) / trend(colony_col, colony_row)

Excluded colonies do not take part in the fit but still get a trend value.
"""

from typing import Optional
import logging

import numpy as np
import pandas as pd

from ..diagnostics import DiagnosticsReport
from ..errors import NormalizationError
from ..schema import (
    COLONY_COL,
    COLONY_ROW,
    PLATE_KEYS,
    SCREEN_KEYS,
    SIZE,
    SPATIAL_TREND,
    group_frame,
    split_keys,
)
from ..surface import RobustPolynomialSurface, SurfaceModel
from .common import control_median, is_usable, report_group_failures

logger = logging.getLogger(__name__)

STAGE = "spatial_effect"


def _describe(rows: pd.DataFrame) -> str:
    if not np.isfinite(rows['_screen_median'].iloc[0]):
        return "no usable screen controls"
    return f"trend surface is not positive at {len(rows)} colonies"


def remove_spatial_effect(
    colonies: pd.DataFrame,
    model: Optional[SurfaceModel] = None,
    diagnostics: Optional[DiagnosticsReport] = None,
) -> pd.DataFrame:
    """
    Divide each plate's fitted spatial trend out of its sizes.

    Args:
        colonies: Plate-normalized colony table.
        model: Surface-fitting strategy (default: robust degree-2 polynomial).
        diagnostics: Report receiving a NormalizationError for each plate
            whose fit fails and for colonies with a non-positive trend.

    Returns:
        New table with spatially corrected `size` and the fitted trend in
        `spatial_trend`.
    """
    model = model or RobustPolynomialSurface()
    df = colonies.copy()
    size = df[SIZE]

    screen_median = control_median(df, SCREEN_KEYS)
    trend = pd.Series(np.nan, index=df.index)
    fitted = pd.Series(False, index=df.index)

    n_plates = 0
    for key, plate in group_frame(df, PLATE_KEYS):
        group = split_keys(key, PLATE_KEYS)
        n_observed = int(plate[SIZE].notna().sum())
        if n_observed == 0:
            logger.debug(f"Skipping spatial fit for plate without sizes: {group}")
            continue

        try:
            surface = model.fit(plate[COLONY_COL], plate[COLONY_ROW], plate[SIZE])
        except NormalizationError as e:
            error = NormalizationError(e.message, stage=STAGE, group=group)
            if diagnostics is not None:
                diagnostics.record(error, n_rows=n_observed)
            else:
                logger.warning(f"[{STAGE}] {error} ({n_observed} rows)")
            continue

        trend.loc[plate.index] = surface.predict(plate[COLONY_COL], plate[COLONY_ROW])
        fitted.loc[plate.index] = True
        n_plates += 1

    usable = is_usable(trend) & (trend > 0) & is_usable(screen_median)
    bad = fitted & size.notna() & ~usable
    report_group_failures(
        df.assign(_screen_median=screen_median), bad, PLATE_KEYS, STAGE, _describe, diagnostics
    )

    df[SIZE] = (size * (screen_median / trend)).where(usable)
    df[SPATIAL_TREND] = trend

    n_lost = int((size.notna() & df[SIZE].isna()).sum())
    logger.info(
        f"Spatial effect: fitted {n_plates} plates with {model!r}; "
        f"{n_lost} colonies set missing"
    )
    return df
