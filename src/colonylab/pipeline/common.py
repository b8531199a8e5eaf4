"""
ColonyLab Pipeline: Helpers shared by the normalization stages.
"""

from typing import Callable, List, Optional
import logging

import numpy as np
import pandas as pd

from ..diagnostics import DiagnosticsReport
from ..errors import NormalizationError
from ..schema import PLATE_CONTROL, SIZE, group_frame, split_keys

logger = logging.getLogger(__name__)


def control_median(colonies: pd.DataFrame, keys: List[str]) -> pd.Series:
    """
    Median plate-control size of each group, broadcast to every row.

    Missing sizes are ignored; a group without any usable control gets NaN.
    """
    controls = colonies[SIZE].where(colonies[PLATE_CONTROL].astype(bool))
    return group_frame(colonies.assign(_control_size=controls), keys)['_control_size'].transform('median')


def band_median(colonies: pd.DataFrame, band: pd.Series, keys: List[str]) -> pd.Series:
    """Median size of the rows in `band` within each group, broadcast."""
    return group_frame(colonies.assign(_band=colonies[SIZE].where(band)), keys)['_band'].transform('median')


def is_usable(values: pd.Series) -> pd.Series:
    """Finite values (not NaN or +/-inf)."""
    return pd.Series(np.isfinite(values.to_numpy(dtype=float)), index=values.index)


def report_group_failures(
    colonies: pd.DataFrame,
    failed: pd.Series,
    keys: List[str],
    stage: str,
    describe: Callable[[pd.DataFrame], str],
    diagnostics: Optional[DiagnosticsReport] = None,
) -> int:
    """
    Record one NormalizationError per group that contains failed rows.

    Args:
        colonies: Table the failure mask refers to.
        failed: Boolean mask of rows whose size became undefined.
        keys: Group key columns.
        stage: Stage name for the diagnostic.
        describe: Builds the error message from the group's failed rows.
        diagnostics: Report to record into; failures are only logged if None.

    Returns:
        Number of failed rows.
    """
    if not failed.any():
        return 0

    for key, rows in group_frame(colonies[failed], keys):
        error = NormalizationError(describe(rows), stage=stage, group=split_keys(key, keys))
        if diagnostics is not None:
            diagnostics.record(error, n_rows=len(rows))
        else:
            logger.warning(f"[{stage}] {error} ({len(rows)} rows)")

    return int(failed.sum())
