"""
ColonyLab: Column names and input validation for colony tables.

The working table has one row per colony (screen, plate, row, column,
replicate). Stages add or update columns but never add, drop or reorder
rows.
"""

from typing import Any, Dict, List
import logging

import pandas as pd

from .errors import SchemaError

logger = logging.getLogger(__name__)

# Identity
SCREEN_ID = "screen_id"
CONTROL_SCREEN_ID = "control_screen_id"
STRAIN_ID = "strain_id"
STRAIN_NAME = "strain_name"
QUERY_ID = "query_id"
QUERY_NAME = "query_name"
PLATE = "plate"
ROW = "row"
COLUMN = "column"
REPLICATE = "replicate"

# Derived position
COLONY_ROW = "colony_row"
COLONY_COL = "colony_col"

# Measurements
SIZE = "size"
SIZE_RAW = "size_raw"
SIZE_DR = "size_dr"
CIRC = "circ"

# Flags
EXCLUDED_QUERY = "excluded_query"
EXCLUDED_CONTROL = "excluded_control"
PLATE_CONTROL = "plate_control"
EXCLUDED = "excluded"

# Screen moments (wild-type reference)
SIZE_WT = "size_wt"
SIZE_WT_SD = "size_wt_sd"

# Fitted spatial trend at each colony
SPATIAL_TREND = "spatial_trend"

# Grouping keys for per-plate and per-screen statistics
PLATE_KEYS: List[str] = [QUERY_ID, QUERY_NAME, PLATE]
SCREEN_KEYS: List[str] = [QUERY_ID, QUERY_NAME]

ROW_IDENTITY: List[str] = [SCREEN_ID, PLATE, ROW, COLUMN, REPLICATE]

REQUIRED_COLUMNS: List[str] = [
    SCREEN_ID,
    CONTROL_SCREEN_ID,
    STRAIN_ID,
    STRAIN_NAME,
    QUERY_ID,
    QUERY_NAME,
    PLATE,
    ROW,
    COLUMN,
    REPLICATE,
    SIZE,
]

FLAG_COLUMNS: List[str] = [EXCLUDED_QUERY, EXCLUDED_CONTROL, PLATE_CONTROL]

# Carried through untouched when present
PASSTHROUGH_COLUMNS: List[str] = [
    SIZE_DR,
    CIRC,
    "timepoint",
    "incubation",
    "incubation_start",
    "incubation_end",
]

SCORE_KEYS: List[str] = [
    SCREEN_ID,
    CONTROL_SCREEN_ID,
    STRAIN_ID,
    STRAIN_NAME,
    QUERY_ID,
    QUERY_NAME,
    PLATE,
    ROW,
    COLUMN,
]

SCORE_COLUMNS: List[str] = SCORE_KEYS + [
    "size_query_wt",
    "size_control_wt",
    "n_query",
    "n_control",
    "size_query",
    "size_control",
    "Fi",
    "Fj",
    "Fij",
    "Eij",
    "Elogr",
    "Ediff",
    "Zlogr",
    "Zdiff",
]


def _as_flag(values: pd.Series) -> pd.Series:
    """Coerce a flag column to bool, treating missing as False."""
    if values.dtype == bool:
        return values
    return values.map(lambda v: False if pd.isna(v) else bool(v)).astype(bool)


def validate_colonies(colonies: pd.DataFrame) -> pd.DataFrame:
    """
    Check and normalize an input colony table.

    Args:
        colonies: Table with at least the REQUIRED_COLUMNS.

    Returns:
        A copy with flag columns present and boolean, integer replicate and
        column, float size, and a default RangeIndex.

    Raises:
        SchemaError: Required columns are missing, values cannot be
            converted, or a colony appears more than once.
    """
    missing = [c for c in REQUIRED_COLUMNS if c not in colonies.columns]
    if missing:
        raise SchemaError(f"Colony table is missing required columns: {missing}")

    df = colonies.reset_index(drop=True).copy()

    for col in FLAG_COLUMNS:
        if col in df.columns:
            df[col] = _as_flag(df[col])
        else:
            df[col] = False

    try:
        df[SIZE] = pd.to_numeric(df[SIZE]).astype(float)
        df[REPLICATE] = pd.to_numeric(df[REPLICATE]).astype(int)
        df[COLUMN] = pd.to_numeric(df[COLUMN]).astype(int)
    except (TypeError, ValueError) as e:
        raise SchemaError(f"Non-numeric size, replicate or column values: {e}") from e

    df[ROW] = df[ROW].astype(str)

    duplicated = df.duplicated(ROW_IDENTITY, keep=False)
    if duplicated.any():
        example = df.loc[duplicated, ROW_IDENTITY].iloc[0].to_dict()
        raise SchemaError(
            f"{int(duplicated.sum())} rows share a colony identity, e.g. {example}"
        )

    logger.debug(f"Validated colony table: {len(df)} rows, {df[SCREEN_ID].nunique()} screens")
    return df


def split_keys(keys, names: List[str]) -> Dict[str, Any]:
    """Map a groupby key (scalar or tuple) onto its column names."""
    if not isinstance(keys, tuple):
        keys = (keys,)
    return dict(zip(names, keys))


def group_frame(df: pd.DataFrame, keys: List[str]):
    """Group by keys without sorting and keeping missing key values."""
    return df.groupby(keys, sort=False, dropna=False)


def is_control_screen(df: pd.DataFrame) -> pd.Series:
    """Rows belonging to a control screen (screen_id == control_screen_id)."""
    return df[SCREEN_ID] == df[CONTROL_SCREEN_ID]
