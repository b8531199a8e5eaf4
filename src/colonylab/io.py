"""
ColonyLab: I/O utilities for assembling colony tables and exporting scores.

The pipeline consumes one table with a row per colony. Screens usually
arrive as separate pieces which this module reads and joins:

- measurements: one row per colony (screen_id, strain_id, plate, row,
  column, replicate, size, ...)
- metadata: one row per screen plate (screen_id, plate, control_screen_id,
  query_id, query_name, incubation, ...)
- exclusions: reviewed colonies or plate cells to drop
- strain annotations: strain_id -> strain_name (and plate_control)
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Union
import logging

import pandas as pd

from .errors import SchemaError
from .schema import (
    COLUMN,
    CONTROL_SCREEN_ID,
    EXCLUDED_CONTROL,
    EXCLUDED_QUERY,
    PLATE,
    PLATE_CONTROL,
    QUERY_ID,
    QUERY_NAME,
    REPLICATE,
    ROW,
    SCREEN_ID,
    SIZE,
    STRAIN_ID,
    STRAIN_NAME,
    validate_colonies,
)

logger = logging.getLogger(__name__)

MEASUREMENT_COLUMNS = [SCREEN_ID, STRAIN_ID, PLATE, ROW, COLUMN, REPLICATE, SIZE]
METADATA_COLUMNS = [SCREEN_ID, PLATE, CONTROL_SCREEN_ID, QUERY_ID, QUERY_NAME]
EXCLUSION_COLUMNS = [SCREEN_ID, PLATE, ROW, COLUMN]
STRAIN_COLUMNS = [STRAIN_ID, STRAIN_NAME]


def _require(df: pd.DataFrame, columns: List[str], what: str) -> None:
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise SchemaError(f"{what} table is missing required columns: {missing}")


def _read_table(
    filepath: Union[str, Path],
    columns: List[str],
    what: str,
    delimiter: str = "\t",
) -> pd.DataFrame:
    filepath = Path(filepath)

    if not filepath.exists():
        raise FileNotFoundError(f"{what} file not found: {filepath}")

    df = pd.read_csv(filepath, delimiter=delimiter)
    _require(df, columns, what)
    logger.info(f"Loaded {len(df)} {what.lower()} rows from {filepath.name}")
    return df


def load_measurements(filepath: Union[str, Path], delimiter: str = "\t") -> pd.DataFrame:
    """
    Load colony measurements.

    Args:
        filepath: Delimited file with MEASUREMENT_COLUMNS (plus optional
            size_dr, circ, timepoint).
        delimiter: Column delimiter.

    Returns:
        DataFrame of measurements.

    Example:
        >>> measurements = load_measurements('colonies.tsv')
    """
    return _read_table(filepath, MEASUREMENT_COLUMNS, "Measurement", delimiter)


def load_metadata(filepath: Union[str, Path], delimiter: str = "\t") -> pd.DataFrame:
    """
    Load plate and screen metadata.

    Each (screen_id, plate) must appear once. Optional incubation columns
    (incubation, incubation_start, incubation_end) are carried through.
    """
    df = _read_table(filepath, METADATA_COLUMNS, "Metadata", delimiter)
    if df.duplicated([SCREEN_ID, PLATE]).any():
        raise SchemaError("Metadata lists a (screen_id, plate) more than once")
    return df


def load_exclusions(filepath: Union[str, Path], delimiter: str = "\t") -> pd.DataFrame:
    """
    Load reviewed exclusions.

    Rows name a plate cell (screen_id, plate, row, column) and optionally a
    replicate; without a replicate column every replicate of the cell is
    excluded. At least one of excluded_query / excluded_control must be
    present.
    """
    df = _read_table(filepath, EXCLUSION_COLUMNS, "Exclusion", delimiter)
    if EXCLUDED_QUERY not in df.columns and EXCLUDED_CONTROL not in df.columns:
        raise SchemaError(
            f"Exclusion table needs an {EXCLUDED_QUERY} or {EXCLUDED_CONTROL} column"
        )
    return df


class StrainLookup:
    """
    Strain annotation lookup.

    Example:
        >>> strains = StrainLookup(pd.DataFrame({
        ...     'strain_id': ['s1', 's2'],
        ...     'strain_name': ['his3', 'blank'],
        ... }))
        >>> strains.lookup_strain('s1')
        {'strain_name': 'his3'}
    """

    def __init__(self, annotations: pd.DataFrame):
        _require(annotations, STRAIN_COLUMNS, "Strain")
        if annotations[STRAIN_ID].duplicated().any():
            raise SchemaError("Strain annotations list a strain_id more than once")

        columns = STRAIN_COLUMNS + ([PLATE_CONTROL] if PLATE_CONTROL in annotations.columns else [])
        self._table = annotations[columns].set_index(STRAIN_ID)

    @classmethod
    def from_file(cls, filepath: Union[str, Path], delimiter: str = "\t") -> "StrainLookup":
        """Read annotations from a delimited file."""
        return cls(_read_table(filepath, STRAIN_COLUMNS, "Strain", delimiter))

    def __len__(self) -> int:
        return len(self._table)

    def __contains__(self, strain_id) -> bool:
        return strain_id in self._table.index

    def lookup_strain(self, strain_id) -> Dict[str, Any]:
        """
        Annotation of one strain.

        Raises:
            KeyError: Unknown strain_id.
        """
        if strain_id not in self._table.index:
            raise KeyError(f"Unknown strain: {strain_id!r}")
        return self._table.loc[strain_id].to_dict()

    def annotate(self, frame: pd.DataFrame) -> pd.DataFrame:
        """
        Add strain annotations to a table with a strain_id column.

        Existing annotation columns in `frame` are kept; unknown strains get
        missing annotations.
        """
        _require(frame, [STRAIN_ID], "Annotated")
        extra = [c for c in self._table.columns if c not in frame.columns]
        if not extra:
            return frame.copy()

        annotated = frame.merge(
            self._table[extra], left_on=STRAIN_ID, right_index=True, how='left'
        )
        unknown = ~frame[STRAIN_ID].isin(self._table.index)
        if unknown.any():
            logger.warning(f"{int(unknown.sum())} rows reference unknown strains")
        return annotated


def assemble_colonies(
    measurements: pd.DataFrame,
    metadata: pd.DataFrame,
    exclusions: Optional[pd.DataFrame] = None,
    strains: Optional[StrainLookup] = None,
) -> pd.DataFrame:
    """
    Join measurements, metadata, exclusions and strain annotations.

    Args:
        measurements: Colony measurements (see load_measurements).
        metadata: Plate/screen metadata (see load_metadata).
        exclusions: Optional reviewed exclusions (see load_exclusions).
        strains: Optional strain annotations.

    Returns:
        Validated colony table ready for normalize_and_score.

    Raises:
        SchemaError: Missing columns, measurements on plates without
            metadata, or duplicated colonies.

    Example:
        >>> colonies = assemble_colonies(
        ...     load_measurements('colonies.tsv'),
        ...     load_metadata('plates.tsv'),
        ...     exclusions=load_exclusions('review.tsv'),
        ...     strains=StrainLookup.from_file('strains.tsv'),
        ... )
    """
    _require(measurements, MEASUREMENT_COLUMNS, "Measurement")
    _require(metadata, METADATA_COLUMNS, "Metadata")

    extra = [c for c in metadata.columns if c not in measurements.columns or c in (SCREEN_ID, PLATE)]
    df = measurements.merge(
        metadata[extra],
        on=[SCREEN_ID, PLATE],
        how='left',
        validate='many_to_one',
        indicator=True,
    )
    orphans = df['_merge'] == 'left_only'
    if orphans.any():
        plates = df.loc[orphans, [SCREEN_ID, PLATE]].drop_duplicates().to_dict('records')
        raise SchemaError(f"Measurements on plates without metadata: {plates}")
    df = df.drop(columns='_merge')

    if exclusions is not None:
        keys = EXCLUSION_COLUMNS + ([REPLICATE] if REPLICATE in exclusions.columns else [])
        flags = [c for c in (EXCLUDED_QUERY, EXCLUDED_CONTROL) if c in exclusions.columns]
        review = exclusions[keys + flags].groupby(keys, as_index=False)[flags].any()
        df = df.drop(columns=[c for c in flags if c in df.columns]).merge(review, on=keys, how='left')
        logger.info(f"Applied {len(review)} reviewed exclusions")

    if strains is not None:
        df = strains.annotate(df)

    return validate_colonies(df)


def write_scores(
    scores: pd.DataFrame,
    filepath: Union[str, Path],
    delimiter: str = "\t",
) -> Path:
    """
    Write a score table.

    Returns:
        Path written.
    """
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)
    scores.to_csv(filepath, sep=delimiter, index=False)
    logger.info(f"Wrote {len(scores)} scores to {filepath}")
    return filepath
