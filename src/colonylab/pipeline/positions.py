"""
ColonyLab Pipeline: Colony grid positions.

Each plate cell (row letter, column) holds an N x N block of replicate
colonies, so a plate with R rows, C columns and N*N replicates is a grid of
(R*N) x (C*N) colonies. Replicates fill their block row by row:

    replicate 1 2        colony_row = (row_index - 1) * N + ceil(replicate / N)
              3 4        colony_col = (column - 1) * N + ((replicate - 1) mod N) + 1

The replicate count must therefore be a perfect square.
"""

from typing import Optional, Tuple
import logging

import numpy as np
import pandas as pd

from ..config import is_perfect_square
from ..errors import ConfigurationError
from ..schema import COLONY_COL, COLONY_ROW, COLUMN, PLATE_KEYS, REPLICATE, ROW, group_frame

logger = logging.getLogger(__name__)


def replicate_side(nrep: int) -> int:
    """
    Side length of the replicate block.

    Args:
        nrep: Number of replicates per plate cell.

    Returns:
        Integer square root of nrep.

    Raises:
        ConfigurationError: If nrep is not a perfect square.
    """
    nrep = int(nrep)
    if not is_perfect_square(nrep):
        raise ConfigurationError(
            f"Replicate count must be a perfect square (1, 4, 9, ...), got {nrep}"
        )
    return int(round(np.sqrt(nrep)))


def colony_position(
    row_index,
    column,
    replicate,
    nrep: int,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Map plate cell and replicate onto the colony grid.

    Args:
        row_index: 1-based plate row index (scalar or array).
        column: 1-based plate column (scalar or array).
        replicate: 1-based replicate number (scalar or array).
        nrep: Replicates per plate cell (perfect square).

    Returns:
        (colony_row, colony_col) integer arrays.

    Example:
        >>> colony_position(1, 1, [1, 2, 3, 4], nrep=4)
        (array([1, 1, 2, 2]), array([1, 2, 1, 2]))
    """
    side = replicate_side(nrep)
    row_index = np.asarray(row_index, dtype=int)
    column = np.asarray(column, dtype=int)
    replicate = np.asarray(replicate, dtype=int)

    if np.any(replicate < 1) or np.any(replicate > nrep):
        raise ConfigurationError(f"Replicates must lie in 1..{nrep}")

    colony_row = (row_index - 1) * side + (replicate + side - 1) // side
    colony_col = (column - 1) * side + (replicate - 1 + nrep) % side + 1
    return colony_row, colony_col


def decode_colony_position(
    colony_row,
    colony_col,
    nrep: int,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Inverse of colony_position.

    Returns:
        (row_index, column, replicate) integer arrays.
    """
    side = replicate_side(nrep)
    colony_row = np.asarray(colony_row, dtype=int) - 1
    colony_col = np.asarray(colony_col, dtype=int) - 1

    row_index = colony_row // side + 1
    column = colony_col // side + 1
    replicate = (colony_row % side) * side + colony_col % side + 1
    return row_index, column, replicate


def row_indices(rows: pd.Series) -> pd.Series:
    """
    Dense 1-based rank of row letters.

    Letters are ordered as on a plate: A..Z, then AA, AB, ... This is
    deliberately not plain alphabetical order, which would put AA between
    A and B; labels are ranked by (length, text) instead, so the rank
    follows the physical row order of 1536-colony plates.

    Example:
        >>> row_indices(pd.Series(["B", "A", "C", "A"])).tolist()
        [2, 1, 3, 1]
        >>> row_indices(pd.Series(["A", "B", "AA", "Z"])).tolist()
        [1, 2, 4, 3]
    """
    labels = sorted(rows.astype(str).unique(), key=lambda r: (len(r), r))
    ranks = {label: i + 1 for i, label in enumerate(labels)}
    return rows.astype(str).map(ranks).astype(int)


def map_colony_positions(
    colonies: pd.DataFrame,
    replicates: Optional[int] = None,
) -> pd.DataFrame:
    """
    Add colony_row and colony_col to a colony table.

    The replicate count of each (query_id, query_name, plate) group is the
    largest replicate number observed in it.

    Args:
        colonies: Validated colony table.
        replicates: Expected replicate count. When given, every plate group
            must contain exactly this many replicates.

    Returns:
        New table with colony_row and colony_col columns.

    Raises:
        ConfigurationError: Replicate count is not a perfect square, does
            not match the configured count, or a replicate number is
            out of range.
    """
    df = colonies.copy()

    nrep = group_frame(df, PLATE_KEYS)[REPLICATE].transform('max').astype(int)
    observed = sorted(nrep.unique())

    if replicates is not None and any(n != replicates for n in observed):
        raise ConfigurationError(
            f"Configured replicates={replicates} but data has {observed} replicates per plate"
        )
    for n in observed:
        replicate_side(n)

    if (df[REPLICATE] < 1).any():
        raise ConfigurationError("Replicate numbers must start at 1")

    side = np.sqrt(nrep.to_numpy()).round().astype(int)
    row_index = row_indices(df[ROW]).to_numpy()
    column = df[COLUMN].to_numpy(dtype=int)
    replicate = df[REPLICATE].to_numpy(dtype=int)

    df[COLONY_ROW] = (row_index - 1) * side + (replicate + side - 1) // side
    df[COLONY_COL] = (column - 1) * side + (replicate - 1 + nrep.to_numpy()) % side + 1

    logger.info(
        f"Mapped {len(df)} colonies onto replicate grids "
        f"(replicates per cell: {observed})"
    )
    return df
