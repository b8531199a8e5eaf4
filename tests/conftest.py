"""Shared fixtures: synthetic colony screens."""

import string

import numpy as np
import pandas as pd
import pytest


def build_screen(
    screen_id="Q1",
    control_screen_id="C1",
    query_id="q1",
    query_name="query",
    plates=(1,),
    n_rows=8,
    n_columns=12,
    nrep=4,
    size=500.0,
):
    """
    Build a raw colony table for one screen.

    Plate cells with (row_index + column) divisible by 3 hold the
    plate-control strain. `size` is a constant or a callable
    size(plate, row_index, column, replicate).
    """
    rows = string.ascii_uppercase[:n_rows]
    records = []
    for plate in plates:
        for row_index, row in enumerate(rows, start=1):
            for column in range(1, n_columns + 1):
                is_control = (row_index + column) % 3 == 0
                strain_id = f"p{plate}-{row}{column}"
                for replicate in range(1, nrep + 1):
                    value = size(plate, row_index, column, replicate) if callable(size) else size
                    records.append({
                        'screen_id': screen_id,
                        'control_screen_id': control_screen_id,
                        'strain_id': strain_id,
                        'strain_name': "his3" if is_control else f"orf-{strain_id}",
                        'query_id': query_id,
                        'query_name': query_name,
                        'plate': plate,
                        'row': row,
                        'column': column,
                        'replicate': replicate,
                        'size': float(value),
                        'size_dr': np.nan,
                        'circ': 0.9,
                        'excluded_query': False,
                        'excluded_control': False,
                        'plate_control': is_control,
                    })
    return pd.DataFrame(records)


@pytest.fixture
def screen_builder():
    """Factory for synthetic screens."""
    return build_screen


@pytest.fixture
def screen_pair():
    """Flat control screen C1 and query screen Q1, two plates, 4 replicates."""
    control = build_screen(
        screen_id="C1", control_screen_id="C1", query_id="wt", query_name="control",
        plates=(1, 2),
    )
    query = build_screen(
        screen_id="Q1", control_screen_id="C1", query_id="q1", query_name="query",
        plates=(1, 2),
    )
    return pd.concat([control, query], ignore_index=True)


def grid_plate(n_rows, n_columns, size, plate=1, query_id="q1", query_name="query"):
    """
    Colony table already on the colony grid.

    `size` is a callable size(colony_row, colony_col) or a constant.
    """
    records = []
    for r in range(1, n_rows + 1):
        for c in range(1, n_columns + 1):
            records.append({
                'query_id': query_id,
                'query_name': query_name,
                'plate': plate,
                'colony_row': r,
                'colony_col': c,
                'size': float(size(r, c)) if callable(size) else float(size),
                'plate_control': False,
            })
    return pd.DataFrame(records)


@pytest.fixture
def plate_builder():
    """Factory for colony-grid plates."""
    return grid_plate
