"""Tests for plate-to-screen normalization."""

import numpy as np
import pandas as pd
import pytest

from colonylab.diagnostics import DiagnosticsReport
from colonylab.pipeline.plates import normalize_plates


def plate_rows(plate, controls, others, query_id="q1"):
    sizes = list(controls) + list(others)
    return pd.DataFrame({
        'query_id': query_id,
        'query_name': "query",
        'plate': plate,
        'size': [float(s) for s in sizes],
        'plate_control': [True] * len(controls) + [False] * len(others),
    })


class TestNormalizePlates:
    """Tests for normalize_plates."""

    def test_median_ratio(self):
        """Test plate controls 2, 4, 6 in a screen with control median 8."""
        df = pd.concat([
            plate_rows(1, [2, 4, 6], [10, np.nan]),
            plate_rows(2, [8] * 6, [3]),
        ], ignore_index=True)
        normalized = normalize_plates(df)

        plate1 = normalized.loc[normalized['plate'] == 1, 'size'].tolist()
        assert plate1[:4] == [4.0, 8.0, 12.0, 20.0]
        assert np.isnan(plate1[4])
        assert normalized.loc[normalized['plate'] == 2, 'size'].tolist() == [8.0] * 6 + [3.0]

    def test_plate_controls_match_screen(self):
        """Test every plate's control median equals the screen's afterwards."""
        df = pd.concat([
            plate_rows(1, [100, 120, 140], [90]),
            plate_rows(2, [300, 320, 340], [250]),
            plate_rows(3, [40, 50, 60], [70]),
        ], ignore_index=True)
        normalized = normalize_plates(df)

        controls = normalized[normalized['plate_control']]
        screen_median = df.loc[df['plate_control'], 'size'].median()
        for _, plate in controls.groupby('plate'):
            assert plate['size'].median() == pytest.approx(screen_median)

    def test_screens_independent(self):
        """Test screens use their own control median."""
        df = pd.concat([
            plate_rows(1, [10, 10], [5], query_id="q1"),
            plate_rows(1, [50, 50], [5], query_id="q2"),
        ], ignore_index=True)
        normalized = normalize_plates(df)
        assert normalized['size'].tolist() == [10.0, 10.0, 5.0, 50.0, 50.0, 5.0]

    def test_plate_without_controls(self):
        """Test a plate with no controls becomes missing and is reported."""
        df = pd.concat([
            plate_rows(1, [5, 5], [7]),
            plate_rows(2, [], [6, 7, 8]),
        ], ignore_index=True)
        report = DiagnosticsReport()
        normalized = normalize_plates(df, diagnostics=report)

        assert normalized.loc[normalized['plate'] == 2, 'size'].isna().all()
        assert normalized.loc[normalized['plate'] == 1, 'size'].tolist() == [5.0, 5.0, 7.0]

        assert len(report) == 1
        entry = report.entries[0]
        assert entry.message == "no usable plate controls"
        assert entry.stage == "plate_normalization"
        assert entry.group['plate'] == 2
        assert entry.n_rows == 3

    def test_controls_all_missing(self):
        """Test controls with missing sizes count as absent."""
        df = pd.concat([
            plate_rows(1, [5, 5], [7]),
            plate_rows(2, [np.nan, np.nan], [6]),
        ], ignore_index=True)
        report = DiagnosticsReport()
        normalized = normalize_plates(df, diagnostics=report)
        assert normalized.loc[normalized['plate'] == 2, 'size'].isna().all()
        assert report.entries[0].message == "no usable plate controls"

    def test_zero_plate_median(self):
        """Test a zero control median is reported."""
        df = pd.concat([
            plate_rows(1, [5, 5], [7]),
            plate_rows(2, [0, 0], [6]),
        ], ignore_index=True)
        report = DiagnosticsReport()
        normalized = normalize_plates(df, diagnostics=report)
        assert normalized.loc[normalized['plate'] == 2, 'size'].isna().all()
        assert "not positive" in report.entries[0].message
