"""Tests for spatial-effect removal."""

import numpy as np
import pandas as pd
import pytest

from colonylab.diagnostics import DiagnosticsReport
from colonylab.pipeline.spatial import remove_spatial_effect
from colonylab.surface import LocalRegressionSurface, RobustPolynomialSurface


def with_controls(df):
    df = df.copy()
    df['plate_control'] = (df['colony_row'] + df['colony_col']) % 3 == 0
    return df


def gradient(r, c):
    return 400.0 + 5.0 * c + 3.0 * r


class TestRemoveSpatialEffect:
    """Tests for remove_spatial_effect."""

    def test_linear_gradient_removed(self, plate_builder):
        """Test a planar gradient is flattened to the screen control median."""
        df = with_controls(plate_builder(16, 24, gradient))
        corrected = remove_spatial_effect(df)

        screen_median = df.loc[df['plate_control'], 'size'].median()
        np.testing.assert_allclose(corrected['size'], screen_median, rtol=1e-9)
        np.testing.assert_allclose(corrected['spatial_trend'], df['size'], rtol=1e-9)

    def test_local_model(self, plate_builder):
        """Test the local strategy flattens a planar gradient."""
        df = with_controls(plate_builder(12, 12, gradient))
        corrected = remove_spatial_effect(df, model=LocalRegressionSurface(degree=1))

        screen_median = df.loc[df['plate_control'], 'size'].median()
        np.testing.assert_allclose(corrected['size'], screen_median, rtol=1e-8)

    def test_flat_plate_unchanged(self, plate_builder):
        """Test a flat plate keeps its sizes exactly."""
        df = with_controls(plate_builder(16, 24, 500.0))
        corrected = remove_spatial_effect(df)
        assert (corrected['size'] == 500.0).all()
        assert (corrected['spatial_trend'] == 500.0).all()

    def test_missing_sizes_get_trend(self, plate_builder):
        """Test excluded colonies stay missing but receive a trend value."""
        df = with_controls(plate_builder(16, 24, gradient))
        missing = df['colony_row'].isin([1, 16])
        df.loc[missing, 'size'] = np.nan
        corrected = remove_spatial_effect(df)

        assert corrected.loc[missing, 'size'].isna().all()
        expected = gradient(df.loc[missing, 'colony_row'], df.loc[missing, 'colony_col'])
        np.testing.assert_allclose(corrected.loc[missing, 'spatial_trend'], expected, rtol=1e-9)

    def test_failed_fit_reported(self, plate_builder):
        """Test a plate with too few sizes is reported and set missing."""
        good = with_controls(plate_builder(16, 24, gradient, plate=1))
        sparse = with_controls(plate_builder(16, 24, 500.0, plate=2))
        sparse.loc[sparse.index[3:], 'size'] = np.nan
        report = DiagnosticsReport()
        corrected = remove_spatial_effect(
            pd.concat([good, sparse], ignore_index=True), diagnostics=report
        )

        assert corrected.loc[corrected['plate'] == 2, 'size'].isna().all()
        assert corrected.loc[corrected['plate'] == 1, 'size'].notna().all()

        assert len(report) == 1
        entry = report.entries[0]
        assert entry.stage == "spatial_effect"
        assert "degenerate surface fit" in entry.message
        assert entry.group['plate'] == 2
        assert entry.n_rows == 3

    def test_empty_plate_skipped(self, plate_builder):
        """Test a plate without sizes is skipped without a report."""
        good = with_controls(plate_builder(16, 24, 500.0, plate=1))
        empty = with_controls(plate_builder(16, 24, np.nan, plate=2))
        report = DiagnosticsReport()
        corrected = remove_spatial_effect(
            pd.concat([good, empty], ignore_index=True), diagnostics=report
        )
        assert len(report) == 0
        assert corrected.loc[corrected['plate'] == 2, 'spatial_trend'].isna().all()
        assert (corrected.loc[corrected['plate'] == 1, 'size'] == 500.0).all()

    def test_no_screen_controls(self, plate_builder):
        """Test a screen without control colonies is reported."""
        df = plate_builder(16, 24, gradient)
        report = DiagnosticsReport()
        corrected = remove_spatial_effect(df, diagnostics=report)
        assert corrected['size'].isna().all()
        assert report.entries[0].message == "no usable screen controls"

    @pytest.mark.parametrize("model", [RobustPolynomialSurface(degree=1), None])
    def test_rows_preserved(self, plate_builder, model):
        """Test the table keeps its rows and order."""
        df = with_controls(plate_builder(16, 24, gradient))
        corrected = remove_spatial_effect(df, model=model)
        pd.testing.assert_index_equal(corrected.index, df.index)
        pd.testing.assert_series_equal(corrected['colony_col'], df['colony_col'])
