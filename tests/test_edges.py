"""Tests for edge-effect scaling."""

import numpy as np
import pandas as pd

from colonylab.diagnostics import DiagnosticsReport
from colonylab.pipeline.edges import edge_bands, scale_edges


def ring_size(edge1_value, edge2_value, interior_value=1.0, n=10):
    def size(r, c):
        if r in (1, n) or c in (1, n):
            return edge1_value
        if r in (2, n - 1) or c in (2, n - 1):
            return edge2_value
        return interior_value
    return size


class TestEdgeBands:
    """Tests for edge_bands."""

    def test_example(self):
        """Test a column through a 6x6 grid."""
        edge1, edge2 = edge_bands([1, 2, 3], [3, 3, 3], 6, 6)
        assert edge1.tolist() == [True, False, False]
        assert edge2.tolist() == [False, True, False]

    def test_bands_disjoint(self):
        """Test no colony is in both bands."""
        r, c = np.meshgrid(np.arange(1, 11), np.arange(1, 11), indexing='ij')
        edge1, edge2 = edge_bands(r.ravel(), c.ravel(), 10, 10)
        assert not (edge1 & edge2).any()
        assert edge1.sum() == 36
        assert edge2.sum() == 28

    def test_corner_of_second_ring(self):
        """Test (2, 1) belongs to the outer band only."""
        edge1, edge2 = edge_bands([2], [1], 10, 10)
        assert edge1[0] and not edge2[0]


class TestScaleEdges:
    """Tests for scale_edges."""

    def test_bands_scaled_to_interior(self, plate_builder):
        """Test both rings are brought to the interior median."""
        df = plate_builder(10, 10, ring_size(2.0, 4.0))
        scaled = scale_edges(df)
        assert (scaled['size'] == 1.0).all()

    def test_interior_unchanged(self, plate_builder):
        """Test interior colonies keep their size."""
        df = plate_builder(10, 10, lambda r, c: 3.0 + r + 0.1 * c)
        scaled = scale_edges(df)
        interior = df['colony_row'].between(3, 8) & df['colony_col'].between(3, 8)
        pd.testing.assert_series_equal(scaled.loc[interior, 'size'], df.loc[interior, 'size'])

    def test_idempotent_on_uniform_plate(self, plate_builder):
        """Test a plate whose rings match the interior is left as is."""
        df = plate_builder(10, 10, 7.5)
        scaled = scale_edges(scale_edges(df))
        pd.testing.assert_series_equal(scaled['size'], df['size'])

    def test_plates_independent(self, plate_builder):
        """Test each plate is scaled toward its own interior."""
        df = pd.concat([
            plate_builder(10, 10, ring_size(2.0, 4.0), plate=1),
            plate_builder(10, 10, ring_size(4.0, 8.0, interior_value=2.0), plate=2),
        ], ignore_index=True)
        scaled = scale_edges(df)
        assert (scaled.loc[scaled['plate'] == 1, 'size'] == 1.0).all()
        assert (scaled.loc[scaled['plate'] == 2, 'size'] == 2.0).all()

    def test_zero_band_median(self, plate_builder):
        """Test a band with zero median becomes missing and is reported."""
        df = plate_builder(10, 10, ring_size(0.0, 4.0))
        report = DiagnosticsReport()
        scaled = scale_edges(df, diagnostics=report)

        edge1, _ = edge_bands(df['colony_row'], df['colony_col'], 10, 10)
        assert scaled.loc[edge1, 'size'].isna().all()
        assert (scaled.loc[~edge1, 'size'] == 1.0).all()

        assert len(report) == 1
        entry = report.entries[0]
        assert entry.kind == "NormalizationError"
        assert entry.stage == "edge_scaling"
        assert "zero median" in entry.message
        assert entry.group == {'query_id': 'q1', 'query_name': 'query', 'plate': 1}
        assert entry.n_rows == 36

    def test_missing_band_is_silent(self, plate_builder):
        """Test a band without any sizes is not reported."""
        df = plate_builder(10, 10, ring_size(np.nan, 4.0))
        report = DiagnosticsReport()
        scaled = scale_edges(df, diagnostics=report)
        assert len(report) == 0
        edge1, _ = edge_bands(df['colony_row'], df['colony_col'], 10, 10)
        assert scaled.loc[edge1, 'size'].isna().all()
        assert (scaled.loc[~edge1, 'size'] == 1.0).all()

    def test_no_interior(self, plate_builder):
        """Test a plate too small to have an interior."""
        df = plate_builder(4, 4, 5.0)
        report = DiagnosticsReport()
        scaled = scale_edges(df, diagnostics=report)
        assert scaled['size'].isna().all()
        assert len(report.by_stage("edge_scaling")) == 2
        assert all("no interior" in d.message for d in report)
