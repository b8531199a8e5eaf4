"""Tests for exclusion marking."""

import numpy as np
import pandas as pd
import pytest

from colonylab.pipeline.exclusion import border_mask, mark_exclusions, slow_growth_mask
from colonylab.pipeline.positions import map_colony_positions
from colonylab.schema import validate_colonies


def prepare(raw):
    return map_colony_positions(validate_colonies(raw))


def cell(df, row, column):
    return (df['row'] == row) & (df['column'] == column)


class TestBorderMask:
    """Tests for border_mask."""

    def test_outer_rows_and_columns(self, screen_builder):
        """Test first and last plate rows and columns are border."""
        df = prepare(screen_builder())
        border = border_mask(df)

        assert border[df['row'].isin(['A', 'H'])].all()
        assert border[df['column'].isin([1, 12])].all()
        interior = df['row'].isin(list('BCDEFG')) & df['column'].between(2, 11)
        assert not border[interior].any()
        assert int(border.sum()) == (96 - 6 * 10) * 4

    def test_per_plate_extent(self, screen_builder):
        """Test each plate uses its own row and column range."""
        small = screen_builder(plates=(1,), n_rows=4, n_columns=6)
        large = screen_builder(plates=(2,), n_rows=8, n_columns=12)
        df = prepare(pd.concat([small, large], ignore_index=True))
        border = border_mask(df)

        on_small = df['plate'] == 1
        assert border[on_small & df['row'].isin(['A', 'D'])].all()
        assert not border[(df['plate'] == 2) & cell(df, 'D', 6)].any()


class TestSlowGrowthMask:
    """Tests for slow_growth_mask."""

    def control_screen(self, screen_builder, value):
        def size(plate, row_index, column, replicate):
            return value if (row_index, column, replicate) == (4, 5, 1) else 500.0
        return prepare(screen_builder(screen_id="C1", control_screen_id="C1", size=size))

    def test_small_control_colony(self, screen_builder):
        """Test control colony below a quarter of the plate median."""
        df = self.control_screen(screen_builder, 100.0)
        slow = slow_growth_mask(df, fraction=0.25)
        assert int(slow.sum()) == 1
        assert slow[cell(df, 'D', 5) & (df['replicate'] == 1)].all()

    def test_threshold_is_strict(self, screen_builder):
        """Test colonies at or above the threshold are kept."""
        df = self.control_screen(screen_builder, 130.0)
        assert not slow_growth_mask(df, fraction=0.25).any()

    def test_query_screen_untouched(self, screen_builder):
        """Test slow growth only applies to control screens."""
        def size(plate, row_index, column, replicate):
            return 1.0 if column == 5 else 500.0
        df = prepare(screen_builder(screen_id="Q1", control_screen_id="C1", size=size))
        assert not slow_growth_mask(df).any()


class TestMarkExclusions:
    """Tests for mark_exclusions."""

    def test_excluded_sizes_missing(self, screen_builder):
        """Test every excluded colony has a missing size."""
        raw = screen_builder()
        raw.loc[(raw['row'] == 'C') & (raw['column'] == 4), 'excluded_query'] = True
        raw.loc[(raw['row'] == 'E') & (raw['column'] == 7), 'strain_name'] = 'blank'
        df = mark_exclusions(prepare(raw))

        assert df.loc[df['excluded'], 'size'].isna().all()
        assert df.loc[~df['excluded'], 'size'].notna().all()
        assert df.loc[cell(df, 'C', 4), 'excluded'].all()
        assert df.loc[cell(df, 'E', 7), 'excluded'].all()

    def test_interior_sizes_unchanged(self, screen_builder):
        """Test kept colonies keep their size."""
        df = mark_exclusions(prepare(screen_builder(size=321.0)))
        assert (df.loc[~df['excluded'], 'size'] == 321.0).all()

    def test_custom_blank_name(self, screen_builder):
        """Test configurable blank strain name."""
        raw = screen_builder()
        raw.loc[cell(raw, 'D', 6), 'strain_name'] = 'EMPTY'
        df = mark_exclusions(prepare(raw), blank_strain='EMPTY')
        assert df.loc[cell(df, 'D', 6), 'excluded'].all()

    def test_already_missing_sizes(self, screen_builder):
        """Test missing sizes stay missing and are not flagged by themselves."""
        raw = screen_builder()
        raw.loc[cell(raw, 'D', 6), 'size'] = np.nan
        df = mark_exclusions(prepare(raw))
        assert df.loc[cell(df, 'D', 6), 'size'].isna().all()
        assert not df.loc[cell(df, 'D', 6), 'excluded'].any()

    def test_input_not_modified(self, screen_builder):
        """Test the input table is left intact."""
        df = prepare(screen_builder())
        before = df.copy()
        mark_exclusions(df)
        assert 'excluded' not in df.columns
        assert df['size'].equals(before['size'])

    @pytest.mark.parametrize("fraction", [0.0, 0.5])
    def test_fraction_forwarded(self, screen_builder, fraction):
        """Test the slow-growth fraction is used."""
        def size(plate, row_index, column, replicate):
            return 200.0 if (row_index, column) == (4, 5) else 500.0
        raw = screen_builder(screen_id="C1", control_screen_id="C1", size=size)
        df = mark_exclusions(prepare(raw), slow_growth_fraction=fraction)
        assert df.loc[cell(df, 'D', 5), 'excluded'].all() == (fraction == 0.5)
