"""
Tests for skew specification and grid construction.
"""

import pytest
import numpy as np

from vanilla_lv.errors import DomainError, InvalidInputError
from vanilla_lv.grid import build_grid, level_grid_spec, transformed_grid_spec

from conftest import BASE


def _spec(**overrides):
    return level_grid_spec(**dict(BASE, **overrides))


class TestLevelGridSpec:

    def test_valid_spec(self):
        spec = _spec()
        assert spec.S0 == 100.0
        np.testing.assert_array_equal(spec.Sp, [110.0, 120.0])

    def test_arrays_read_only(self):
        spec = _spec()
        with pytest.raises(ValueError):
            spec.Sp[0] = 105.0

    @pytest.mark.parametrize("overrides", [
        dict(T=0.0),
        dict(T=-1.0),
        dict(S0=0.0),
        dict(sigma_atm=-20.0),
        dict(Mp=[0.01]),
        dict(Mm=[0.01, 0.01, 0.01]),
        dict(Sp=[120.0, 110.0]),
        dict(Sm=[80.0, 90.0]),
        dict(Sp=[95.0, 120.0]),
        dict(Sm=[105.0, 80.0]),
        dict(Sp=[], Mp=[]),
        dict(Sp=[110.0, np.nan]),
    ])
    def test_invalid_inputs(self, overrides):
        with pytest.raises(InvalidInputError):
            _spec(**overrides)


class TestBuildGrid:

    def test_local_vols_follow_slopes(self):
        grid = build_grid(_spec(), 20.0)
        np.testing.assert_allclose(grid.right.vols, [20.1, 20.2], rtol=1e-14)
        np.testing.assert_allclose(grid.left.vols, [19.9, 19.8], rtol=1e-14)

    def test_transformed_points(self):
        """x(S) = log(1 + M (S - S0) / sigma0) / M for a single slope."""
        grid = build_grid(_spec(), 20.0)
        expected = np.log1p(0.01 * (np.array([110.0, 120.0]) - 100.0) / 20.0) / 0.01
        np.testing.assert_allclose(grid.right.xs, expected, rtol=1e-12)

    def test_flat_slopes_give_linear_points(self):
        grid = build_grid(_spec(Mp=[0.0, 0.0], Mm=[0.0, 0.0]), 20.0)
        np.testing.assert_allclose(grid.right.xs, [0.5, 1.0])
        np.testing.assert_allclose(grid.left.xs, [-0.5, -1.0])

    def test_points_increasing(self):
        x, s, vol = build_grid(_spec(), 20.0).points()
        assert np.all(np.diff(x) > 0)
        assert np.all(np.diff(s) > 0)
        assert x[2] == 0.0 and s[2] == 100.0 and vol[2] == 20.0

    def test_slope_arrays(self):
        grid = build_grid(_spec(Mp=[0.01, 0.02], Mm=[-0.03, -0.04]), 20.0)
        np.testing.assert_array_equal(grid.point_slopes(), [-0.04, -0.03, 0.0, 0.01, 0.02])
        np.testing.assert_array_equal(
            grid.segment_slopes(), [-0.04, -0.04, -0.03, 0.01, 0.02, 0.02]
        )

    def test_negative_local_vol_rejected(self):
        """Mp = -1 drives sigma to 0 at the second call-side point."""
        with pytest.raises(DomainError):
            build_grid(_spec(Mp=[-1.0, -1.0]), 20.0)

    def test_negative_local_vol_rejected_left(self):
        with pytest.raises(DomainError):
            build_grid(_spec(Mm=[1.5, 1.5]), 20.0)

    def test_non_positive_sigma0(self):
        with pytest.raises(InvalidInputError):
            build_grid(_spec(), 0.0)


class TestTransformedGridSpec:

    def test_round_trip_with_level_grid(self):
        """The x-grid of a level grid maps back onto the same levels."""
        spec = _spec(Mp=[0.02, -0.03], Mm=[0.01, -0.02])
        grid = build_grid(spec, 18.0)
        spec2, sigma0 = transformed_grid_spec(
            spec.T, spec.S0, spec.sigma_atm, 18.0,
            grid.right.xs, grid.left.xs, spec.Mp, spec.Mm,
        )
        assert sigma0 == 18.0
        np.testing.assert_allclose(spec2.Sp, spec.Sp, rtol=1e-12)
        np.testing.assert_allclose(spec2.Sm, spec.Sm, rtol=1e-12)

    def test_grids_match(self):
        spec = _spec()
        grid = build_grid(spec, 20.0)
        spec2, _ = transformed_grid_spec(1.0, 100.0, 20.0, 20.0, [0.5, 1.0], [-0.5, -1.0],
                                         [0.01, 0.01], [0.01, 0.01])
        grid2 = build_grid(spec2, 20.0)
        np.testing.assert_allclose(grid2.right.xs, [0.5, 1.0], rtol=1e-12)
        np.testing.assert_allclose(grid2.left.xs, [-0.5, -1.0], rtol=1e-12)
        assert np.all(grid2.right.levels > 100.0)
        assert grid.forward == grid2.forward

    @pytest.mark.parametrize("Xp, Xm", [
        ([-0.5, 1.0], [-0.5, -1.0]),
        ([0.5, 1.0], [0.5, -1.0]),
        ([1.0, 0.5], [-0.5, -1.0]),
        ([0.5, 1.0], [-1.0, -0.5]),
    ])
    def test_invalid_points(self, Xp, Xm):
        with pytest.raises(InvalidInputError):
            transformed_grid_spec(1.0, 100.0, 20.0, 20.0, Xp, Xm, [0.01, 0.01], [0.01, 0.01])

    def test_invalid_sigma0(self):
        with pytest.raises(InvalidInputError):
            transformed_grid_spec(1.0, 100.0, 20.0, -1.0, [0.5], [-0.5], [0.0], [0.0])
