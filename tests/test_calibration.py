"""
Tests for ATM calibration and the (alpha, nu) adjusters.
"""

import logging

import pytest
import numpy as np

from vanilla_lv.calibration import (
    CalibrationControls, atm_adjusters, calibrate_atm, straddle_target,
)
from vanilla_lv.errors import InvalidInputError
from vanilla_lv.grid import level_grid_spec
from vanilla_lv.integration import forward_price
from vanilla_lv.model import VanillaLocalVolModel

from conftest import BASE, SKEW


TIGHT = CalibrationControls(max_calibration_iters=50, sigma0_tol=1e-9, S0_tol=1e-9)


def _residuals(result, spec):
    call = forward_price(result.surface, True, spec.S0)
    put = forward_price(result.surface, False, spec.S0)
    return call - put, call + put - straddle_target(spec)


class TestStraddleTarget:

    def test_value(self):
        spec = level_grid_spec(**BASE)
        assert straddle_target(spec) == pytest.approx(20.0 * np.sqrt(2.0 / np.pi), rel=1e-14)


class TestCalibrateATM:

    @pytest.mark.parametrize("params", [BASE, SKEW])
    def test_converges(self, params):
        spec = level_grid_spec(**params)
        result = calibrate_atm(spec, spec.sigma_atm, TIGHT)
        assert result.converged
        assert result.iterations <= 50
        fwd, straddle = _residuals(result, spec)
        assert abs(fwd) < 1e-9
        assert abs(straddle) < 1e-9

    def test_shifted_lognormal_mu(self):
        """One slope everywhere: S is a shifted lognormal and mu = -M T / 2."""
        spec = level_grid_spec(**BASE)
        result = calibrate_atm(spec, spec.sigma_atm, TIGHT)
        assert result.mu == pytest.approx(-0.005, abs=1e-8)

    def test_result_surface_matches_parameters(self):
        spec = level_grid_spec(**SKEW)
        result = calibrate_atm(spec, spec.sigma_atm, TIGHT)
        assert result.surface.mu == result.mu
        assert result.grid.sigma0 == result.sigma0
        assert result.surface.grid is result.grid

    def test_trace_lines(self):
        spec = level_grid_spec(**BASE)
        trace = []
        result = calibrate_atm(spec, spec.sigma_atm, TIGHT, trace)
        assert len(trace) == result.iterations
        assert trace[0].startswith("iteration 0: mu=0, sigma0=20,")
        assert all("forward residual=" in line for line in trace)

    def test_zero_iterations(self):
        spec = level_grid_spec(**BASE)
        trace = []
        result = calibrate_atm(spec, 17.0, CalibrationControls(max_calibration_iters=0), trace)
        assert not result.converged
        assert result.iterations == 0
        assert (result.mu, result.sigma0) == (0.0, 17.0)
        assert not any(line.startswith("iteration") for line in trace)
        assert trace == [
            "calibration stopped after 0 iteration(s) without meeting tolerances; "
            "keeping mu=0, sigma0=17"
        ]

    def test_forward_only_warm_up(self):
        spec = level_grid_spec(**SKEW)
        controls = CalibrationControls(max_calibration_iters=3, only_forward_calibration_iters=3)
        result = calibrate_atm(spec, 20.0, controls)
        assert result.sigma0 == 20.0
        assert result.mu != 0.0

    def test_warm_up_then_full(self):
        spec = level_grid_spec(**SKEW)
        controls = CalibrationControls(max_calibration_iters=50, only_forward_calibration_iters=2,
                                       sigma0_tol=1e-9, S0_tol=1e-9)
        result = calibrate_atm(spec, 20.0, controls)
        assert result.converged
        assert result.sigma0 != 20.0

    def test_initial_mu(self):
        spec = level_grid_spec(**BASE)
        used = calibrate_atm(spec, 20.0, CalibrationControls(
            max_calibration_iters=0, use_initial_mu=True, initial_mu=0.25))
        ignored = calibrate_atm(spec, 20.0, CalibrationControls(
            max_calibration_iters=0, use_initial_mu=False, initial_mu=0.25))
        assert used.mu == 0.25
        assert ignored.mu == 0.0

    def test_non_convergence_is_logged(self, caplog):
        spec = level_grid_spec(**SKEW)
        with caplog.at_level(logging.INFO, logger="vanilla_lv"):
            result = calibrate_atm(spec, 20.0, CalibrationControls(max_calibration_iters=1))
        assert not result.converged
        assert "calibration stopped after 1 iteration(s)" in caplog.text

    def test_iterations_logged_at_debug(self, caplog):
        spec = level_grid_spec(**BASE)
        with caplog.at_level(logging.DEBUG, logger="vanilla_lv"):
            calibrate_atm(spec, 20.0, CalibrationControls(max_calibration_iters=2))
        messages = [r.getMessage() for r in caplog.records if r.levelno == logging.DEBUG]
        assert messages[0].startswith("iteration 0:")


class TestAdjusters:

    @pytest.mark.parametrize("params", [BASE, SKEW])
    def test_exact_match_after_partial_calibration(self, params):
        """Without calibration the adjusters alone match forward and straddle."""
        spec = level_grid_spec(**params)
        result = calibrate_atm(spec, 18.0, CalibrationControls(max_calibration_iters=0))
        target = straddle_target(spec)
        alpha, nu = atm_adjusters(result.surface, target)

        call = forward_price(result.surface, True, spec.S0, alpha, nu)
        put = forward_price(result.surface, False, spec.S0, alpha, nu)
        assert call - put == pytest.approx(0.0, abs=1e-9)
        assert call + put == pytest.approx(target, abs=1e-9)

    def test_identity_after_convergence(self):
        spec = level_grid_spec(**SKEW)
        result = calibrate_atm(spec, spec.sigma_atm, TIGHT)
        alpha, nu = atm_adjusters(result.surface, straddle_target(spec))
        assert alpha == pytest.approx(1.0, abs=1e-8)
        assert nu == pytest.approx(0.0, abs=1e-8)


class TestControls:

    def test_defaults_valid(self):
        controls = CalibrationControls().validate()
        assert controls.max_calibration_iters == 5
        assert controls.only_forward_calibration_iters == 0
        assert controls.adjust_atm is True

    @pytest.mark.parametrize("overrides", [
        dict(max_calibration_iters=-1),
        dict(max_calibration_iters=2.5),
        dict(max_calibration_iters=True),
        dict(only_forward_calibration_iters=-3),
        dict(extrapolation_stdevs=0.0),
        dict(sigma0_tol=-1e-12),
        dict(S0_tol=np.nan),
        dict(initial_mu=np.inf),
        dict(max_calibration_iters=None),
        dict(max_calibration_iters=np.nan),
        dict(only_forward_calibration_iters="2"),
        dict(sigma0_tol="x"),
        dict(S0_tol=None),
        dict(extrapolation_stdevs=[10.0]),
        dict(initial_mu="0"),
    ])
    def test_invalid(self, overrides):
        with pytest.raises(InvalidInputError):
            CalibrationControls(**overrides).validate()

    def test_numpy_scalars_accepted(self):
        controls = CalibrationControls(max_calibration_iters=np.int64(7), sigma0_tol=np.float64(1e-10))
        assert controls.validate() is controls

    def test_non_numeric_control_through_model(self):
        with pytest.raises(InvalidInputError):
            VanillaLocalVolModel.from_levels(**BASE, max_calibration_iters=None)
