"""
ATM calibration of the local-vol model.

Two scalars are solved for so that the model reproduces the market's
forward and ATM normal vol:

    mu     - shift of the transformed variable, x ~ N(mu, T);
             drives E[S(x)] onto the forward S0
    sigma0 - local vol at the forward; scales the whole smile onto the
             ATM straddle sigma_ATM * sqrt(2 T / pi)

Both are updated by secant steps on their own residual (forward residual
for mu, straddle residual for log sigma0), rebuilding the grid every
time sigma0 moves. The first few iterations may update mu only, which
keeps the straddle secant from chasing a forward that is still off.

Running out of iterations is not an error: the last iterate is kept and
the (alpha, nu) adjusters from atm_adjusters close the remaining gap at
the payoff level.
"""

import numbers
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from . import config
from .bachelier import straddle_price
from .errors import CalibrationError, InvalidInputError
from .grid import LocalVolGrid, SkewSpec, build_grid
from .integration import exercise_probability, forward_price
from .logging import get_logger
from .segments import PiecewiseLocalVol

logger = get_logger(__name__)


def _is_real(value) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


@dataclass(frozen=True)
class CalibrationControls:
    """Numerical controls, defaults from config."""

    max_calibration_iters: int = config.MAX_CALIBRATION_ITERS
    only_forward_calibration_iters: int = config.ONLY_FORWARD_CALIBRATION_ITERS
    adjust_atm: bool = config.ADJUST_ATM
    enable_logging: bool = config.ENABLE_LOGGING
    use_initial_mu: bool = config.USE_INITIAL_MU
    initial_mu: float = config.INITIAL_MU
    extrapolation_stdevs: float = config.EXTRAPOLATION_STDEVS
    sigma0_tol: float = config.SIGMA0_TOL
    S0_tol: float = config.S0_TOL

    def validate(self) -> "CalibrationControls":
        for name in ("max_calibration_iters", "only_forward_calibration_iters"):
            value = getattr(self, name)
            if not _is_real(value) or not np.isfinite(value) or int(value) != value or value < 0:
                raise InvalidInputError(f"{name} must be a non-negative integer, got {value!r}")
        for name in ("extrapolation_stdevs", "sigma0_tol", "S0_tol"):
            value = getattr(self, name)
            if not _is_real(value) or not np.isfinite(value) or value <= 0:
                raise InvalidInputError(f"{name} must be positive, got {value!r}")
        if not _is_real(self.initial_mu) or not np.isfinite(self.initial_mu):
            raise InvalidInputError(f"initial_mu must be finite, got {self.initial_mu!r}")
        return self


@dataclass(frozen=True)
class CalibrationResult:
    mu: float
    sigma0: float
    grid: LocalVolGrid
    surface: PiecewiseLocalVol
    converged: bool
    iterations: int


def straddle_target(spec: SkewSpec) -> float:
    """ATM straddle implied by sigma_ATM under the normal model."""
    return straddle_price(spec.S0, spec.S0, spec.T, spec.sigma_atm)


def _secant(residual_change: float, step: float, previous: float) -> float:
    # keep the previous slope unless the new one is usable
    if step == 0.0:
        return previous
    estimate = residual_change / step
    if np.isfinite(estimate) and estimate > 0.0:
        return estimate
    return previous


def _record(trace: Optional[List[str]], message: str) -> None:
    logger.debug(message)
    if trace is not None:
        trace.append(message)


def calibrate_atm(
    spec: SkewSpec,
    sigma0: float,
    controls: CalibrationControls = CalibrationControls(),
    trace: Optional[List[str]] = None,
) -> CalibrationResult:
    """
    Solve for (mu, sigma0) matching the forward and the ATM straddle.

    Parameters
    ----------
    spec : validated SkewSpec
    sigma0 : starting local vol at the forward
    controls : iteration limits and tolerances
    trace : if given, one human-readable line per iteration is appended

    Returns
    -------
    CalibrationResult : last iterate, converged or not

    Raises
    ------
    DomainError : a candidate sigma0 drives local vol non-positive
    """
    target = straddle_target(spec)
    mu = float(controls.initial_mu) if controls.use_initial_mu else 0.0
    sigma0 = float(sigma0)

    grid = build_grid(spec, sigma0)
    surface = PiecewiseLocalVol(grid, mu, spec.T, controls.extrapolation_stdevs)

    # first guesses: dE[S]/dmu ~ sigma(S0), straddle ~ proportional to sigma0
    dforward_dmu = sigma0
    dstraddle_dlogsigma0 = target

    converged = False
    iterations = 0
    previous = None
    for k in range(int(controls.max_calibration_iters)):
        call = forward_price(surface, True, spec.S0)
        put = forward_price(surface, False, spec.S0)
        forward_residual = call - put
        straddle_residual = call + put - target
        iterations = k + 1

        if previous is not None:
            prev_forward, prev_straddle, dmu, dlogsigma0 = previous
            dforward_dmu = _secant(forward_residual - prev_forward, dmu, dforward_dmu)
            dstraddle_dlogsigma0 = _secant(straddle_residual - prev_straddle, dlogsigma0,
                                           dstraddle_dlogsigma0)

        _record(trace, (
            f"iteration {k}: mu={mu:.12g}, sigma0={sigma0:.12g}, "
            f"forward residual={forward_residual:.6e}, "
            f"straddle residual={straddle_residual:.6e}"
        ))

        if abs(forward_residual) < controls.S0_tol and abs(straddle_residual) < controls.sigma0_tol:
            converged = True
            break

        dmu = -forward_residual / dforward_dmu
        if k < controls.only_forward_calibration_iters:
            dlogsigma0 = 0.0
        else:
            dlogsigma0 = -straddle_residual / dstraddle_dlogsigma0

        mu += dmu
        if dlogsigma0 != 0.0:
            sigma0 *= np.exp(dlogsigma0)
            grid = build_grid(spec, sigma0)
        surface = PiecewiseLocalVol(grid, mu, spec.T, controls.extrapolation_stdevs)
        previous = (forward_residual, straddle_residual, dmu, dlogsigma0)

    if not converged:
        message = (f"calibration stopped after {iterations} iteration(s) "
                   f"without meeting tolerances; keeping mu={mu:.12g}, sigma0={sigma0:.12g}")
        logger.info(message)
        if trace is not None:
            trace.append(message)

    return CalibrationResult(mu, sigma0, grid, surface, converged, iterations)


def atm_adjusters(surface: PiecewiseLocalVol, target: float) -> Tuple[float, float]:
    """
    Closed-form (alpha, nu) matching forward and ATM straddle exactly.

    With c, p the unadjusted ATM call and put and q+, q- the probabilities
    of finishing above and below the forward, the adjusted level
    S0 + alpha (S - S0) + nu prices

        call - put = alpha (c - p) + nu (q+ + q-)   -> 0
        call + put = alpha (c + p) + nu (q+ - q-)   -> target

    which is solved by Cramer's rule.

    Raises
    ------
    CalibrationError : the 2x2 system is singular
    """
    S0 = surface.forward
    c = forward_price(surface, True, S0)
    p = forward_price(surface, False, S0)
    q_up = exercise_probability(surface, True, S0)
    q_down = exercise_probability(surface, False, S0)

    a11, a12 = c - p, q_up + q_down
    a21, a22 = c + p, q_up - q_down
    det = a11 * a22 - a12 * a21
    if det == 0.0 or not np.isfinite(det):
        raise CalibrationError(f"ATM adjuster system is singular (determinant {det})")

    alpha = -a12 * target / det
    nu = a11 * target / det
    return alpha, nu
