"""
The vanilla local-vol model: construction, calibration and evaluation.

    model = VanillaLocalVolModel.from_levels(
        T=1.0, S0=100.0, sigma_atm=20.0,
        Sp=[110.0, 120.0], Sm=[90.0, 80.0],
        Mp=[0.01, 0.01], Mm=[0.01, 0.01],
    )
    model.expectation(True, 105.0)   # forward price of the 105 call
    model.variance(False, 95.0)      # E[(95 - S)^2 1{S < 95}]

Construction runs the whole pipeline (grid, ATM calibration, adjusters)
and fails with InvalidInputError or DomainError before any object is
returned. Afterwards the model is read-only: every accessor returns
copies or scalars, so instances can be shared between threads.
"""

from typing import Callable, Optional, Sequence, Tuple

import numpy as np

from .calibration import CalibrationControls, atm_adjusters, calibrate_atm, straddle_target
from .errors import NotInitializedError
from .grid import SkewSpec, level_grid_spec, transformed_grid_spec
from .integration import forward_price, forward_variance
from .segments import PiecewiseLocalVol


class VanillaLocalVolModel:
    """
    Single-expiry local-vol model calibrated to a forward and ATM normal vol.

    Use the from_levels / from_transformed factories; __init__ takes an
    already validated SkewSpec.

    Parameters
    ----------
    spec : SkewSpec from grid.level_grid_spec or grid.transformed_grid_spec
    sigma0 : starting local vol at the forward (default: spec.sigma_atm)
    controls : CalibrationControls (default: config values)
    """

    def __init__(self, spec: SkewSpec, sigma0: Optional[float] = None,
                 controls: Optional[CalibrationControls] = None):
        if controls is None:
            controls = CalibrationControls()
        controls.validate()
        if sigma0 is None:
            sigma0 = spec.sigma_atm

        trace = [] if controls.enable_logging else None
        result = calibrate_atm(spec, sigma0, controls, trace)

        straddle = straddle_target(spec)
        if controls.adjust_atm:
            alpha, nu = atm_adjusters(result.surface, straddle)
            if trace is not None:
                trace.append(f"adjusters: alpha={alpha:.12g}, nu={nu:.6e}")
        else:
            alpha, nu = 1.0, 0.0

        self._spec = spec
        self._controls = controls
        self._straddle_atm = straddle
        self._mu = result.mu
        self._sigma0 = result.sigma0
        self._converged = result.converged
        self._iterations = result.iterations
        self._alpha = float(alpha)
        self._nu = float(nu)
        self._trace = tuple(trace or ())
        self._surface = result.surface

    # ════════════════════════════════════════════════════════════════════
    #  FACTORIES
    # ════════════════════════════════════════════════════════════════════

    @classmethod
    def from_levels(
        cls,
        T: float,
        S0: float,
        sigma_atm: float,
        Sp: Sequence[float],
        Sm: Sequence[float],
        Mp: Sequence[float],
        Mm: Sequence[float],
        max_calibration_iters: int = 5,
        only_forward_calibration_iters: int = 0,
        adjust_atm: bool = True,
        enable_logging: bool = False,
        use_initial_mu: bool = False,
        initial_mu: float = 0.0,
        **numerics,
    ) -> "VanillaLocalVolModel":
        """
        Build from a level grid: Sp above the forward, Sm below it.

        Extra keyword arguments (extrapolation_stdevs, sigma0_tol, S0_tol)
        are passed to CalibrationControls. Calibration starts from
        sigma0 = sigma_atm.
        """
        spec = level_grid_spec(T, S0, sigma_atm, Sp, Sm, Mp, Mm)
        controls = CalibrationControls(
            max_calibration_iters=max_calibration_iters,
            only_forward_calibration_iters=only_forward_calibration_iters,
            adjust_atm=adjust_atm,
            enable_logging=enable_logging,
            use_initial_mu=use_initial_mu,
            initial_mu=initial_mu,
            **numerics,
        )
        return cls(spec, spec.sigma_atm, controls)

    @classmethod
    def from_transformed(
        cls,
        T: float,
        S0: float,
        sigma_atm: float,
        sigma0: float,
        Xp: Sequence[float],
        Xm: Sequence[float],
        Mp: Sequence[float],
        Mm: Sequence[float],
        max_calibration_iters: int = 5,
        only_forward_calibration_iters: int = 0,
        adjust_atm: bool = True,
        enable_logging: bool = False,
        use_initial_mu: bool = False,
        initial_mu: float = 0.0,
        **numerics,
    ) -> "VanillaLocalVolModel":
        """
        Build from a transformed-variable grid with an explicit center vol.

        The x-grid is turned into levels using sigma0, then calibration
        proceeds exactly as for from_levels, starting from that sigma0.
        """
        spec, sigma0 = transformed_grid_spec(T, S0, sigma_atm, sigma0, Xp, Xm, Mp, Mm)
        controls = CalibrationControls(
            max_calibration_iters=max_calibration_iters,
            only_forward_calibration_iters=only_forward_calibration_iters,
            adjust_atm=adjust_atm,
            enable_logging=enable_logging,
            use_initial_mu=use_initial_mu,
            initial_mu=initial_mu,
            **numerics,
        )
        return cls(spec, sigma0, controls)

    # ════════════════════════════════════════════════════════════════════
    #  INSPECTORS
    # ════════════════════════════════════════════════════════════════════

    @property
    def time_to_expiry(self) -> float:
        return self._spec.T

    @property
    def forward(self) -> float:
        return self._spec.S0

    @property
    def sigma_atm(self) -> float:
        return self._spec.sigma_atm

    @property
    def straddle_atm(self) -> float:
        """Target ATM straddle, sigma_ATM * sqrt(2 T / pi)."""
        return self._straddle_atm

    @property
    def alpha(self) -> float:
        return self._alpha

    @property
    def mu(self) -> float:
        return self._mu

    @property
    def nu(self) -> float:
        return self._nu

    @property
    def sigma0(self) -> float:
        return self._sigma0

    @property
    def converged(self) -> bool:
        return self._converged

    @property
    def calibration_iterations(self) -> int:
        return self._iterations

    @property
    def max_calibration_iters(self) -> int:
        return self._controls.max_calibration_iters

    @property
    def only_forward_calibration_iters(self) -> int:
        return self._controls.only_forward_calibration_iters

    @property
    def adjust_atm(self) -> bool:
        return self._controls.adjust_atm

    @property
    def enable_logging(self) -> bool:
        return self._controls.enable_logging

    @property
    def use_initial_mu(self) -> bool:
        return self._controls.use_initial_mu

    @property
    def initial_mu(self) -> float:
        return self._controls.initial_mu

    @property
    def extrapolation_stdevs(self) -> float:
        return self._controls.extrapolation_stdevs

    @property
    def sigma0_tol(self) -> float:
        return self._controls.sigma0_tol

    @property
    def S0_tol(self) -> float:
        return self._controls.S0_tol

    @property
    def trace(self) -> Tuple[str, ...]:
        """Diagnostic lines from construction; empty unless enable_logging."""
        return self._trace

    def __repr__(self) -> str:
        return (f"{type(self).__name__}(T={self.time_to_expiry}, S0={self.forward}, "
                f"sigma_atm={self.sigma_atm}, mu={self._mu:.6g}, sigma0={self._sigma0:.6g}, "
                f"alpha={self._alpha:.6g}, nu={self._nu:.3g})")

    # ════════════════════════════════════════════════════════════════════
    #  GRID ARRAYS (increasing order, aligned by index)
    # ════════════════════════════════════════════════════════════════════

    def _require_surface(self) -> PiecewiseLocalVol:
        surface = getattr(self, "_surface", None)
        if surface is None:
            raise NotInitializedError("local-vol grid has not been built")
        return surface

    def underlying_x(self) -> np.ndarray:
        return self._require_surface().grid.points()[0]

    def underlying_s(self) -> np.ndarray:
        return self._require_surface().grid.points()[1]

    def local_vol_grid(self) -> np.ndarray:
        return self._require_surface().grid.points()[2]

    def local_vol_slope(self) -> np.ndarray:
        """Slope of the segment ending at each grid point; 0 at the forward."""
        return self._require_surface().grid.point_slopes()

    # ════════════════════════════════════════════════════════════════════
    #  POINTWISE EVALUATION
    # ════════════════════════════════════════════════════════════════════

    def local_vol(self, s):
        """Local volatility sigma(S); accepts scalars or arrays."""
        return self._require_surface().local_vol(s)

    def underlying_s_at(self, x):
        """Level S(x) for transformed-variable values x."""
        return self._require_surface().level(x)

    def underlying_x_at(self, s):
        """Transformed variable x(S), the inverse of underlying_s_at."""
        return self._require_surface().transformed(s)

    def expectation(self, is_right_wing: bool, strike: float) -> float:
        """Forward price of the OTM call (right wing) or put (left wing)."""
        return forward_price(self._require_surface(), is_right_wing, strike,
                             self._alpha, self._nu)

    def variance(self, is_right_wing: bool, strike: float) -> float:
        """Forward price of (S - K)^2 on the exercise region of the wing."""
        return forward_variance(self._require_surface(), is_right_wing, strike,
                                self._alpha, self._nu)

    def model_forward(self) -> float:
        """Model-implied forward, S0 + call(S0) - put(S0)."""
        return self.forward + self.expectation(True, self.forward) - self.expectation(False, self.forward)

    def model_straddle(self) -> float:
        """Model-implied ATM straddle, call(S0) + put(S0)."""
        return self.expectation(True, self.forward) + self.expectation(False, self.forward)

    def local_vol_function(self) -> Callable:
        """
        Local vol as a (t, S) -> sigma function for process or surface wrappers.

        The model is time-homogeneous up to expiry, so t is ignored.
        """
        surface = self._require_surface()

        def local_vol(t, s):
            return surface.local_vol(s)

        return local_vol
