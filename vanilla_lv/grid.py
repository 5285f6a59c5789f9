"""
Grid construction: from skew anchor points to a consistent
(transformed variable, level, local vol) grid on both wings.

Two ways to describe the skew:
    1. level grid      - levels Sp > S0 > Sm with slopes Mp, Mm
    2. transformed grid - points Xp > 0 > Xm with slopes Mp, Mm and an
                          explicit center vol sigma0

Both are reduced to one canonical SkewSpec (the level grid) before any
calibration runs. The transformed grid is turned into levels by
integrating dS/dx = sigma(S) outward from (0, S0, sigma0); build_grid
then goes the other way for whatever sigma0 the calibrator proposes.

Slope M[k] is d sigma / dS on the segment between grid point k-1 (the
center for k = 0) and grid point k.
"""

from dataclasses import dataclass
from typing import Tuple

import numpy as np

from .errors import DomainError, InvalidInputError
from .segments import segment_level, segment_local_vol, segment_transformed


def _frozen(values) -> np.ndarray:
    arr = np.array(values, dtype=float)
    arr.setflags(write=False)
    return arr


def _as_vector(values, name: str) -> np.ndarray:
    arr = np.asarray(values, dtype=float)
    if arr.ndim != 1 or arr.size == 0:
        raise InvalidInputError(f"{name} must be a non-empty 1-D sequence")
    if not np.all(np.isfinite(arr)):
        raise InvalidInputError(f"{name} must contain finite values only")
    return arr


def _check_positive(value: float, name: str) -> float:
    value = float(value)
    if not np.isfinite(value) or value <= 0:
        raise InvalidInputError(f"{name} must be positive, got {value}")
    return value


def _check_slopes(points: np.ndarray, slopes, points_name: str, slopes_name: str) -> np.ndarray:
    slopes = _as_vector(slopes, slopes_name)
    if slopes.size != points.size:
        raise InvalidInputError(
            f"{slopes_name} has {slopes.size} entries but {points_name} has {points.size}"
        )
    return slopes


def _check_increasing(arr: np.ndarray, name: str) -> None:
    if np.any(np.diff(arr) <= 0):
        raise InvalidInputError(f"{name} must be strictly increasing")


def _check_decreasing(arr: np.ndarray, name: str) -> None:
    if np.any(np.diff(arr) >= 0):
        raise InvalidInputError(f"{name} must be strictly decreasing")


# ════════════════════════════════════════════════════════════════════════
#  SPECIFICATION
# ════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class SkewSpec:
    """Validated level-grid description of the smile; never mutated."""

    T: float
    S0: float
    sigma_atm: float
    Sp: np.ndarray
    Sm: np.ndarray
    Mp: np.ndarray
    Mm: np.ndarray


def level_grid_spec(T, S0, sigma_atm, Sp, Sm, Mp, Mm) -> SkewSpec:
    """
    Validate a level-grid skew description.

    Parameters
    ----------
    T : time to expiry (years), > 0
    S0 : forward, > 0
    sigma_atm : ATM normal volatility, > 0
    Sp : levels above S0, strictly increasing
    Sm : levels below S0, strictly decreasing
    Mp, Mm : local-vol slopes, one per level

    Returns
    -------
    SkewSpec

    Raises
    ------
    InvalidInputError : on bad signs, ordering or mismatched lengths
    """
    T = _check_positive(T, "T")
    S0 = _check_positive(S0, "S0")
    sigma_atm = _check_positive(sigma_atm, "sigma_atm")

    Sp = _as_vector(Sp, "Sp")
    Sm = _as_vector(Sm, "Sm")
    Mp = _check_slopes(Sp, Mp, "Sp", "Mp")
    Mm = _check_slopes(Sm, Mm, "Sm", "Mm")

    if Sp[0] <= S0:
        raise InvalidInputError("Sp must lie above the forward S0")
    if Sm[0] >= S0:
        raise InvalidInputError("Sm must lie below the forward S0")
    _check_increasing(Sp, "Sp")
    _check_decreasing(Sm, "Sm")

    return SkewSpec(T, S0, sigma_atm, _frozen(Sp), _frozen(Sm), _frozen(Mp), _frozen(Mm))


def _levels_from_points(xs: np.ndarray, slopes: np.ndarray, S0: float, sigma0: float) -> np.ndarray:
    levels = np.empty_like(xs)
    x_prev, s_prev, v_prev = 0.0, S0, sigma0
    for k, (x, m) in enumerate(zip(xs, slopes)):
        s = float(segment_level(x, x_prev, s_prev, v_prev, m))
        levels[k] = s
        x_prev, s_prev, v_prev = x, s, segment_local_vol(s, s_prev, v_prev, m)
    return levels


def transformed_grid_spec(T, S0, sigma_atm, sigma0, Xp, Xm, Mp, Mm) -> Tuple[SkewSpec, float]:
    """
    Validate a transformed-grid skew description and convert it to levels.

    Returns
    -------
    (SkewSpec, sigma0) : the canonical spec plus the center vol it was
                         integrated with, used to seed calibration
    """
    T = _check_positive(T, "T")
    S0 = _check_positive(S0, "S0")
    sigma_atm = _check_positive(sigma_atm, "sigma_atm")
    sigma0 = _check_positive(sigma0, "sigma0")

    Xp = _as_vector(Xp, "Xp")
    Xm = _as_vector(Xm, "Xm")
    Mp = _check_slopes(Xp, Mp, "Xp", "Mp")
    Mm = _check_slopes(Xm, Mm, "Xm", "Mm")

    if Xp[0] <= 0:
        raise InvalidInputError("Xp must be positive")
    if Xm[0] >= 0:
        raise InvalidInputError("Xm must be negative")
    _check_increasing(Xp, "Xp")
    _check_decreasing(Xm, "Xm")

    Sp = _levels_from_points(Xp, Mp, S0, sigma0)
    Sm = _levels_from_points(Xm, Mm, S0, sigma0)
    return level_grid_spec(T, S0, sigma_atm, Sp, Sm, Mp, Mm), sigma0


# ════════════════════════════════════════════════════════════════════════
#  GRID
# ════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class WingGrid:
    """Grid points of one wing, ordered from the center outward."""

    levels: np.ndarray
    xs: np.ndarray
    vols: np.ndarray
    slopes: np.ndarray


@dataclass(frozen=True)
class LocalVolGrid:
    forward: float
    sigma0: float
    right: WingGrid
    left: WingGrid

    def points(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """(x, S, sigma) of all grid points in increasing order, center included."""
        x = np.concatenate([self.left.xs[::-1], [0.0], self.right.xs])
        s = np.concatenate([self.left.levels[::-1], [self.forward], self.right.levels])
        vol = np.concatenate([self.left.vols[::-1], [self.sigma0], self.right.vols])
        return x, s, vol

    def segment_slopes(self) -> np.ndarray:
        """
        Slope of every segment in increasing x, extrapolation segments included.

        Segment i spans [points[i-1], points[i]]; the outermost segments
        repeat the slope of their neighbouring wing segment.
        """
        return np.concatenate([
            self.left.slopes[-1:], self.left.slopes[::-1],
            self.right.slopes, self.right.slopes[-1:],
        ])

    def point_slopes(self) -> np.ndarray:
        """Slope of the segment ending at each grid point; 0 at the center."""
        return np.concatenate([self.left.slopes[::-1], [0.0], self.right.slopes])


def _build_wing(levels: np.ndarray, slopes: np.ndarray, S0: float, sigma0: float,
                wing: str) -> WingGrid:
    xs = np.empty_like(levels)
    vols = np.empty_like(levels)
    x_prev, s_prev, v_prev = 0.0, S0, sigma0
    for k, (s, m) in enumerate(zip(levels, slopes)):
        v = segment_local_vol(s, s_prev, v_prev, m)
        # affine in S, so positive at both ends means positive on the segment
        if not v > 0.0:
            raise DomainError(
                f"{wing} wing: local vol {v:.6g} at level {s:.6g} (grid point {k}) "
                f"is not positive; reduce |slope| {m:.6g}"
            )
        x = float(segment_transformed(s, x_prev, s_prev, v_prev, m))
        xs[k], vols[k] = x, v
        x_prev, s_prev, v_prev = x, s, v
    return WingGrid(_frozen(levels), _frozen(xs), _frozen(vols), _frozen(slopes))


def build_grid(spec: SkewSpec, sigma0: float) -> LocalVolGrid:
    """
    Build transformed points and local vols for both wings.

    Parameters
    ----------
    spec : validated SkewSpec
    sigma0 : candidate local vol at the forward

    Returns
    -------
    LocalVolGrid

    Raises
    ------
    InvalidInputError : sigma0 not positive
    DomainError : a slope drives local vol to zero or below on a segment
    """
    sigma0 = _check_positive(sigma0, "sigma0")
    right = _build_wing(spec.Sp, spec.Mp, spec.S0, sigma0, "right")
    left = _build_wing(spec.Sm, spec.Mm, spec.S0, sigma0, "left")
    return LocalVolGrid(spec.S0, sigma0, right, left)
