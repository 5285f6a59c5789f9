"""
Piecewise evaluation of the local-vol model on its grid.

On every segment the local volatility is affine in the level,

    sigma(S) = sigma_0 + M * (S - S_0),

anchored at a grid point (x_0, S_0, sigma_0). The level mapping solves
dS/dx = sigma(S) on the segment, which gives

    S(x) = S_0 + sigma_0 / M * (exp(M (x - x_0)) - 1)     (M != 0)
    S(x) = S_0 + sigma_0 * (x - x_0)                       (M == 0)

and along x the local vol is sigma_0 * exp(M (x - x_0)), so it stays
positive however far a segment is extended. Segments left of the center
are anchored at their inner (right) end, segments right of the center at
their inner (left) end, so a grid point always resolves to the segment
anchored at it and reproduces its stored vol exactly.

Beyond the outermost grid points the boundary slope is extended; beyond
the extrapolation width (mu +/- stdevs * sqrt(T)) the mapping is flat.
"""

from typing import Iterator, NamedTuple

import numpy as np

from . import config
from .errors import DomainError


# ════════════════════════════════════════════════════════════════════════
#  SEGMENT FORMULAS
# ════════════════════════════════════════════════════════════════════════

def is_flat_slope(m):
    return np.abs(m) < config.FLAT_SLOPE_TOL


def _as_output(value, like):
    """Return a float for scalar input, an array otherwise."""
    if np.ndim(like) == 0:
        return float(value)
    return np.asarray(value, dtype=float)


def segment_local_vol(s, s0, v0, m):
    """Affine local vol sigma(s) through (s0, v0) with slope m."""
    return v0 + m * (s - s0)


def segment_level(x, x0, s0, v0, m):
    """Level S(x) on a segment anchored at (x0, s0, v0) with slope m."""
    x, x0, s0, v0, m = np.broadcast_arrays(
        *(np.asarray(a, dtype=float) for a in (x, x0, s0, v0, m))
    )
    flat = is_flat_slope(m)
    m_safe = np.where(flat, 1.0, m)
    with np.errstate(over="ignore"):
        curved = s0 + v0 / m_safe * np.expm1(m_safe * (x - x0))
    return np.where(flat, s0 + v0 * (x - x0), curved)


def segment_transformed(s, x0, s0, v0, m):
    """
    Inverse of segment_level: the x at which the segment reaches level s.

    Raises DomainError when s lies past the level where the segment's
    local vol hits zero (the ODE solution never gets there).
    """
    s, x0, s0, v0, m = np.broadcast_arrays(
        *(np.asarray(a, dtype=float) for a in (s, x0, s0, v0, m))
    )
    flat = is_flat_slope(m)
    m_safe = np.where(flat, 1.0, m)
    u = m_safe * (s - s0) / v0
    if np.any(~flat & (u <= -1.0)):
        raise DomainError(
            "level lies beyond the zero of the segment's local vol; "
            "local volatility would be non-positive"
        )
    with np.errstate(invalid="ignore", divide="ignore"):
        curved = x0 + np.log1p(np.where(flat, 0.0, u)) / m_safe
    return np.where(flat, x0 + (s - s0) / v0, curved)


# ════════════════════════════════════════════════════════════════════════
#  PIECEWISE EVALUATOR
# ════════════════════════════════════════════════════════════════════════

class SegmentPiece(NamedTuple):
    """Part of one segment inside an x-interval, with the segment's anchor."""

    lower: float
    upper: float
    x0: float
    s0: float
    v0: float
    slope: float


class PiecewiseLocalVol:
    """
    Local vol, level mapping and its inverse over the whole x-domain.

    Parameters
    ----------
    grid : LocalVolGrid from grid.build_grid
    mu : shift of the transformed variable, x ~ N(mu, T)
    T : time to expiry (years)
    extrapolation_stdevs : half-width of the x-domain in units of sqrt(T)
    """

    def __init__(self, grid, mu: float, T: float,
                 extrapolation_stdevs: float = config.EXTRAPOLATION_STDEVS):
        self.grid = grid
        self.mu = float(mu)
        self.T = float(T)
        self.extrapolation_stdevs = float(extrapolation_stdevs)

        self._x, self._s, self._vol = grid.points()
        self._slopes = grid.segment_slopes()
        self._n_left = len(grid.left.levels)

        half_width = self.extrapolation_stdevs * np.sqrt(self.T)
        self.lower_bound = self.mu - half_width
        self.upper_bound = self.mu + half_width
        self.lower_level = float(self._level(np.asarray(self.lower_bound)))
        self.upper_level = float(self._level(np.asarray(self.upper_bound)))

    @property
    def forward(self) -> float:
        return self.grid.forward

    @property
    def std(self) -> float:
        return float(np.sqrt(self.T))

    # ── lookup ──────────────────────────────────────────────────────────

    def _anchor(self, idx):
        return np.where(idx <= self._n_left, idx, idx - 1)

    def locate_x(self, x):
        """Segment index for x; 0 is the left extrapolation segment."""
        x = np.asarray(x, dtype=float)
        return np.where(
            x < 0.0,
            np.searchsorted(self._x, x, side="left"),
            np.searchsorted(self._x, x, side="right"),
        )

    def locate_level(self, s):
        """Segment index for level s, consistent with locate_x."""
        s = np.asarray(s, dtype=float)
        return np.where(
            s < self.grid.forward,
            np.searchsorted(self._s, s, side="left"),
            np.searchsorted(self._s, s, side="right"),
        )

    # ── evaluation ──────────────────────────────────────────────────────

    def _level(self, x):
        idx = self.locate_x(x)
        a = self._anchor(idx)
        return segment_level(x, self._x[a], self._s[a], self._vol[a], self._slopes[idx])

    def level(self, x):
        """S(x), flat beyond the extrapolation width."""
        clipped = np.clip(np.asarray(x, dtype=float), self.lower_bound, self.upper_bound)
        return _as_output(self._level(clipped), x)

    def transformed(self, s):
        """x(S), the inverse of level; clipped to the extrapolation domain."""
        clipped = np.clip(np.asarray(s, dtype=float), self.lower_level, self.upper_level)
        idx = self.locate_level(clipped)
        a = self._anchor(idx)
        x = segment_transformed(clipped, self._x[a], self._s[a], self._vol[a], self._slopes[idx])
        return _as_output(np.clip(x, self.lower_bound, self.upper_bound), s)

    def local_vol(self, s):
        """sigma(S), flat beyond the levels reached at the extrapolation width."""
        clipped = np.clip(np.asarray(s, dtype=float), self.lower_level, self.upper_level)
        idx = self.locate_level(clipped)
        a = self._anchor(idx)
        return _as_output(segment_local_vol(clipped, self._s[a], self._vol[a], self._slopes[idx]), s)

    def pieces(self, lower: float, upper: float) -> Iterator[SegmentPiece]:
        """
        Yield the segment pieces covering [lower, upper] in increasing x.

        The interval is first clipped to the extrapolation domain; an empty
        interval yields nothing.
        """
        lower = max(float(lower), self.lower_bound)
        upper = min(float(upper), self.upper_bound)
        if upper <= lower:
            return

        n_points = len(self._x)
        for i in range(n_points + 1):
            a = self._x[i - 1] if i > 0 else -np.inf
            b = self._x[i] if i < n_points else np.inf
            lo, hi = max(lower, a), min(upper, b)
            if hi <= lo:
                continue
            k = int(self._anchor(i))
            yield SegmentPiece(lo, hi, self._x[k], self._s[k], self._vol[k], self._slopes[i])
