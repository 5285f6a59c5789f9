"""
Closed-form OTM payoff integration against the model's terminal density.

The transformed variable is normal, x ~ N(mu, T), and the level is the
piecewise mapping S(x). On a segment anchored at (x0, s0, v0) with slope M
the level is an affine function of exp(M (x - x0)) (or of x - x0 for a
flat segment), so every payoff moment reduces to truncated normal moments

    int y^n  N(y; m, s^2) dy          n = 0, 1, 2, ...
    int e^{c y} N(y; m, s^2) dy = exp(c m + c^2 s^2 / 2) * P[a - c s^2 < y < b - c s^2]

evaluated at the segment boundaries. No quadrature is involved.

For nearly flat pieces the exponential forms cancel down to terms of order
M y and (M y)^2, so there (exp(M y) - 1) / M and its square are summed as
power series in y against the truncated moments instead.

Payoffs use the adjusted level S~ = S0 + alpha (S - S0) + nu; the exercise
region is taken on the unadjusted level, which keeps both ATM moments
linear in (alpha, nu).
"""

from typing import Tuple

import numpy as np
from scipy.stats import norm

from . import config
from .segments import is_flat_slope


# k! for k = 0 .. SERIES_TERMS
_FACTORIALS = np.concatenate([[1.0], np.cumprod(np.arange(1.0, config.SERIES_TERMS + 1.0))])


# ════════════════════════════════════════════════════════════════════════
#  TRUNCATED NORMAL MOMENTS
# ════════════════════════════════════════════════════════════════════════

def _normal_mass(za: float, zb: float) -> float:
    """P[za < Z < zb]; uses the upper tail when both ends are positive."""
    if za > 0.0:
        return norm.sf(za) - norm.sf(zb)
    return norm.cdf(zb) - norm.cdf(za)


def truncated_moments(lo: float, hi: float, mean: float, std: float, order: int) -> np.ndarray:
    """
    Moments int_lo^hi y^n N(y; mean, std^2) dy for n = 0 .. order.

    Integrating y^(n-1) (y - mean) p(y) by parts gives the recursion

        J_n = mean J_{n-1} + (n - 1) std^2 J_{n-2} - std^2 [y^(n-1) p(y)]_lo^hi

    Parameters
    ----------
    lo, hi : finite integration bounds
    mean, std : parameters of the normal density
    order : highest power

    Returns
    -------
    np.ndarray of length order + 1
    """
    za, zb = (lo - mean) / std, (hi - mean) / std
    pa, pb = norm.pdf(za) / std, norm.pdf(zb) / std
    var = std**2

    moments = np.empty(order + 1)
    moments[0] = _normal_mass(za, zb)
    if order >= 1:
        moments[1] = mean * moments[0] - var * (pb - pa)
    for n in range(2, order + 1):
        moments[n] = (mean * moments[n - 1] + (n - 1) * var * moments[n - 2]
                      - var * (hi**(n - 1) * pb - lo**(n - 1) * pa))
    return moments


def normal_moments(lo: float, hi: float, mean: float, std: float) -> Tuple[float, float, float]:
    """
    Zeroth, first and second moment of N(mean, std^2) restricted to [lo, hi].

    Returns
    -------
    (m0, m1, m2) : int y^n p(y) dy over [lo, hi]
    """
    m0, m1, m2 = truncated_moments(lo, hi, mean, std, 2)
    return float(m0), float(m1), float(m2)


def exponential_moment(c: float, lo: float, hi: float, mean: float, std: float) -> float:
    """int_lo^hi exp(c y) N(y; mean, std^2) dy."""
    shift = c * std**2
    mass = _normal_mass((lo - mean - shift) / std, (hi - mean - shift) / std)
    return np.exp(c * mean + 0.5 * c * shift) * mass


def _series_moments(slope: float, lo: float, hi: float, mean: float, std: float):
    """
    int g p and int g^2 p for g = (exp(M y) - 1) / M, summed term by term:

        g   = sum_{k>=1} M^(k-1) y^k / k!
        g^2 = sum_{k>=2} (2^k - 2) M^(k-2) y^k / k!
    """
    n = config.SERIES_TERMS
    moments = truncated_moments(lo, hi, mean, std, n)
    k = np.arange(n + 1, dtype=float)
    first = slope ** (k[1:] - 1.0) / _FACTORIALS[1:]
    second = (2.0**k[2:] - 2.0) * slope ** (k[2:] - 2.0) / _FACTORIALS[2:]
    return moments[0], float(first @ moments[1:]), float(second @ moments[2:])


def _piece_moments(piece, mu: float, std: float) -> Tuple[float, float, float]:
    """
    Moments of the level increment g(x) = S(x) - s0 over one segment piece.

    Returns (int p, int g p, int g^2 p).
    """
    lo, hi = piece.lower - piece.x0, piece.upper - piece.x0
    mean = mu - piece.x0
    v0 = piece.v0
    # same cutoff as the level mapping, so flat pieces integrate S = s0 + v0 y
    slope = 0.0 if is_flat_slope(piece.slope) else float(piece.slope)

    if abs(slope) * max(abs(lo), abs(hi), std) < config.SERIES_SLOPE_RANGE:
        m0, h1, h2 = _series_moments(slope, lo, hi, mean, std)
        return m0, v0 * h1, v0**2 * h2

    m0 = _normal_mass((lo - mean) / std, (hi - mean) / std)
    scale = v0 / slope
    e1 = exponential_moment(slope, lo, hi, mean, std)
    e2 = exponential_moment(2.0 * slope, lo, hi, mean, std)
    return m0, scale * (e1 - m0), scale**2 * (e2 - 2.0 * e1 + m0)


def _exercise_domain(surface, is_right_wing: bool, strike: float) -> Tuple[float, float]:
    x_strike = surface.transformed(strike)
    if is_right_wing:
        return x_strike, surface.upper_bound
    return surface.lower_bound, x_strike


# ════════════════════════════════════════════════════════════════════════
#  PAYOFF INTEGRALS
# ════════════════════════════════════════════════════════════════════════

def forward_price(surface, is_right_wing: bool, strike: float,
                  alpha: float = 1.0, nu: float = 0.0) -> float:
    """
    Forward price of an OTM option on the adjusted level.

    Right wing: E[(S~ - K) 1{S > K}]  (call)
    Left wing:  E[(K - S~) 1{S < K}]  (put)

    Parameters
    ----------
    surface : PiecewiseLocalVol
    is_right_wing : True for the call side, False for the put side
    strike : strike level K
    alpha, nu : post-calibration adjusters

    Returns
    -------
    float
    """
    lower, upper = _exercise_domain(surface, is_right_wing, strike)
    sign = 1.0 if is_right_wing else -1.0
    intercept = surface.forward * (1.0 - alpha) + nu - strike

    total = 0.0
    for piece in surface.pieces(lower, upper):
        m0, g1, _ = _piece_moments(piece, surface.mu, surface.std)
        d = intercept + alpha * piece.s0
        total += sign * (d * m0 + alpha * g1)
    return total


def forward_variance(surface, is_right_wing: bool, strike: float,
                     alpha: float = 1.0, nu: float = 0.0) -> float:
    """
    Forward price of the squared OTM payoff.

    Right wing: E[(S~ - K)^2 1{S > K}]
    Left wing:  E[(K - S~)^2 1{S < K}]

    The integrand is non-negative; the sum is floored at zero so that
    round-off in the far tails cannot produce a negative price.
    """
    lower, upper = _exercise_domain(surface, is_right_wing, strike)
    intercept = surface.forward * (1.0 - alpha) + nu - strike

    total = 0.0
    for piece in surface.pieces(lower, upper):
        m0, g1, g2 = _piece_moments(piece, surface.mu, surface.std)
        d = intercept + alpha * piece.s0
        total += d**2 * m0 + 2.0 * d * alpha * g1 + alpha**2 * g2
    return max(total, 0.0)


def exercise_probability(surface, is_right_wing: bool, strike: float) -> float:
    """P[S > K] (right wing) or P[S < K] (left wing) on the truncated domain."""
    lower, upper = _exercise_domain(surface, is_right_wing, strike)
    std = surface.std
    return sum(
        _normal_mass((p.lower - surface.mu) / std, (p.upper - surface.mu) / std)
        for p in surface.pieces(lower, upper)
    )
