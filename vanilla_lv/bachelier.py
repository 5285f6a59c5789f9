"""
Normal (Bachelier) model pricing and implied normal volatility inversion.

The local-vol model quotes its ATM target as a normal volatility, so the
straddle it calibrates to and the smile it reports both live here.
Everything is closed-form except the implied vol solver, which uses
Brent's root-finding method for unconditional convergence.

All prices are forward (undiscounted) prices.

References:
    Bachelier, L. (1900). Theorie de la speculation.
    Schachermayer, W. & Teichmann, J. (2008). How close are the option
    pricing formulas of Bachelier and Black-Merton-Scholes?
"""

import numpy as np
from scipy.stats import norm
from scipy.optimize import brentq


# ════════════════════════════════════════════════════════════════════════
#  PRICING
# ════════════════════════════════════════════════════════════════════════

def d(F: float, K: float, T: float, sigma: float) -> float:
    """
    Compute the normalized moneyness d = (F - K) / (sigma * sqrt(T)).

    Parameters
    ----------
    F : forward level
    K : strike
    T : time to expiry in years
    sigma : normal volatility (level units per sqrt(year))

    Returns
    -------
    float
    """
    if T <= 0 or sigma <= 0:
        return 0.0
    return (F - K) / (sigma * np.sqrt(T))


def call_price(F: float, K: float, T: float, sigma: float) -> float:
    """
    Forward price of a call under the normal model.

        C = (F - K) N(d) + sigma sqrt(T) n(d)

    Returns
    -------
    float : undiscounted call price
    """
    if T <= 0 or sigma <= 0:
        return max(F - K, 0.0)

    stdev = sigma * np.sqrt(T)
    _d = (F - K) / stdev
    return (F - K) * norm.cdf(_d) + stdev * norm.pdf(_d)


def put_price(F: float, K: float, T: float, sigma: float) -> float:
    """
    Forward price of a put under the normal model.

        P = (K - F) N(-d) + sigma sqrt(T) n(d)
    """
    if T <= 0 or sigma <= 0:
        return max(K - F, 0.0)

    stdev = sigma * np.sqrt(T)
    _d = (F - K) / stdev
    return (K - F) * norm.cdf(-_d) + stdev * norm.pdf(_d)


def normal_price(F: float, K: float, T: float, sigma: float,
                 option_type: str = "call") -> float:
    """Dispatch to call_price or put_price based on option_type."""
    if option_type.lower() in ("c", "call"):
        return call_price(F, K, T, sigma)
    elif option_type.lower() in ("p", "put"):
        return put_price(F, K, T, sigma)
    else:
        raise ValueError(f"Unknown option_type: {option_type}. Use 'call' or 'put'.")


def straddle_price(F: float, K: float, T: float, sigma: float) -> float:
    """
    Forward price of a straddle, call + put.

    At the money this reduces to sigma * sqrt(2 T / pi), the quantity
    the local-vol calibrator targets.
    """
    return call_price(F, K, T, sigma) + put_price(F, K, T, sigma)


# ════════════════════════════════════════════════════════════════════════
#  IMPLIED NORMAL VOLATILITY
# ════════════════════════════════════════════════════════════════════════

def implied_normal_vol(
    market_price: float,
    F: float,
    K: float,
    T: float,
    option_type: str = "call",
    vol_lower: float = 1e-12,
    vol_upper: float = None,
    tol: float = 1e-12,
) -> float:
    """
    Compute the normal implied volatility by inverting the Bachelier price.

    Uses Brent's method, bracketed between vol_lower and vol_upper.
    Normal vols scale with the level of the underlying, so the default
    upper bracket is derived from the price and moneyness rather than
    fixed.

    Parameters
    ----------
    market_price : forward (undiscounted) option price
    F : forward level
    K : strike
    T : time to expiry (years)
    option_type : "call" or "put"
    vol_lower : lower bracket for the vol search
    vol_upper : upper bracket; default 10 * (price + |F - K|) / sqrt(T) + 1
    tol : solver tolerance

    Returns
    -------
    float : normal implied volatility, or NaN if the solver fails
    """
    if market_price <= 0 or T <= 0:
        return np.nan

    if option_type.lower() in ("c", "call"):
        intrinsic = max(F - K, 0.0)
    else:
        intrinsic = max(K - F, 0.0)

    if market_price <= intrinsic:
        # no time value left to attribute to volatility
        return np.nan

    if vol_upper is None:
        vol_upper = 10.0 * (market_price + abs(F - K)) / np.sqrt(T) + 1.0

    def objective(sigma):
        return normal_price(F, K, T, sigma, option_type) - market_price

    try:
        return brentq(objective, vol_lower, vol_upper, xtol=tol)
    except ValueError:
        # f(a) and f(b) have the same sign, price outside the model range
        return np.nan
    except RuntimeError:
        return np.nan
