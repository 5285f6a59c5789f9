"""
Smile construction: from a calibrated local-vol model to tables of
OTM prices and normal implied vols, suitable for plotting and checks.

The pipeline:
    1. Pick a strike grid around the forward (ATM stdevs from config)
    2. Price the OTM option at each strike with the model's closed form
    3. Invert each price to a normal implied vol
    4. Attach the local vol at the strike for comparison

Outputs are pandas DataFrames that can be passed directly to the
visualization module.
"""

import numpy as np
import pandas as pd
from typing import Optional

from . import config
from .bachelier import implied_normal_vol


def default_strikes(model, n_points: int = None, n_stdevs: float = None) -> np.ndarray:
    """
    Evenly spaced strikes centered on the forward.

    Parameters
    ----------
    model : VanillaLocalVolModel
    n_points : number of strikes (default: config.SMILE_POINTS); odd
               counts put one strike exactly at the money
    n_stdevs : half-width in ATM standard deviations sigma_ATM * sqrt(T)
               (default: config.SMILE_STDEVS)
    """
    if n_points is None:
        n_points = config.SMILE_POINTS
    if n_stdevs is None:
        n_stdevs = config.SMILE_STDEVS

    half_width = n_stdevs * model.sigma_atm * np.sqrt(model.time_to_expiry)
    return np.linspace(model.forward - half_width, model.forward + half_width, n_points)


def model_smile(model, strikes: Optional[np.ndarray] = None) -> pd.DataFrame:
    """
    OTM prices and normal implied vols across strikes.

    Strikes at or above the forward are priced as calls (right wing),
    strikes below as puts (left wing).

    Parameters
    ----------
    model : VanillaLocalVolModel
    strikes : strike levels (default: default_strikes(model))

    Returns
    -------
    DataFrame with columns
        [strike, wing, price, normal_vol, local_vol, moneyness]
    where moneyness = strike - forward. normal_vol is NaN where the price
    carries no time value to invert.
    """
    if strikes is None:
        strikes = default_strikes(model)

    F, T = model.forward, model.time_to_expiry
    rows = []
    for K in np.asarray(strikes, dtype=float):
        is_call = K >= F
        price = model.expectation(is_call, K)
        option_type = "call" if is_call else "put"
        rows.append({
            "strike": K,
            "wing": option_type,
            "price": price,
            "normal_vol": implied_normal_vol(price, F, K, T, option_type),
            "local_vol": model.local_vol(K),
            "moneyness": K - F,
        })

    return pd.DataFrame(rows)


def grid_frame(model) -> pd.DataFrame:
    """
    Grid points of the model as a table, one row per point.

    Columns [x, level, local_vol, slope], in increasing order; the row
    with x = 0 is the forward.
    """
    return pd.DataFrame({
        "x": model.underlying_x(),
        "level": model.underlying_s(),
        "local_vol": model.local_vol_grid(),
        "slope": model.local_vol_slope(),
    })


def compute_smile_statistics(df: pd.DataFrame, model) -> dict:
    """
    Summary statistics for a model smile.

    Parameters
    ----------
    df : DataFrame from model_smile
    model : the model the smile was computed from

    Returns
    -------
    dict with keys:
        n_points           : number of strikes
        strike_range       : (min, max)
        normal_vol_range   : (min, max), NaNs ignored
        atm_normal_vol     : normal vol interpolated at the forward
        skew_1sd           : normal vol one ATM stdev below minus one above
        forward_residual   : model forward - S0
        straddle_residual  : model ATM straddle - target straddle
    """
    stats = {
        "n_points": len(df),
        "strike_range": (df["strike"].min(), df["strike"].max()),
        "normal_vol_range": (df["normal_vol"].min(), df["normal_vol"].max()),
    }

    valid = df.dropna(subset=["normal_vol"]).sort_values("strike")
    F = model.forward
    stdev = model.sigma_atm * np.sqrt(model.time_to_expiry)
    if len(valid) >= 2:
        strikes = valid["strike"].values
        vols = valid["normal_vol"].values
        stats["atm_normal_vol"] = float(np.interp(F, strikes, vols))
        if strikes[0] <= F - stdev and strikes[-1] >= F + stdev:
            stats["skew_1sd"] = float(np.interp(F - stdev, strikes, vols)
                                      - np.interp(F + stdev, strikes, vols))
        else:
            stats["skew_1sd"] = np.nan
    else:
        stats["atm_normal_vol"] = np.nan
        stats["skew_1sd"] = np.nan

    stats["forward_residual"] = model.model_forward() - F
    stats["straddle_residual"] = model.model_straddle() - model.straddle_atm

    return stats
