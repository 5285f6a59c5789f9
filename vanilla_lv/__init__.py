"""
vanilla-local-vol
=================
Single-expiry local-volatility model: grid construction from skew anchor
points, ATM calibration, and closed-form OTM payoff pricing.

Modules:
    model          - VanillaLocalVolModel, the public entry point
    grid           - Level/transformed grid specification and construction
    segments       - Piecewise local vol and level mapping evaluation
    integration    - Closed-form payoff moments against the terminal density
    calibration    - ATM (mu, sigma0) calibration and (alpha, nu) adjusters
    bachelier      - Normal-model pricing and implied normal vol
    smile          - Smile and grid tables (pandas)
    visualization  - 2D charting (matplotlib + plotly)
    config         - Numerical defaults and chart settings
    errors         - Exception types
    logging        - Package logger helpers
"""

from .errors import (
    CalibrationError,
    DomainError,
    InvalidInputError,
    LocalVolError,
    NotInitializedError,
)
from .model import VanillaLocalVolModel

__version__ = "0.1.0"

__all__ = [
    "VanillaLocalVolModel",
    "LocalVolError",
    "InvalidInputError",
    "DomainError",
    "NotInitializedError",
    "CalibrationError",
]
