"""
Shared test fixtures and pytest configuration.
"""

import pytest

from vanilla_lv.model import VanillaLocalVolModel


# base scenario: 1y expiry, forward 100, normal ATM vol 20% of the forward
BASE = dict(
    T=1.0,
    S0=100.0,
    sigma_atm=20.0,
    Sp=[110.0, 120.0],
    Sm=[90.0, 80.0],
    Mp=[0.01, 0.01],
    Mm=[0.01, 0.01],
)

# equity-like skew: local vol falls as the level rises
SKEW = dict(BASE, Mp=[-0.02, -0.05], Mm=[-0.03, -0.03])

# flat local vol, the model collapses to Bachelier
FLAT = dict(BASE, Mp=[0.0, 0.0], Mm=[0.0, 0.0])


@pytest.fixture
def base_params():
    return dict(BASE)


@pytest.fixture
def base_model():
    """Base scenario with default controls."""
    return VanillaLocalVolModel.from_levels(**BASE)


@pytest.fixture
def skew_model():
    """Skewed scenario, calibrated to convergence with the adjusters on."""
    return VanillaLocalVolModel.from_levels(
        **SKEW, max_calibration_iters=50, sigma0_tol=1e-9, S0_tol=1e-9,
    )


@pytest.fixture
def flat_model():
    return VanillaLocalVolModel.from_levels(
        **FLAT, max_calibration_iters=50, sigma0_tol=1e-9, S0_tol=1e-9,
    )
