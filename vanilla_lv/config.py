"""
Global configuration for the local-vol model.

Keeps all magic numbers in one place. Calibration controls can be
overridden per model via keyword arguments, demo inputs via CLI args
in main.py.
"""

from pathlib import Path


# ── paths ────────────────────────────────────────────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parent.parent
OUTPUT_DIR = PROJECT_ROOT / "output"


# ── numerical controls ──────────────────────────────────────────────────
EXTRAPOLATION_STDEVS = 10.0       # x-domain is mu +/- this many sqrt(T)
MAX_CALIBRATION_ITERS = 5         # secant iterations for (mu, sigma0)
ONLY_FORWARD_CALIBRATION_ITERS = 0
SIGMA0_TOL = 1.0e-12              # straddle residual tolerance
S0_TOL = 1.0e-12                  # forward residual tolerance
ADJUST_ATM = True                 # post-calibration (alpha, nu) adjusters
ENABLE_LOGGING = False            # collect the diagnostic trace
USE_INITIAL_MU = False
INITIAL_MU = 0.0

# below this |slope| a segment is solved as flat vol, S linear in x;
# the exponential closed forms lose digits to cancellation there
FLAT_SLOPE_TOL = 1.0e-8

# payoff moments switch from exp closed forms to a power series in x when
# |slope| * max(|x - x0| on the piece, sqrt(T)) is below SERIES_SLOPE_RANGE
SERIES_SLOPE_RANGE = 0.5
SERIES_TERMS = 20


# ── demo scenario (main.py defaults) ────────────────────────────────────
DEMO_T = 1.0
DEMO_FORWARD = 100.0
DEMO_SIGMA_ATM = 20.0             # normal vol, 20% of the forward
DEMO_SP = [110.0, 120.0]
DEMO_SM = [90.0, 80.0]
DEMO_MP = [0.01, 0.01]
DEMO_MM = [0.01, 0.01]


# ── smile sampling ──────────────────────────────────────────────────────
SMILE_STDEVS = 2.5                # strikes span forward +/- this many ATM stdevs
SMILE_POINTS = 41


# ── visualization ────────────────────────────────────────────────────────
DARK_BG = "#0c0c16"
GRID_COLOR_ALPHA = 0.12
DPI = 200                         # matplotlib export resolution
FIG_WIDTH_2D = 12
FIG_HEIGHT_2D = 6
LOCAL_VOL_COLOR = "#4d96ff"
SMILE_COLOR = "#ffd93d"
GRID_POINT_COLOR = "#ff6b6b"
