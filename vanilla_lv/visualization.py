"""
Visualization module: local-vol function and implied normal-vol smile.

Two backends:
    - matplotlib: high-resolution static PNGs
    - plotly: interactive HTML with zoom and hover tooltips

Both use the same dark theme. Grid points are marked on the local-vol
chart so the piecewise structure is visible.
"""

import numpy as np
import pandas as pd

import matplotlib
matplotlib.use("Agg")  # non-interactive backend for server/CI environments
import matplotlib.pyplot as plt

import plotly.graph_objects as go

from . import config


def _default_path(name: str) -> str:
    config.OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
    return str(config.OUTPUT_DIR / name)


def _level_range(model, n_points: int = 400) -> np.ndarray:
    """Levels spanning the grid points plus half an ATM stdev either side."""
    levels = model.underlying_s()
    pad = 0.5 * model.sigma_atm * np.sqrt(model.time_to_expiry)
    return np.linspace(levels.min() - pad, levels.max() + pad, n_points)


def _style_axes(fig, ax) -> None:
    fig.patch.set_facecolor(config.DARK_BG)
    ax.set_facecolor(config.DARK_BG)
    ax.tick_params(colors="white", labelsize=10)
    ax.grid(True, alpha=config.GRID_COLOR_ALPHA, color="white")
    for spine in ax.spines.values():
        spine.set_color("#333355")


# ════════════════════════════════════════════════════════════════════════
#  MATPLOTLIB (static PNG)
# ════════════════════════════════════════════════════════════════════════

def plot_local_vol_matplotlib(model, output_path: str = None) -> None:
    """
    Render the local-vol function sigma(S) with its grid points as a PNG.

    Parameters
    ----------
    model : calibrated VanillaLocalVolModel
    output_path : PNG save path (default: config.OUTPUT_DIR / "local_vol.png")
    """
    if output_path is None:
        output_path = _default_path("local_vol.png")

    S = _level_range(model)
    fig, ax = plt.subplots(figsize=(config.FIG_WIDTH_2D, config.FIG_HEIGHT_2D))
    _style_axes(fig, ax)

    ax.plot(S, model.local_vol(S), color=config.LOCAL_VOL_COLOR, linewidth=2.2,
            label="local vol σ(S)")
    ax.scatter(model.underlying_s(), model.local_vol_grid(), color=config.GRID_POINT_COLOR,
               zorder=3, s=30, label="grid points")
    ax.axvline(model.forward, color="white", alpha=0.35, linestyle="--", linewidth=1)

    ax.set_xlabel("Underlying level (S)", fontsize=13, color="white")
    ax.set_ylabel("Local volatility (normal)", fontsize=13, color="white")
    ax.set_title(
        f"Local volatility, T={model.time_to_expiry:g}y, F={model.forward:g}",
        fontsize=17, fontweight="bold", color="white",
    )
    ax.legend(loc="upper right", fontsize=10, facecolor="#191930",
              edgecolor="#ffffff30", labelcolor="white")

    plt.tight_layout()
    plt.savefig(output_path, dpi=config.DPI, bbox_inches="tight",
                facecolor=config.DARK_BG, edgecolor="none")
    plt.close()


def plot_smile_matplotlib(df: pd.DataFrame, model, output_path: str = None) -> None:
    """
    Render the model's normal implied-vol smile against the local vol.

    Parameters
    ----------
    df : DataFrame from smile.model_smile
    model : the model the smile was computed from (for the ATM marker)
    output_path : PNG save path (default: config.OUTPUT_DIR / "smile.png")
    """
    if output_path is None:
        output_path = _default_path("smile.png")

    df = df.sort_values("strike")
    fig, ax = plt.subplots(figsize=(config.FIG_WIDTH_2D, config.FIG_HEIGHT_2D))
    _style_axes(fig, ax)

    ax.plot(df["strike"], df["normal_vol"], color=config.SMILE_COLOR, linewidth=2.2,
            label="implied normal vol")
    ax.plot(df["strike"], df["local_vol"], color=config.LOCAL_VOL_COLOR, linewidth=1.5,
            linestyle="--", label="local vol")
    ax.axvline(model.forward, color="white", alpha=0.35, linestyle="--", linewidth=1)
    ax.axhline(model.sigma_atm, color=config.GRID_POINT_COLOR, alpha=0.5, linewidth=1)

    ax.set_xlabel("Strike (K)", fontsize=13, color="white")
    ax.set_ylabel("Normal volatility", fontsize=13, color="white")
    ax.set_title("Model smile vs local volatility", fontsize=17,
                 fontweight="bold", color="white")
    ax.legend(loc="upper right", fontsize=10, facecolor="#191930",
              edgecolor="#ffffff30", labelcolor="white")

    plt.tight_layout()
    plt.savefig(output_path, dpi=config.DPI, bbox_inches="tight",
                facecolor=config.DARK_BG, edgecolor="none")
    plt.close()


# ════════════════════════════════════════════════════════════════════════
#  PLOTLY (interactive HTML)
# ════════════════════════════════════════════════════════════════════════

def _plotly_layout(fig, title: str, x_title: str, y_title: str) -> None:
    fig.update_layout(
        title=dict(text=f"<b>{title}</b>", font=dict(size=20, color="white"), x=0.5),
        xaxis=dict(
            title=dict(text=x_title, font=dict(size=14, color="#ddd")),
            tickfont=dict(size=11, color="#ccc"),
            gridcolor=f"rgba(200,200,200,{config.GRID_COLOR_ALPHA})",
        ),
        yaxis=dict(
            title=dict(text=y_title, font=dict(size=14, color="#ddd")),
            tickfont=dict(size=11, color="#ccc"),
            gridcolor=f"rgba(200,200,200,{config.GRID_COLOR_ALPHA})",
        ),
        plot_bgcolor=config.DARK_BG,
        paper_bgcolor=config.DARK_BG,
        font=dict(color="white"),
        legend=dict(bgcolor="rgba(25,25,45,0.85)",
                    bordercolor="rgba(255,255,255,0.15)", borderwidth=1),
        width=1000, height=550,
        margin=dict(l=60, r=30, t=60, b=50),
    )


def plot_local_vol_plotly(model, output_path: str = None) -> None:
    """Render the local-vol function as interactive HTML."""
    if output_path is None:
        output_path = _default_path("local_vol.html")

    S = _level_range(model)
    fig = go.Figure()
    fig.add_trace(go.Scatter(
        x=S, y=model.local_vol(S), mode="lines", name="local vol",
        line=dict(color=config.LOCAL_VOL_COLOR, width=2.5),
        hovertemplate="S=%{x:.2f}  σ=%{y:.4f}<extra></extra>",
    ))
    fig.add_trace(go.Scatter(
        x=model.underlying_s(), y=model.local_vol_grid(), mode="markers",
        name="grid points", marker=dict(color=config.GRID_POINT_COLOR, size=8),
        customdata=model.underlying_x(),
        hovertemplate="S=%{x:.2f}  σ=%{y:.4f}  x=%{customdata:.4f}<extra></extra>",
    ))
    fig.add_vline(x=model.forward, line_dash="dash", line_color="rgba(255,255,255,0.4)")

    _plotly_layout(fig, "Local volatility", "Underlying level (S)", "Local volatility (normal)")
    fig.write_html(output_path)


def plot_smile_plotly(df: pd.DataFrame, model, output_path: str = None) -> None:
    """Render the model smile as interactive HTML."""
    if output_path is None:
        output_path = _default_path("smile.html")

    df = df.sort_values("strike")
    fig = go.Figure()
    fig.add_trace(go.Scatter(
        x=df["strike"], y=df["normal_vol"], mode="lines", name="implied normal vol",
        line=dict(color=config.SMILE_COLOR, width=2.5),
        customdata=df["price"],
        hovertemplate="K=%{x:.2f}  vol=%{y:.4f}  price=%{customdata:.4f}<extra></extra>",
    ))
    fig.add_trace(go.Scatter(
        x=df["strike"], y=df["local_vol"], mode="lines", name="local vol",
        line=dict(color=config.LOCAL_VOL_COLOR, width=1.5, dash="dash"),
    ))
    fig.add_vline(
        x=model.forward, line_dash="dash", line_color="rgba(255,255,255,0.4)",
        annotation_text=f"F = {model.forward:g}",
        annotation_font=dict(color="rgba(255,255,255,0.7)", size=12),
    )

    _plotly_layout(fig, "Model smile vs local volatility", "Strike (K)", "Normal volatility")
    fig.write_html(output_path)
