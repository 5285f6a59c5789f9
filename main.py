#!/usr/bin/env python3
"""
main.py — Calibrate a local-vol model and chart its smile.

Usage:
    python main.py                                   # demo scenario
    python main.py --sp 110 120 --mp -0.05 -0.05     # steeper call wing
    python main.py --max-iters 20 --log --no-html
"""

import argparse
import logging
import sys
import time

import numpy as np

from vanilla_lv import config
from vanilla_lv.errors import LocalVolError
from vanilla_lv.logging import configure_logging
from vanilla_lv.model import VanillaLocalVolModel
from vanilla_lv.smile import compute_smile_statistics, grid_frame, model_smile
from vanilla_lv.visualization import (
    plot_local_vol_matplotlib, plot_smile_matplotlib,
    plot_local_vol_plotly, plot_smile_plotly,
)


def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Calibrate a vanilla local-vol model.")
    p.add_argument("--expiry", type=float, default=config.DEMO_T, help="time to expiry (years)")
    p.add_argument("--forward", type=float, default=config.DEMO_FORWARD)
    p.add_argument("--sigma-atm", type=float, default=config.DEMO_SIGMA_ATM,
                   help="ATM normal volatility")
    p.add_argument("--sp", type=float, nargs="+", default=config.DEMO_SP)
    p.add_argument("--sm", type=float, nargs="+", default=config.DEMO_SM)
    p.add_argument("--mp", type=float, nargs="+", default=config.DEMO_MP)
    p.add_argument("--mm", type=float, nargs="+", default=config.DEMO_MM)
    p.add_argument("--max-iters", type=int, default=config.MAX_CALIBRATION_ITERS)
    p.add_argument("--forward-iters", type=int, default=config.ONLY_FORWARD_CALIBRATION_ITERS)
    p.add_argument("--no-adjust", action="store_true", help="skip the ATM adjusters")
    p.add_argument("--log", action="store_true", help="print the calibration trace")
    p.add_argument("--no-plots", action="store_true")
    p.add_argument("--no-html", action="store_true")
    return p.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    if args.log:
        configure_logging(logging.DEBUG, format_string="%(name)s %(levelname)s: %(message)s")

    print(f"\n{'='*60}")
    print(f"  Vanilla Local-Vol Model")
    print(f"  T={args.expiry:g}y  |  F={args.forward:g}  |  sigma_ATM={args.sigma_atm:g}")
    print(f"{'='*60}\n")

    # step 1: build + calibrate
    t0 = time.time()
    print("[1/3] Calibrating...")
    try:
        model = VanillaLocalVolModel.from_levels(
            args.expiry, args.forward, args.sigma_atm,
            args.sp, args.sm, args.mp, args.mm,
            max_calibration_iters=args.max_iters,
            only_forward_calibration_iters=args.forward_iters,
            adjust_atm=not args.no_adjust,
            enable_logging=args.log,
        )
    except LocalVolError as e:
        print(f"\n  ERROR: {e}")
        sys.exit(1)

    print(f"       mu: {model.mu:.8f}   sigma0: {model.sigma0:.6f}")
    print(f"       alpha: {model.alpha:.10f}   nu: {model.nu:.3e}")
    print(f"       converged: {model.converged} ({model.calibration_iterations} iterations)")
    print(grid_frame(model).to_string(index=False, float_format=lambda v: f"{v:12.6f}"))

    # step 2: smile
    print("\n[2/3] Pricing smile...")
    df = model_smile(model)
    stats = compute_smile_statistics(df, model)
    print(f"       Strikes: {stats['n_points']} in [{stats['strike_range'][0]:.2f}, "
          f"{stats['strike_range'][1]:.2f}]")
    if not np.isnan(stats["atm_normal_vol"]):
        print(f"       ATM normal vol: {stats['atm_normal_vol']:.6f}")
    if not np.isnan(stats["skew_1sd"]):
        print(f"       1-stdev skew (put - call): {stats['skew_1sd']:.6f}")
    print(f"       Forward residual: {stats['forward_residual']:.3e}")
    print(f"       Straddle residual: {stats['straddle_residual']:.3e}")

    # step 3: charts
    if args.no_plots:
        print("\n[3/3] Skipping charts (--no-plots flag)")
    else:
        print("\n[3/3] Generating charts...")
        plot_local_vol_matplotlib(model)
        plot_smile_matplotlib(df, model)
        print(f"       -> output/local_vol.png, output/smile.png")
        if not args.no_html:
            plot_local_vol_plotly(model)
            plot_smile_plotly(df, model)
            print(f"       -> output/local_vol.html, output/smile.html")

    if args.log:
        print("\n  Calibration trace:")
        for line in model.trace:
            print(f"       {line}")

    elapsed = time.time() - t0
    print(f"\n  Done in {elapsed:.2f}s.\n")


if __name__ == "__main__":
    main()
