#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""run_brick_scenarios.py (impactsim)

Drop the unilateral brick in one or all of the canned scenarios and optionally
save each trajectory (t, q, u, MuJoCo qpos, min_z) to NPZ.

Run (from the folder that contains both `impactsim/` and `scripts/`):
  export JAX_PLATFORM_NAME=cpu
  python3 scripts/run_brick_scenarios.py --scenario one_point
  python3 scripts/run_brick_scenarios.py --scenario all --out runs/brick
  IMPACTSIM_DEBUG=basic,impact python3 scripts/run_brick_scenarios.py --scenario four_points

Tips:
  - --debug takes the same comma-separated switches as IMPACTSIM_DEBUG.
  - --exhaustive_positions tries every constraint subset when projecting.
"""

from __future__ import annotations

# Make CPU the default BEFORE importing JAX via any module.
import os
os.environ.setdefault("JAX_PLATFORM_NAME", "cpu")

import argparse
from dataclasses import replace

from impactsim import BrickSimulator, ContactResolutionError, DEFAULT_SETTINGS, SCENARIOS, get_scenario
from impactsim.io_and_logging import save_npz
from impactsim.model import load_brick_model


def _debug_settings(debug: str):
    flags = {s.strip().lower() for s in debug.split(",") if s.strip()}
    return replace(
        DEFAULT_SETTINGS,
        print_basic_info=DEFAULT_SETTINGS.print_basic_info or "basic" in flags,
        print_debug_positions=DEFAULT_SETTINGS.print_debug_positions or "positions" in flags,
        print_debug_impact=DEFAULT_SETTINGS.print_debug_impact or "impact" in flags,
        print_debug_steplength=DEFAULT_SETTINGS.print_debug_steplength or "steplength" in flags,
    )


def main() -> int:
    ap = argparse.ArgumentParser()

    # --- scenario ---
    ap.add_argument("--scenario", type=str, default="all", help=f"all | {' | '.join(SCENARIOS)}")
    ap.add_argument("--duration", type=float, default=None)
    ap.add_argument("--dt", type=float, default=1e-3)

    # --- model / contact ---
    ap.add_argument("--xml", type=str, default=None)
    ap.add_argument("--exhaustive_positions", action="store_true")
    ap.add_argument("--debug", type=str, default="")

    # --- output ---
    ap.add_argument("--out", type=str, default=None)

    args = ap.parse_args()

    names = list(SCENARIOS) if args.scenario == "all" else [args.scenario]
    settings = _debug_settings(args.debug)
    info = load_brick_model(xml_path=args.xml)

    failures = 0
    for name in names:
        sc = get_scenario(name)
        duration = sc.duration if args.duration is None else float(args.duration)
        print(f"=== {sc.description} ({name}), {duration:.1f}s ===")

        sim = BrickSimulator(info, dt=args.dt, exhaustive_positions=args.exhaustive_positions, settings=settings)
        try:
            result = sim.run(sc.q0, sc.u0, duration, verbose=True)
        except ContactResolutionError as e:
            print(f"ERROR: {e}")
            failures += 1
            continue

        if args.out is not None:
            path = save_npz(f"{args.out}_{name}", result)
            print(f"saved {path}")

    return 1 if failures else 0


if __name__ == "__main__":
    raise SystemExit(main())
