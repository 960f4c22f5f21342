"""Interval step-length control for the impacter.

A sliding point's velocity is linear in the step length s along the chosen
velocity change: v(s) = v0 + s * (v_full - v0). The step is shortened so that
no sliding point turns its slip direction by more than max_sliding_dir_change
within one interval, and so that a point about to stop or reverse ends the
interval near zero tangential velocity.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np

from . import config
from .candidates import TangentialState

_TWO_PI = 2.0 * np.pi
_SIGNIFICANT_REAL = 1e-14


def tangential_angle(vel, tol_reliable_direction: float) -> float:
    if float(np.hypot(vel[0], vel[1])) < tol_reliable_direction:
        return float("nan")
    return float(np.arctan2(vel[1], vel[0]))


def calc_abs_diff_between_angles(a: float, b: float) -> float:
    """Absolute difference of two angles in [-pi, pi], in [0, pi]. NaN propagates."""
    if a < 0.0:
        a += _TWO_PI
    if b < 0.0:
        b += _TWO_PI
    d = abs(a - b)
    return d if d < np.pi else _TWO_PI - d


def calc_sliding_step_length_to_origin(A, B, max_sticking_tang_vel: float = config.MAX_STICKING_TANG_VEL) -> float:
    """Parameter in [0, 1] of the point on segment A -> B closest to the origin.

    Returns 1 when |A| is already below max_sticking_tang_vel (impending slip)
    or when the segment is degenerate.
    """
    A = np.asarray(A, dtype=np.float64)[:2]
    B = np.asarray(B, dtype=np.float64)[:2]
    if float(np.linalg.norm(A)) < max_sticking_tang_vel:
        return 1.0
    AB = B - A
    ab_sqr = float(AB @ AB)
    if ab_sqr < _SIGNIFICANT_REAL:
        return 1.0
    return float(np.clip(float(-A @ AB) / ab_sqr, 0.0, 1.0))


def _step_for_angle(v0_xy: np.ndarray, d_xy: np.ndarray, max_angle: float) -> float:
    """Step s at which the angle between v0 and v0 + s*d first equals max_angle."""
    t = np.tan(max_angle)
    cross = abs(float(v0_xy[0] * d_xy[1] - v0_xy[1] * d_xy[0]))
    denom = cross - t * float(v0_xy @ d_xy)
    if denom <= 0.0:
        return np.inf
    return t * float(v0_xy @ v0_xy) / denom


def calculate_interval_step_length(
    current_vels,
    full_step_vels,
    tangential_states: Sequence[TangentialState],
    interval_ctr: int,
    settings: config.ContactSettings = config.DEFAULT_SETTINGS,
) -> float:
    """Step length in [min_interval_step_length, 1] for the selected candidate.

    Returns NaN if a sliding point needs more than max_iter_step_length
    refinements.
    """
    cur = np.asarray(current_vels, dtype=np.float64).reshape(-1, 3)
    full = np.asarray(full_step_vels, dtype=np.float64).reshape(-1, 3)
    step = 1.0

    for i, st in enumerate(tangential_states):
        if st != TangentialState.SLIDING:
            continue
        v0 = cur[i]
        d = full[i] - v0
        if settings.print_debug_steplength:
            print(f"[STEP] proximal point {i}: v0={v0}, v_full={full[i]}")

        num_iter = 0
        while True:
            num_iter += 1
            if num_iter > settings.max_iter_step_length:
                if settings.print_debug_steplength:
                    print(f"[STEP] maximum number of iterations reached at point {i}")
                return float("nan")

            prop = v0 + step * d
            ang0 = tangential_angle(v0, settings.tol_reliable_direction)
            ang1 = tangential_angle(prop, settings.tol_reliable_direction)

            # Ends with negligible tangential velocity: the point will roll.
            if np.isnan(ang1) or float(np.hypot(prop[0], prop[1])) < settings.max_sticking_tang_vel:
                break

            abs_dif = calc_abs_diff_between_angles(ang0, ang1)
            if abs_dif <= settings.max_sliding_dir_change:
                break
            elif abs_dif <= 0.5 * np.pi:
                s_max = _step_for_angle(v0[:2], d[:2], settings.max_sliding_dir_change)
                if not np.isfinite(s_max):
                    s_max = step * (settings.max_sliding_dir_change / abs_dif)
                step = min(s_max, step - settings.min_interval_step_length)
                if settings.print_debug_steplength:
                    print(f"[STEP]   limiting step to {step:.6g} (direction change {abs_dif:.4f} rad)")
            else:
                # Reversing or stopping (or direction unknown): end nearest the origin.
                factor = calc_sliding_step_length_to_origin(v0, prop, settings.max_sticking_tang_vel)
                step *= factor
                if settings.print_debug_steplength:
                    print(f"[STEP]   limiting step to {step:.6g} (closest to origin, factor {factor:.4f})")
                if factor == 1.0:
                    break

    if interval_ctr < settings.min_intervals_per_phase:
        step = min(step, 1.0 / (settings.min_intervals_per_phase - interval_ctr + 1))

    return max(step, settings.min_interval_step_length)
