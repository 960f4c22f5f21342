from __future__ import annotations

import os
from dataclasses import dataclass

# -----------------------------
# JAX config (CPU recommended)
# -----------------------------
JAX_PLATFORM_NAME: str = os.environ.get("JAX_PLATFORM_NAME", "cpu")
JAX_ENABLE_X64: bool = True

# -----------------------------
# Contact tolerances
# -----------------------------
TOL_PROJECT_Q = 1.0e-6           # accuracy requested from project_q()
TOL_POSITION_FUZZINESS = 1.0e-4  # expected position tolerance
TOL_VELOCITY_FUZZINESS = 1.0e-5  # expected velocity tolerance
TOL_RELIABLE_DIRECTION = 1.0e-4  # whether to trust the v_t direction
TOL_MAX_DIF_DIR_ITERATION = 0.05  # slip direction within 2.86 degrees
MIN_MEANINGFUL_IMPULSE = 1.0e-6  # smallest acceptable impulse
MAX_STICKING_TANG_VEL = 1.0e-1   # cannot stick above this velocity
MAX_SLIDING_DIR_CHANGE = 0.5     # direction can change 28.6 degrees
MIN_INTERVAL_STEP_LENGTH = 1.0e-3

# -----------------------------
# Iteration limits
# -----------------------------
MAX_ITER_SLIP_DIRECTION = 5
MAX_ITER_STEP_LENGTH = 5
MIN_INTERVALS_PER_PHASE = 1
MAX_ITER_PROJECT_Q = 50

# -----------------------------
# Brick defaults
# -----------------------------
BRICK_HALF_LENGTHS = (0.2, 0.3, 0.4)
BRICK_SPHERE_RADIUS = 0.1
BRICK_MASS = 2.0
BRICK_MU_DYN = 0.6
BRICK_V_MIN_REBOUND = 1.0e-6
BRICK_V_PLASTIC_DEFORM = 0.1
BRICK_MIN_COR = 0.5

# -----------------------------
# Simulation defaults
# -----------------------------
SIM_DT = 1.0e-3
GRAVITY = 9.81

# -----------------------------
# Debug printing
# -----------------------------
# IMPACTSIM_DEBUG="basic,impact" etc.
_DEBUG_FLAGS = {
    s.strip().lower() for s in os.environ.get("IMPACTSIM_DEBUG", "").split(",") if s.strip()
}
PRINT_BASIC_INFO = "basic" in _DEBUG_FLAGS
PRINT_DEBUG_INFO_POSITIONS = "positions" in _DEBUG_FLAGS
PRINT_DEBUG_INFO_IMPACT = "impact" in _DEBUG_FLAGS
PRINT_DEBUG_INFO_STEPLENGTH = "steplength" in _DEBUG_FLAGS


@dataclass(frozen=True)
class ContactSettings:
    """Tolerances, iteration limits and debug switches shared by the contact layer."""

    tol_project_q: float = TOL_PROJECT_Q
    tol_position_fuzziness: float = TOL_POSITION_FUZZINESS
    tol_velocity_fuzziness: float = TOL_VELOCITY_FUZZINESS
    tol_reliable_direction: float = TOL_RELIABLE_DIRECTION
    tol_max_dif_dir_iteration: float = TOL_MAX_DIF_DIR_ITERATION
    min_meaningful_impulse: float = MIN_MEANINGFUL_IMPULSE
    max_sticking_tang_vel: float = MAX_STICKING_TANG_VEL
    max_sliding_dir_change: float = MAX_SLIDING_DIR_CHANGE
    min_interval_step_length: float = MIN_INTERVAL_STEP_LENGTH
    max_iter_slip_direction: int = MAX_ITER_SLIP_DIRECTION
    max_iter_step_length: int = MAX_ITER_STEP_LENGTH
    min_intervals_per_phase: int = MIN_INTERVALS_PER_PHASE
    max_iter_project_q: int = MAX_ITER_PROJECT_Q

    print_basic_info: bool = PRINT_BASIC_INFO
    print_debug_positions: bool = PRINT_DEBUG_INFO_POSITIONS
    print_debug_impact: bool = PRINT_DEBUG_INFO_IMPACT
    print_debug_steplength: bool = PRINT_DEBUG_INFO_STEPLENGTH


DEFAULT_SETTINGS = ContactSettings()


def apply_jax_cpu() -> None:
    """Force JAX to use CPU and x64.

    Must run before importing JAX-heavy submodules if you want to be maximally
    safe about backend selection.
    """
    # Also set env var here (harmless if already set)
    os.environ.setdefault("JAX_PLATFORM_NAME", "cpu")

    import jax

    jax.config.update("jax_platform_name", "cpu")
    jax.config.update("jax_enable_x64", bool(JAX_ENABLE_X64))
