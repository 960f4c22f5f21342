"""Active-set candidates for the impact search and their classification."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Iterator, Sequence

import numpy as np

from . import config
from .indices import ProximalPointIndex


class TangentialState(IntEnum):
    OBSERVING = 0   # no constraint at this point
    ROLLING = 1     # tangential velocity driven to zero
    SLIDING = 2     # friction on the cone boundary, opposing slip


class ImpactPhase(IntEnum):
    COMPRESSION = 0
    RESTITUTION = 1


class SolutionCategory(IntEnum):
    """Ordered best first. Everything after GROUND_APPLIES_ATTRACTIVE_IMPULSE is never selected."""

    NO_VIOLATIONS = 0
    ACTIVE_CONSTRAINT_DOES_NOTHING = 1
    RESTITUTION_IMPULSES_IGNORED = 2
    TANGENTIAL_VELOCITY_TOO_LARGE_TO_STICK = 3
    STICKING_IMPULSE_EXCEEDS_STICTION_LIMIT = 4
    GROUND_APPLIES_ATTRACTIVE_IMPULSE = 5
    NEGATIVE_POST_COMPRESSION_NORMAL_VELOCITY = 6
    NO_IMPULSES_APPLIED = 7
    UNABLE_TO_RESOLVE_UNKNOWN_SLIP_DIRECTION = 8
    MIN_STEP_CAUSES_SLIP_DIRECTION_REVERSAL = 9
    NOT_EVALUATED = 10

    @property
    def description(self) -> str:
        return _CATEGORY_DESCRIPTIONS[self]


WORST_TOLERABLE_CATEGORY = SolutionCategory.GROUND_APPLIES_ATTRACTIVE_IMPULSE

_CATEGORY_DESCRIPTIONS = {
    SolutionCategory.NO_VIOLATIONS: "No violations",
    SolutionCategory.ACTIVE_CONSTRAINT_DOES_NOTHING: "Active constraint is doing nothing",
    SolutionCategory.RESTITUTION_IMPULSES_IGNORED: "Restitution impulses were ignored",
    SolutionCategory.TANGENTIAL_VELOCITY_TOO_LARGE_TO_STICK: "Sticking not possible at this velocity",
    SolutionCategory.STICKING_IMPULSE_EXCEEDS_STICTION_LIMIT: "Sticking impulse exceeds stiction limit",
    SolutionCategory.GROUND_APPLIES_ATTRACTIVE_IMPULSE: "Ground applying attractive impulse",
    SolutionCategory.NEGATIVE_POST_COMPRESSION_NORMAL_VELOCITY: "Post-compression velocity is negative",
    SolutionCategory.NO_IMPULSES_APPLIED: "No impulses applied; no progress made",
    SolutionCategory.UNABLE_TO_RESOLVE_UNKNOWN_SLIP_DIRECTION: "Unable to calculate unknown slip direction",
    SolutionCategory.MIN_STEP_CAUSES_SLIP_DIRECTION_REVERSAL: "Slip direction reverses with minimum step",
    SolutionCategory.NOT_EVALUATED: "Not yet evaluated",
}


@dataclass
class ActiveSetCandidate:
    tangential_states: tuple[TangentialState, ...]
    velocity_change: np.ndarray = field(default_factory=lambda: np.zeros(0))
    impulses: np.ndarray = field(default_factory=lambda: np.zeros(0))  # 3 per active point: x, y, z
    category: SolutionCategory = SolutionCategory.NOT_EVALUATED
    fitness: float = np.inf

    @property
    def active_points(self) -> list[ProximalPointIndex]:
        """Proximal indices with a constraint, in impulse order."""
        return [
            ProximalPointIndex(i) for i, st in enumerate(self.tangential_states) if st != TangentialState.OBSERVING
        ]

    def normal_impulses(self) -> np.ndarray:
        return np.asarray(self.impulses, dtype=np.float64).reshape(-1, 3)[:, 2]


def enumerate_active_sets(n: int) -> Iterator[tuple[TangentialState, ...]]:
    """All 3^n - 1 tangential-state assignments, excluding all-OBSERVING.

    Mixed-radix counter with the first point as the least significant digit.
    """
    digits = [0] * int(n)
    while True:
        pos = 0
        while pos < len(digits):
            digits[pos] += 1
            if digits[pos] < 3:
                break
            digits[pos] = 0
            pos += 1
        if pos == len(digits):
            return
        yield tuple(TangentialState(d) for d in digits)


def format_active_set(states: Sequence[TangentialState], prefix: str = "") -> str:
    letters = {TangentialState.OBSERVING: "O", TangentialState.ROLLING: "R", TangentialState.SLIDING: "S"}
    return "(" + prefix + "".join(letters.get(TangentialState(s), "?") for s in states) + ")"


def calc_cor(v_normal: float, v_min_rebound: float, v_plastic_deform: float, min_cor: float) -> float:
    """Coefficient of restitution for a normal velocity (negative when closing)."""
    closing = -float(v_normal)
    # Closing exactly at v_min_rebound still rebounds; only slower contacts get 0.
    if closing < v_min_rebound:
        return 0.0
    if v_plastic_deform <= 0.0:
        return float(min_cor)
    cor_line = ((min_cor - 1.0) / v_plastic_deform) * closing + 1.0
    return max(cor_line, min_cor)


def classify_solution(
    tangential_states: Sequence[TangentialState],
    impulses: np.ndarray,
    phase: ImpactPhase,
    current_vels: np.ndarray,
    full_step_vels: np.ndarray,
    restitution_impulses: np.ndarray,
    mu_dyn: float,
    settings: config.ContactSettings = config.DEFAULT_SETTINGS,
) -> tuple[SolutionCategory, float]:
    """Category and fitness of a solved candidate; the first matching rule wins.

    current_vels and full_step_vels are (n, 3) proximal point velocities at the
    start of the interval and after a full step. impulses holds 3 entries per
    non-observing point, in proximal order.
    """
    lam = np.asarray(impulses, dtype=np.float64).reshape(-1)
    assert lam.size % 3 == 0, "invalid number of impulses"
    lam3 = lam.reshape(-1, 3)
    cur = np.asarray(current_vels, dtype=np.float64).reshape(-1, 3)
    full = np.asarray(full_step_vels, dtype=np.float64).reshape(-1, 3)
    rest = np.asarray(restitution_impulses, dtype=np.float64).reshape(-1)
    tiny = settings.min_meaningful_impulse

    # No progress.
    lam_norm = float(np.linalg.norm(lam))
    if lam_norm < tiny:
        return SolutionCategory.NO_IMPULSES_APPLIED, np.inf

    # A compression that leaves a point closing was built from a bad system.
    if phase == ImpactPhase.COMPRESSION and full.shape[0] > 0:
        min_vz = float(np.min(full[:, 2]))
        if min_vz < -settings.tol_velocity_fuzziness:
            return SolutionCategory.NEGATIVE_POST_COMPRESSION_NORMAL_VELOCITY, -min_vz

    # Normal impulses are non-positive by sign convention.
    max_lz = max(0.0, float(np.max(lam3[:, 2]))) if lam3.shape[0] else 0.0
    if max_lz > tiny:
        return SolutionCategory.GROUND_APPLIES_ATTRACTIVE_IMPULSE, max_lz

    rolling = [i for i, st in enumerate(tangential_states) if st == TangentialState.ROLLING]
    row_of = {p: k for k, p in enumerate(i for i, st in enumerate(tangential_states) if st != TangentialState.OBSERVING)}

    max_excess = 0.0
    for p in rolling:
        lx, ly, lz = lam3[row_of[p]]
        excess = float(np.hypot(lx, ly)) - mu_dyn * (-lz)
        if excess > tiny:
            max_excess = max(max_excess, excess)
    if max_excess > tiny:
        return SolutionCategory.STICKING_IMPULSE_EXCEEDS_STICTION_LIMIT, max_excess

    max_vt = 0.0
    for p in rolling:
        max_vt = max(max_vt, float(np.hypot(cur[p, 0], cur[p, 1])))
    if max_vt > settings.max_sticking_tang_vel:
        return SolutionCategory.TANGENTIAL_VELOCITY_TOO_LARGE_TO_STICK, max_vt

    # Restitution impulses must be applied together.
    if phase == ImpactPhase.RESTITUTION:
        ignored = float(np.sum(rest)) - float(np.sum(-lam3[:, 2]))
        if ignored > tiny * rest.size:
            return SolutionCategory.RESTITUTION_IMPULSES_IGNORED, ignored

    if np.any(np.linalg.norm(lam3, axis=1) < tiny):
        return SolutionCategory.ACTIVE_CONSTRAINT_DOES_NOTHING, lam_norm

    return SolutionCategory.NO_VIOLATIONS, lam_norm
