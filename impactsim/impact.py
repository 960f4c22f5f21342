"""Impacter: staged compression/restitution impact with Coulomb friction.

Each interval enumerates every tangential-state assignment of the proximal
points, builds and solves the impulse-balance system

    [ M  G^T ] [ du     ]   [ 0 ]
    [ G  0   ] [ lambda ] = [ b ]

for each of them, classifies the result, applies the best candidate over an
adaptive step length, and updates the restitution bookkeeping.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from . import config
from .brick import UnilateralBrick
from .candidates import (
    WORST_TOLERABLE_CATEGORY,
    ActiveSetCandidate,
    ImpactPhase,
    SolutionCategory,
    TangentialState,
    calc_cor,
    classify_solution,
    enumerate_active_sets,
    format_active_set,
)
from .engine import FreeBodySystem, SystemState
from .errors import ImpactError
from .indices import BrickVertexIndex, MultiplierIndex, ProximalPointIndex
from .linalg import solve_qtz
from .steplength import calc_abs_diff_between_angles, calculate_interval_step_length

_Rows = tuple[MultiplierIndex, MultiplierIndex, MultiplierIndex]


@dataclass
class IntervalRecord:
    phase: ImpactPhase
    interval: int
    active_set: tuple[TangentialState, ...]
    category: SolutionCategory
    fitness: float
    step_length: float
    impulses: np.ndarray


@dataclass
class ImpactEpisode:
    """Mutable bookkeeping for one perform_impact_exhaustive() call."""

    cors: np.ndarray
    restitution_impulses: np.ndarray
    phase: ImpactPhase = ImpactPhase.COMPRESSION
    interval_ctr: int = 0
    intervals: list[IntervalRecord] = field(default_factory=list)

    @property
    def prefix(self) -> str:
        return "c" if self.phase == ImpactPhase.COMPRESSION else "r"


class Impacter:
    def __init__(
        self,
        system: FreeBodySystem,
        brick: UnilateralBrick,
        state: SystemState,
        positions_in_ground,
        proximal_point_indices: list[BrickVertexIndex],
        settings: config.ContactSettings | None = None,
    ):
        self.system = system
        self.brick = brick
        self.settings = settings if settings is not None else brick.settings
        self.proximal_point_indices = list(proximal_point_indices)

        positions = np.asarray(positions_in_ground, dtype=np.float64).reshape(-1, 3)
        for vidx in self.proximal_point_indices:
            brick.set_ball_constraint_location(state, vidx, positions[vidx])

        if self.settings.print_debug_impact:
            print(f"[IMPACT] starting impact: {self.num_proximal} proximal point(s)")
            for i, vidx in enumerate(self.proximal_point_indices):
                print(f"[IMPACT]   [{i}] vertex={int(vidx)} p={positions[vidx]}")

    @property
    def num_proximal(self) -> int:
        return len(self.proximal_point_indices)

    # -----------------------------
    # one complete impact
    # -----------------------------
    def perform_impact_exhaustive(self, state: SystemState, proximal_vels, has_rebounded) -> ImpactEpisode:
        """Resolve one impact episode in place.

        Mutates state.u, the caller-owned proximal velocities (n x 3) and the
        caller-owned rebound flags. Raises ImpactError if an interval has no
        tolerable candidate or no usable step length.
        """
        n = self.num_proximal
        assert len(proximal_vels) == n, "one velocity per proximal point expected"
        assert len(has_rebounded) == n, "one rebound flag per proximal point expected"
        s = self.settings

        episode = ImpactEpisode(
            cors=np.array(
                [
                    0.0 if has_rebounded[i] else calc_cor(
                        proximal_vels[i][2], self.brick.v_min_rebound, self.brick.v_plastic_deform, self.brick.min_cor
                    )
                    for i in range(n)
                ],
                dtype=np.float64,
            ),
            restitution_impulses=np.zeros(n, dtype=np.float64),
        )
        if s.print_debug_impact:
            print(f"[IMPACT] CORs = {episode.cors}")

        active_sets = list(enumerate_active_sets(n))
        if s.print_debug_impact:
            print(f"[IMPACT] {len(active_sets)} active set candidate(s)")

        while True:
            episode.interval_ctr += 1
            if s.print_debug_impact:
                phase_name = "compression" if episode.phase == ImpactPhase.COMPRESSION else "restitution"
                print(f"[IMPACT] ---- {phase_name} interval {episode.interval_ctr} ----")

            current_vels = self.proximal_velocities(state)
            candidates = [ActiveSetCandidate(states) for states in active_sets]
            for k, cand in enumerate(candidates):
                self._generate_and_solve_linear_system(state, episode, cand)
                self._evaluate_linear_system_solution(state, episode, cand, current_vels)
                if s.print_debug_impact:
                    print(
                        f"[IMPACT]   [{k:2d}] {format_active_set(cand.tangential_states, episode.prefix)} "
                        f"{cand.category.description}, fitness={cand.fitness:.6g}"
                    )

            if s.print_basic_info:
                counts = np.bincount([int(c.category) for c in candidates], minlength=len(SolutionCategory))
                print("[IMPACT] exhaustive search summary")
                for cat in SolutionCategory:
                    print(f"[IMPACT]   {int(counts[cat]):2d}  {cat.description}")

            best = self._select_best(candidates)
            if s.print_basic_info:
                print(f"[IMPACT] selected {format_active_set(best.tangential_states, episode.prefix)}")

            full_step_vels = self.proximal_velocities(self._shifted(state, best.velocity_change, 1.0))
            step = calculate_interval_step_length(
                current_vels, full_step_vels, best.tangential_states, episode.interval_ctr, s
            )
            if np.isnan(step):
                raise ImpactError("[impactsim.impact] no suitable interval step length found")

            self.system.set_u(state, state.u + step * best.velocity_change)
            new_vels = self.proximal_velocities(state)
            for i in range(n):
                proximal_vels[i] = new_vels[i]

            episode.intervals.append(
                IntervalRecord(
                    phase=episode.phase,
                    interval=episode.interval_ctr,
                    active_set=best.tangential_states,
                    category=best.category,
                    fitness=best.fitness,
                    step_length=step,
                    impulses=best.impulses.copy(),
                )
            )
            if s.print_debug_impact:
                print(f"[IMPACT] step length = {step:.6g}, u = {state.u}")

            if self._update_phase(episode, best, step, new_vels, has_rebounded):
                break

            if s.print_debug_impact:
                print(f"[IMPACT] restitution impulses = {episode.restitution_impulses}, rebounded = {list(has_rebounded)}")

        return episode

    def _update_phase(self, episode, best, step, new_vels, has_rebounded) -> bool:
        """Update restitution bookkeeping; return True when the episode is over."""
        tiny = self.settings.min_meaningful_impulse
        normal = best.normal_impulses()

        if episode.phase == ImpactPhase.COMPRESSION:
            for k, i in enumerate(best.active_points):
                episode.restitution_impulses[i] += -normal[k] * episode.cors[i] * step

            if not self.brick.is_impacting(new_vels):
                if float(np.max(episode.restitution_impulses, initial=0.0)) < tiny:
                    if self.settings.print_debug_impact:
                        print("[IMPACT] compression complete, no restitution impulses")
                    return True
                episode.phase = ImpactPhase.RESTITUTION
                episode.interval_ctr = 0
            return False

        for k, i in enumerate(best.active_points):
            episode.restitution_impulses[i] -= -normal[k] * step
            if abs(normal[k]) > tiny:
                has_rebounded[i] = True

        if float(np.max(episode.restitution_impulses, initial=0.0)) < tiny:
            if self.settings.print_debug_impact:
                print("[IMPACT] restitution complete")
            return True
        return False

    def _select_best(self, candidates: list[ActiveSetCandidate]) -> ActiveSetCandidate:
        """Lowest fitness within the best non-empty tolerable category."""
        for cat in SolutionCategory:
            if cat > WORST_TOLERABLE_CATEGORY:
                break
            pool = [c for c in candidates if c.category == cat and c.fitness < np.inf]
            if pool:
                return min(pool, key=lambda c: c.fitness)
        raise ImpactError("[impactsim.impact] no suitable active set found by exhaustive search")

    # -----------------------------
    # helpers
    # -----------------------------
    def proximal_velocities(self, state: SystemState) -> np.ndarray:
        return np.array(
            [self.brick.find_lowest_point_velocity_in_ground(state, v) for v in self.proximal_point_indices],
            dtype=np.float64,
        ).reshape(-1, 3)

    def _shifted(self, state: SystemState, du: np.ndarray, step: float) -> SystemState:
        trial = state.copy()
        self.system.set_u(trial, state.u + step * du)
        return trial

    def _working_state(self, state: SystemState, tangential_states) -> SystemState:
        work = state.copy()
        self.brick.disable_all_pip_constraints(work)
        self.brick.disable_all_ball_constraints(work)
        for i, st in enumerate(tangential_states):
            if st != TangentialState.OBSERVING:
                self.brick.enable_ball_constraint(work, self.proximal_point_indices[ProximalPointIndex(i)])
        return work

    def _rows(
        self, work: SystemState, i: ProximalPointIndex, N: int
    ) -> _Rows:
        """Rows of point i's x, y, z multipliers in the saddle-point system (offset by N)."""
        row_x = N + int(self.brick.get_ball_constraint_first_index(work, self.proximal_point_indices[i]))
        return MultiplierIndex(row_x), MultiplierIndex(row_x + 1), MultiplierIndex(row_x + 2)

    def _set_friction_coupling(self, A: np.ndarray, rows, theta: float) -> None:
        row_x, row_y, row_z = rows
        if np.isnan(theta):
            A[row_x, row_z] = 0.0
            A[row_y, row_z] = 0.0
        else:
            impulse_dir = theta + np.pi
            A[row_x, row_z] = -self.brick.mu_dyn * np.cos(impulse_dir)
            A[row_y, row_z] = -self.brick.mu_dyn * np.sin(impulse_dir)

    # -----------------------------
    # linear system
    # -----------------------------
    def _generate_and_solve_linear_system(
        self, state: SystemState, episode: ImpactEpisode, cand: ActiveSetCandidate
    ) -> None:
        s = self.settings
        work = self._working_state(state, cand.tangential_states)

        M_mat = self.system.mass_matrix(work)
        G = self.system.calc_G(work)
        N = M_mat.shape[0]
        m = G.shape[0]

        A = np.zeros((N + m, N + m), dtype=np.float64)
        A[:N, :N] = M_mat
        A[:N, N:] = G.T
        A[N:, :N] = G
        b = np.zeros(N + m, dtype=np.float64)

        sliding: list[tuple[ProximalPointIndex, _Rows, float]] = []
        for i in cand.active_points:
            vel = self.brick.find_lowest_point_velocity_in_ground(work, self.proximal_point_indices[i])
            rows = self._rows(work, i, N)
            row_x, row_y, row_z = rows

            if cand.tangential_states[i] == TangentialState.ROLLING:
                b[row_x] = -vel[0]
                b[row_y] = -vel[1]
            else:
                A[row_x, :N] = 0.0
                A[row_y, :N] = 0.0
                A[row_x, row_x] = 1.0
                A[row_y, row_y] = 1.0
                theta = self.brick.find_tangential_velocity_angle(vel)
                self._set_friction_coupling(A, rows, theta)
                sliding.append((i, rows, theta))

            if episode.phase == ImpactPhase.COMPRESSION:
                b[row_z] = -vel[2]
            else:
                A[row_z, :N] = 0.0
                A[row_z, row_z] = 1.0
                b[row_z] = -episode.restitution_impulses[i]

        if sliding:
            num_iter = 0
            while True:
                num_iter += 1
                if num_iter > s.max_iter_slip_direction:
                    cand.category = SolutionCategory.UNABLE_TO_RESOLVE_UNKNOWN_SLIP_DIRECTION
                    cand.fitness = np.inf
                    break

                sol = solve_qtz(A, b)
                trial = self._shifted(work, sol[:N], s.min_interval_step_length)

                max_angle_dif = 0.0
                for k, (i, rows, old_angle) in enumerate(sliding):
                    vel = self.brick.find_lowest_point_velocity_in_ground(trial, self.proximal_point_indices[i])
                    new_angle = self.brick.find_tangential_velocity_angle(vel)
                    sliding[k] = (i, rows, new_angle)
                    if np.isnan(old_angle) or np.isnan(new_angle):
                        max_angle_dif = np.inf
                    else:
                        max_angle_dif = max(max_angle_dif, calc_abs_diff_between_angles(old_angle, new_angle))
                    self._set_friction_coupling(A, rows, new_angle)

                if max_angle_dif < s.tol_max_dif_dir_iteration:
                    break

                # Slip flips under the minimum step: the point should stick instead.
                if abs(max_angle_dif - np.pi) < s.tol_max_dif_dir_iteration:
                    cand.category = SolutionCategory.MIN_STEP_CAUSES_SLIP_DIRECTION_REVERSAL
                    cand.fitness = np.inf
                    break

        sol = solve_qtz(A, b)
        cand.velocity_change = sol[:N].copy()
        cand.impulses = sol[N:].copy()

    def _evaluate_linear_system_solution(
        self,
        state: SystemState,
        episode: ImpactEpisode,
        cand: ActiveSetCandidate,
        current_vels: np.ndarray,
    ) -> None:
        # Slip-direction failures were already categorized.
        if cand.category != SolutionCategory.NOT_EVALUATED:
            return

        full_step_vels = self.proximal_velocities(self._shifted(state, cand.velocity_change, 1.0))
        cand.category, cand.fitness = classify_solution(
            cand.tangential_states,
            cand.impulses,
            episode.phase,
            current_vels,
            full_step_vels,
            episode.restitution_impulses,
            self.brick.mu_dyn,
            self.settings,
        )
