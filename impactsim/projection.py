"""Position Projector: remove interpenetration with the smallest change in q."""

from __future__ import annotations

from typing import Iterator

import numpy as np

from . import config
from .brick import UnilateralBrick
from .engine import FreeBodySystem, SystemState
from .errors import PositionProjectionError, ProjectionConvergenceError
from .indices import BrickVertexIndex, ProximalPointIndex


def proximal_index_combinations(n: int) -> Iterator[list[ProximalPointIndex]]:
    """All 2^n - 1 non-empty subsets of range(n), bitmask order."""
    for mask in range(1, 1 << int(n)):
        yield [ProximalPointIndex(i) for i in range(int(n)) if mask & (1 << i)]


class PositionProjector:
    def __init__(
        self,
        system: FreeBodySystem,
        brick: UnilateralBrick,
        state: SystemState,
        positions_in_ground,
        settings: config.ContactSettings | None = None,
    ):
        self.system = system
        self.brick = brick
        self.settings = settings if settings is not None else brick.settings

        positions = np.asarray(positions_in_ground, dtype=np.float64).reshape(-1, 3)
        self.proximal_point_indices: list[BrickVertexIndex] = brick.find_proximal_point_indices(positions)

        for vidx in self.proximal_point_indices:
            brick.set_pip_constraint_location(state, vidx, positions[vidx])

        if self.settings.print_debug_positions:
            print(f"[POS] projecting positions: {len(self.proximal_point_indices)} proximal point(s)")
            for i, vidx in enumerate(self.proximal_point_indices):
                print(f"[POS]   [{i}] vertex={int(vidx)} p={positions[vidx]}")

    @property
    def num_proximal(self) -> int:
        return len(self.proximal_point_indices)

    # -----------------------------
    # searches
    # -----------------------------
    def project_exhaustive(self, state: SystemState) -> list[ProximalPointIndex]:
        """Try every non-empty subset; keep the smallest change in q.

        Among subsets whose distance is within tol_project_q of the best, the
        one with more enabled constraints wins. Returns the selected subset.
        """
        if self.num_proximal == 0:
            return []

        best_dist = np.inf
        best_q = None
        best_set: list[ProximalPointIndex] = []
        for comb, index_set in enumerate(proximal_index_combinations(self.num_proximal)):
            trial = self._fresh_copy(state)
            dist = self._evaluate_projection(trial, state, index_set)

            if dist < best_dist or (
                abs(dist - best_dist) < self.settings.tol_project_q and len(index_set) > len(best_set)
            ):
                best_dist = dist
                best_q = trial.q.copy()
                best_set = index_set

            if self.settings.print_debug_positions:
                print(f"[POS]   [{comb:2d}] d={dist:10.6g}  {[int(i) for i in index_set]}")

        if not np.isfinite(best_dist):
            raise PositionProjectionError(
                "[impactsim.projection] no valid position projection found by exhaustive search"
            )

        self.system.set_q(state, best_q)
        if self.settings.print_debug_positions:
            print(f"[POS] exhaustive search selected constraints {[int(i) for i in best_set]}")
        return best_set

    def project_pruning(self, state: SystemState) -> list[ProximalPointIndex]:
        """Start from all proximal constraints; drop the deepest point until one works."""
        if self.num_proximal == 0:
            return []

        index_set = [ProximalPointIndex(i) for i in range(self.num_proximal)]
        while True:
            if not index_set:
                raise PositionProjectionError(
                    "[impactsim.projection] no valid position projection found by pruning search"
                )

            trial = self._fresh_copy(state)
            dist = self._evaluate_projection(trial, state, index_set)
            if self.settings.print_debug_positions:
                print(f"[POS]   {[int(i) for i in index_set]} d={dist:.6g}")

            if np.isfinite(dist):
                self.system.set_q(state, trial.q)
                break

            heights = [
                self.brick.get_pip_constraint_height(state, self.proximal_point_indices[i]) for i in index_set
            ]
            del index_set[int(np.argmin(heights))]

        if self.settings.print_debug_positions:
            print(f"[POS] pruning search selected constraints {[int(i) for i in index_set]}")
        return index_set

    # -----------------------------
    # helpers
    # -----------------------------
    def _fresh_copy(self, state: SystemState) -> SystemState:
        trial = state.copy()
        self.brick.disable_all_pip_constraints(trial)
        self.brick.disable_all_ball_constraints(trial)
        return trial

    def _evaluate_projection(
        self,
        trial: SystemState,
        original: SystemState,
        index_set: list[ProximalPointIndex],
    ) -> float:
        """Distance ||q_orig - q_new|| if the projection succeeds penetration-free, else inf."""
        for i in index_set:
            self.brick.enable_pip_constraint(trial, self.proximal_point_indices[i])

        try:
            self.system.project_q(trial, self.settings.tol_project_q, max_iter=self.settings.max_iter_project_q)
        except (ProjectionConvergenceError, np.linalg.LinAlgError):
            return np.inf

        if self.brick.is_state_interpenetrating(trial):
            return np.inf
        return float(np.linalg.norm(original.q - trial.q))
