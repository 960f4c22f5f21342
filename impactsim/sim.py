from __future__ import annotations

import time

import numpy as np

from . import config
from .brick import UnilateralBrick
from .engine import FreeBodySystem, SystemState
from .impact import Impacter, ImpactEpisode
from .integration import advance_free_body
from .model import BrickModelInfo, load_brick_model
from .pose import com_to_body_origin_qpos
from .projection import PositionProjector


class BrickSimulator:
    """Drop a unilateral brick on the ground plane z = 0.

    Each step integrates the free body, projects positions if any vertex sphere
    penetrates, then runs impact episodes until no proximal point is closing.
    """

    def __init__(
        self,
        info: BrickModelInfo | None = None,
        dt: float = config.SIM_DT,
        gravity: float = config.GRAVITY,
        exhaustive_positions: bool = False,
        v_min_rebound: float = config.BRICK_V_MIN_REBOUND,
        v_plastic_deform: float = config.BRICK_V_PLASTIC_DEFORM,
        min_cor: float = config.BRICK_MIN_COR,
        settings: config.ContactSettings = config.DEFAULT_SETTINGS,
    ):
        self.info = info if info is not None else load_brick_model()
        self.dt = float(dt)
        self.exhaustive_positions = bool(exhaustive_positions)
        self.settings = settings

        self.system = FreeBodySystem.from_model(self.info, gravity=gravity)
        self.brick = UnilateralBrick.from_model(
            self.system,
            self.info,
            v_min_rebound=v_min_rebound,
            v_plastic_deform=v_plastic_deform,
            min_cor=min_cor,
            settings=settings,
        )

        self.num_projections = 0
        self.num_impacts = 0

    def initial_state(self, q0, u0) -> SystemState:
        return self.system.default_state(q0, u0)

    # -----------------------------
    # contact handling
    # -----------------------------
    def project_positions(self, state: SystemState) -> bool:
        """Remove interpenetration in place; return True if a projection was made."""
        positions = self.brick.find_all_lowest_point_locations_in_ground(state)
        if not self.brick.is_interpenetrating(positions):
            return False

        if self.settings.print_basic_info:
            print(f"[SIM] t={state.t:.4f} pos0 q={state.q}")
        projector = PositionProjector(self.system, self.brick, state, positions, self.settings)
        if self.exhaustive_positions:
            projector.project_exhaustive(state)
        else:
            projector.project_pruning(state)
        if self.settings.print_basic_info:
            print(f"[SIM] t={state.t:.4f} pos1 q={state.q}")

        self.num_projections += 1
        return True

    def resolve_impacts(self, state: SystemState) -> list[ImpactEpisode]:
        """Run impact episodes until no proximal point has an inward normal velocity."""
        positions = self.brick.find_all_lowest_point_locations_in_ground(state)
        proximal = self.brick.find_proximal_point_indices(positions)
        vels = [self.brick.find_lowest_point_velocity_in_ground(state, i) for i in proximal]

        episodes: list[ImpactEpisode] = []
        if not self.brick.is_impacting(vels):
            return episodes

        # Points that already rebounded in this step get no more restitution.
        has_rebounded = [False] * len(proximal)
        while self.brick.is_impacting(vels):
            if self.settings.print_basic_info:
                print(f"[SIM] t={state.t:.4f} vel0 u={state.u}")
            impacter = Impacter(self.system, self.brick, state, positions, proximal, self.settings)
            episodes.append(impacter.perform_impact_exhaustive(state, vels, has_rebounded))
            if self.settings.print_basic_info:
                print(f"[SIM] t={state.t:.4f} vel1 u={state.u}")

        self.num_impacts += len(episodes)
        return episodes

    # -----------------------------
    # time stepping
    # -----------------------------
    def step(self, state: SystemState) -> None:
        q_next, u_next = advance_free_body(
            state.q, state.u, self.dt, self.system.mass, self.system.inertia_body_diag, self.system.gravity
        )
        self.system.set_q(state, q_next)
        self.system.set_u(state, u_next)
        state.t += self.dt

        # Impacts only follow a position projection.
        if self.project_positions(state):
            self.resolve_impacts(state)

    def run(self, q0, u0, duration: float, verbose: bool = False) -> dict:
        """Simulate for `duration` seconds; return the trajectory as a dict of arrays."""
        steps = int(duration / self.dt + 0.5)
        state = self.initial_state(q0, u0)

        t_hist = np.zeros((steps + 1,), dtype=np.float64)
        q_hist = np.zeros((steps + 1, 7), dtype=np.float64)
        u_hist = np.zeros((steps + 1, 6), dtype=np.float64)
        qpos_hist = np.zeros((steps + 1, 7), dtype=np.float64)
        minz_hist = np.zeros((steps + 1,), dtype=np.float64)

        def record(k: int) -> None:
            t_hist[k] = state.t
            q_hist[k] = state.q
            u_hist[k] = state.u
            qpos_hist[k] = com_to_body_origin_qpos(state.q, self.info.ipos_body)
            minz_hist[k] = float(np.min(self.brick.find_all_lowest_point_locations_in_ground(state)[:, 2]))

        record(0)
        t0 = time.perf_counter()
        if verbose:
            print(f"[SIM] Start: steps={steps}, dt={self.dt}, exhaustive_positions={self.exhaustive_positions}")

        for k in range(1, steps + 1):
            self.step(state)
            record(k)
            if verbose and k % 200 == 0:
                print(
                    f"step {k:5d}: t={state.t:.3f}, min_z={minz_hist[k]: .6e}, "
                    f"projections={self.num_projections}, impacts={self.num_impacts}"
                )

        t1 = time.perf_counter()
        if verbose:
            print(
                f"[SIM] Done in {t1 - t0:.3f}s, projections={self.num_projections}, impacts={self.num_impacts}"
            )

        return {
            "t": t_hist,
            "q": q_hist,
            "u": u_hist,
            "qpos": qpos_hist,
            "min_z": minz_hist,
            "num_projections": self.num_projections,
            "num_impacts": self.num_impacts,
        }
