"""Unilateral brick: contact points, switchable ground constraints, geometry queries.

Every vertex of the brick carries a sphere. The lowest point of a sphere is its
centre shifted down by the radius; that point is what touches the ground plane
z = 0. Each vertex owns one point-in-plane constraint (position projection) and
one ball constraint (impact), both disabled by default.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import jax.numpy as jnp

from . import config
from .engine import BallConstraint, FreeBodySystem, PointInPlaneConstraint, SystemState
from .indices import BrickVertexIndex, ConstraintIndex, MultiplierIndex
from .math3d import get_world_points
from .steplength import tangential_angle


@dataclass(frozen=True)
class ContactPoint:
    vertex: BrickVertexIndex
    station: np.ndarray   # sphere centre in the COM frame
    radius: float


def brick_vertices(half_lengths) -> np.ndarray:
    """Eight brick corners, (i, j, k) in {-1, 1}^3 with k varying fastest."""
    h = np.asarray(half_lengths, dtype=np.float64).reshape(3,)
    return np.array(
        [[i * h[0], j * h[1], k * h[2]] for i in (-1, 1) for j in (-1, 1) for k in (-1, 1)],
        dtype=np.float64,
    )


class UnilateralBrick:
    def __init__(
        self,
        system: FreeBodySystem,
        vertices,
        sphere_radius: float = config.BRICK_SPHERE_RADIUS,
        mu_dyn: float = config.BRICK_MU_DYN,
        v_min_rebound: float = config.BRICK_V_MIN_REBOUND,
        v_plastic_deform: float = config.BRICK_V_PLASTIC_DEFORM,
        min_cor: float = config.BRICK_MIN_COR,
        settings: config.ContactSettings = config.DEFAULT_SETTINGS,
    ):
        self.system = system
        self.settings = settings

        # Keep parameters physically meaningful.
        self.sphere_radius = max(0.0, float(sphere_radius))
        self.mu_dyn = max(0.0, float(mu_dyn))
        self.v_plastic_deform = max(0.0, float(v_plastic_deform))
        self.v_min_rebound = float(np.clip(float(v_min_rebound), 0.0, self.v_plastic_deform))
        self.min_cor = float(np.clip(float(min_cor), 0.0, 1.0))

        verts = np.asarray(vertices, dtype=np.float64).reshape(-1, 3)
        self.contact_points = tuple(
            ContactPoint(BrickVertexIndex(i), verts[i].copy(), self.sphere_radius)
            for i in range(verts.shape[0])
        )
        self._stations = jnp.asarray(verts, dtype=jnp.float64)

        self._pip: list[ConstraintIndex] = []
        self._ball: list[ConstraintIndex] = []
        for _ in range(self.num_vertices):
            self._pip.append(system.add_constraint(PointInPlaneConstraint()))
            self._ball.append(system.add_constraint(BallConstraint()))

    @classmethod
    def from_model(
        cls,
        system: FreeBodySystem,
        info,
        v_min_rebound: float = config.BRICK_V_MIN_REBOUND,
        v_plastic_deform: float = config.BRICK_V_PLASTIC_DEFORM,
        min_cor: float = config.BRICK_MIN_COR,
        settings: config.ContactSettings = config.DEFAULT_SETTINGS,
    ) -> "UnilateralBrick":
        """Build from an impactsim.model.BrickModelInfo (vertex spheres in geom order)."""
        return cls(
            system,
            info.vertices,
            sphere_radius=float(info.sphere_radii[0]),
            mu_dyn=info.mu_dyn,
            v_min_rebound=v_min_rebound,
            v_plastic_deform=v_plastic_deform,
            min_cor=min_cor,
            settings=settings,
        )

    @property
    def num_vertices(self) -> int:
        return len(self.contact_points)

    def _drop(self) -> np.ndarray:
        return np.array([0.0, 0.0, -self.sphere_radius], dtype=np.float64)

    # -----------------------------
    # point-in-plane constraints
    # -----------------------------
    def pip_constraint(self, i: BrickVertexIndex) -> PointInPlaneConstraint:
        return self.system.constraints[self._pip[i]]

    def set_pip_constraint_location(self, state: SystemState, i: BrickVertexIndex, position_in_ground) -> None:
        """Move the follower station of vertex i to the body point now at position_in_ground."""
        self.pip_constraint(i).follower_station = self.system.ground_point_in_body(state, position_in_ground)

    def get_pip_constraint_height(self, state: SystemState, i: BrickVertexIndex) -> float:
        """Current world height of the follower station of vertex i."""
        return float(self.system.station_location(state, self.pip_constraint(i).follower_station)[2])

    def enable_pip_constraint(self, state: SystemState, i: BrickVertexIndex) -> None:
        self.system.enable(state, self._pip[i])

    def disable_all_pip_constraints(self, state: SystemState) -> None:
        for c in self._pip:
            self.system.disable(state, c)

    # -----------------------------
    # ball constraints
    # -----------------------------
    def ball_constraint(self, i: BrickVertexIndex) -> BallConstraint:
        return self.system.constraints[self._ball[i]]

    def set_ball_constraint_location(self, state: SystemState, i: BrickVertexIndex, position_in_ground) -> None:
        con = self.ball_constraint(i)
        con.ground_point = np.array(position_in_ground, dtype=np.float64).reshape(3,)
        con.body_station = self.system.ground_point_in_body(state, position_in_ground)

    def get_ball_constraint_first_index(self, state: SystemState, i: BrickVertexIndex) -> MultiplierIndex:
        return self.system.multiplier_index(state, self._ball[i])

    def enable_ball_constraint(self, state: SystemState, i: BrickVertexIndex) -> None:
        self.system.enable(state, self._ball[i])

    def disable_all_ball_constraints(self, state: SystemState) -> None:
        for c in self._ball:
            self.system.disable(state, c)

    # -----------------------------
    # position-level queries
    # -----------------------------
    def find_lowest_point_location_in_ground(self, state: SystemState, i: BrickVertexIndex) -> np.ndarray:
        return self.system.station_location(state, self.contact_points[i].station) + self._drop()

    def find_lowest_point_location_in_body(self, state: SystemState, i: BrickVertexIndex) -> np.ndarray:
        """Lowest point of sphere i as a body-frame station (changes with orientation)."""
        return self.system.ground_point_in_body(state, self.find_lowest_point_location_in_ground(state, i))

    def find_all_lowest_point_locations_in_ground(self, state: SystemState) -> np.ndarray:
        centres = np.asarray(get_world_points(jnp.asarray(state.q, dtype=jnp.float64), self._stations))
        return centres + self._drop()[None, :]

    def is_point_proximal(self, position_in_ground) -> bool:
        return float(position_in_ground[2]) < self.settings.tol_position_fuzziness

    def find_proximal_point_indices(self, positions_in_ground) -> list[BrickVertexIndex]:
        return [BrickVertexIndex(i) for i, p in enumerate(positions_in_ground) if self.is_point_proximal(p)]

    def is_interpenetrating(self, positions_in_ground) -> bool:
        pos = np.asarray(positions_in_ground, dtype=np.float64).reshape(-1, 3)
        return bool(np.any(pos[:, 2] < -self.settings.tol_position_fuzziness))

    def is_state_interpenetrating(self, state: SystemState) -> bool:
        return self.is_interpenetrating(self.find_all_lowest_point_locations_in_ground(state))

    # -----------------------------
    # velocity-level queries
    # -----------------------------
    def find_lowest_point_velocity_in_ground(self, state: SystemState, i: BrickVertexIndex) -> np.ndarray:
        return self.system.station_velocity(state, self.find_lowest_point_location_in_body(state, i))

    def find_tangential_velocity_angle(self, vel) -> float:
        """Angle of the tangential velocity from +X, NaN if too slow to trust."""
        return tangential_angle(vel, self.settings.tol_reliable_direction)

    def is_impacting(self, proximal_velocities) -> bool:
        vel = np.asarray(proximal_velocities, dtype=np.float64).reshape(-1, 3)
        return bool(np.any(vel[:, 2] < -self.settings.tol_velocity_fuzziness))
