"""Minimal free rigid-body dynamics engine.

Provides what the contact layer needs from a multibody engine: generalized
coordinates and speeds, point kinematics, the mass matrix, holonomic
constraints that can be switched on per state, their stacked Jacobian, and a
least-change position projection onto the enabled constraints.

Conventions:
  q = [com(3), quat_wxyz(4)]   (same layout as a MuJoCo free joint at the COM)
  u = [v_com(3), omega_world(3)]
Constraint multipliers follow M du + G^T lambda = 0, i.e. the impulse applied
to the body is -G^T lambda.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np
import jax.numpy as jnp

from . import config
from .errors import ProjectionConvergenceError
from .indices import ConstraintIndex, MultiplierIndex
from .linalg import solve_qtz
from .math3d import (
    build_jacobian_single,
    mass_matrix_6x6_np,
    quat_from_omega_world_np,
    quat_mul_wxyz_np,
    quat_normalize_np,
    quat_to_R_np_wxyz,
)

Z_AXIS = np.array([0.0, 0.0, 1.0], dtype=np.float64)


@dataclass
class PointInPlaneConstraint:
    """Keep a body station on the ground plane n . p = height."""

    follower_station: np.ndarray = field(default_factory=lambda: np.zeros(3))
    plane_normal: np.ndarray = field(default_factory=lambda: Z_AXIS.copy())
    plane_height: float = 0.0

    num_multipliers = 1


@dataclass
class BallConstraint:
    """Pin a body station to a ground point."""

    ground_point: np.ndarray = field(default_factory=lambda: np.zeros(3))
    body_station: np.ndarray = field(default_factory=lambda: np.zeros(3))

    num_multipliers = 3


@dataclass
class SystemState:
    q: np.ndarray
    u: np.ndarray
    t: float = 0.0
    enabled: set[int] = field(default_factory=set)

    def copy(self) -> "SystemState":
        return SystemState(self.q.copy(), self.u.copy(), float(self.t), set(self.enabled))


class FreeBodySystem:
    def __init__(self, mass: float, inertia_body_diag, gravity: float = config.GRAVITY):
        self.mass = float(mass)
        self.inertia_body_diag = np.asarray(inertia_body_diag, dtype=np.float64).reshape(3,)
        self.gravity = float(gravity)
        self.constraints: list[PointInPlaneConstraint | BallConstraint] = []

    @classmethod
    def from_model(cls, info, gravity: float = config.GRAVITY) -> "FreeBodySystem":
        """Build from an impactsim.model.BrickModelInfo."""
        return cls(info.mass, info.inertia_body_diag, gravity=gravity)

    # -----------------------------
    # state
    # -----------------------------
    def default_state(self, q=None, u=None) -> SystemState:
        """Fresh state with every constraint disabled."""
        if q is None:
            q = np.array([0.0, 0.0, 0.0, 1.0, 0.0, 0.0, 0.0], dtype=np.float64)
        if u is None:
            u = np.zeros(6, dtype=np.float64)
        q = np.array(q, dtype=np.float64).reshape(7,)
        q[3:7] = quat_normalize_np(q[3:7])
        return SystemState(q, np.array(u, dtype=np.float64).reshape(6,))

    @staticmethod
    def set_q(state: SystemState, q) -> None:
        state.q = np.array(q, dtype=np.float64).reshape(7,)

    @staticmethod
    def set_u(state: SystemState, u) -> None:
        state.u = np.array(u, dtype=np.float64).reshape(6,)

    # -----------------------------
    # kinematics
    # -----------------------------
    @staticmethod
    def rotation(state: SystemState) -> np.ndarray:
        return quat_to_R_np_wxyz(state.q[3:7])

    def station_location(self, state: SystemState, station) -> np.ndarray:
        return state.q[0:3] + self.rotation(state) @ np.asarray(station, dtype=np.float64)

    def station_velocity(self, state: SystemState, station) -> np.ndarray:
        r = self.rotation(state) @ np.asarray(station, dtype=np.float64)
        return state.u[0:3] + np.cross(state.u[3:6], r)

    def ground_point_in_body(self, state: SystemState, point_in_ground) -> np.ndarray:
        """Body-frame station currently coincident with a ground point."""
        return self.rotation(state).T @ (np.asarray(point_in_ground, dtype=np.float64) - state.q[0:3])

    def station_jacobian(self, state: SystemState, station) -> np.ndarray:
        r = self.rotation(state) @ np.asarray(station, dtype=np.float64)
        return np.asarray(build_jacobian_single(jnp.asarray(r, dtype=jnp.float64)), dtype=np.float64)

    def mass_matrix(self, state: SystemState) -> np.ndarray:
        return mass_matrix_6x6_np(self.mass, self.inertia_body_diag, state.q[3:7])

    # -----------------------------
    # constraints
    # -----------------------------
    def add_constraint(self, constraint) -> ConstraintIndex:
        self.constraints.append(constraint)
        return ConstraintIndex(len(self.constraints) - 1)

    def enable(self, state: SystemState, cidx: ConstraintIndex) -> None:
        state.enabled.add(int(cidx))

    def disable(self, state: SystemState, cidx: ConstraintIndex) -> None:
        state.enabled.discard(int(cidx))

    def is_enabled(self, state: SystemState, cidx: ConstraintIndex) -> bool:
        return int(cidx) in state.enabled

    def _enabled_in_order(self, state: SystemState) -> list[int]:
        return sorted(state.enabled)

    def num_multipliers(self, state: SystemState) -> int:
        return sum(self.constraints[c].num_multipliers for c in self._enabled_in_order(state))

    def multiplier_index(self, state: SystemState, cidx: ConstraintIndex) -> MultiplierIndex:
        """Row of the first multiplier of an enabled constraint in calc_G()."""
        if int(cidx) not in state.enabled:
            raise ValueError(f"[impactsim.engine] constraint {int(cidx)} is not enabled")
        row = 0
        for c in self._enabled_in_order(state):
            if c == int(cidx):
                break
            row += self.constraints[c].num_multipliers
        return MultiplierIndex(row)

    def calc_G(self, state: SystemState) -> np.ndarray:
        """Stacked velocity Jacobian of the enabled constraints, shape (m, 6)."""
        rows = []
        for c in self._enabled_in_order(state):
            con = self.constraints[c]
            if isinstance(con, PointInPlaneConstraint):
                J = self.station_jacobian(state, con.follower_station)
                rows.append((con.plane_normal @ J).reshape(1, 6))
            else:
                rows.append(self.station_jacobian(state, con.body_station))
        if not rows:
            return np.zeros((0, 6), dtype=np.float64)
        return np.vstack(rows)

    def position_errors(self, state: SystemState) -> np.ndarray:
        errs = []
        for c in self._enabled_in_order(state):
            con = self.constraints[c]
            if isinstance(con, PointInPlaneConstraint):
                p = self.station_location(state, con.follower_station)
                errs.append(np.array([float(con.plane_normal @ p) - con.plane_height]))
            else:
                errs.append(self.station_location(state, con.body_station) - con.ground_point)
        if not errs:
            return np.zeros(0, dtype=np.float64)
        return np.concatenate(errs)

    # -----------------------------
    # position projection
    # -----------------------------
    def _perturb_q(self, state: SystemState, du: np.ndarray) -> None:
        q = state.q.copy()
        q[0:3] += du[0:3]
        q[3:7] = quat_normalize_np(quat_mul_wxyz_np(quat_from_omega_world_np(du[3:6], 1.0), q[3:7]))
        state.q = q

    def project_q(self, state: SystemState, tol: float, max_iter: int = config.MAX_ITER_PROJECT_Q) -> None:
        """Least-change correction of q onto the enabled constraints.

        Gauss-Newton on the minimum-norm update in velocity space. Raises
        ProjectionConvergenceError if max |error| <= tol is not reached.
        """
        for _ in range(int(max_iter) + 1):
            err = self.position_errors(state)
            if err.size == 0 or float(np.max(np.abs(err))) <= float(tol):
                return
            if not np.all(np.isfinite(err)):
                break
            P = self.calc_G(state)
            du = solve_qtz(P, -err)
            self._perturb_q(state, du)
        raise ProjectionConvergenceError(
            f"[impactsim.engine] project_q did not reach tol={tol:g} within {max_iter} iterations"
        )
