"""Canned brick drops: one, two and four points reaching the ground first."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .pose import quat_from_body_fixed_rotations

X_AXIS = (1.0, 0.0, 0.0)
Y_AXIS = (0.0, 1.0, 0.0)


@dataclass(frozen=True)
class Scenario:
    name: str
    description: str
    q0: np.ndarray   # [com(3), quat_wxyz(4)]
    u0: np.ndarray   # [v_com(3), omega_world(3)]
    duration: float = 1.8


def _q(quat) -> np.ndarray:
    return np.concatenate([np.array([0.0, 1.0, 0.8], dtype=np.float64), quat])


def _u(vx=0.0, vy=0.0, vz=6.0) -> np.ndarray:
    return np.array([vx, vy, vz, 0.0, 0.0, 0.0], dtype=np.float64)


_ONE_POINT = quat_from_body_fixed_rotations((X_AXIS, np.pi / 4), (Y_AXIS, np.pi / 6))
_TWO_POINTS = quat_from_body_fixed_rotations((X_AXIS, np.pi / 4))
_FOUR_POINTS = np.array([1.0, 0.0, 0.0, 0.0], dtype=np.float64)

SCENARIOS: dict[str, Scenario] = {
    s.name: s
    for s in (
        Scenario("one_point", "One point, no tangential velocity", _q(_ONE_POINT), _u()),
        Scenario("one_point_tangential", "One point, small tangential velocity", _q(_ONE_POINT), _u(vx=0.5)),
        Scenario("two_points", "Two points, no tangential velocity", _q(_TWO_POINTS), _u()),
        Scenario("two_points_tangential", "Two points, small tangential velocity", _q(_TWO_POINTS), _u(vy=-1.0)),
        Scenario("four_points", "Four points, no tangential velocity", _q(_FOUR_POINTS), _u()),
        Scenario("four_points_tangential", "Four points, small tangential velocity", _q(_FOUR_POINTS), _u(vx=0.5)),
    )
}


def get_scenario(name: str) -> Scenario:
    try:
        return SCENARIOS[name]
    except KeyError:
        raise ValueError(
            f"[impactsim.scenarios] unknown scenario '{name}' (choose from {', '.join(SCENARIOS)})"
        ) from None
