from __future__ import annotations

import numpy as np
import jax.numpy as jnp

from .math3d import quat_from_axis_angle_np, quat_mul_wxyz_np, quat_normalize_np, quat_to_R_wxyz


def quat_between_vectors(a, b) -> np.ndarray:
    """Shortest-arc unit quaternion (wxyz) rotating direction a onto direction b."""
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    a = a / (np.linalg.norm(a) + 1e-18)
    b = b / (np.linalg.norm(b) + 1e-18)
    c = float(np.dot(a, b))
    if c < -1.0 + 1e-12:
        # Antiparallel: any axis orthogonal to a.
        axis = np.cross(a, [1.0, 0.0, 0.0])
        if np.linalg.norm(axis) < 1e-6:
            axis = np.cross(a, [0.0, 1.0, 0.0])
        return quat_from_axis_angle_np(axis, np.pi)
    axis = np.cross(a, b)
    return quat_normalize_np(np.array([1.0 + c, axis[0], axis[1], axis[2]], dtype=np.float64))


def quat_from_body_fixed_rotations(*axis_angles) -> np.ndarray:
    """Compose rotations left to right: R = R(axis_0, angle_0) * R(axis_1, angle_1) * ..."""
    q = np.array([1.0, 0.0, 0.0, 0.0], dtype=np.float64)
    for axis, angle in axis_angles:
        q = quat_mul_wxyz_np(q, quat_from_axis_angle_np(axis, angle))
    return quat_normalize_np(q)


def com_to_body_origin_qpos(q_com_wxyz: np.ndarray, ipos_body: np.ndarray) -> np.ndarray:
    """Convert internal COM state to MuJoCo freejoint qpos (body origin).

    q_com_wxyz: [com_world(3), quat_wxyz(4)]
    ipos_body: model.body_ipos[body_id] (COM in body frame)
    """
    q = np.asarray(q_com_wxyz, dtype=np.float64).reshape(7,)
    R = np.asarray(quat_to_R_wxyz(jnp.asarray(q[3:7], dtype=jnp.float64)))
    return np.concatenate([q[:3] - R @ np.asarray(ipos_body, dtype=np.float64), q[3:7]])
