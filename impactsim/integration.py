from __future__ import annotations

import numpy as np
import jax.numpy as jnp

from .math3d import inertia_world_from_body_diag, mass_matrix_inv_6x6, quat_from_omega_world_np, quat_mul_wxyz_np


def advance_free_body(
    q_np: np.ndarray,
    v_np: np.ndarray,
    dt: float,
    mass: float,
    inertia_body_diag: np.ndarray,
    gravity: float = 9.81,
) -> tuple[np.ndarray, np.ndarray]:
    """One semi-implicit Euler step of an unconstrained rigid body.

    q = [com(3), quat_wxyz(4)], v = [v_com(3), omega_world(3)]. Gravity acts
    along -z; the gyroscopic torque -w x (I w) is included.
    """
    q_np = np.asarray(q_np, dtype=np.float64).reshape(7,)
    v_np = np.asarray(v_np, dtype=np.float64).reshape(6,)

    f_ext = np.zeros(6, dtype=np.float64)
    f_ext[2] += -float(gravity) * float(mass)
    w = v_np[3:6]
    Iw = inertia_world_from_body_diag(inertia_body_diag, q_np[3:7])
    f_ext[3:6] = -np.cross(w, Iw @ w)

    M_inv = mass_matrix_inv_6x6(
        jnp.array(float(mass), dtype=jnp.float64),
        jnp.array(np.asarray(inertia_body_diag, dtype=np.float64), dtype=jnp.float64),
        jnp.array(q_np[3:7], dtype=jnp.float64),
    )
    v_next = v_np + np.asarray(M_inv @ jnp.array(dt * f_ext, dtype=jnp.float64), dtype=np.float64)

    pos_next = q_np[:3] + v_next[:3] * dt
    dq = quat_from_omega_world_np(v_next[3:6], dt)
    quat_next = quat_mul_wxyz_np(dq, q_np[3:7])
    quat_next /= (np.linalg.norm(quat_next) + 1e-12)

    return np.concatenate([pos_next, quat_next]), v_next
