"""Rotation and rigid-body helpers.

Quaternions are [w, x, y, z]. NumPy versions serve the per-point queries of
the contact layer; the jitted JAX kernels evaluate all vertices at once or
build Jacobian blocks.
"""

from __future__ import annotations

import numpy as np

import jax
import jax.numpy as jnp

_IDENTITY_QUAT = np.array([1.0, 0.0, 0.0, 0.0], dtype=np.float64)


# ===========================
# Quaternion helpers (NumPy)
# ===========================

def quat_mul_wxyz_np(q1: np.ndarray, q2: np.ndarray) -> np.ndarray:
    """Hamilton product q1 * q2 (apply q2 first, then q1)."""
    q1 = np.asarray(q1, dtype=np.float64)
    q2 = np.asarray(q2, dtype=np.float64)
    w1, v1 = q1[0], q1[1:4]
    w2, v2 = q2[0], q2[1:4]
    w = w1 * w2 - float(v1 @ v2)
    v = w1 * v2 + w2 * v1 + np.cross(v1, v2)
    return np.concatenate([[w], v])


def quat_normalize_np(q_wxyz: np.ndarray) -> np.ndarray:
    q = np.asarray(q_wxyz, dtype=np.float64)
    return q / (np.linalg.norm(q) + 1e-18)


def quat_from_axis_angle_np(axis: np.ndarray, angle: float) -> np.ndarray:
    axis = np.asarray(axis, dtype=np.float64)
    n = np.linalg.norm(axis)
    if n < 1e-18:
        return _IDENTITY_QUAT.copy()
    half = 0.5 * float(angle)
    return np.concatenate([[np.cos(half)], np.sin(half) * axis / n])


def quat_from_omega_world_np(omega_world: np.ndarray, dt: float) -> np.ndarray:
    """Rotation of |omega|*dt about omega; with dt=1 this is the rotation-vector map."""
    omega = np.asarray(omega_world, dtype=np.float64)
    if float(np.linalg.norm(omega)) * abs(float(dt)) < 1e-12:
        return _IDENTITY_QUAT.copy()
    return quat_from_axis_angle_np(omega, float(np.linalg.norm(omega)) * float(dt))


def quat_to_R_np_wxyz(q: np.ndarray) -> np.ndarray:
    """Rotation matrix (body -> world) of a unit quaternion."""
    q = np.asarray(q, dtype=np.float64)
    w, v = q[0], q[1:4]
    K = np.array([[0.0, -v[2], v[1]], [v[2], 0.0, -v[0]], [-v[1], v[0], 0.0]], dtype=np.float64)
    return np.eye(3) + 2.0 * w * K + 2.0 * (K @ K)


def inertia_world_from_body_diag(inertia_body_diag: np.ndarray, quat_wxyz: np.ndarray) -> np.ndarray:
    R = quat_to_R_np_wxyz(quat_normalize_np(quat_wxyz))
    return (R * np.asarray(inertia_body_diag, dtype=np.float64)[None, :]) @ R.T


def mass_matrix_6x6_np(mass: float, inertia_body_diag: np.ndarray, quat_wxyz: np.ndarray) -> np.ndarray:
    """Free-body mass matrix for u = [v_com(3), omega_world(3)]."""
    M = np.zeros((6, 6), dtype=np.float64)
    M[0:3, 0:3] = float(mass) * np.eye(3, dtype=np.float64)
    M[3:6, 3:6] = inertia_world_from_body_diag(inertia_body_diag, quat_wxyz)
    return M


# ===========================
# JAX helpers
# ===========================

@jax.jit
def quaternion_rotate(q: jnp.ndarray, v: jnp.ndarray) -> jnp.ndarray:
    w, u = q[0], q[1:]
    return v + 2.0 * jnp.cross(u, jnp.cross(u, v) + w * v)


@jax.jit
def get_world_points(q_pos: jnp.ndarray, local_pts: jnp.ndarray) -> jnp.ndarray:
    """World positions of body stations (N, 3) for q = [com, quat]."""
    quat = q_pos[3:7]
    return jax.vmap(lambda p: quaternion_rotate(quat, p))(local_pts) + q_pos[0:3]


@jax.jit
def build_jacobian_single(r_world: jnp.ndarray) -> jnp.ndarray:
    """Velocity Jacobian of a body point at offset r: v_p = v + w x r."""
    r = r_world
    skew = jnp.array([[0, -r[2], r[1]], [r[2], 0, -r[0]], [-r[1], r[0], 0]], dtype=jnp.float64)
    return jnp.concatenate([jnp.eye(3, dtype=jnp.float64), -skew], axis=1)


@jax.jit
def quat_to_R_wxyz(q: jnp.ndarray) -> jnp.ndarray:
    w, v = q[0], q[1:4]
    K = jnp.array([[0.0, -v[2], v[1]], [v[2], 0.0, -v[0]], [-v[1], v[0], 0.0]], dtype=jnp.float64)
    return jnp.eye(3, dtype=jnp.float64) + 2.0 * w * K + 2.0 * (K @ K)


@jax.jit
def mass_matrix_inv_6x6(mass: jnp.ndarray, inertia_body_diag: jnp.ndarray, quat_wxyz: jnp.ndarray) -> jnp.ndarray:
    R = quat_to_R_wxyz(quat_wxyz / jnp.linalg.norm(quat_wxyz))
    I_world_inv = (R / inertia_body_diag[None, :]) @ R.T
    Z = jnp.zeros((3, 3), dtype=jnp.float64)
    return jnp.block([[jnp.eye(3, dtype=jnp.float64) / mass, Z], [Z, I_world_inv]])
