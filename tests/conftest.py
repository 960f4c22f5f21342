from __future__ import annotations

import numpy as np
import pytest

from impactsim import config
from impactsim.brick import UnilateralBrick, brick_vertices
from impactsim.engine import FreeBodySystem
from impactsim.pose import quat_between_vectors


def _brick_inertia(mass, half_lengths):
    a, b, c = half_lengths
    return np.array(
        [mass / 3.0 * (b * b + c * c), mass / 3.0 * (a * a + c * c), mass / 3.0 * (a * a + b * b)],
        dtype=np.float64,
    )


@pytest.fixture
def brick():
    """Default brick (no MuJoCo model) on a fresh engine."""
    system = FreeBodySystem(config.BRICK_MASS, _brick_inertia(config.BRICK_MASS, config.BRICK_HALF_LENGTHS))
    return UnilateralBrick(system, brick_vertices(config.BRICK_HALF_LENGTHS))


@pytest.fixture
def flat_q():
    """Identity orientation, bottom spheres touching z = 0."""
    h = config.BRICK_HALF_LENGTHS[2] + config.BRICK_SPHERE_RADIUS
    return np.array([0.0, 0.0, h, 1.0, 0.0, 0.0, 0.0], dtype=np.float64)


@pytest.fixture
def corner_q():
    """Vertex 0 straight below the COM, its lowest point at z = 0."""
    v0 = brick_vertices(config.BRICK_HALF_LENGTHS)[0]
    quat = quat_between_vectors(v0, [0.0, 0.0, -1.0])
    h = float(np.linalg.norm(v0)) + config.BRICK_SPHERE_RADIUS
    return np.concatenate([[0.0, 0.0, h], quat])
