"""MuJoCo (MJCF) description of the unilateral brick.

The brick is a free body carrying one sphere at each of its eight vertices.
Only mass properties and sphere geometry are taken from the model; contact
with the ground plane is handled by the impactsim contact layer, so the sphere
geoms have collisions switched off.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import mujoco

from . import config
from .samples import vertex_spheres_from_model

BODY_NAME = "brick"


def make_brick_xml(
    half_lengths=config.BRICK_HALF_LENGTHS,
    sphere_radius: float = config.BRICK_SPHERE_RADIUS,
    mass: float = config.BRICK_MASS,
    mu_dyn: float = config.BRICK_MU_DYN,
    body: str = BODY_NAME,
) -> str:
    """Return an MJCF string for a brick with vertex spheres.

    Vertex spheres are emitted in the order (i, j, k) in {-1, 1}^3 with k
    varying fastest, which fixes the brick vertex indices 0..7.
    """
    hx, hy, hz = (float(h) for h in half_lengths)
    m = float(mass)
    # Solid brick: I = m/3 * (b^2 + c^2) with half lengths a, b, c.
    ixx = m / 3.0 * (hy * hy + hz * hz)
    iyy = m / 3.0 * (hx * hx + hz * hz)
    izz = m / 3.0 * (hx * hx + hy * hy)

    spheres = []
    idx = 0
    for i in (-1, 1):
        for j in (-1, 1):
            for k in (-1, 1):
                spheres.append(
                    f'      <geom name="vertex{idx}" type="sphere" size="{sphere_radius:.17g}" '
                    f'pos="{i * hx:.17g} {j * hy:.17g} {k * hz:.17g}" '
                    f'friction="{mu_dyn:.17g} 0.005 0.0001" contype="0" conaffinity="0"/>'
                )
                idx += 1

    return "\n".join(
        [
            '<mujoco model="single_brick">',
            '  <option gravity="0 0 -9.81"/>',
            "  <worldbody>",
            '    <geom name="ground" type="plane" size="5 5 0.1" contype="0" conaffinity="0"/>',
            f'    <body name="{body}" pos="0 0 1">',
            "      <freejoint/>",
            f'      <inertial pos="0 0 0" mass="{m:.17g}" diaginertia="{ixx:.17g} {iyy:.17g} {izz:.17g}"/>',
            f'      <geom name="{body}_box" type="box" size="{hx:.17g} {hy:.17g} {hz:.17g}" '
            'contype="0" conaffinity="0"/>',
            *spheres,
            "    </body>",
            "  </worldbody>",
            "</mujoco>",
        ]
    )


@dataclass(frozen=True)
class BrickModelInfo:
    """Mass properties and vertex spheres of the brick body (COM frame)."""

    model: mujoco.MjModel
    body_id: int
    mass: float
    inertia_body_diag: np.ndarray
    ipos_body: np.ndarray
    vertices: np.ndarray       # (N, 3) sphere centres in COM frame
    sphere_radii: np.ndarray   # (N,)
    mu_dyn: float


def load_brick_model(xml_path: str | None = None, body: str = BODY_NAME, xml: str | None = None) -> BrickModelInfo:
    """Load a brick model from an MJCF file, an MJCF string, or the default brick."""
    if xml_path is not None:
        model = mujoco.MjModel.from_xml_path(xml_path)
        source = xml_path
    else:
        model = mujoco.MjModel.from_xml_string(xml if xml is not None else make_brick_xml(body=body))
        source = "<string>"

    body_id = mujoco.mj_name2id(model, mujoco.mjtObj.mjOBJ_BODY, body)
    if body_id < 0:
        raise ValueError(f"[impactsim.model] body '{body}' not found in {source}")

    mass = float(model.body_mass[body_id])
    inertia_body_diag = np.array(model.body_inertia[body_id], dtype=np.float64)
    ipos_body = np.array(model.body_ipos[body_id], dtype=np.float64)

    vertices, radii, friction = vertex_spheres_from_model(model, body_id, ipos_body)
    if vertices.shape[0] == 0:
        raise ValueError(f"[impactsim.model] body '{body}' in {source} has no vertex spheres")

    return BrickModelInfo(
        model=model,
        body_id=int(body_id),
        mass=mass,
        inertia_body_diag=inertia_body_diag,
        ipos_body=ipos_body,
        vertices=vertices,
        sphere_radii=radii,
        mu_dyn=float(friction[0]),
    )
