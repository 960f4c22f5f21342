from __future__ import annotations

import numpy as np
import mujoco


def vertex_spheres_from_model(
    model_: mujoco.MjModel,
    body_id: int,
    ipos_body: np.ndarray,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Collect the sphere geoms of a body as contact points.

    Returns (centres in COM frame (N, 3), radii (N,), sliding friction (N,)),
    in geom order. Non-sphere geoms are skipped.
    """
    centres = []
    radii = []
    mu = []
    gstart = int(model_.body_geomadr[body_id])
    gnum = int(model_.body_geomnum[body_id])
    ipos = np.asarray(ipos_body, dtype=np.float64)
    for i in range(gstart, gstart + gnum):
        if model_.geom_type[i] != mujoco.mjtGeom.mjGEOM_SPHERE:
            continue
        gp = np.array(model_.geom_pos[i], dtype=np.float64)
        # Sphere centres are body-frame points; shift to the COM frame.
        centres.append(gp - ipos)
        radii.append(float(model_.geom_size[i][0]))
        mu.append(float(model_.geom_friction[i][0]))

    return (
        np.asarray(centres, dtype=np.float64).reshape(-1, 3),
        np.asarray(radii, dtype=np.float64),
        np.asarray(mu, dtype=np.float64),
    )
