"""MJCF brick model loading and conversion to the contact layer."""

from __future__ import annotations

import numpy as np
import pytest

from impactsim import config
from impactsim.brick import UnilateralBrick, brick_vertices
from impactsim.engine import FreeBodySystem
from impactsim.model import load_brick_model, make_brick_xml


class TestLoadBrickModel:
    def test_default_brick(self):
        info = load_brick_model()
        a, b, c = config.BRICK_HALF_LENGTHS
        m = config.BRICK_MASS

        assert info.mass == pytest.approx(m)
        np.testing.assert_allclose(
            info.inertia_body_diag, [m / 3 * (b * b + c * c), m / 3 * (a * a + c * c), m / 3 * (a * a + b * b)]
        )
        np.testing.assert_allclose(info.ipos_body, np.zeros(3), atol=1e-12)
        np.testing.assert_allclose(info.vertices, brick_vertices(config.BRICK_HALF_LENGTHS))
        np.testing.assert_allclose(info.sphere_radii, [config.BRICK_SPHERE_RADIUS] * 8)
        assert info.mu_dyn == pytest.approx(config.BRICK_MU_DYN)

    def test_custom_xml_from_file(self, tmp_path):
        path = tmp_path / "brick.xml"
        path.write_text(make_brick_xml(half_lengths=(0.1, 0.1, 0.1), sphere_radius=0.02, mass=1.0, mu_dyn=0.3))
        info = load_brick_model(xml_path=str(path))
        assert info.mass == pytest.approx(1.0)
        assert info.mu_dyn == pytest.approx(0.3)
        np.testing.assert_allclose(np.abs(info.vertices), 0.1)

    def test_unknown_body(self):
        with pytest.raises(ValueError):
            load_brick_model(body="no_such_body", xml=make_brick_xml())

    def test_body_without_spheres(self):
        xml = """
        <mujoco>
          <worldbody>
            <body name="brick">
              <freejoint/>
              <geom type="box" size="0.1 0.1 0.1" mass="1"/>
            </body>
          </worldbody>
        </mujoco>
        """
        with pytest.raises(ValueError):
            load_brick_model(xml=xml)


class TestBrickFromModel:
    def test_contact_points_and_constraints(self):
        info = load_brick_model()
        system = FreeBodySystem.from_model(info)
        brick = UnilateralBrick.from_model(system, info)

        assert brick.num_vertices == 8
        assert len(system.constraints) == 16
        assert brick.sphere_radius == pytest.approx(config.BRICK_SPHERE_RADIUS)
        assert system.mass == pytest.approx(config.BRICK_MASS)

    def test_parameters_clamped(self):
        info = load_brick_model()
        system = FreeBodySystem.from_model(info)
        brick = UnilateralBrick.from_model(system, info, v_min_rebound=1.0, v_plastic_deform=0.1, min_cor=2.0)
        assert brick.v_min_rebound == pytest.approx(0.1)
        assert brick.min_cor == 1.0
