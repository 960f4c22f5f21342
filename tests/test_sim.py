"""Time stepping, canned scenarios and trajectory output."""

from __future__ import annotations

import numpy as np
import pytest

from impactsim import config
from impactsim.brick import brick_vertices
from impactsim.integration import advance_free_body
from impactsim.io_and_logging import save_npz
from impactsim.math3d import quat_to_R_np_wxyz
from impactsim.pose import com_to_body_origin_qpos, quat_between_vectors, quat_from_body_fixed_rotations
from impactsim.scenarios import SCENARIOS, get_scenario
from impactsim.sim import BrickSimulator


class TestIntegration:
    def test_free_fall(self):
        q = np.array([0.0, 0.0, 1.0, 1.0, 0.0, 0.0, 0.0])
        v = np.zeros(6)
        q1, v1 = advance_free_body(q, v, 0.01, 2.0, [0.1, 0.2, 0.3], gravity=9.81)
        np.testing.assert_allclose(v1, [0, 0, -0.0981, 0, 0, 0], atol=1e-12)
        np.testing.assert_allclose(q1[:3], [0, 0, 1.0 - 0.000981], atol=1e-12)
        np.testing.assert_allclose(q1[3:], [1, 0, 0, 0], atol=1e-12)

    def test_principal_axis_spin_keeps_omega(self):
        q = np.array([0.0, 0.0, 0.0, 1.0, 0.0, 0.0, 0.0])
        v = np.array([0.0, 0.0, 0.0, 0.0, 0.0, 2.0])
        q1, v1 = advance_free_body(q, v, 0.01, 1.0, [0.1, 0.2, 0.3], gravity=0.0)
        np.testing.assert_allclose(v1, v, atol=1e-12)
        np.testing.assert_allclose(np.linalg.norm(q1[3:]), 1.0)
        np.testing.assert_allclose(q1[3:], [np.cos(0.01), 0, 0, np.sin(0.01)], atol=1e-10)


class TestPose:
    def test_quat_between_vectors(self):
        for a, b in [([1, 0, 0], [0, 0, -1]), ([0.2, -0.3, 0.4], [0, 0, -1]), ([0, 0, 1], [0, 0, -1])]:
            R = quat_to_R_np_wxyz(quat_between_vectors(a, b))
            an = np.asarray(a, float) / np.linalg.norm(a)
            np.testing.assert_allclose(R @ an, b, atol=1e-12)

    def test_body_fixed_rotations_compose_left_to_right(self):
        q = quat_from_body_fixed_rotations(((1, 0, 0), np.pi / 2), ((0, 1, 0), np.pi / 2))
        R = quat_to_R_np_wxyz(q)
        # Ry first maps x -> -z, then Rx maps -z -> y.
        np.testing.assert_allclose(R @ [1, 0, 0], [0, 1, 0], atol=1e-12)

    def test_com_to_body_origin(self):
        q = np.array([1.0, 2.0, 3.0, 1.0, 0.0, 0.0, 0.0])
        np.testing.assert_allclose(com_to_body_origin_qpos(q, [0.0, 0.0, 0.1]), [1, 2, 2.9, 1, 0, 0, 0])


class TestScenarios:
    def test_names(self):
        assert set(SCENARIOS) == {
            "one_point",
            "one_point_tangential",
            "two_points",
            "two_points_tangential",
            "four_points",
            "four_points_tangential",
        }

    def test_unknown(self):
        with pytest.raises(ValueError):
            get_scenario("five_points")

    @pytest.mark.parametrize("name, n_lowest", [("one_point", 1), ("two_points", 2), ("four_points", 4)])
    def test_number_of_lowest_vertices(self, name, n_lowest):
        sc = get_scenario(name)
        z = (brick_vertices(config.BRICK_HALF_LENGTHS) @ quat_to_R_np_wxyz(sc.q0[3:7]).T)[:, 2]
        assert int(np.sum(z < z.min() + 1e-9)) == n_lowest
        np.testing.assert_allclose(sc.q0[:3], [0.0, 1.0, 0.8])
        assert sc.u0[2] == 6.0


class TestBrickSimulator:
    def test_short_flat_drop(self):
        sim = BrickSimulator(dt=1e-3)
        h = config.BRICK_HALF_LENGTHS[2] + config.BRICK_SPHERE_RADIUS
        q0 = np.array([0.0, 0.0, h + 0.0005, 1.0, 0.0, 0.0, 0.0])
        u0 = np.array([0.0, 0.0, -1.0, 0.0, 0.0, 0.0])

        result = sim.run(q0, u0, 0.05)

        assert result["q"].shape == (51, 7)
        assert result["u"].shape == (51, 6)
        assert result["qpos"].shape == (51, 7)
        np.testing.assert_allclose(result["t"][-1], 0.05)
        assert result["num_projections"] >= 1
        assert result["num_impacts"] >= 1
        assert np.all(result["min_z"][1:] >= -config.TOL_POSITION_FUZZINESS)
        # The brick bounced and is moving up right after the impact.
        assert np.max(result["u"][:, 2]) > 0.0

    def test_touching_state_is_not_projected(self):
        sim = BrickSimulator()
        h = config.BRICK_HALF_LENGTHS[2] + config.BRICK_SPHERE_RADIUS
        q0 = np.array([0.0, 0.0, h, 1.0, 0.0, 0.0, 0.0])
        state = sim.initial_state(q0, np.zeros(6))
        assert sim.project_positions(state) is False
        assert sim.resolve_impacts(state) == []
        np.testing.assert_array_equal(state.q, q0)
        assert sim.num_projections == 0

    def test_flight_without_contact(self):
        sim = BrickSimulator(dt=1e-3)
        q0 = np.array([0.0, 0.0, 2.0, 1.0, 0.0, 0.0, 0.0])
        result = sim.run(q0, np.zeros(6), 0.01)
        assert result["num_projections"] == 0
        assert result["num_impacts"] == 0
        assert result["u"][-1, 2] < 0.0

    def test_save_npz(self, tmp_path):
        sim = BrickSimulator(dt=1e-3)
        result = sim.run(np.array([0.0, 0.0, 2.0, 1.0, 0.0, 0.0, 0.0]), np.zeros(6), 0.005)
        path = save_npz(tmp_path / "runs" / "drop", result)
        assert path.name == "drop.npz"
        data = np.load(path)
        np.testing.assert_allclose(data["q"], result["q"])
        assert int(data["num_impacts"]) == 0
