"""Active-set enumeration, coefficient of restitution and solution classification.

Test policy:
  1. 3^n - 1 candidates, never all-observing, no duplicates
  2. COR boundaries and monotonicity
  3. each classification rule in isolation, in priority order
"""

from __future__ import annotations

import numpy as np
import pytest

from impactsim import config
from impactsim.candidates import (
    ActiveSetCandidate,
    ImpactPhase,
    SolutionCategory,
    TangentialState,
    WORST_TOLERABLE_CATEGORY,
    calc_cor,
    classify_solution,
    enumerate_active_sets,
    format_active_set,
)

O, R, S = TangentialState.OBSERVING, TangentialState.ROLLING, TangentialState.SLIDING
C, RS = ImpactPhase.COMPRESSION, ImpactPhase.RESTITUTION


class TestEnumerateActiveSets:
    @pytest.mark.parametrize("n, expected", [(0, 0), (1, 2), (2, 8), (3, 26), (4, 80)])
    def test_count(self, n, expected):
        assert len(list(enumerate_active_sets(n))) == expected

    def test_excludes_all_observing_and_is_unique(self):
        sets = list(enumerate_active_sets(3))
        assert (O, O, O) not in sets
        assert len(set(sets)) == len(sets)

    def test_first_point_is_least_significant(self):
        sets = list(enumerate_active_sets(2))
        assert sets[:3] == [(R, O), (S, O), (O, R)]
        assert sets[-1] == (S, S)

    def test_format(self):
        assert format_active_set((R, O, S)) == "(ROS)"
        assert format_active_set((R,), "c") == "(cR)"


class TestSolutionCategory:
    def test_severity_order(self):
        assert SolutionCategory.NO_VIOLATIONS < SolutionCategory.ACTIVE_CONSTRAINT_DOES_NOTHING
        assert WORST_TOLERABLE_CATEGORY == SolutionCategory.GROUND_APPLIES_ATTRACTIVE_IMPULSE
        assert SolutionCategory.NOT_EVALUATED == max(SolutionCategory)

    def test_descriptions(self):
        assert SolutionCategory.NO_VIOLATIONS.description == "No violations"
        assert all(cat.description for cat in SolutionCategory)

    def test_candidate_defaults(self):
        cand = ActiveSetCandidate((R, O, S))
        assert cand.category == SolutionCategory.NOT_EVALUATED
        assert cand.fitness == np.inf
        assert cand.active_points == [0, 2]


class TestCalcCOR:
    V_MIN, V_PLASTIC, MIN_COR = 1e-6, 0.1, 0.5

    def cor(self, vn):
        return calc_cor(vn, self.V_MIN, self.V_PLASTIC, self.MIN_COR)

    def test_below_min_rebound(self):
        assert self.cor(-0.5e-6) == 0.0
        assert self.cor(0.3) == 0.0

    def test_linear_region(self):
        np.testing.assert_allclose(self.cor(-0.05), 0.75)
        np.testing.assert_allclose(self.cor(-1e-6), 1.0, atol=1e-4)

    def test_rebound_threshold_is_inclusive(self):
        assert self.cor(-self.V_MIN) == pytest.approx(1.0 - 5e-6)
        assert self.cor(-np.nextafter(self.V_MIN, 0.0)) == 0.0

    def test_plastic_clamp(self):
        assert self.cor(-0.1) == pytest.approx(0.5)
        assert self.cor(-6.0) == 0.5

    def test_monotone_non_increasing(self):
        speeds = np.linspace(1e-6, 1.0, 200)
        cors = [self.cor(-c) for c in speeds]
        assert all(b <= a + 1e-15 for a, b in zip(cors, cors[1:]))
        assert all(self.MIN_COR <= c <= 1.0 for c in cors)


def _classify(states, impulses, phase=C, cur=None, full=None, rest=None, mu=0.6):
    n = len(states)
    cur = np.zeros((n, 3)) if cur is None else np.asarray(cur, dtype=float)
    full = np.zeros((n, 3)) if full is None else np.asarray(full, dtype=float)
    rest = np.zeros(n) if rest is None else np.asarray(rest, dtype=float)
    return classify_solution(states, np.asarray(impulses, dtype=float), phase, cur, full, rest, mu, config.DEFAULT_SETTINGS)


class TestClassifySolution:
    def test_no_impulses(self):
        cat, fit = _classify((R,), [0.0, 0.0, 1e-9])
        assert cat == SolutionCategory.NO_IMPULSES_APPLIED
        assert fit == np.inf

    def test_negative_post_compression(self):
        cat, fit = _classify((R, O), [0.0, 0.0, -1.0], full=[[0, 0, 0], [0, 0, -0.2]])
        assert cat == SolutionCategory.NEGATIVE_POST_COMPRESSION_NORMAL_VELOCITY
        assert fit == pytest.approx(0.2)

    def test_negative_velocity_ignored_in_restitution(self):
        cat, _ = _classify((R,), [0.0, 0.0, -1.0], phase=RS, full=[[0, 0, -0.2]], rest=[1.0])
        assert cat == SolutionCategory.NO_VIOLATIONS

    def test_attractive(self):
        cat, fit = _classify((R, R), [0.0, 0.0, -1.0, 0.0, 0.0, 0.3])
        assert cat == SolutionCategory.GROUND_APPLIES_ATTRACTIVE_IMPULSE
        assert fit == pytest.approx(0.3)

    def test_stiction_exceeded(self):
        cat, fit = _classify((R,), [0.8, 0.0, -1.0], mu=0.6)
        assert cat == SolutionCategory.STICKING_IMPULSE_EXCEEDS_STICTION_LIMIT
        assert fit == pytest.approx(0.2)

    def test_stiction_only_checked_for_rolling(self):
        cat, _ = _classify((S,), [0.8, 0.0, -1.0], mu=0.6)
        assert cat == SolutionCategory.NO_VIOLATIONS

    def test_tangential_velocity_too_large(self):
        cat, fit = _classify((R,), [0.1, 0.0, -1.0], cur=[[0.3, 0.4, -1.0]])
        assert cat == SolutionCategory.TANGENTIAL_VELOCITY_TOO_LARGE_TO_STICK
        assert fit == pytest.approx(0.5)

    def test_restitution_ignored(self):
        cat, fit = _classify((R, O), [0.0, 0.0, -0.25], phase=RS, rest=[0.25, 0.25])
        assert cat == SolutionCategory.RESTITUTION_IMPULSES_IGNORED
        assert fit == pytest.approx(0.25)

    def test_active_constraint_does_nothing(self):
        lam = [0.0, 0.0, -1.0, 0.0, 0.0, 0.0]
        cat, fit = _classify((R, R), lam)
        assert cat == SolutionCategory.ACTIVE_CONSTRAINT_DOES_NOTHING
        assert fit == pytest.approx(1.0)

    def test_no_violations(self):
        lam = [0.0, 0.0, -0.5, 0.0, 0.0, -0.5]
        cat, fit = _classify((R, O, R), lam)
        assert cat == SolutionCategory.NO_VIOLATIONS
        assert fit == pytest.approx(np.sqrt(0.5))

    def test_rules_in_priority_order(self):
        # Attractive and stiction both violated; attractive is checked first.
        cat, _ = _classify((R, R), [5.0, 0.0, -1.0, 0.0, 0.0, 0.5])
        assert cat == SolutionCategory.GROUND_APPLIES_ATTRACTIVE_IMPULSE
