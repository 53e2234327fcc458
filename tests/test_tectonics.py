"""
Tests for tectonic uplift and fault offsets.
"""

import pytest
import numpy as np
from py_geomorph.config import FaultLine, TectonicSettings
from py_geomorph.core.tectonics import apply_fault_offset, apply_tectonic_uplift, uplift_pattern
from py_geomorph.utils import create_rng


class TestUpliftPatterns:
    """Test spatial uplift multipliers."""

    def test_uniform(self):
        np.testing.assert_array_equal(uplift_pattern("uniform", 4, create_rng(1)), np.ones(16))

    def test_dome_peaks_in_the_middle(self):
        pattern = uplift_pattern("dome", 9, create_rng(1)).reshape(9, 9)
        assert pattern[0, 0] == 0.0
        assert pattern[4, 4] == pattern.max()
        assert np.all((pattern >= 0) & (pattern <= 1))

    def test_ridge_runs_along_centre_row(self):
        pattern = uplift_pattern("ridge", 8, create_rng(1)).reshape(8, 8)
        np.testing.assert_allclose(pattern[4, :], 1.0)
        np.testing.assert_allclose(pattern[0, :], 0.0)
        assert np.all(pattern[:, 0] == pattern[:, 5])

    def test_random_range(self):
        pattern = uplift_pattern("random", 16, create_rng(1))
        assert np.all((pattern >= 0.5) & (pattern < 1.5))

    def test_random_is_seeded(self):
        a = uplift_pattern("random", 8, create_rng("faults"))
        b = uplift_pattern("random", 8, create_rng("faults"))
        np.testing.assert_array_equal(a, b)

    def test_unknown_pattern(self):
        with pytest.raises(ValueError):
            uplift_pattern("spiral", 4, create_rng(1))


class TestFaults:
    """Test fault displacement."""

    def test_horizontal_fault_offsets_both_sides(self):
        """Cells within 5 rows of the fault move 10 up on one side and 10 down on the other."""
        elevation = np.zeros(21 * 21)
        fault = FaultLine(x1=0, y1=10, x2=20, y2=10, offset=10.0)

        moved = apply_fault_offset(elevation, 21, fault, scale=1.0)

        grid = elevation.reshape(21, 21)
        assert moved == 9 * 21
        np.testing.assert_array_equal(grid[6:10, :], 10.0)
        np.testing.assert_array_equal(grid[10:15, :], -10.0)
        np.testing.assert_array_equal(grid[:6, :], 0.0)
        np.testing.assert_array_equal(grid[15:, :], 0.0)

    def test_zero_length_fault_is_skipped(self):
        elevation = np.zeros(25)
        fault = FaultLine(x1=2, y1=2, x2=2, y2=2, offset=5.0)
        assert apply_fault_offset(elevation, 5, fault) == 0
        assert np.all(elevation == 0)


class TestTectonicUplift:
    """Test the per-step tectonic update."""

    def test_uniform_uplift_in_metres(self, make_state):
        state = make_state(np.zeros((4, 4)))
        apply_tectonic_uplift(state, TectonicSettings(uplift_rate=1.0), time_step=100.0, rng=create_rng(1))
        np.testing.assert_allclose(state.elevation, 0.1)

    def test_zero_uplift_is_a_no_op(self, make_state):
        state = make_state(np.full((4, 4), 2.0))
        apply_tectonic_uplift(state, TectonicSettings(uplift_rate=0.0), time_step=100.0, rng=create_rng(1))
        np.testing.assert_array_equal(state.elevation, 2.0)

    def test_fault_slip_is_scaled_by_time_step(self, make_state):
        state = make_state(np.zeros((21, 21)))
        tectonics = TectonicSettings(
            uplift_rate=0.0,
            fault_lines=[FaultLine(x1=0, y1=10, x2=20, y2=10, offset=10.0)],
        )

        apply_tectonic_uplift(state, tectonics, time_step=100.0, rng=create_rng(1))

        grid = state.elevation.reshape(21, 21)
        assert grid[8, 3] == pytest.approx(1.0)
        assert grid[12, 3] == pytest.approx(-1.0)
