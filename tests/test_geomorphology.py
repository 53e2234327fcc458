"""
Tests for the advanced geomorphological processes.
"""

import math

import pytest
import numpy as np
from py_geomorph.config import AdvancedErosionConfig, merge_config
from py_geomorph.core.flow_routing import FlowRouter
from py_geomorph.core.geomorphology import (
    MASS_WASTING_ANGLE,
    apply_chemical_weathering,
    apply_hillslope_diffusion,
    apply_mass_wasting,
    apply_river_meandering,
    apply_stream_power_incision,
    build_geomorphology_state,
    diffusion_substeps,
    migrate_knickpoints,
)
from py_geomorph.core.state import NO_FLOW
from py_geomorph.exceptions import ErosionConfigError
from py_geomorph.utils import create_rng


@pytest.fixture
def config():
    return AdvancedErosionConfig()


class TestStateInitialisation:
    """Test lithology, vegetation and temperature setup."""

    def test_flat_lowland(self, config):
        state = build_geomorphology_state(np.zeros(64), 8, 800.0, config)

        assert state.cell_size == 100.0
        assert state.grain_count == 4
        assert state.sediment_load.shape == (64 * 4,)
        np.testing.assert_allclose(state.vegetation_cover, 0.5)
        np.testing.assert_allclose(state.temperature, 15.0)
        assert np.all((state.rock_hardness >= 0) & (state.rock_hardness <= 1))

    def test_high_ground_is_cold_and_bare(self, config):
        state = build_geomorphology_state(np.full(64, 1000.0), 8, 800.0, config)

        np.testing.assert_allclose(state.temperature, 8.5)
        np.testing.assert_allclose(state.vegetation_cover, 0.0)

    def test_elevation_is_copied(self, config):
        elevation = np.zeros(64)
        state = build_geomorphology_state(elevation, 8, 800.0, config)
        state.elevation += 1
        assert elevation.sum() == 0

    def test_lithology_override(self, config):
        cfg = merge_config(config, {"lithology": {"hardness": [0.25] * 16}})
        state = build_geomorphology_state(np.zeros(16), 4, 40.0, cfg)
        np.testing.assert_allclose(state.rock_hardness, 0.25)

    def test_lithology_length_mismatch(self, config):
        cfg = merge_config(config, {"lithology": {"hardness": [0.25] * 10}})
        with pytest.raises(ErosionConfigError):
            build_geomorphology_state(np.zeros(16), 4, 40.0, cfg)


class TestStreamPowerIncision:
    """Test channel incision."""

    @pytest.fixture
    def routed_ramp(self, ramp_state):
        router = FlowRouter(resolution=8, cell_size=10.0)
        router.route(ramp_state)
        router.identify_channels(ramp_state, critical_drainage=150.0, precipitation=1000.0)
        return ramp_state

    def test_zero_incision_constant_changes_nothing(self, routed_ramp, config):
        cfg = merge_config(config, {"stream_power_law": {"incision_constant": 0.0}})
        before = routed_ramp.elevation.copy()

        removed = apply_stream_power_incision(routed_ramp, cfg)

        assert removed == 0.0
        np.testing.assert_array_equal(routed_ramp.elevation, before)

    def test_channels_are_incised(self, routed_ramp, config):
        before = routed_ramp.elevation.copy()

        removed = apply_stream_power_incision(routed_ramp, config)

        grid = routed_ramp.elevation.reshape(8, 8)
        assert removed > 0
        assert np.all(grid[1:-1, 1:-1] < before.reshape(8, 8)[1:-1, 1:-1])
        np.testing.assert_array_equal(grid[:, 0], before.reshape(8, 8)[:, 0])
        assert np.all(routed_ramp.stream_power[~routed_ramp.is_channel] == 0)

    def test_expected_rate(self, routed_ramp, config):
        """E = K * A^m * S^n * time_step at a known interior channel cell."""
        before = routed_ramp.elevation.copy()
        apply_stream_power_incision(routed_ramp, config)

        cell = 3 * 8 + 4
        area = 5 * 100.0
        expected = 1e-6 * math.sqrt(area) * 0.1 * 100.0
        assert before[cell] - routed_ramp.elevation[cell] == pytest.approx(expected)


class TestHillslopeDiffusion:
    """Test soil creep."""

    def test_flat_surface_is_stable(self, make_state, config):
        state = make_state(np.full((6, 6), 3.0))
        apply_hillslope_diffusion(state, config)
        np.testing.assert_allclose(state.elevation, 3.0)

    def test_border_is_unchanged(self, make_state, config):
        state = make_state(create_rng(8).random((10, 10)) * 10)
        before = state.elevation.reshape(10, 10).copy()

        apply_hillslope_diffusion(state, config)

        grid = state.elevation.reshape(10, 10)
        np.testing.assert_array_equal(grid[0, :], before[0, :])
        np.testing.assert_array_equal(grid[-1, :], before[-1, :])
        np.testing.assert_array_equal(grid[:, 0], before[:, 0])
        np.testing.assert_array_equal(grid[:, -1], before[:, -1])

    def test_peak_spreads(self, make_state, config):
        cfg = merge_config(config, {"advanced": {"time_step": 1.0}})
        grid = np.zeros((5, 5))
        grid[2, 2] = 10.0
        state = make_state(grid)

        apply_hillslope_diffusion(state, cfg)

        result = state.elevation.reshape(5, 5)
        assert result[2, 2] == pytest.approx(10.0 - 0.01 * 40.0)
        assert result[1, 2] > 0
        assert result[2, 1] > 0

    def test_small_cells_stay_bounded(self, make_state, config):
        """A 1 m cell with a 100 year step is split into stable sub-steps."""
        grid = np.zeros((9, 9))
        grid[4, 4] = 10.0
        state = make_state(grid, cell_size=1.0)

        assert diffusion_substeps(state, config) > 1
        for _ in range(20):
            apply_hillslope_diffusion(state, config)

        assert np.all(np.isfinite(state.elevation))
        assert state.elevation.max() <= 10.0 + 1e-9
        assert state.elevation.min() >= -1e-9

    def test_single_step_when_stable(self, make_state, config):
        state = make_state(np.zeros((5, 5)), cell_size=10.0)
        assert diffusion_substeps(state, config) == 1

    def test_unresolvable_step_rejected(self, make_state, config):
        """Cells too small for the configured step raise instead of diverging."""
        state = make_state(np.zeros((5, 5)), cell_size=0.01)
        before = state.elevation.copy()

        with pytest.raises(ErosionConfigError):
            apply_hillslope_diffusion(state, config)
        np.testing.assert_array_equal(state.elevation, before)


class TestChemicalWeathering:
    """Test temperature- and lithology-driven weathering."""

    def test_soft_rock_weathers_faster(self, make_state, config):
        state = make_state(np.zeros((4, 4)))
        state.rock_hardness[:8] = 0.3
        state.rock_hardness[8:] = 0.8
        state.vegetation_cover[:] = 0.5

        removed = apply_chemical_weathering(state, config)

        np.testing.assert_allclose(-state.elevation[:8], 2e-6)
        np.testing.assert_allclose(-state.elevation[8:], 5e-7)
        assert removed == pytest.approx(8 * 2e-6 + 8 * 5e-7)
        np.testing.assert_allclose(state.vegetation_cover[:8], 0.502)

    def test_warmth_accelerates_weathering(self, make_state, config):
        cold = make_state(np.zeros((4, 4)), temperature=5.0)
        warm = make_state(np.zeros((4, 4)), temperature=25.0)

        cold_rate = apply_chemical_weathering(cold, config)
        warm_rate = apply_chemical_weathering(warm, config)

        assert warm_rate / cold_rate == pytest.approx(math.exp(2.0))

    def test_solubility_override(self, make_state, config):
        state = make_state(np.zeros((3, 3)))
        state.solubility = np.full(9, 4.0)
        apply_chemical_weathering(state, config)
        np.testing.assert_allclose(state.elevation, -4e-6)


class TestMassWasting:
    """Test landslides on steep slopes."""

    @pytest.fixture
    def cliff(self, make_state):
        grid = np.zeros((5, 5))
        grid[:, :3] = 10.0
        state = make_state(grid)
        FlowRouter(resolution=5, cell_size=1.0).route(state)
        state.vegetation_cover[:] = 0.6
        return state

    def test_cliff_fails(self, cliff):
        before = cliff.elevation.copy()

        slides = apply_mass_wasting(cliff)

        assert slides == 3
        drop = (math.atan(5.0) - MASS_WASTING_ANGLE) * 0.1
        sources = [y * 5 + 2 for y in (1, 2, 3)]
        np.testing.assert_allclose(before[sources] - cliff.elevation[sources], drop)
        assert before.sum() - cliff.elevation.sum() == pytest.approx(3 * drop * 0.2)
        np.testing.assert_allclose(cliff.vegetation_cover[sources], 0.3)

    def test_gentle_slope_is_stable(self, ramp_state):
        FlowRouter(resolution=8, cell_size=10.0).route(ramp_state)
        before = ramp_state.elevation.copy()

        assert apply_mass_wasting(ramp_state) == 0
        np.testing.assert_array_equal(ramp_state.elevation, before)


class TestMeandering:
    """Test lateral bank erosion."""

    @pytest.fixture
    def river_cell(self, make_state):
        state = make_state(np.zeros((5, 5)))
        state.is_channel[12] = True
        state.discharge[12] = 10.0
        state.flow_direction[12] = 4
        state.receivers[12] = 13
        state.meander_age[12] = 950.0
        return state

    def test_mature_channel_erodes_a_bank(self, river_cell, config):
        count = apply_river_meandering(river_cell, config, create_rng(6))

        assert count == 1
        assert river_cell.meander_age[12] == 1050.0
        banks = river_cell.elevation[[7, 17]]
        assert sorted(banks.tolist()) == pytest.approx([-1e-5, 0.0])
        assert river_cell.bank_height[12] == pytest.approx(5e-6)
        assert river_cell.elevation.sum() == pytest.approx(-1e-5)

    def test_young_channel_only_ages(self, river_cell, config):
        river_cell.meander_age[12] = 0.0
        assert apply_river_meandering(river_cell, config, create_rng(6)) == 0
        assert river_cell.meander_age[12] == 100.0
        assert np.all(river_cell.elevation == 0)

    def test_small_streams_do_not_meander(self, river_cell, config):
        river_cell.discharge[12] = 0.5
        assert apply_river_meandering(river_cell, config, create_rng(6)) == 0
        assert river_cell.meander_age[12] == 950.0


class TestKnickpoints:
    """Test upstream knickpoint migration."""

    def test_donor_is_lowered(self, make_state, config):
        grid = np.tile(np.arange(5, dtype=np.float64), (5, 1))
        state = make_state(grid)
        state.is_channel[12] = True
        state.stream_power[12] = 1000.0
        state.receivers[11] = 12

        knickpoints = migrate_knickpoints(state, config)

        assert knickpoints == [{"x": 2, "y": 2, "elevation": 2.0}]
        assert state.elevation[11] == pytest.approx(0.9)
        assert state.elevation[13] == 3.0

    def test_no_channels_no_knickpoints(self, ramp_state, config):
        before = ramp_state.elevation.copy()
        assert migrate_knickpoints(ramp_state, config) == []
        np.testing.assert_array_equal(ramp_state.elevation, before)
        assert np.all(ramp_state.receivers == NO_FLOW)
