"""
Shared fixtures and builders for the test suite.
"""

import numpy as np
import pytest

from py_geomorph.core.state import GeomorphologyState


def make_geomorph_state(elevation, cell_size=1.0, grain_count=1, temperature=15.0, hardness=1.0):
    """Build a bare advanced-model state from a square elevation grid."""
    grid = np.asarray(elevation, dtype=np.float64)
    resolution = grid.shape[0]
    n_cells = resolution * resolution
    return GeomorphologyState(
        resolution=resolution,
        cell_size=cell_size,
        grain_count=grain_count,
        elevation=grid.ravel().copy(),
        rock_hardness=np.full(n_cells, hardness, dtype=np.float64),
        vegetation_cover=np.zeros(n_cells, dtype=np.float64),
        temperature=np.full(n_cells, temperature, dtype=np.float64),
    )


def ramp_grid(resolution, top=100.0, drop=1.0):
    """Elevation falling by ``drop`` per cell towards +x."""
    xs = np.tile(np.arange(resolution, dtype=np.float64), (resolution, 1))
    return top - xs * drop


@pytest.fixture
def ramp_state():
    """8x8 ramp draining east with 10 m cells."""
    return make_geomorph_state(ramp_grid(8), cell_size=10.0)


@pytest.fixture
def make_state():
    """Factory for bare advanced-model states."""
    return make_geomorph_state


@pytest.fixture
def ramp():
    """Factory for east-draining ramp grids."""
    return ramp_grid
