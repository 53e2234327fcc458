"""
Named erosion presets.

Basic presets are partial ``ErosionConfig`` updates matching the editor's
one-click erosion buttons. Advanced presets are complete
``AdvancedErosionConfig`` updates for a geological setting, including
the time step and run length.
"""

import math
from copy import deepcopy
from typing import Any, Dict, List

from .erosion_settings import FaultLine

PRESETS: Dict[str, Dict[str, Any]] = {
    "gentle": {
        "rain_strength": 0.01,
        "erosion_strength": 0.1,
        "iterations": 50,
        "thermal_rate": 0.05,
    },
    "moderate": {
        "rain_strength": 0.02,
        "erosion_strength": 0.3,
        "iterations": 100,
        "thermal_rate": 0.1,
    },
    "intense": {
        "rain_strength": 0.04,
        "erosion_strength": 0.5,
        "iterations": 200,
        "thermal_rate": 0.2,
    },
    "desert": {
        "rain_strength": 0.005,
        "erosion_strength": 0.1,
        "thermal_rate": 0.3,
        "angle_of_repose": 45.0,
        "iterations": 150,
    },
    "tropical": {
        "rain_strength": 0.06,
        "erosion_strength": 0.4,
        "vegetation_protection": True,
        "riverbed_erosion": 2.0,
        "iterations": 120,
    },
}

ADVANCED_PRESETS: Dict[str, Dict[str, Any]] = {
    "mountain": {
        "stream_power_law": {
            "incision_constant": 2e-6,
            "area_exponent": 0.5,
            "slope_exponent": 1.0,
            "critical_drainage": 500.0,
        },
        "tectonics": {"uplift_rate": 0.5, "uplift_pattern": "dome", "fault_lines": []},
        "climate": {"precipitation": 1500.0, "temperature": 5.0, "vegetation_cover": 0.3},
        "advanced": {
            "enable_meandering": False,
            "enable_mass_wasting": True,
            "enable_glacial_erosion": False,
            "enable_chemical_weathering": True,
            "enable_knickpoint_migration": True,
            "time_step": 50.0,
            "total_time": 50000.0,
        },
    },
    "river_system": {
        "stream_power_law": {
            "incision_constant": 1e-6,
            "area_exponent": 0.5,
            "slope_exponent": 1.0,
            "critical_drainage": 1000.0,
        },
        "tectonics": {"uplift_rate": 0.1, "uplift_pattern": "uniform", "fault_lines": []},
        "climate": {"precipitation": 1200.0, "temperature": 15.0, "vegetation_cover": 0.7},
        "advanced": {
            "enable_meandering": True,
            "enable_mass_wasting": False,
            "enable_glacial_erosion": False,
            "enable_chemical_weathering": True,
            "enable_knickpoint_migration": True,
            "time_step": 100.0,
            "total_time": 100000.0,
        },
    },
    "desert": {
        "stream_power_law": {
            "incision_constant": 0.5e-6,
            "area_exponent": 0.4,
            "slope_exponent": 1.2,
            "critical_drainage": 2000.0,
        },
        "diffusion": {
            "soil_diffusivity": 0.005,
            "thermal_diffusivity": 0.002,
            "critical_slope": math.radians(45.0),
        },
        "tectonics": {"uplift_rate": 0.05, "uplift_pattern": "uniform", "fault_lines": []},
        "climate": {"precipitation": 200.0, "temperature": 25.0, "vegetation_cover": 0.1},
        "advanced": {
            "enable_meandering": False,
            "enable_mass_wasting": True,
            "enable_glacial_erosion": False,
            "enable_chemical_weathering": False,
            "enable_knickpoint_migration": False,
            "time_step": 200.0,
            "total_time": 200000.0,
        },
    },
    "coastal": {
        "stream_power_law": {
            "incision_constant": 3e-6,
            "area_exponent": 0.6,
            "slope_exponent": 0.8,
            "critical_drainage": 200.0,
        },
        "tectonics": {"uplift_rate": 0.2, "uplift_pattern": "ridge", "fault_lines": []},
        "climate": {"precipitation": 2000.0, "temperature": 12.0, "vegetation_cover": 0.8},
        "advanced": {
            "enable_meandering": True,
            "enable_mass_wasting": True,
            "enable_glacial_erosion": False,
            "enable_chemical_weathering": True,
            "enable_knickpoint_migration": True,
            "time_step": 75.0,
            "total_time": 75000.0,
        },
    },
    "glacial_valley": {
        "stream_power_law": {
            "incision_constant": 5e-6,
            "area_exponent": 0.3,
            "slope_exponent": 1.5,
            "critical_drainage": 100.0,
        },
        "diffusion": {
            "soil_diffusivity": 0.02,
            "thermal_diffusivity": 0.005,
            "critical_slope": math.radians(25.0),
        },
        "tectonics": {"uplift_rate": 0.3, "uplift_pattern": "ridge", "fault_lines": []},
        "climate": {"precipitation": 1000.0, "temperature": -2.0, "vegetation_cover": 0.1},
        "advanced": {
            "enable_meandering": False,
            "enable_mass_wasting": True,
            "enable_glacial_erosion": True,
            "enable_chemical_weathering": False,
            "enable_knickpoint_migration": False,
            "time_step": 100.0,
            "total_time": 100000.0,
        },
    },
}

# Three faults as fractions of the grid side: (x1, y1, x2, y2, offset in mm/year)
FAULT_SYSTEM = [
    (0.1, 0.2, 0.9, 0.8, 20.0),
    (0.3, 0.1, 0.7, 0.6, -8.0),
    (0.1, 0.7, 0.4, 0.9, 5.0),
]


def get_preset(name: str) -> Dict[str, Any]:
    """
    Get a basic-model preset by name.

    Raises:
        KeyError: If no preset has that name
    """
    if name not in PRESETS:
        raise KeyError(f"Unknown erosion preset '{name}'. Available: {', '.join(list_presets())}")
    return deepcopy(PRESETS[name])


def get_advanced_preset(name: str) -> Dict[str, Any]:
    """Get an advanced-model preset by name."""
    if name not in ADVANCED_PRESETS:
        raise KeyError(
            f"Unknown advanced preset '{name}'. Available: {', '.join(list_presets(advanced=True))}"
        )
    return deepcopy(ADVANCED_PRESETS[name])


def list_presets(advanced: bool = False) -> List[str]:
    """List preset names for the basic (default) or advanced model."""
    return sorted(ADVANCED_PRESETS if advanced else PRESETS)


def realistic_fault_system(resolution: int) -> List[FaultLine]:
    """
    Fault traces for a grid of the given resolution.

    One major fault crosses the map diagonally, with a smaller
    antithetic fault and a short transfer fault. Assign the result to
    ``tectonics.fault_lines``.
    """
    return [
        FaultLine(x1=x1 * resolution, y1=y1 * resolution, x2=x2 * resolution, y2=y2 * resolution, offset=offset)
        for x1, y1, x2, y2, offset in FAULT_SYSTEM
    ]
