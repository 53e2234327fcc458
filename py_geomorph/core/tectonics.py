"""
Tectonic uplift and faulting.
"""

import math

import numpy as np
import structlog

from ..config.erosion_settings import FaultLine, TectonicSettings
from .state import GeomorphologyState

logger = structlog.get_logger()

FAULT_INFLUENCE_CELLS = 5.0


def uplift_pattern(pattern: str, resolution: int, rng: np.random.Generator) -> np.ndarray:
    """
    Per-cell uplift multiplier.

    - ``uniform``: 1 everywhere
    - ``dome``: 1 at the centre, falling linearly to 0 at half the grid width
    - ``ridge``: 1 along the horizontal centre line, falling to 0 at the top and bottom
    - ``random``: independent values in ``[0.5, 1.5)``
    """
    n_cells = resolution * resolution
    if pattern == "uniform":
        return np.ones(n_cells, dtype=np.float64)
    if pattern == "random":
        return 0.5 + rng.random(n_cells)

    ys, xs = np.divmod(np.arange(n_cells, dtype=np.float64), resolution)
    half = resolution / 2
    if pattern == "dome":
        distance = np.hypot(xs - half, ys - half) / half
    elif pattern == "ridge":
        distance = np.abs(ys - half) / half
    else:
        raise ValueError(f"Unknown uplift pattern '{pattern}'")
    return np.maximum(0.0, 1.0 - distance)


def apply_fault_offset(elevation: np.ndarray, resolution: int, fault: FaultLine, scale: float = 1.0) -> int:
    """
    Offset cells within 5 cells of a fault line.

    Cells on the positive side of the segment (by the sign of the 2-D
    cross product) rise by ``offset * scale``; all others in the band
    sink by the same amount. A zero-length fault is skipped.

    Returns:
        Number of cells moved
    """
    dx = fault.x2 - fault.x1
    dy = fault.y2 - fault.y1
    length = math.hypot(dx, dy)
    if length == 0:
        logger.warning("Skipping zero-length fault", x=fault.x1, y=fault.y1)
        return 0

    ys, xs = np.divmod(np.arange(resolution * resolution, dtype=np.float64), resolution)
    distance = np.abs(dy * xs - dx * ys + fault.x2 * fault.y1 - fault.y2 * fault.x1) / length
    near = distance < FAULT_INFLUENCE_CELLS

    cross = (xs - fault.x1) * dy - (ys - fault.y1) * dx
    offset = np.where(cross > 0, fault.offset, -fault.offset) * scale
    elevation[near] += offset[near]
    return int(near.sum())


def apply_tectonic_uplift(
    state: GeomorphologyState,
    tectonics: TectonicSettings,
    time_step: float,
    rng: np.random.Generator,
) -> None:
    """
    Raise the terrain for one time step, then slip every fault.

    Rates are in mm/year, so both uplift and fault offsets are scaled by
    ``time_step / 1000`` to give metres.
    """
    scale = time_step / 1000.0
    uplift = tectonics.uplift_rate * scale
    if uplift != 0:
        state.elevation += uplift * uplift_pattern(tectonics.uplift_pattern, state.resolution, rng)

    for fault in tectonics.fault_lines:
        apply_fault_offset(state.elevation, state.resolution, fault, scale)
