"""
Thermal relaxation (talus slumping).

Interior cells steeper than the angle of repose towards any of their
eight neighbours are lowered by a fraction of the average excess
height. All adjustments are computed from one snapshot and applied
together, so the result does not depend on visiting order. Border cells
are never modified.
"""

import math

import numpy as np

from ..config.erosion_settings import ErosionConfig

NEIGHBOR_OFFSETS = [
    (dx, dy)
    for dy in (-1, 0, 1)
    for dx in (-1, 0, 1)
    if (dx, dy) != (0, 0)
]


class ThermalRelaxation:
    """Talus-slope relaxation pass over a heightfield buffer."""

    def __init__(self, config: ErosionConfig):
        self.config = config

    def compute_adjustment(self, height: np.ndarray, resolution: int) -> np.ndarray:
        """
        Per-cell height reduction for one pass, computed from ``height``.

        Returns:
            Flat array of amounts to subtract (zero on the border)
        """
        adjustment = np.zeros(resolution * resolution, dtype=np.float64)
        if resolution < 3:
            return adjustment

        grid = height.reshape(resolution, resolution)
        center = grid[1:-1, 1:-1]
        max_angle = self.config.max_talus_slope

        total_excess = np.zeros_like(center)
        neighbors = np.zeros(center.shape, dtype=np.int64)

        for dx, dy in NEIGHBOR_OFFSETS:
            neighbor = grid[1 + dy:resolution - 1 + dy, 1 + dx:resolution - 1 + dx]
            distance = 1.0 if dx == 0 or dy == 0 else math.sqrt(2.0)
            height_diff = center - neighbor
            steep = height_diff / distance > max_angle
            total_excess += np.where(steep, height_diff - max_angle * distance, 0.0)
            neighbors += steep

        inner = np.zeros_like(center)
        moving = neighbors > 0
        inner[moving] = total_excess[moving] / neighbors[moving] * self.config.thermal_rate
        adjustment.reshape(resolution, resolution)[1:-1, 1:-1] = inner
        return adjustment

    def apply(self, height: np.ndarray, resolution: int) -> float:
        """
        Run one relaxation pass in place.

        Returns:
            Total height removed
        """
        adjustment = self.compute_adjustment(height, resolution)
        height -= adjustment
        return float(adjustment.sum())
