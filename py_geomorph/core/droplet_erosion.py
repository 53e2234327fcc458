"""
Particle-based hydraulic erosion.

Rain droplets are spawned at random positions, roll downhill along the
precomputed gradient field, pick up sediment while they have spare
capacity and drop it when they slow down or climb. Material is moved
between the grid and the droplet bilinearly over the four cells around
the droplet, so every unit removed from the grid is carried by the
droplet and every unit deposited comes out of its load.
"""

import math
from dataclasses import dataclass
from typing import Optional

import numpy as np
import structlog

from ..config.erosion_settings import ErosionConfig
from .heightfield import HeightField, bilinear_footprint, sample_gradient
from .state import BasicTerrainState

logger = structlog.get_logger()

MIN_DROPLET_WATER = 0.01
VEGETATION_SHIELDING = 0.7


@dataclass
class Droplet:
    """A single water particle. Lives for one hydraulic iteration only."""

    x: float
    y: float
    dx: float = 0.0
    dy: float = 0.0
    speed: float = 1.0
    water: float = 0.0
    sediment: float = 0.0
    lifetime: int = 30


class HydraulicDropletSimulator:
    """Runs droplet erosion over a ``BasicTerrainState``."""

    def __init__(self, config: ErosionConfig, rng: np.random.Generator):
        """
        Args:
            config: Basic erosion configuration
            rng: Random source for droplet spawn positions
        """
        self.config = config
        self.rng = rng

    def droplets_per_iteration(self, resolution: int) -> int:
        return max(1, resolution // 4)

    def spawn(self, resolution: int) -> Droplet:
        span = resolution - 1
        return Droplet(
            x=float(self.rng.random() * span),
            y=float(self.rng.random() * span),
            speed=self.config.droplet_speed,
            water=self.config.rain_strength,
            lifetime=self.config.droplet_lifetime,
        )

    def run_iteration(self, state: BasicTerrainState, grad_x: np.ndarray, grad_y: np.ndarray) -> int:
        """
        Spawn and simulate one batch of droplets.

        Args:
            state: Terrain state, mutated in place
            grad_x: Cached x gradient of ``state.height``
            grad_y: Cached y gradient of ``state.height``

        Returns:
            Number of droplets simulated
        """
        count = self.droplets_per_iteration(state.resolution)
        for _ in range(count):
            self.simulate_droplet(state, self.spawn(state.resolution), grad_x, grad_y)
        return count

    def simulate_droplet(
        self,
        state: BasicTerrainState,
        droplet: Droplet,
        grad_x: np.ndarray,
        grad_y: np.ndarray,
    ) -> Droplet:
        """
        Advance a droplet until it dies, evaporates, or leaves the grid interior.

        Returns:
            The droplet in its final state (its ``sediment`` is what it
            still carries off the grid)
        """
        cfg = self.config
        resolution = state.resolution
        field = HeightField(state.height, resolution)
        inertia = 1.0 - cfg.evaporation_rate

        for _ in range(droplet.lifetime):
            old_height = field.sample(droplet.x, droplet.y)
            gx, gy = sample_gradient(grad_x, grad_y, droplet.x, droplet.y, resolution)

            droplet.dx = droplet.dx * inertia - gx * cfg.gravity
            droplet.dy = droplet.dy * inertia - gy * cfg.gravity
            velocity = math.hypot(droplet.dx, droplet.dy)
            if velocity > 0:
                droplet.dx = droplet.dx / velocity * droplet.speed
                droplet.dy = droplet.dy / velocity * droplet.speed

            new_x = droplet.x + droplet.dx
            new_y = droplet.y + droplet.dy
            if new_x < 1 or new_x >= resolution - 1 or new_y < 1 or new_y >= resolution - 1:
                break

            height_delta = field.sample(new_x, new_y) - old_height
            slope = max(cfg.min_slope, -height_delta)
            capacity = max(0.0, droplet.speed * droplet.water * slope * cfg.sediment_capacity)

            self._add_water(state, droplet.x, droplet.y, droplet.water)

            if droplet.sediment > capacity or height_delta > 0:
                amount = min(droplet.sediment, (droplet.sediment - capacity) * cfg.deposition_rate)
                amount = max(0.0, amount)
                droplet.sediment -= self.deposit(state, droplet.x, droplet.y, amount)
            else:
                amount = min((capacity - droplet.sediment) * cfg.erosion_strength, slope)
                droplet.sediment += self.erode(state, droplet.x, droplet.y, amount)

            droplet.x = new_x
            droplet.y = new_y
            droplet.water *= inertia
            droplet.speed = math.sqrt(droplet.speed ** 2 + max(0.0, -height_delta) * cfg.gravity)

            if droplet.water < MIN_DROPLET_WATER:
                break

        return droplet

    def erode(self, state: BasicTerrainState, x: float, y: float, amount: float) -> float:
        """
        Remove up to ``amount`` of material around ``(x, y)``.

        Each of the four cells loses its bilinear share scaled by its
        hardness and, with vegetation protection, reduced by
        ``vegetation * 0.7``.

        Returns:
            Material actually removed from the grid
        """
        if amount <= 0:
            return 0.0

        indices, weights = bilinear_footprint(x, y, state.resolution)
        protect = self.config.vegetation_protection
        removed = 0.0
        for index, weight in zip(indices, weights):
            erosion = amount * weight * state.hardness[index]
            if protect:
                erosion *= 1.0 - state.vegetation[index] * VEGETATION_SHIELDING
            state.height[index] -= erosion
            state.sediment[index] -= erosion
            removed += erosion
        return float(removed)

    def deposit(self, state: BasicTerrainState, x: float, y: float, amount: float) -> float:
        """
        Spread ``amount`` of sediment over the four cells around ``(x, y)``.

        Returns:
            Material added to the grid
        """
        if amount <= 0:
            return 0.0

        indices, weights = bilinear_footprint(x, y, state.resolution)
        for index, weight in zip(indices, weights):
            state.height[index] += amount * weight
            state.sediment[index] += amount * weight
        return float(amount)

    def _add_water(self, state: BasicTerrainState, x: float, y: float, water: float) -> None:
        indices, weights = bilinear_footprint(x, y, state.resolution)
        for index, weight in zip(indices, weights):
            state.water[index] += water * weight


def carve_river(
    simulator: HydraulicDropletSimulator,
    state: BasicTerrainState,
    start_x: float,
    start_y: float,
    end_x: float,
    end_y: float,
    steps: int = 100,
    width: int = 3,
    strength: Optional[float] = None,
) -> float:
    """
    Carve a channel along a straight path.

    The path is sampled ``steps + 1`` times; at each sample every offset
    within ``width`` cells is eroded with a linear falloff from
    ``strength`` (``riverbed_erosion`` by default) at the centre to zero
    at the edge.

    Returns:
        Total material removed
    """
    strength = simulator.config.riverbed_erosion if strength is None else strength
    removed = 0.0
    for i in range(steps + 1):
        t = i / steps
        x = start_x + (end_x - start_x) * t
        y = start_y + (end_y - start_y) * t
        for dx in range(-width, width + 1):
            for dy in range(-width, width + 1):
                distance = math.hypot(dx, dy)
                if distance <= width:
                    removed += simulator.erode(state, x + dx, y + dy, (1 - distance / width) * strength)

    logger.info("River carved", start=(start_x, start_y), end=(end_x, end_y), removed=round(removed, 4))
    return removed
