"""
Simulation state containers.

Both models store one flat numpy array per cell attribute
(struct-of-arrays). The advanced model's per-grain sediment load is a
single flat buffer indexed ``cell * grain_count + grain``.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np

NO_FLOW = -1


@dataclass
class BasicTerrainState:
    """Per-cell state of the droplet + thermal model."""

    resolution: int
    height: np.ndarray
    water: np.ndarray
    sediment: np.ndarray
    vegetation: np.ndarray
    hardness: np.ndarray

    @classmethod
    def from_heights(
        cls,
        heights: np.ndarray,
        resolution: int,
        rng: np.random.Generator,
        vegetation_protection: bool = False,
    ) -> "BasicTerrainState":
        """
        Build state from an elevation buffer.

        Hardness (0.5-1.0) and initial vegetation (0-0.5, only when
        protection is enabled) are drawn once here and never recomputed.
        """
        n_cells = resolution * resolution
        hardness = 0.5 + rng.random(n_cells) * 0.5
        if vegetation_protection:
            vegetation = rng.random(n_cells) * 0.5
        else:
            vegetation = np.zeros(n_cells, dtype=np.float64)

        return cls(
            resolution=resolution,
            height=np.array(heights, dtype=np.float64, copy=True),
            water=np.zeros(n_cells, dtype=np.float64),
            sediment=np.zeros(n_cells, dtype=np.float64),
            vegetation=vegetation,
            hardness=hardness,
        )

    @property
    def n_cells(self) -> int:
        return self.resolution * self.resolution


@dataclass
class GeomorphologyState:
    """Per-cell state of the advanced geomorphology model."""

    resolution: int
    cell_size: float
    grain_count: int
    elevation: np.ndarray
    rock_hardness: np.ndarray
    vegetation_cover: np.ndarray
    temperature: np.ndarray
    solubility: Optional[np.ndarray] = None

    # Flow routing outputs
    drainage_area: np.ndarray = None
    flow_accumulation: np.ndarray = None
    flow_direction: np.ndarray = None  # D8 code 0-7, NO_FLOW for pits/outlets
    receivers: np.ndarray = None  # downstream cell index, NO_FLOW for pits/outlets

    # Channel hydraulics
    is_channel: np.ndarray = None
    discharge: np.ndarray = None
    velocity: np.ndarray = None
    stream_power: np.ndarray = None
    bank_height: np.ndarray = None
    meander_age: np.ndarray = None

    # Sediment
    sediment_thickness: np.ndarray = None
    sediment_load: np.ndarray = None

    time_evolved: float = 0.0
    knickpoints: List[Dict[str, float]] = field(default_factory=list)
    river_network: List[Any] = field(default_factory=list)  # River records

    def __post_init__(self):
        n_cells = self.n_cells
        for name in ("drainage_area", "flow_accumulation", "discharge", "velocity",
                     "stream_power", "bank_height", "meander_age", "sediment_thickness"):
            if getattr(self, name) is None:
                setattr(self, name, np.zeros(n_cells, dtype=np.float64))
        if self.flow_direction is None:
            self.flow_direction = np.full(n_cells, NO_FLOW, dtype=np.int8)
        if self.receivers is None:
            self.receivers = np.full(n_cells, NO_FLOW, dtype=np.int64)
        if self.is_channel is None:
            self.is_channel = np.zeros(n_cells, dtype=bool)
        if self.sediment_load is None:
            self.sediment_load = np.zeros(n_cells * self.grain_count, dtype=np.float64)

    @property
    def n_cells(self) -> int:
        return self.resolution * self.resolution

    @property
    def cell_area(self) -> float:
        return self.cell_size * self.cell_size

    @property
    def sediment_load_by_grain(self) -> np.ndarray:
        """``(cells, grains)`` view onto the flat sediment load buffer."""
        return self.sediment_load.reshape(self.n_cells, self.grain_count)
