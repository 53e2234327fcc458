"""
Erosion engine: owns terrain state and drives both erosion pipelines.

Two independent models run on the same loaded heightfield:

- the basic model (droplet hydraulic erosion + thermal relaxation),
  started with ``apply_erosion()``;
- the advanced geomorphology model (uplift, D8 routing, stream power,
  diffusion, weathering, mass wasting, meandering, knickpoints and
  sediment transport), started with ``apply_advanced_erosion()`` and
  available only when ``set_height_data`` was given a real-world size.

Each model keeps its own copy of the elevation. Runs return copies, so
callers never hold references into engine state. Each run is also
exposed as a generator (``iter_erosion`` / ``iter_advanced_erosion``)
that yields after every outer iteration, letting a host interleave UI
updates or stop early.
"""

from copy import deepcopy
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Sequence, Union

import numpy as np
import structlog

from ..config import settings
from ..config.erosion_settings import AdvancedErosionConfig, ErosionConfig, build_config, merge_config
from ..exceptions import InvalidHeightfieldError, SimulationStateError
from ..utils.random import Seed, resolve_rng
from .droplet_erosion import HydraulicDropletSimulator, carve_river
from .flow_routing import FlowRouter
from .geomorphology import (
    apply_chemical_weathering,
    apply_config_changes,
    apply_hillslope_diffusion,
    apply_mass_wasting,
    apply_river_meandering,
    apply_stream_power_incision,
    build_geomorphology_state,
    migrate_knickpoints,
    simulate_glacial_erosion,
)
from .heightfield import HeightField
from .river_network import River, build_river_network
from .sediment_transport import simulate_sediment_transport
from .state import BasicTerrainState, GeomorphologyState
from .tectonics import apply_tectonic_uplift
from .thermal import ThermalRelaxation

logger = structlog.get_logger()

ProgressCallback = Callable[[float, str], None]
MIN_RESOLUTION = 3
GRADIENT_REFRESH_INTERVAL = 10


@dataclass
class ErosionResults:
    """Snapshot of the advanced model's outputs (all arrays are copies)."""

    elevation: np.ndarray
    drainage_area: np.ndarray
    stream_power: np.ndarray
    sediment_thickness: np.ndarray
    vegetation_cover: np.ndarray
    time_evolved: float
    river_network: List[River] = field(default_factory=list)
    knickpoints: List[Dict[str, float]] = field(default_factory=list)


class ErosionEngine:
    """
    Runs erosion simulations over an owned copy of a heightfield.

    Not thread-safe: run one simulation per engine at a time.
    """

    def __init__(
        self,
        config: Optional[Union[ErosionConfig, Mapping[str, Any]]] = None,
        advanced_config: Optional[Union[AdvancedErosionConfig, Mapping[str, Any]]] = None,
        rng: Optional[np.random.Generator] = None,
        seed: Seed = None,
    ):
        """
        Initialize the engine.

        Args:
            config: Basic model configuration or a partial mapping of it
            advanced_config: Advanced model configuration or a partial mapping of it
            rng: Random generator shared by every stochastic process
            seed: Seed used to build a generator when ``rng`` is not given;
                falls back to ``settings.default_seed``
        """
        self.config = config if isinstance(config, ErosionConfig) else build_config(ErosionConfig, config)
        self.advanced_config = (
            advanced_config
            if isinstance(advanced_config, AdvancedErosionConfig)
            else build_config(AdvancedErosionConfig, advanced_config)
        )
        self.rng = resolve_rng(rng, settings.default_seed if seed is None else seed)

        self.resolution = 0
        self.basic_state: Optional[BasicTerrainState] = None
        self.geomorph_state: Optional[GeomorphologyState] = None
        self.flow_router: Optional[FlowRouter] = None

        self._gradient_x: Optional[np.ndarray] = None
        self._gradient_y: Optional[np.ndarray] = None
        self._basic_steps = 0
        self._progress_callback: Optional[ProgressCallback] = None

    # ------------------------------------------------------------------
    # State loading
    # ------------------------------------------------------------------

    def set_height_data(
        self,
        elevation: Union[np.ndarray, Sequence[float]],
        resolution: int,
        real_world_size: Optional[float] = None,
    ) -> None:
        """
        Load a heightfield, replacing all previous state.

        The basic model is always initialised. The advanced model is
        initialised only when ``real_world_size`` (terrain side length in
        metres) is given.

        Args:
            elevation: ``resolution ** 2`` samples, flat row-major or 2-D ``(y, x)``
            resolution: Samples per side
            real_world_size: Terrain side length in metres

        Raises:
            InvalidHeightfieldError: If the grid size, buffer or world size is unusable
            ErosionConfigError: If the lithology overrides do not match the grid;
                previously loaded state is kept
        """
        heights = self._validate_heightfield(elevation, resolution, real_world_size)

        geomorph_state = None
        if real_world_size is not None:
            geomorph_state = build_geomorphology_state(
                heights, resolution, float(real_world_size), self.advanced_config
            )
        basic_state = BasicTerrainState.from_heights(
            heights, resolution, self.rng, vegetation_protection=self.config.vegetation_protection
        )

        self.resolution = resolution
        self.basic_state = basic_state
        self.geomorph_state = geomorph_state
        self.flow_router = None if geomorph_state is None else FlowRouter(resolution, geomorph_state.cell_size)
        self._basic_steps = 0
        self._refresh_gradients()
        if geomorph_state is not None:
            self._route_flow()

        logger.info("Height data loaded",
                    resolution=resolution,
                    advanced=self.geomorph_state is not None,
                    min_height=float(heights.min()),
                    max_height=float(heights.max()))

    def _validate_heightfield(self, elevation, resolution: int, real_world_size: Optional[float]) -> np.ndarray:
        if isinstance(resolution, bool) or not isinstance(resolution, (int, np.integer)):
            raise InvalidHeightfieldError(f"Resolution must be an integer, got {resolution!r}")
        if resolution < MIN_RESOLUTION:
            raise InvalidHeightfieldError(f"Resolution must be at least {MIN_RESOLUTION}, got {resolution}")
        if resolution > settings.max_resolution:
            raise InvalidHeightfieldError(
                f"Resolution {resolution} exceeds the configured maximum of {settings.max_resolution}"
            )

        heights = np.asarray(elevation, dtype=np.float64)
        if heights.ndim == 2 and heights.shape == (resolution, resolution):
            heights = heights.ravel()
        if heights.shape != (resolution * resolution,):
            raise InvalidHeightfieldError(
                f"Expected {resolution * resolution} samples for resolution {resolution}, got shape {heights.shape}"
            )
        if not np.all(np.isfinite(heights)):
            raise InvalidHeightfieldError("Heightfield contains NaN or infinite samples")

        if real_world_size is not None and not (np.isfinite(real_world_size) and real_world_size > 0):
            raise InvalidHeightfieldError(f"Real-world size must be positive, got {real_world_size}")

        return heights

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def update_config(self, partial: Optional[Mapping[str, Any]] = None, **changes: Any) -> None:
        """Merge changes into the basic model configuration."""
        self.config = merge_config(self.config, {**(partial or {}), **changes})

    def get_config(self) -> ErosionConfig:
        return self.config.model_copy(deep=True)

    def update_advanced_config(self, partial: Optional[Mapping[str, Any]] = None, **changes: Any) -> None:
        """
        Deep-merge changes into the advanced model configuration.

        While advanced state is loaded, arrays derived from the changed
        settings are re-derived: temperature from ``climate.temperature``,
        hardness and solubility from ``lithology``, and the sediment load
        when the number of grain classes changes. Vegetation cover is
        left as it has evolved.

        Raises:
            ErosionConfigError: If the merged configuration is invalid; the
                previous configuration and state are kept
        """
        previous = self.advanced_config
        updated = merge_config(previous, {**(partial or {}), **changes})

        if self.geomorph_state is not None:
            refreshed = apply_config_changes(self.geomorph_state, previous, updated)
            if refreshed:
                logger.info("Advanced state refreshed for new configuration", fields=refreshed)
        self.advanced_config = updated

    def get_advanced_config(self) -> AdvancedErosionConfig:
        return self.advanced_config.model_copy(deep=True)

    def set_progress_callback(self, callback: Optional[ProgressCallback]) -> None:
        """Register ``callback(progress, description)``, called periodically during runs."""
        self._progress_callback = callback

    def _report_progress(self, progress: float, description: str) -> None:
        logger.debug("Erosion progress", percent=round(progress * 100), description=description)
        if self._progress_callback is not None:
            self._progress_callback(progress, description)

    # ------------------------------------------------------------------
    # Basic model
    # ------------------------------------------------------------------

    def _require_basic(self) -> BasicTerrainState:
        if self.basic_state is None:
            raise SimulationStateError("No height data loaded; call set_height_data() first")
        return self.basic_state

    def _refresh_gradients(self) -> None:
        field = HeightField(self.basic_state.height, self.resolution)
        self._gradient_x, self._gradient_y = field.gradient_field()

    def step_erosion(self) -> None:
        """
        Run one basic-model iteration: a droplet batch, then thermal relaxation.

        The cached gradient field is refreshed after every tenth step
        (counting from the first step after loading).
        """
        state = self._require_basic()
        droplets = HydraulicDropletSimulator(self.config, self.rng)
        droplets.run_iteration(state, self._gradient_x, self._gradient_y)
        ThermalRelaxation(self.config).apply(state.height, state.resolution)

        if self._basic_steps % GRADIENT_REFRESH_INTERVAL == 0:
            self._refresh_gradients()
        self._basic_steps += 1

    def iter_erosion(self) -> Iterator[int]:
        """
        Run the basic model one iteration at a time.

        Yields:
            Number of iterations completed so far in this run
        """
        self._require_basic()
        iterations = self.config.iterations
        interval = settings.progress_interval
        logger.info("Starting erosion simulation", iterations=iterations, resolution=self.resolution)

        for iteration in range(iterations):
            self.step_erosion()
            if iteration % interval == 0:
                self._report_progress(iteration / iterations, f"Erosion iteration {iteration}/{iterations}")
            yield iteration + 1

        self._report_progress(1.0, "Erosion complete")
        logger.info("Erosion simulation complete", iterations=iterations)

    def apply_erosion(self) -> np.ndarray:
        """
        Run the basic model to completion.

        Returns:
            Copy of the eroded elevation buffer
        """
        for _ in self.iter_erosion():
            pass
        return self.basic_state.height.copy()

    def get_height_data(self) -> np.ndarray:
        """Copy of the basic model's current elevation."""
        return self._require_basic().height.copy()

    def get_water_flow(self) -> np.ndarray:
        """Droplet water that passed through each cell since loading."""
        return self._require_basic().water.copy()

    def get_sediment_map(self) -> np.ndarray:
        """Net deposition (positive) or erosion (negative) per cell since loading."""
        return self._require_basic().sediment.copy()

    def create_river_erosion(self, start_x: float, start_y: float, end_x: float, end_y: float) -> float:
        """
        Carve a river channel between two grid points in the basic model.

        Returns:
            Total material removed
        """
        state = self._require_basic()
        removed = carve_river(HydraulicDropletSimulator(self.config, self.rng), state,
                              start_x, start_y, end_x, end_y)
        self._refresh_gradients()
        return removed

    # ------------------------------------------------------------------
    # Advanced model
    # ------------------------------------------------------------------

    def _require_advanced(self) -> GeomorphologyState:
        if self.geomorph_state is None:
            raise SimulationStateError(
                "Advanced model not initialised; call set_height_data() with real_world_size"
            )
        return self.geomorph_state

    def _route_flow(self) -> int:
        state = self.geomorph_state
        self.flow_router.route(state)
        law = self.advanced_config.stream_power_law
        return self.flow_router.identify_channels(state, law.critical_drainage, self.advanced_config.climate.precipitation)

    def step_advanced_erosion(self) -> None:
        """Run one advanced-model iteration and advance the clock by one time step."""
        state = self._require_advanced()
        cfg = self.advanced_config
        features = cfg.advanced

        apply_tectonic_uplift(state, cfg.tectonics, features.time_step, self.rng)
        self._route_flow()
        apply_stream_power_incision(state, cfg)
        apply_hillslope_diffusion(state, cfg)

        if features.enable_chemical_weathering:
            apply_chemical_weathering(state, cfg)
        if features.enable_mass_wasting:
            apply_mass_wasting(state)
        if features.enable_meandering:
            apply_river_meandering(state, cfg, self.rng)
        if features.enable_knickpoint_migration:
            state.knickpoints = migrate_knickpoints(state, cfg)

        simulate_sediment_transport(state, cfg.sediment_transport, features.time_step)
        state.time_evolved += features.time_step

    def iter_advanced_erosion(self) -> Iterator[int]:
        """
        Run the advanced model one time step at a time.

        Yields:
            Number of iterations completed so far in this run
        """
        state = self._require_advanced()
        features = self.advanced_config.advanced
        iterations = features.iterations
        interval = settings.progress_interval
        logger.info("Starting geomorphological simulation",
                    iterations=iterations,
                    time_step=features.time_step,
                    cell_size=state.cell_size)

        if features.enable_glacial_erosion:
            simulate_glacial_erosion(state)

        for iteration in range(iterations):
            self.step_advanced_erosion()
            if iteration % interval == 0:
                self._report_progress(
                    iteration / iterations,
                    f"Geomorphological evolution: {state.time_evolved:g} years",
                )
            yield iteration + 1

        self._report_progress(1.0, f"Simulation complete: {state.time_evolved:g} years")
        logger.info("Geomorphological simulation complete",
                    years=state.time_evolved,
                    channels=int(state.is_channel.sum()),
                    knickpoints=len(state.knickpoints))

    def apply_advanced_erosion(self) -> np.ndarray:
        """
        Run the advanced model for ``total_time / time_step`` iterations.

        Returns:
            Copy of the evolved elevation buffer
        """
        for _ in self.iter_advanced_erosion():
            pass
        return self.geomorph_state.elevation.copy()

    def simulate_glacial_erosion(self) -> None:
        simulate_glacial_erosion(self._require_advanced())

    def create_realistic_river_network(self) -> List[River]:
        """
        Trace the dendritic river network from current flow directions.

        The network is stored and reported by ``get_erosion_results()``.
        """
        state = self._require_advanced()
        state.river_network = build_river_network(state, self.advanced_config.stream_power_law.critical_drainage)
        return deepcopy(state.river_network)

    def get_erosion_results(self) -> ErosionResults:
        """Copies of the advanced model's main outputs."""
        state = self._require_advanced()
        return ErosionResults(
            elevation=state.elevation.copy(),
            drainage_area=state.drainage_area.copy(),
            stream_power=state.stream_power.copy(),
            sediment_thickness=state.sediment_thickness.copy(),
            vegetation_cover=state.vegetation_cover.copy(),
            time_evolved=state.time_evolved,
            river_network=deepcopy(state.river_network),
            knickpoints=deepcopy(state.knickpoints),
        )
