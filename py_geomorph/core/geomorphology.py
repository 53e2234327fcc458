"""
Geomorphological processes for the advanced erosion model.

This module implements:
- Lithology, vegetation and temperature initialisation
- Stream-power channel incision (E = K * A^m * S^n)
- Hillslope diffusion (soil creep with freeze-thaw and steep-slope terms)
- Chemical weathering
- Mass wasting along the flow direction
- River meandering (lateral bank erosion)
- Knickpoint migration

Every process is a single pass over a ``GeomorphologyState`` that reads
the flow routing computed earlier in the same iteration. All rates are
heuristic; absolute values are scaled for visual plausibility rather
than field accuracy.
"""

import math
from typing import Dict, List, Optional

import numpy as np
import structlog
from scipy import ndimage

from ..config.erosion_settings import AdvancedErosionConfig, DiffusionSettings
from ..exceptions import ErosionConfigError
from .flow_routing import receiver_offsets
from .heightfield import HeightField
from .state import NO_FLOW, GeomorphologyState

logger = structlog.get_logger()

LAPSE_RATE = 6.5 / 1000  # degrees C per metre
TREELINE_ELEVATION = 1000.0
MAX_VEGETATED_SLOPE = math.radians(45.0)
FREEZE_THAW_TEMPERATURE = 5.0
MASS_WASTING_ANGLE = math.radians(35.0)
MASS_WASTING_RETENTION = 0.8
MEANDER_MIN_DISCHARGE = 1.0
MEANDER_MATURITY_YEARS = 1000.0
KNICKPOINT_SLOPE = 0.1
BASE_WEATHERING_RATE = 1e-8
DIFFUSION_STABILITY_LIMIT = 0.25
MAX_DIFFUSION_SUBSTEPS = 1000

LAPLACIAN_KERNEL = np.array([
    [0.0, 1.0, 0.0],
    [1.0, -4.0, 1.0],
    [0.0, 1.0, 0.0],
])


def local_slope(state: GeomorphologyState) -> np.ndarray:
    """Central-difference gradient magnitude (m/m), zero on the border."""
    return HeightField(state.elevation, state.resolution).local_slope(state.cell_size)


def _octave_noise(x: np.ndarray, y: np.ndarray, seed: float) -> np.ndarray:
    value = np.zeros_like(x, dtype=np.float64)
    amplitude = 1.0
    frequency = 1.0
    for _ in range(4):
        value += amplitude * np.sin(frequency * x + seed) * np.cos(frequency * y + seed * 2)
        amplitude *= 0.5
        frequency *= 2.0
    return (value + 1.0) / 2.0


def layered_hardness(resolution: int) -> np.ndarray:
    """Default rock hardness in ``[0, 1]``: two smooth octave fields, coarse and fine."""
    n_cells = resolution * resolution
    ys, xs = np.divmod(np.arange(n_cells, dtype=np.float64), resolution)
    coarse = _octave_noise(xs * 0.01, ys * 0.01, 42.0)
    fine = _octave_noise(xs * 0.05, ys * 0.05, 123.0)
    return np.clip(0.3 + 0.4 * coarse + 0.3 * fine, 0.0, 1.0)


def _cell_override(values: Optional[List[float]], n_cells: int, name: str) -> Optional[np.ndarray]:
    if values is None:
        return None
    if len(values) != n_cells:
        raise ErosionConfigError(f"lithology.{name} has {len(values)} values, grid has {n_cells} cells")
    return np.asarray(values, dtype=np.float64)


def build_geomorphology_state(
    elevation: np.ndarray,
    resolution: int,
    real_world_size: float,
    config: AdvancedErosionConfig,
) -> GeomorphologyState:
    """
    Create advanced-model state for a heightfield.

    Rock hardness comes from ``lithology.hardness`` when given, otherwise
    from a smooth layered field in ``[0, 1]``. Vegetation falls off with
    elevation (treeline) and slope; temperature follows a 6.5 C/km lapse
    rate from the configured sea-level temperature.

    Args:
        elevation: Flat elevation buffer in metres (copied)
        resolution: Samples per side
        real_world_size: Side length of the terrain in metres
        config: Advanced model configuration
    """
    n_cells = resolution * resolution
    cell_size = real_world_size / resolution

    hardness = _cell_override(config.lithology.hardness, n_cells, "hardness")
    if hardness is None:
        hardness = layered_hardness(resolution)
    solubility = _cell_override(config.lithology.solubility, n_cells, "solubility")

    elevation = np.array(elevation, dtype=np.float64, copy=True)
    slope_angle = np.arctan(HeightField(elevation, resolution).local_slope(cell_size))

    vegetation = np.full(n_cells, config.climate.vegetation_cover, dtype=np.float64)
    vegetation *= np.maximum(0.0, 1.0 - elevation / TREELINE_ELEVATION)
    vegetation *= np.maximum(0.1, 1.0 - slope_angle / MAX_VEGETATED_SLOPE)
    vegetation = np.clip(vegetation, 0.0, 1.0)

    temperature = config.climate.temperature - elevation * LAPSE_RATE

    return GeomorphologyState(
        resolution=resolution,
        cell_size=cell_size,
        grain_count=len(config.sediment_transport.grain_sizes),
        elevation=elevation,
        rock_hardness=hardness,
        vegetation_cover=vegetation,
        temperature=temperature,
        solubility=solubility,
    )


def apply_config_changes(
    state: GeomorphologyState,
    previous: AdvancedErosionConfig,
    config: AdvancedErosionConfig,
) -> List[str]:
    """
    Re-derive state arrays that depend on configuration that changed.

    Temperature is recomputed from the current elevation when the
    sea-level temperature changes. Hardness and solubility are replaced
    when the lithology changes. Sediment load is reset when the number
    of grain classes changes. Vegetation is not re-derived: it evolves
    with weathering, and ``climate.vegetation_cover`` only seeds a
    newly loaded heightfield.

    Lithology overrides are validated before anything is modified.

    Returns:
        Names of the refreshed fields
    """
    n_cells = state.n_cells
    lithology_changed = config.lithology != previous.lithology
    if lithology_changed:
        hardness = _cell_override(config.lithology.hardness, n_cells, "hardness")
        solubility = _cell_override(config.lithology.solubility, n_cells, "solubility")

    refreshed = []
    if config.climate.temperature != previous.climate.temperature:
        state.temperature = config.climate.temperature - state.elevation * LAPSE_RATE
        refreshed.append("temperature")

    if lithology_changed:
        state.rock_hardness = hardness if hardness is not None else layered_hardness(state.resolution)
        state.solubility = solubility
        refreshed.extend(["rock_hardness", "solubility"])

    grain_count = len(config.sediment_transport.grain_sizes)
    if grain_count != state.grain_count:
        state.grain_count = grain_count
        state.sediment_load = np.zeros(n_cells * grain_count, dtype=np.float64)
        refreshed.append("sediment_load")

    return refreshed


def apply_stream_power_incision(state: GeomorphologyState, config: AdvancedErosionConfig) -> float:
    """
    Incise channel cells with the stream power law.

    ``K`` is the incision constant scaled by rock hardness. The rate is
    multiplied by ``precipitation / 1000`` and by
    ``1 - vegetation * 0.8``. Cells with zero slope (including the
    border) are not incised. ``state.stream_power`` is refreshed for all
    cells (zero off-channel).

    Returns:
        Total elevation removed
    """
    law = config.stream_power_law
    slope = local_slope(state)
    active = state.is_channel & (slope > 0)

    stream_power = np.zeros(state.n_cells, dtype=np.float64)
    k = law.incision_constant * state.rock_hardness[active]
    stream_power[active] = k * state.drainage_area[active] ** law.area_exponent * slope[active] ** law.slope_exponent
    state.stream_power = stream_power

    climate_multiplier = config.climate.precipitation / 1000.0
    protection = 1.0 - state.vegetation_cover * 0.8
    incision = stream_power * climate_multiplier * protection * config.advanced.time_step
    state.elevation -= incision
    return float(incision.sum())


def _diffusion_pass(state: GeomorphologyState, settings: DiffusionSettings, time_step: float) -> None:
    res = state.resolution
    snapshot = state.elevation.copy()
    slope_angle = np.arctan(HeightField(snapshot, res).local_slope(state.cell_size))

    diffusivity = settings.soil_diffusivity * (1.0 - state.vegetation_cover * 0.5)
    diffusivity = np.where(state.temperature < FREEZE_THAW_TEMPERATURE, diffusivity * 1.5, diffusivity)
    steep_excess = np.maximum(0.0, slope_angle - settings.critical_slope)
    diffusivity = diffusivity + settings.thermal_diffusivity * steep_excess

    laplacian = ndimage.convolve(snapshot.reshape(res, res), LAPLACIAN_KERNEL, mode="nearest")
    change = (diffusivity.reshape(res, res) * laplacian) * time_step / state.cell_area

    updated = snapshot.reshape(res, res).copy()
    updated[1:-1, 1:-1] += change[1:-1, 1:-1]
    state.elevation = updated.ravel()


def diffusion_substeps(state: GeomorphologyState, config: AdvancedErosionConfig) -> int:
    """
    Number of explicit sub-steps needed to keep ``D * dt / cell_area``
    at or below ``DIFFUSION_STABILITY_LIMIT``.

    ``D`` is bounded above by the largest soil diffusivity on the grid
    plus the thermal term at a vertical slope.

    Raises:
        ErosionConfigError: If more than ``MAX_DIFFUSION_SUBSTEPS`` would be needed
    """
    settings = config.diffusion
    soil = settings.soil_diffusivity * (1.0 - state.vegetation_cover * 0.5)
    soil = np.where(state.temperature < FREEZE_THAW_TEMPERATURE, soil * 1.5, soil)
    max_diffusivity = float(soil.max(initial=0.0))
    max_diffusivity += settings.thermal_diffusivity * max(0.0, math.pi / 2 - settings.critical_slope)

    ratio = max_diffusivity * config.advanced.time_step / state.cell_area
    steps = max(1, math.ceil(ratio / DIFFUSION_STABILITY_LIMIT))
    if steps > MAX_DIFFUSION_SUBSTEPS:
        raise ErosionConfigError(
            f"hillslope diffusion needs {steps} sub-steps for cell size {state.cell_size} m "
            f"and time step {config.advanced.time_step}; reduce time_step or diffusivity"
        )
    return steps


def apply_hillslope_diffusion(state: GeomorphologyState, config: AdvancedErosionConfig) -> None:
    """
    Diffuse elevation with an explicit 4-neighbour Laplacian.

    Diffusivity is reduced by vegetation (``1 - cover * 0.5``), raised by
    half below 5 C (freeze-thaw), and gains a thermal term proportional
    to how far the slope angle exceeds the critical slope. Each sub-step
    reads one snapshot. The time step is split so the explicit scheme
    stays stable on small cells. Border cells are left unchanged.
    """
    steps = diffusion_substeps(state, config)
    if steps > 1:
        logger.debug("Hillslope diffusion sub-stepped", substeps=steps)
    sub_dt = config.advanced.time_step / steps
    for _ in range(steps):
        _diffusion_pass(state, config.diffusion, sub_dt)


def apply_chemical_weathering(state: GeomorphologyState, config: AdvancedErosionConfig) -> float:
    """
    Lower every cell by a temperature, rainfall and rock dependent rate.

    Temperature acts through ``exp((T - 15) / 10)``, precipitation through
    ``min(2, P / 1000)``, and rock through its solubility: the lithology
    override if set, otherwise 2.0 for soft rock (hardness < 0.5) and 0.5
    for hard rock. Weathering thickens soil, which raises vegetation cover.

    Returns:
        Total elevation removed
    """
    temperature_effect = np.exp((state.temperature - 15.0) / 10.0)
    precipitation_effect = min(2.0, config.climate.precipitation / 1000.0)
    if state.solubility is not None:
        solubility = state.solubility
    else:
        solubility = np.where(state.rock_hardness < 0.5, 2.0, 0.5)

    rate = (BASE_WEATHERING_RATE * temperature_effect * precipitation_effect * solubility
            * config.advanced.time_step)
    state.elevation -= rate

    growing = rate > 0
    state.vegetation_cover[growing] = np.minimum(1.0, state.vegetation_cover[growing] + rate[growing] * 1000.0)
    return float(rate.sum())


def apply_mass_wasting(state: GeomorphologyState) -> int:
    """
    Slide material off slopes steeper than 35 degrees.

    Each failing cell drops ``0.1 * (slope_angle - 35 deg)`` metres
    towards its flow receiver, which gains 80% of it. Vegetation on the
    failing cell is halved. Slopes are evaluated once before any
    material moves.

    Returns:
        Number of landslides
    """
    slope_angle = np.arctan(local_slope(state))
    failing = (slope_angle > MASS_WASTING_ANGLE) & (state.receivers != NO_FLOW)
    sources = np.flatnonzero(failing)
    if sources.size == 0:
        return 0

    drop = (slope_angle[sources] - MASS_WASTING_ANGLE) * 0.1
    state.vegetation_cover[sources] *= 0.5
    np.subtract.at(state.elevation, sources, drop)
    np.add.at(state.elevation, state.receivers[sources], drop * MASS_WASTING_RETENTION)
    return int(sources.size)


def apply_river_meandering(state: GeomorphologyState, config: AdvancedErosionConfig, rng: np.random.Generator) -> int:
    """
    Erode channel banks sideways.

    Channels with discharge of at least 1 m^3/s age by one time step per
    iteration. Once older than 1000 years, each picks a random side
    perpendicular to its flow and erodes that neighbour by
    ``discharge * 1e-8 * time_step``; half of that is recorded as bank
    height on the channel cell.

    Returns:
        Number of cells that eroded a bank
    """
    res = state.resolution
    time_step = config.advanced.time_step
    meandering = state.is_channel & (state.discharge >= MEANDER_MIN_DISCHARGE)
    state.meander_age[meandering] += time_step

    mature = np.flatnonzero(meandering & (state.meander_age > MEANDER_MATURITY_YEARS)
                            & (state.flow_direction != NO_FLOW))
    if mature.size == 0:
        return 0

    side = np.where(rng.random(mature.size) > 0.5, 1, -1)
    flow_dx, flow_dy = receiver_offsets(state.flow_direction[mature])
    ys, xs = np.divmod(mature, res)
    target_x = xs - flow_dy * side
    target_y = ys + flow_dx * side

    inside = (target_x >= 0) & (target_x < res) & (target_y >= 0) & (target_y < res)
    cells = mature[inside]
    targets = target_y[inside] * res + target_x[inside]
    erosion = state.discharge[cells] * 1e-8 * time_step

    np.subtract.at(state.elevation, targets, erosion)
    state.bank_height[cells] += erosion * 0.5
    return int(cells.size)


def migrate_knickpoints(state: GeomorphologyState, config: AdvancedErosionConfig) -> List[Dict[str, float]]:
    """
    Propagate steep channel reaches upstream.

    A channel cell whose slope exceeds 0.1 is a knickpoint. Every cell
    that drains directly into a knickpoint is lowered by
    ``stream_power * 1e-6 * time_step`` of that knickpoint. Donors are
    found through the receiver array rather than by scanning all cells.

    Returns:
        Knickpoints as ``{"x", "y", "elevation"}`` records
    """
    slope = local_slope(state)
    is_knickpoint = state.is_channel & (slope > KNICKPOINT_SLOPE)
    knick_cells = np.flatnonzero(is_knickpoint)

    migration_rate = state.stream_power * 1e-6 * config.advanced.time_step
    donors = np.flatnonzero(state.receivers != NO_FLOW)
    donors = donors[is_knickpoint[state.receivers[donors]]]
    state.elevation[donors] -= migration_rate[state.receivers[donors]]

    ys, xs = np.divmod(knick_cells, state.resolution)
    return [
        {"x": int(x), "y": int(y), "elevation": float(state.elevation[i])}
        for x, y, i in zip(xs, ys, knick_cells)
    ]


def simulate_glacial_erosion(state: GeomorphologyState) -> None:
    """Glacial erosion is not modelled; this hook leaves the terrain unchanged."""
    logger.warning("Glacial erosion is not modelled; skipping", cells=state.n_cells)
