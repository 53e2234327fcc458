"""
Configuration models for the erosion simulations.

This module defines the tunable coefficients for both pipelines,
including validation rules, limits, and default values. The basic
model (droplets + thermal relaxation) and the advanced geomorphology
model are configured independently.
"""

import math
from typing import Any, Dict, List, Literal, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel, Field, ValidationError, field_validator

from ..exceptions import ErosionConfigError

ConfigT = TypeVar("ConfigT", bound=BaseModel)


class ErosionConfig(BaseModel):
    """Settings for the basic droplet + thermal erosion model."""

    # Hydraulic erosion
    rain_strength: float = Field(default=0.02, ge=0.0, description="Initial water volume of each droplet")
    evaporation_rate: float = Field(default=0.01, ge=0.0, le=1.0, description="Fraction of water and inertia lost per step")
    sediment_capacity: float = Field(default=4.0, ge=0.0, description="Sediment carrying capacity factor")
    deposition_rate: float = Field(default=0.3, ge=0.0, le=1.0, description="Fraction of excess sediment dropped per step")
    erosion_strength: float = Field(default=0.3, ge=0.0, description="Fraction of spare capacity eroded per step")
    min_slope: float = Field(default=0.01, ge=0.0, description="Lower bound on slope used for capacity")
    gravity: float = Field(default=4.0, ge=0.0, description="Downhill acceleration factor")

    # Thermal erosion
    thermal_rate: float = Field(default=0.1, ge=0.0, le=1.0, description="Fraction of talus excess moved per pass")
    angle_of_repose: float = Field(default=35.0, ge=0.0, lt=90.0, description="Maximum stable slope in degrees")

    # Simulation
    iterations: int = Field(default=100, ge=0, description="Outer iterations per run")
    droplet_lifetime: int = Field(default=30, ge=1, description="Maximum steps per droplet")
    droplet_speed: float = Field(default=1.0, gt=0.0, description="Initial droplet speed in cells per step")

    # Extras
    vegetation_protection: bool = Field(default=False, description="Seed vegetation that shields cells from erosion")
    riverbed_erosion: float = Field(default=1.5, ge=0.0, description="Peak carving strength for manual rivers")

    @property
    def max_talus_slope(self) -> float:
        """Tangent of the angle of repose."""
        return math.tan(math.radians(self.angle_of_repose))


class StreamPowerLawSettings(BaseModel):
    """Coefficients of E = K * A^m * S^n."""

    incision_constant: float = Field(default=1e-6, ge=0.0, description="K, scaled per cell by rock hardness")
    area_exponent: float = Field(default=0.5, ge=0.0, description="m, typically 0.4-0.6")
    slope_exponent: float = Field(default=1.0, ge=0.0, description="n, typically 0.8-1.2")
    critical_drainage: float = Field(default=1000.0, ge=0.0, description="Minimum drainage area (m^2) for a channel")


class DiffusionSettings(BaseModel):
    """Hillslope creep parameters."""

    soil_diffusivity: float = Field(default=0.01, ge=0.0, description="Soil creep rate (m^2/year)")
    thermal_diffusivity: float = Field(default=0.001, ge=0.0, description="Extra diffusivity per radian above critical slope")
    critical_slope: float = Field(
        default=math.radians(35.0), ge=0.0, lt=math.pi / 2, description="Critical slope angle in radians"
    )


class SedimentTransportSettings(BaseModel):
    """Multi-grain sediment transport parameters."""

    grain_sizes: List[float] = Field(
        default_factory=lambda: [0.1, 1.0, 10.0, 100.0], min_length=1, description="Grain size classes in mm"
    )
    transport_capacity: float = Field(default=1.0, ge=0.0, description="Scaling of entrainment rates")
    deposition_rate: float = Field(default=0.1, ge=0.0, le=1.0, description="Fraction of load deposited per step")
    abrasion_rate: float = Field(default=0.001, ge=0.0, le=1.0, description="Fraction of load lost to attrition per step")

    @field_validator("grain_sizes")
    @classmethod
    def _positive_grains(cls, value: List[float]) -> List[float]:
        if any(size <= 0 for size in value):
            raise ValueError("grain sizes must be positive")
        return value


class FaultLine(BaseModel):
    """Fault trace in grid coordinates with a throw rate."""

    x1: float
    y1: float
    x2: float
    y2: float
    offset: float = Field(description="Vertical offset rate (mm/year) applied with opposite sign on each side")


class TectonicSettings(BaseModel):
    """Uplift and faulting parameters."""

    uplift_rate: float = Field(default=0.1, description="Uplift rate in mm/year")
    uplift_pattern: Literal["uniform", "dome", "ridge", "random"] = Field(default="uniform")
    fault_lines: List[FaultLine] = Field(default_factory=list)


class ClimateSettings(BaseModel):
    """Climate inputs shared by all advanced processes."""

    precipitation: float = Field(default=1000.0, ge=0.0, description="Precipitation in mm/year")
    temperature: float = Field(default=15.0, description="Sea-level mean temperature in degrees C")
    vegetation_cover: float = Field(default=0.5, ge=0.0, le=1.0, description="Baseline vegetation cover fraction")


class AdvancedFeatureSettings(BaseModel):
    """Process toggles and time stepping."""

    enable_meandering: bool = True
    enable_mass_wasting: bool = True
    enable_glacial_erosion: bool = False
    enable_chemical_weathering: bool = True
    enable_knickpoint_migration: bool = True
    time_step: float = Field(default=100.0, gt=0.0, description="Years per iteration")
    total_time: float = Field(default=10000.0, ge=0.0, description="Total simulated years per run")

    @property
    def iterations(self) -> int:
        return int(self.total_time // self.time_step)


class LithologySettings(BaseModel):
    """Optional per-cell rock property overrides (flat, row-major)."""

    hardness: Optional[List[float]] = None
    solubility: Optional[List[float]] = None


class AdvancedErosionConfig(BaseModel):
    """Settings for the advanced geomorphology model."""

    stream_power_law: StreamPowerLawSettings = Field(default_factory=StreamPowerLawSettings)
    diffusion: DiffusionSettings = Field(default_factory=DiffusionSettings)
    sediment_transport: SedimentTransportSettings = Field(default_factory=SedimentTransportSettings)
    tectonics: TectonicSettings = Field(default_factory=TectonicSettings)
    climate: ClimateSettings = Field(default_factory=ClimateSettings)
    advanced: AdvancedFeatureSettings = Field(default_factory=AdvancedFeatureSettings)
    lithology: LithologySettings = Field(default_factory=LithologySettings)


def _deep_merge(base: Dict[str, Any], update: Mapping[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in update.items():
        if isinstance(value, BaseModel):
            value = value.model_dump()
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def build_config(model: Type[ConfigT], values: Optional[Mapping[str, Any]] = None) -> ConfigT:
    """
    Validate ``values`` into ``model``.

    Raises:
        ErosionConfigError: If any value fails validation or is not a known field
    """
    _reject_unknown_keys(model, values or {})
    try:
        return model.model_validate(dict(values or {}))
    except ValidationError as exc:
        raise ErosionConfigError(f"Invalid {model.__name__}: {exc}") from exc


def merge_config(config: ConfigT, partial: Mapping[str, Any]) -> ConfigT:
    """
    Return a new config with ``partial`` deep-merged over ``config``.

    Nested sections may be updated key by key, e.g.
    ``{"climate": {"precipitation": 2000}}`` keeps the other climate fields.
    Unknown keys are rejected.
    """
    _reject_unknown_keys(type(config), partial)
    return build_config(type(config), _deep_merge(config.model_dump(), partial))


def _reject_unknown_keys(model: Type[BaseModel], partial: Mapping[str, Any]) -> None:
    for key, value in partial.items():
        if key not in model.model_fields:
            raise ErosionConfigError(f"Unknown {model.__name__} field: {key}")
        annotation = model.model_fields[key].annotation
        if isinstance(value, Mapping) and isinstance(annotation, type) and issubclass(annotation, BaseModel):
            _reject_unknown_keys(annotation, value)
