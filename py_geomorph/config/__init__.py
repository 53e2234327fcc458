"""
Configuration modules for erosion simulation.
"""

from .config import Settings, settings
from .erosion_presets import (
    ADVANCED_PRESETS,
    PRESETS,
    get_advanced_preset,
    get_preset,
    list_presets,
    realistic_fault_system,
)
from .erosion_settings import (
    AdvancedErosionConfig,
    AdvancedFeatureSettings,
    ClimateSettings,
    DiffusionSettings,
    ErosionConfig,
    FaultLine,
    LithologySettings,
    SedimentTransportSettings,
    StreamPowerLawSettings,
    TectonicSettings,
    build_config,
    merge_config,
)

__all__ = ['Settings', 'settings',
           'PRESETS', 'ADVANCED_PRESETS', 'get_preset', 'get_advanced_preset', 'list_presets',
           'realistic_fault_system',
           'ErosionConfig', 'AdvancedErosionConfig', 'StreamPowerLawSettings', 'DiffusionSettings',
           'SedimentTransportSettings', 'FaultLine', 'TectonicSettings', 'ClimateSettings',
           'AdvancedFeatureSettings', 'LithologySettings', 'build_config', 'merge_config']
