"""
py-geomorph: heightfield erosion and landscape evolution.
"""

from .core import ErosionEngine, ErosionResults, HeightField
from .config import AdvancedErosionConfig, ErosionConfig, get_preset, list_presets
from .exceptions import ErosionConfigError, GeomorphError, InvalidHeightfieldError, SimulationStateError

__version__ = "0.1.0"

__all__ = ['ErosionEngine', 'ErosionResults', 'HeightField',
           'ErosionConfig', 'AdvancedErosionConfig', 'get_preset', 'list_presets',
           'GeomorphError', 'ErosionConfigError', 'InvalidHeightfieldError', 'SimulationStateError']
