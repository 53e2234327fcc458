"""
Core erosion simulation functionality.
"""

from .heightfield import HeightField, bilinear_footprint, sample_gradient
from .state import NO_FLOW, BasicTerrainState, GeomorphologyState
from .droplet_erosion import Droplet, HydraulicDropletSimulator, carve_river
from .thermal import ThermalRelaxation
from .flow_routing import D8_OFFSETS, FlowRouter
from .river_network import River, build_river_network, trace_river_path
from .erosion_engine import ErosionEngine, ErosionResults

__all__ = ['HeightField', 'bilinear_footprint', 'sample_gradient',
           'NO_FLOW', 'BasicTerrainState', 'GeomorphologyState',
           'Droplet', 'HydraulicDropletSimulator', 'carve_river',
           'ThermalRelaxation', 'D8_OFFSETS', 'FlowRouter',
           'River', 'build_river_network', 'trace_river_path',
           'ErosionEngine', 'ErosionResults']
