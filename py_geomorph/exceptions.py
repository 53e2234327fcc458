"""
Exceptions raised by the erosion engine.

Numeric edge cases inside a simulation (a droplet leaving the grid, a
zero-length flow vector) are handled silently. These exceptions cover
inputs that can never produce a meaningful simulation and are raised as
soon as they are detected.
"""


class GeomorphError(ValueError):
    """Base class for invalid input to the erosion engine."""


class ErosionConfigError(GeomorphError):
    """Configuration values failed validation."""


class InvalidHeightfieldError(GeomorphError):
    """Heightfield buffer or grid size is unusable."""


class SimulationStateError(RuntimeError):
    """A model was run before its state was loaded."""
