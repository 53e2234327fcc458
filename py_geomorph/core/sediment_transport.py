"""
Multi-grain sediment transport in channels.

Each channel cell carries a separate load for every configured grain
size. Entrainment and deposition thresholds follow a simplified
Hjulstrom-Sundborg curve.
"""

import numpy as np

from ..config.erosion_settings import SedimentTransportSettings
from .state import GeomorphologyState

CLAY_GRAIN_SIZE = 0.1  # mm
CLAY_CRITICAL_VELOCITY = 0.1  # m/s, cohesive fines resist entrainment
ENTRAINMENT_COEFFICIENT = 0.001
BULK_FACTOR = 10.0  # load units per metre of elevation


def critical_velocity(grain_size: float) -> float:
    """Flow velocity (m/s) needed to entrain grains of ``grain_size`` mm."""
    if grain_size < CLAY_GRAIN_SIZE:
        return CLAY_CRITICAL_VELOCITY
    return 0.01 * float(np.sqrt(grain_size))


def simulate_sediment_transport(
    state: GeomorphologyState,
    settings: SedimentTransportSettings,
    time_step: float,
) -> None:
    """
    Entrain, deposit and abrade sediment for one time step.

    For every channel cell and grain class:

    - faster than the critical velocity: the load grows by
      ``(v - v_c) * 0.001 * time_step * transport_capacity`` and the bed
      drops by a tenth of that;
    - slower than half the critical velocity: ``deposition_rate`` of the
      load settles, raising the bed and the sediment thickness by a
      tenth of the deposited amount;
    - in all cases the remaining load then shrinks by ``abrasion_rate``.
    """
    channel = state.is_channel
    if not channel.any():
        return

    load = state.sediment_load_by_grain
    velocity = state.velocity

    for grain, grain_size in enumerate(settings.grain_sizes):
        threshold = critical_velocity(grain_size)

        entraining = channel & (velocity > threshold)
        entrained = (velocity[entraining] - threshold) * ENTRAINMENT_COEFFICIENT * time_step
        entrained *= settings.transport_capacity
        load[entraining, grain] += entrained
        state.elevation[entraining] -= entrained / BULK_FACTOR

        depositing = channel & (velocity < threshold * 0.5)
        deposited = load[depositing, grain] * settings.deposition_rate
        load[depositing, grain] -= deposited
        state.elevation[depositing] += deposited / BULK_FACTOR
        state.sediment_thickness[depositing] += deposited / BULK_FACTOR

        load[channel, grain] *= 1.0 - settings.abrasion_rate
