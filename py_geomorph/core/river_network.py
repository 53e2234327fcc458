"""
River network extraction from D8 flow directions.
"""

import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

import numpy as np
import structlog

from .flow_routing import D8_OFFSETS
from .state import NO_FLOW, GeomorphologyState

logger = structlog.get_logger()

MAX_TRACE_STEPS = 1000
MIN_RIVER_CELLS = 10


@dataclass
class River:
    """Represents a traced river with its properties."""
    id: int
    cells: List[Tuple[int, int]]  # (x, y) from source to mouth
    length: float  # metres along the path
    drainage_area: float  # drainage area at the mouth (m^2)
    parent_id: Optional[int] = None  # river this one joins, if any
    tributaries: List[int] = field(default_factory=list)

    @property
    def source(self) -> Tuple[int, int]:
        return self.cells[0]

    @property
    def mouth(self) -> Tuple[int, int]:
        return self.cells[-1]


def trace_river_path(
    start_index: int,
    flow_direction: np.ndarray,
    resolution: int,
    stop_cells: Optional[Set[int]] = None,
    max_steps: int = MAX_TRACE_STEPS,
) -> List[int]:
    """
    Follow flow directions downstream from a cell.

    Stops at a cell with no outflow, at the grid edge, after entering a
    cell in ``stop_cells`` (which is included), or after ``max_steps``
    cells so that malformed direction fields cannot loop forever.

    Returns:
        Cell indices from ``start_index`` downstream
    """
    path = [start_index]
    current = start_index
    stop_cells = stop_cells or set()

    while len(path) < max_steps:
        code = flow_direction[current]
        if code == NO_FLOW:
            break
        y, x = divmod(current, resolution)
        next_x = x + int(D8_OFFSETS[code, 0])
        next_y = y + int(D8_OFFSETS[code, 1])
        if not (0 <= next_x < resolution and 0 <= next_y < resolution):
            break

        current = next_y * resolution + next_x
        path.append(current)
        if current in stop_cells:
            break

    return path


def build_river_network(
    state: GeomorphologyState,
    critical_drainage: float,
    min_cells: int = MIN_RIVER_CELLS,
) -> List[River]:
    """
    Trace a dendritic river network.

    Seeds are major channel cells (drainage area above twice the critical
    drainage) with no major channel upstream of them, processed from the
    highest seed down. Each trace runs downstream until it reaches the
    network built so far, so tributaries end at their confluence. Traces
    of ``min_cells`` cells or fewer are discarded.
    """
    res = state.resolution
    major = state.is_channel & (state.drainage_area > critical_drainage * 2)

    has_major_donor = np.zeros(state.n_cells, dtype=bool)
    donors = np.flatnonzero(major & (state.receivers != NO_FLOW))
    has_major_donor[state.receivers[donors]] = True

    heads = np.flatnonzero(major & ~has_major_donor)
    heads = heads[np.argsort(-state.elevation[heads], kind="stable")]

    rivers: List[River] = []
    owner: Dict[int, int] = {}

    for head in heads.tolist():
        if head in owner:
            continue
        path = trace_river_path(head, state.flow_direction, res, stop_cells=set(owner))
        if len(path) <= min_cells:
            continue

        parent_id = owner.get(path[-1])
        river = River(
            id=len(rivers),
            cells=[(idx % res, idx // res) for idx in path],
            length=_path_length(path, res) * state.cell_size,
            drainage_area=float(state.drainage_area[path[-1]]),
            parent_id=parent_id,
        )
        if parent_id is not None:
            rivers[parent_id].tributaries.append(river.id)
        rivers.append(river)
        for idx in path:
            owner.setdefault(idx, river.id)

    logger.info("River network traced", rivers=len(rivers), seeds=int(heads.size))
    return rivers


def _path_length(path: List[int], resolution: int) -> float:
    total = 0.0
    for a, b in zip(path, path[1:]):
        ay, ax = divmod(a, resolution)
        by, bx = divmod(b, resolution)
        total += math.hypot(bx - ax, by - ay)
    return total
