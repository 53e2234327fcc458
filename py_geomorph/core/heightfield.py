"""
Heightfield grid and sampling utilities.

A heightfield is a flat, row-major buffer of ``resolution * resolution``
elevation samples. Cell ``(x, y)`` lives at index ``y * resolution + x``.
Fractional coordinates are sampled bilinearly and clamped to the grid,
so edge cells are extended rather than wrapped or mirrored.
"""

import math
from typing import Tuple

import numpy as np
from scipy import ndimage

# Central difference stencil shared by the gradient and slope helpers
CENTRAL_DIFFERENCE = np.array([-0.5, 0.0, 0.5])


def bilinear_footprint(x: float, y: float, resolution: int) -> Tuple[Tuple[int, int, int, int], Tuple[float, float, float, float]]:
    """
    Indices and weights of the four cells surrounding ``(x, y)``.

    Coordinates are clamped to ``[0, resolution - 1]``. The weights always
    sum to one.

    Returns:
        ``((i00, i10, i01, i11), (w00, w10, w01, w11))``
    """
    limit = resolution - 1
    x = min(max(x, 0.0), limit)
    y = min(max(y, 0.0), limit)

    x0 = int(math.floor(x))
    y0 = int(math.floor(y))
    x1 = min(x0 + 1, limit)
    y1 = min(y0 + 1, limit)
    fx = x - x0
    fy = y - y0

    indices = (
        y0 * resolution + x0,
        y0 * resolution + x1,
        y1 * resolution + x0,
        y1 * resolution + x1,
    )
    weights = (
        (1 - fx) * (1 - fy),
        fx * (1 - fy),
        (1 - fx) * fy,
        fx * fy,
    )
    return indices, weights


class HeightField:
    """
    Square elevation grid over a flat numeric buffer.

    The buffer is shared, not copied: simulators wrap their own state
    arrays in a ``HeightField`` to get sampling helpers over live data.
    """

    def __init__(self, data: np.ndarray, resolution: int):
        """
        Args:
            data: Flat float array of length ``resolution ** 2``
            resolution: Samples per side
        """
        if data.shape != (resolution * resolution,):
            raise ValueError(
                f"Heightfield buffer has shape {data.shape}, expected ({resolution * resolution},)"
            )
        self.data = data
        self.resolution = resolution

    @property
    def grid(self) -> np.ndarray:
        """2-D ``(y, x)`` view onto the same buffer."""
        return self.data.reshape(self.resolution, self.resolution)

    def index(self, x: int, y: int) -> int:
        return y * self.resolution + x

    def height_at(self, x: int, y: int) -> float:
        """
        Exact lookup at integer cell ``(x, y)``.

        Raises:
            IndexError: If the cell is outside the grid
        """
        if not (0 <= x < self.resolution and 0 <= y < self.resolution):
            raise IndexError(f"Cell ({x}, {y}) outside {self.resolution}x{self.resolution} grid")
        return float(self.data[y * self.resolution + x])

    def sample(self, u: float, v: float) -> float:
        """Bilinear sample at fractional ``(u, v)``, clamped to the grid."""
        indices, weights = bilinear_footprint(u, v, self.resolution)
        data = self.data
        return float(
            data[indices[0]] * weights[0]
            + data[indices[1]] * weights[1]
            + data[indices[2]] * weights[2]
            + data[indices[3]] * weights[3]
        )

    def gradient_field(self) -> Tuple[np.ndarray, np.ndarray]:
        """
        Central-difference gradient of the whole grid.

        Border cells get a zero gradient.

        Returns:
            Flat ``(grad_x, grad_y)`` arrays
        """
        grid = self.grid
        grad_x = ndimage.correlate1d(grid, CENTRAL_DIFFERENCE, axis=1, mode="nearest")
        grad_y = ndimage.correlate1d(grid, CENTRAL_DIFFERENCE, axis=0, mode="nearest")
        for grad in (grad_x, grad_y):
            grad[0, :] = 0.0
            grad[-1, :] = 0.0
            grad[:, 0] = 0.0
            grad[:, -1] = 0.0
        return grad_x.ravel(), grad_y.ravel()

    def local_slope(self, cell_size: float = 1.0) -> np.ndarray:
        """
        Gradient magnitude (rise over run) per cell.

        Zero on the border, where no central difference exists.
        """
        grad_x, grad_y = self.gradient_field()
        return np.hypot(grad_x, grad_y) / cell_size

    def copy(self) -> "HeightField":
        return HeightField(self.data.copy(), self.resolution)


def sample_gradient(grad_x: np.ndarray, grad_y: np.ndarray, x: float, y: float, resolution: int) -> Tuple[float, float]:
    """Bilinear sample of a precomputed gradient field at ``(x, y)``."""
    indices, weights = bilinear_footprint(x, y, resolution)
    gx = 0.0
    gy = 0.0
    for index, weight in zip(indices, weights):
        gx += grad_x[index] * weight
        gy += grad_y[index] * weight
    return float(gx), float(gy)
