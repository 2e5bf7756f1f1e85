"""Parameters, sources and results of a wave simulation."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

import numpy as np

Index3 = tuple[int, int, int]
Roi = tuple[tuple[int, int], tuple[int, int], tuple[int, int]]


@dataclass
class SimulationParams:
    """Settings of a simulation; lengths are in micrometres."""

    wavelength: float = 0.5
    pixel_size: float = 0.125
    boundary_width: float = 1.0
    periodic: tuple[bool, bool, bool] = (False, False, False)
    max_iterations: int = 100000
    threshold: float = 1e-6
    alpha: float = 0.75
    full_residuals: bool = False
    crop_boundaries: bool = True
    n_domains: Optional[tuple[int, int, int]] = None

    def boundary_pixels(self) -> int:
        """Width of the absorbing boundary in pixels, rounded half away from zero."""
        width = self.boundary_width / self.pixel_size
        if not width > 0.0:
            return 0
        return int(math.floor(width + 0.5))

    def validate(self, sources: Sequence["Source"]) -> None:
        """Raise ValueError if these settings cannot run with ``sources``."""
        if self.pixel_size >= self.wavelength / 2.0:
            raise ValueError(
                "Pixel size must be less than wavelength/2 for numerical stability"
            )
        if not sources:
            raise ValueError("At least one source is required")


def _as_position(values: Sequence[int]) -> Index3:
    position = tuple(int(v) for v in values)
    if len(position) != 3:
        raise ValueError("a position needs three indices")
    if any(p < 0 for p in position):
        raise ValueError("positions must not be negative")
    return position  # type: ignore[return-value]


@dataclass(eq=False)
class Source:
    """Source values placed with their first element at ``position`` (pixels)."""

    data: np.ndarray
    position: Index3

    def __post_init__(self) -> None:
        self.data = np.asarray(self.data, dtype=complex)
        if self.data.ndim != 3:
            raise ValueError("source data must be three-dimensional")
        self.position = _as_position(self.position)

    @classmethod
    def point(cls, position, amplitude=1.0) -> "Source":
        """A single-pixel source."""
        return cls(np.full((1, 1, 1), amplitude, dtype=complex), position)

    @classmethod
    def from_data(cls, data, position) -> "Source":
        """An extended source from an array of values."""
        return cls(data, position)


@dataclass
class SimulationResult:
    """Computed field and convergence information."""

    field: np.ndarray
    iterations: int
    residual_norm: float
    residual_history: Optional[list[float]] = None
    roi: Optional[Roi] = field(default=None)


def build_source_array(sources: Iterable[Source], shape, offset) -> np.ndarray:
    """Add every source into a zero array of ``shape``.

    Each source starts at its position shifted by ``offset``; parts that
    fall outside the array are dropped.
    """
    shape = tuple(int(n) for n in shape)
    offset = _as_position(offset)
    result = np.zeros(shape, dtype=complex)
    for source in sources:
        start = [p + o for p, o in zip(source.position, offset)]
        if any(s > n for s, n in zip(start, shape)):
            raise ValueError(
                f"source at {source.position} with offset {offset} lies outside {shape}"
            )
        extent = [min(d, n - s) for d, s, n in zip(source.data.shape, start, shape)]
        target = tuple(slice(s, s + e) for s, e in zip(start, extent))
        taken = tuple(slice(0, e) for e in extent)
        result[target] += source.data[taken]
    return result


def extract_roi(field, roi) -> np.ndarray:
    """Copy of the part of ``field`` inside ``roi``, a (start, end) pair per axis."""
    field = np.asarray(field)
    bounds = [(int(s), int(e)) for s, e in roi]
    if len(bounds) != field.ndim:
        raise ValueError("roi needs one (start, end) pair per axis")
    for (start, end), n in zip(bounds, field.shape):
        if not 0 <= start <= end <= n:
            raise ValueError(f"roi bounds ({start}, {end}) do not fit an axis of size {n}")
    return field[tuple(slice(s, e) for s, e in bounds)].copy()