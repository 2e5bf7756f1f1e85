"""Finite-difference time-domain solver for the 3D Maxwell equations."""

from __future__ import annotations

import copy
import enum
import math
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Union

import numpy as np

SPEED_OF_LIGHT = 299792458.0  # m/s


class Orientation(enum.Enum):
    """Axis along which a dipole drives the electric field."""

    X = "x"
    Y = "y"
    Z = "z"


@dataclass(frozen=True)
class PointDipole:
    """Oscillating dipole at one grid point."""

    position: tuple[int, int, int]
    orientation: Orientation
    amplitude: complex = 1.0


@dataclass(frozen=True)
class PlaneWave:
    """Plane wave description; it does not drive the grid."""

    direction: tuple[float, float, float]
    polarization: tuple[float, float, float]
    amplitude: complex = 1.0


@dataclass(frozen=True)
class GaussianPulse:
    """Gaussian pulse description; it does not drive the grid."""

    position: tuple[int, int, int]
    width: float
    amplitude: complex = 1.0


SourceType = Union[PointDipole, PlaneWave, GaussianPulse]


@dataclass(frozen=True)
class MaxwellSource:
    """A source kind together with its frequency in hertz."""

    source_type: SourceType
    frequency: float


@dataclass
class ElectromagneticFields:
    """The six field components on the grid."""

    ex: np.ndarray
    ey: np.ndarray
    ez: np.ndarray
    hx: np.ndarray
    hy: np.ndarray
    hz: np.ndarray

    @classmethod
    def zeros(cls, shape) -> "ElectromagneticFields":
        shape = tuple(int(n) for n in shape)
        return cls(*(np.zeros(shape, dtype=complex) for _ in range(6)))

    def copy(self) -> "ElectromagneticFields":
        return ElectromagneticFields(
            self.ex.copy(),
            self.ey.copy(),
            self.ez.copy(),
            self.hx.copy(),
            self.hy.copy(),
            self.hz.copy(),
        )


def _courant_time_step(dx: float, dy: float, dz: float) -> float:
    """99% of the largest stable time step for the given spacing."""
    dt_max = 1.0 / (SPEED_OF_LIGHT * math.sqrt(1.0 / dx**2 + 1.0 / dy**2 + 1.0 / dz**2))
    return 0.99 * dt_max


def _as_flags(values: Sequence[bool]) -> tuple[bool, bool, bool]:
    flags = tuple(bool(v) for v in values)
    if len(flags) != 3:
        raise ValueError("periodic must have three entries")
    return flags  # type: ignore[return-value]


def _as_counts(values: Sequence[int]) -> tuple[int, int, int]:
    counts = tuple(int(v) for v in values)
    if len(counts) != 3:
        raise ValueError("pml_thickness must have three entries")
    if any(c < 0 for c in counts):
        raise ValueError("pml_thickness must not be negative")
    return counts  # type: ignore[return-value]


def _update_e(domain, fields: ElectromagneticFields, region) -> None:
    """Advance E on ``region`` (a tuple of slices starting at index >= 1)."""
    si, sj, sk = region
    im = slice(si.start - 1, si.stop - 1)
    jm = slice(sj.start - 1, sj.stop - 1)
    km = slice(sk.start - 1, sk.stop - 1)
    here = (si, sj, sk)

    eps = domain.permittivity[here]
    decay = 1.0 - domain.conductivity[here] * domain.dt / (2.0 * eps)
    gain = domain.dt / eps

    hx, hy, hz = fields.hx, fields.hy, fields.hz
    curl_x = (hz[here] - hz[si, jm, sk]) / domain.dy - (hy[here] - hy[si, sj, km]) / domain.dz
    curl_y = (hx[here] - hx[si, sj, km]) / domain.dz - (hz[here] - hz[im, sj, sk]) / domain.dx
    curl_z = (hy[here] - hy[im, sj, sk]) / domain.dx - (hx[here] - hx[si, jm, sk]) / domain.dy

    fields.ex[here] = decay * fields.ex[here] + gain * curl_x
    fields.ey[here] = decay * fields.ey[here] + gain * curl_y
    fields.ez[here] = decay * fields.ez[here] + gain * curl_z


def _update_h(domain, fields: ElectromagneticFields, region) -> None:
    """Advance H on ``region`` (slices whose stop is at most shape - 1)."""
    si, sj, sk = region
    ip = slice(si.start + 1, si.stop + 1)
    jp = slice(sj.start + 1, sj.stop + 1)
    kp = slice(sk.start + 1, sk.stop + 1)
    here = (si, sj, sk)

    gain = domain.dt / domain.permeability[here]
    ex, ey, ez = fields.ex, fields.ey, fields.ez
    curl_x = (ez[si, jp, sk] - ez[here]) / domain.dy - (ey[si, sj, kp] - ey[here]) / domain.dz
    curl_y = (ex[si, sj, kp] - ex[here]) / domain.dz - (ez[ip, sj, sk] - ez[here]) / domain.dx
    curl_z = (ey[ip, sj, sk] - ey[here]) / domain.dx - (ex[si, jp, sk] - ex[here]) / domain.dy

    fields.hx[here] -= gain * curl_x
    fields.hy[here] -= gain * curl_y
    fields.hz[here] -= gain * curl_z


def _apply_e_boundaries(domain, fields: ElectromagneticFields) -> None:
    """Periodic wrap (first plane copies the last) and the x-axis absorbing layer."""
    components = (fields.ex, fields.ey, fields.ez)
    for axis, periodic in enumerate(domain.periodic):
        if not periodic:
            continue
        for component in components:
            first = [slice(None)] * 3
            last = [slice(None)] * 3
            first[axis] = 0
            last[axis] = -1
            component[tuple(first)] = component[tuple(last)]

    thickness = domain.pml_thickness[0]
    n0 = domain.shape[0]
    for t in range(thickness):
        sigma = (t / thickness) ** 3
        factor = math.exp(-sigma * domain.dt)
        for component in components:
            component[t] *= factor
            component[n0 - 1 - t] *= factor


def _apply_h_boundaries(domain, fields: ElectromagneticFields) -> None:
    """Periodic wrap of H: the last plane copies the first."""
    components = (fields.hx, fields.hy, fields.hz)
    for axis, periodic in enumerate(domain.periodic):
        if not periodic:
            continue
        for component in components:
            first = [slice(None)] * 3
            last = [slice(None)] * 3
            first[axis] = 0
            last[axis] = -1
            component[tuple(last)] = component[tuple(first)]


def _inject(fields: ElectromagneticFields, source: MaxwellSource, time: float) -> None:
    kind = source.source_type
    if isinstance(kind, PointDipole):
        signal = kind.amplitude * math.sin(2.0 * math.pi * source.frequency * time)
        target = {
            Orientation.X: fields.ex,
            Orientation.Y: fields.ey,
            Orientation.Z: fields.ez,
        }[kind.orientation]
        target[tuple(kind.position)] += signal
    elif not isinstance(kind, (PlaneWave, GaussianPulse)):
        raise TypeError(f"unknown source type {type(kind).__name__}")
    # Plane waves and Gaussian pulses carry no injection rule and leave the grid as is.


class MaxwellDomain:
    """Material grid and stepping rules for an FDTD simulation."""

    def __init__(self, permittivity, permeability, dx, dy, dz, periodic, pml_thickness):
        self.permittivity = np.asarray(permittivity, dtype=complex)
        self.permeability = np.asarray(permeability, dtype=complex)
        if self.permittivity.ndim != 3:
            raise ValueError("permittivity must be three-dimensional")
        if self.permeability.shape != self.permittivity.shape:
            raise ValueError("permeability and permittivity must have the same shape")
        self.shape: tuple[int, int, int] = tuple(self.permittivity.shape)  # type: ignore[assignment]
        self.conductivity = np.zeros(self.shape, dtype=complex)
        self.dx = float(dx)
        self.dy = float(dy)
        self.dz = float(dz)
        self.dt = _courant_time_step(self.dx, self.dy, self.dz)
        self.periodic = _as_flags(periodic)
        self.pml_thickness = _as_counts(pml_thickness)

    def with_conductivity(self, conductivity) -> "MaxwellDomain":
        """A copy of this domain with the given conductivity of lossy media."""
        conductivity = np.asarray(conductivity, dtype=complex)
        if conductivity.shape != self.shape:
            raise ValueError("conductivity must have the shape of the domain")
        domain = copy.copy(self)
        domain.conductivity = conductivity
        return domain

    def init_fields(self) -> ElectromagneticFields:
        return ElectromagneticFields.zeros(self.shape)

    def update_e_field(self, fields: ElectromagneticFields) -> None:
        """Advance the electric field in place by one time step."""
        region = tuple(slice(1, max(n, 1)) for n in self.shape)
        _update_e(self, fields, region)
        _apply_e_boundaries(self, fields)

    def update_h_field(self, fields: ElectromagneticFields) -> None:
        """Advance the magnetic field in place by one time step."""
        region = tuple(slice(0, max(n - 1, 0)) for n in self.shape)
        _update_h(self, fields, region)
        _apply_h_boundaries(self, fields)

    def step(self, fields: ElectromagneticFields) -> None:
        self.update_h_field(fields)
        self.update_e_field(fields)

    def add_source(self, fields: ElectromagneticFields, source: MaxwellSource, time: float) -> None:
        """Add the contribution of ``source`` at ``time`` to the fields."""
        _inject(fields, source, time)

    def __repr__(self) -> str:
        return (
            f"MaxwellDomain(shape={self.shape}, dx={self.dx}, dy={self.dy}, "
            f"dz={self.dz}, dt={self.dt}, periodic={self.periodic}, "
            f"pml_thickness={self.pml_thickness})"
        )


def _run(domain, sources: Iterable[MaxwellSource], num_steps: int,
         save_interval: Optional[int]) -> list[ElectromagneticFields]:
    if save_interval is not None and save_interval <= 0:
        raise ValueError("save_interval must be positive")
    sources = list(sources)
    fields = domain.init_fields()
    results = []
    for step in range(num_steps):
        time = step * domain.dt
        for source in sources:
            domain.add_source(fields, source, time)
        domain.step(fields)
        if save_interval is not None and step % save_interval == 0:
            results.append(fields.copy())
    results.append(fields)
    return results


def simulate_maxwell(domain: MaxwellDomain, sources, num_steps: int,
                     save_interval: Optional[int] = None) -> list[ElectromagneticFields]:
    """Run ``num_steps`` steps; snapshots every ``save_interval`` steps, final state last."""
    return _run(domain, sources, num_steps, save_interval)