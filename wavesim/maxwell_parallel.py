"""FDTD Maxwell solver whose field updates run per subdomain on a thread pool."""

from __future__ import annotations

import copy
from typing import Optional

import numpy as np

from wavesim.decomposition import DomainDecomposition, Subdomain, parallel_fdtd_update
from wavesim.maxwell import (
    ElectromagneticFields,
    MaxwellSource,
    _apply_e_boundaries,
    _apply_h_boundaries,
    _as_counts,
    _as_flags,
    _courant_time_step,
    _inject,
    _run,
    _update_e,
    _update_h,
)


def _e_region(subdomain: Subdomain, shape) -> Optional[tuple[slice, slice, slice]]:
    """Slices of ``subdomain`` where E is advanced, or None if empty."""
    region = tuple(
        slice(max(s, 1), min(e, n)) for s, e, n in zip(subdomain.start, subdomain.end, shape)
    )
    if any(r.stop <= r.start for r in region):
        return None
    return region  # type: ignore[return-value]


def _h_region(subdomain: Subdomain, shape) -> Optional[tuple[slice, slice, slice]]:
    """Slices of ``subdomain`` where H is advanced, or None if empty."""
    region = tuple(
        slice(s, min(e, n - 1)) for s, e, n in zip(subdomain.start, subdomain.end, shape)
    )
    if any(r.stop <= r.start for r in region):
        return None
    return region  # type: ignore[return-value]


class ParallelMaxwellDomain:
    """Material grid of an FDTD simulation split into subdomains.

    Each half step updates every subdomain concurrently; the result is the
    same as the single-domain update.
    """

    def __init__(self, permittivity, permeability, dx, dy, dz, periodic,
                 pml_thickness, num_subdomains):
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
        self.decomposition = DomainDecomposition(self.shape, num_subdomains, 1)

    def with_conductivity(self, conductivity) -> "ParallelMaxwellDomain":
        """A copy of this domain with the given conductivity of lossy media."""
        conductivity = np.asarray(conductivity, dtype=complex)
        if conductivity.shape != self.shape:
            raise ValueError("conductivity must have the shape of the domain")
        domain = copy.copy(self)
        domain.conductivity = conductivity
        return domain

    def init_fields(self) -> ElectromagneticFields:
        return ElectromagneticFields.zeros(self.shape)

    def update_e_field_parallel(self, fields: ElectromagneticFields) -> None:
        """Advance the electric field in place, one task per subdomain."""

        def update(_index: int, subdomain: Subdomain) -> None:
            region = _e_region(subdomain, self.shape)
            if region is not None:
                _update_e(self, fields, region)

        parallel_fdtd_update(self.decomposition, update)
        _apply_e_boundaries(self, fields)

    def update_h_field_parallel(self, fields: ElectromagneticFields) -> None:
        """Advance the magnetic field in place, one task per subdomain."""

        def update(_index: int, subdomain: Subdomain) -> None:
            region = _h_region(subdomain, self.shape)
            if region is not None:
                _update_h(self, fields, region)

        parallel_fdtd_update(self.decomposition, update)
        _apply_h_boundaries(self, fields)

    def step(self, fields: ElectromagneticFields) -> None:
        self.update_h_field_parallel(fields)
        self.update_e_field_parallel(fields)

    def add_source(self, fields: ElectromagneticFields, source: MaxwellSource,
                   time: float) -> None:
        """Add the contribution of ``source`` at ``time`` to the fields."""
        _inject(fields, source, time)

    def __repr__(self) -> str:
        return (
            f"ParallelMaxwellDomain(shape={self.shape}, dx={self.dx}, dy={self.dy}, "
            f"dz={self.dz}, dt={self.dt}, periodic={self.periodic}, "
            f"pml_thickness={self.pml_thickness}, "
            f"subdomains={self.decomposition.num_subdomains()})"
        )


def simulate_maxwell_parallel(domain: ParallelMaxwellDomain, sources, num_steps: int,
                              save_interval: Optional[int] = None) -> list[ElectromagneticFields]:
    """Run ``num_steps`` steps; snapshots every ``save_interval`` steps, final state last."""
    print(
        f"Running parallel FDTD with {domain.decomposition.num_subdomains()} subdomains..."
    )
    return _run(domain, sources, num_steps, save_interval)