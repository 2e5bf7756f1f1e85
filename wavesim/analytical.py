"""Closed-form fields used to check Helmholtz solvers."""

from __future__ import annotations

import math

import numpy as np


def rectangular_eigenvalues(lx: float, ly: float, n: int, m: int) -> float:
    """Wavenumber of mode (n, m) of a rectangular cavity.

    This is sqrt((n pi / lx)^2 + (m pi / ly)^2).
    """
    kx = n * math.pi / lx
    ky = m * math.pi / ly
    return math.sqrt(kx * kx + ky * ky)


def rectangular_cavity_2d(nx: int, ny: int, lx: float, ly: float, k: float,
                          n_modes: int) -> np.ndarray:
    """Sum of the cavity modes sin(n pi x / lx) sin(m pi y / ly) that resonate at ``k``.

    Modes with 1 <= n, m <= ``n_modes`` are kept when |k^2 - k_nm^2| < 0.1 k^2,
    each with amplitude 1 / (n m).  Points sit at cell centres; the result
    has shape (nx, ny, 1).
    """
    if nx < 0 or ny < 0:
        raise ValueError("grid sizes must not be negative")
    field = np.zeros((nx, ny, 1), dtype=complex)
    x = (np.arange(nx) + 0.5) * (lx / nx) if nx else np.zeros(0)
    y = (np.arange(ny) + 0.5) * (ly / ny) if ny else np.zeros(0)

    for n in range(1, n_modes + 1):
        for m in range(1, n_modes + 1):
            kx = n * math.pi / lx
            ky = m * math.pi / ly
            k_nm_sq = kx * kx + ky * ky
            if abs(k * k - k_nm_sq) < 0.1 * k * k:
                amplitude = 1.0 / (n * m)
                mode = amplitude * np.outer(np.sin(kx * x), np.sin(ky * y))
                field[:, :, 0] += mode
    return field