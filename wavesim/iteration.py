"""Preconditioned Richardson iteration for the modified Born series."""

from __future__ import annotations

import abc
from dataclasses import dataclass
from typing import Optional

import numpy as np


class Domain(abc.ABC):
    """Operators of a wave problem on a fixed grid.

    ``medium`` applies B = 1 - V, ``propagator`` applies (L + 1)^-1 and
    ``inverse_propagator`` applies L + 1; each returns a new array.
    """

    @property
    @abc.abstractmethod
    def shape(self) -> tuple[int, ...]:
        """Shape of the fields on this domain."""

    @abc.abstractmethod
    def scale(self) -> complex:
        """Scaling factor c of the problem."""

    @abc.abstractmethod
    def medium(self, x: np.ndarray) -> np.ndarray:
        """Apply the medium operator B."""

    @abc.abstractmethod
    def propagator(self, x: np.ndarray) -> np.ndarray:
        """Apply (L + 1)^-1."""

    @abc.abstractmethod
    def inverse_propagator(self, x: np.ndarray) -> np.ndarray:
        """Apply L + 1."""


@dataclass
class IterationConfig:
    """Settings of the Richardson iteration."""

    max_iterations: int = 100000
    threshold: float = 1e-6
    alpha: float = 0.75
    full_residuals: bool = False


@dataclass
class IterationResult:
    """Field found by the iteration and how it got there."""

    field: np.ndarray
    iterations: int
    residual_norm: float
    residual_history: Optional[list[float]] = None


def _norm_squared(a: np.ndarray) -> float:
    return float(np.vdot(a, a).real)


def preconditioned_richardson(
    domain: Domain, source, config: Optional[IterationConfig] = None
) -> IterationResult:
    """Solve A x = y with x <- x + alpha * Gamma^-1 (y - A x), starting from zero.

    The residual reported is the squared norm of the update divided by the
    squared norm of the preconditioned source.
    """
    if config is None:
        config = IterationConfig()
    source = np.asarray(source, dtype=complex)
    x = np.zeros(domain.shape, dtype=complex)

    init_norm = _norm_squared(preconditioner(domain, source))
    if init_norm < 1e-20:
        return IterationResult(
            field=x,
            iterations=0,
            residual_norm=0.0,
            residual_history=[0.0] if config.full_residuals else None,
        )

    history: Optional[list[float]] = [] if config.full_residuals else None
    iterations = 0
    residual_norm = float("inf")

    for iterations in range(1, config.max_iterations + 1):
        x, update_norm = _iterate(domain, x, source, config.alpha)
        residual_norm = update_norm / init_norm
        if history is not None:
            history.append(residual_norm)
        if residual_norm < config.threshold:
            break

    return IterationResult(
        field=x,
        iterations=iterations,
        residual_norm=residual_norm,
        residual_history=history,
    )


def _iterate(
    domain: Domain, x: np.ndarray, source: np.ndarray, alpha: float
) -> tuple[np.ndarray, float]:
    """One step x <- x - alpha B [x - (L+1)^-1 (B x - c y)]; returns (x, |update|^2)."""
    tmp = domain.medium(x) - domain.scale() * source
    tmp = domain.propagator(tmp)
    tmp = domain.medium(x - tmp)
    return x - alpha * tmp, _norm_squared(tmp)


def forward(domain: Domain, x) -> np.ndarray:
    """Apply the forward operator A = c^-1 (L + V)."""
    x = np.asarray(x, dtype=complex)
    c = domain.scale()
    return domain.inverse_propagator(x) / c - domain.medium(x) / c


def preconditioner(domain: Domain, x) -> np.ndarray:
    """Apply the preconditioner Gamma^-1 = c B (L+1)^-1."""
    x = np.asarray(x, dtype=complex)
    return domain.scale() * domain.medium(domain.propagator(x))


def preconditioned_operator(domain: Domain, x) -> np.ndarray:
    """Apply Gamma^-1 A = B - B (L+1)^-1 B."""
    x = np.asarray(x, dtype=complex)
    bx = domain.medium(x)
    return bx - domain.medium(domain.propagator(bx))