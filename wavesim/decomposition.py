"""Splitting a three-dimensional grid into rectangular subdomains."""

from __future__ import annotations

import enum
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from itertools import product
from typing import Callable, Optional, Sequence

Index3 = tuple[int, int, int]


class Face(enum.Enum):
    """A face of a subdomain, named by the direction it points to."""

    LEFT = "left"  # -x
    RIGHT = "right"  # +x
    FRONT = "front"  # -y
    BACK = "back"  # +y
    BOTTOM = "bottom"  # -z
    TOP = "top"  # +z


@dataclass(frozen=True)
class Neighbors:
    """Ids of the adjacent subdomains, or None at the edge of the grid."""

    left: Optional[int] = None
    right: Optional[int] = None
    front: Optional[int] = None
    back: Optional[int] = None
    bottom: Optional[int] = None
    top: Optional[int] = None

    def __getitem__(self, face: Face) -> Optional[int]:
        return getattr(self, face.value)


@dataclass(frozen=True)
class Subdomain:
    """A box of the global grid; ``end`` is exclusive."""

    id: int
    start: Index3
    end: Index3
    neighbors: Neighbors = field(default_factory=Neighbors)


def _as_triple(values: Sequence[int], what: str) -> Index3:
    triple = tuple(int(v) for v in values)
    if len(triple) != 3:
        raise ValueError(f"{what} must have three entries, got {len(triple)}")
    return triple  # type: ignore[return-value]


def _create_subdomains(shape: Index3, counts: Index3) -> list[Subdomain]:
    d0, d1, d2 = counts
    sizes = [n // d for n, d in zip(shape, counts)]

    def linear(i: int, j: int, k: int) -> int:
        return k + j * d2 + i * d1 * d2

    subdomains = []
    for i, j, k in product(range(d0), range(d1), range(d2)):
        position = (i, j, k)
        start = tuple(p * s for p, s in zip(position, sizes))
        end = tuple(
            n if p == d - 1 else (p + 1) * s
            for p, s, d, n in zip(position, sizes, counts, shape)
        )
        neighbors = Neighbors(
            left=linear(i - 1, j, k) if i > 0 else None,
            right=linear(i + 1, j, k) if i < d0 - 1 else None,
            front=linear(i, j - 1, k) if j > 0 else None,
            back=linear(i, j + 1, k) if j < d1 - 1 else None,
            bottom=linear(i, j, k - 1) if k > 0 else None,
            top=linear(i, j, k + 1) if k < d2 - 1 else None,
        )
        subdomains.append(Subdomain(linear(i, j, k), start, end, neighbors))
    return subdomains


class DomainDecomposition:
    """A regular split of a global grid into ``decomposition`` boxes.

    The last box along each axis absorbs any remainder of the division.
    """

    def __init__(self, global_shape, decomposition, ghost_cells):
        self.global_shape = _as_triple(global_shape, "global_shape")
        self.decomposition = _as_triple(decomposition, "decomposition")
        if any(d <= 0 for d in self.decomposition):
            raise ValueError("every axis needs at least one subdomain")
        if any(n < 0 for n in self.global_shape):
            raise ValueError("global_shape must not be negative")
        self.ghost_cells = int(ghost_cells)
        self.subdomains = _create_subdomains(self.global_shape, self.decomposition)

    def get_subdomain(self, index: int) -> Subdomain:
        return self.subdomains[index]

    def num_subdomains(self) -> int:
        return len(self.subdomains)

    def is_boundary(self, subdomain: Subdomain, i: int, j: int, k: int) -> bool:
        """True if the point lies on the outer layer of ``subdomain``."""
        return any(
            p == s or p == e - 1
            for p, s, e in zip((i, j, k), subdomain.start, subdomain.end)
        )

    def __repr__(self) -> str:
        return (
            f"DomainDecomposition(global_shape={self.global_shape}, "
            f"decomposition={self.decomposition}, ghost_cells={self.ghost_cells})"
        )


def parallel_fdtd_update(
    decomposition: DomainDecomposition,
    update_fn: Callable[[int, Subdomain], object],
) -> None:
    """Call ``update_fn(index, subdomain)`` for every subdomain on a thread pool.

    An exception raised by any call is re-raised here.
    """
    subdomains = decomposition.subdomains
    with ThreadPoolExecutor() as pool:
        list(pool.map(update_fn, range(len(subdomains)), subdomains))