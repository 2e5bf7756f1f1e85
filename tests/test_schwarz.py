import math

import numpy as np
import pytest

from wavesim.decomposition import DomainDecomposition
from wavesim.iteration import Domain
from wavesim.schwarz import (
    LocalDomain,
    SchwarzHelmholtzSolver,
    build_local_domains,
    smooth_weight,
    solve_helmholtz_schwarz,
)


class ScalarDomain(Domain):
    """Pointwise operators: B = 0.5, (L+1)^-1 = 0.5, c = 1.

    The Richardson iteration on it converges to x = -2/3 y.
    """

    def __init__(self, permittivity, pixel_size=0.1, wavelength=0.5):
        self.permittivity = np.asarray(permittivity)
        self.pixel_size = pixel_size
        self.wavelength = wavelength

    @property
    def shape(self):
        return self.permittivity.shape

    def scale(self):
        return 1.0 + 0.0j

    def medium(self, x):
        return 0.5 * x

    def propagator(self, x):
        return 0.5 * x

    def inverse_propagator(self, x):
        return 2.0 * x


def make_solver(shape, counts, overlap=2):
    perm = np.ones(shape, dtype=complex)
    return SchwarzHelmholtzSolver(perm, 0.1, 0.5, counts, overlap, ScalarDomain)


def test_schwarz_solver_creation():
    solver = make_solver((32, 32, 32), (2, 2, 2), overlap=4)
    assert len(solver.local_domains) == 8
    assert solver.overlap == 4


def test_smooth_weight_inside_is_one():
    assert smooth_weight((5, 5, 5), (0, 0, 0), (10, 10, 10), 4) == 1.0


def test_smooth_weight_outside_overlap_is_zero():
    assert smooth_weight((20, 5, 5), (0, 0, 0), (10, 10, 10), 4) == 0.0
    assert smooth_weight((5, 5, 1), (0, 0, 6), (10, 10, 10), 4) == 0.0


def test_smooth_weight_transitions():
    # distance 2 of 4 on the left: 0.5 * (1 - cos(pi / 2))
    assert smooth_weight((3, 5, 5), (5, 0, 0), (10, 10, 10), 4) == pytest.approx(0.5)
    # distance 2 of 4 on the right: 0.5 * (1 + cos(pi / 2))
    assert smooth_weight((11, 5, 5), (0, 0, 0), (10, 10, 10), 4) == pytest.approx(0.5)
    # distance 1 of 4 on the right
    expected = 0.5 * (1.0 + math.cos(math.pi / 4))
    assert smooth_weight((10, 5, 5), (0, 0, 0), (10, 10, 10), 4) == pytest.approx(expected)
    # axes multiply
    assert smooth_weight((3, 11, 5), (5, 0, 0), (10, 10, 10), 4) == pytest.approx(0.25)


def test_build_local_domains_extents_and_permittivity():
    perm = np.arange(1000, dtype=float).reshape(10, 10, 10).astype(complex)
    decomposition = DomainDecomposition((10, 10, 10), (2, 1, 1), 2)
    locals_ = build_local_domains(perm, decomposition, 2, ScalarDomain)

    assert len(locals_) == 2
    first, second = locals_
    assert isinstance(first, LocalDomain)
    assert first.extended_start == (0, 0, 0)
    assert first.extended_end == (7, 10, 10)
    assert second.extended_start == (3, 0, 0)
    assert second.extended_end == (10, 10, 10)
    assert first.shape == (7, 10, 10)
    np.testing.assert_array_equal(second.solver.permittivity, perm[3:10])
    assert np.count_nonzero(first.solution) == 0


def test_set_source_distributes_global_source():
    solver = make_solver((10, 10, 10), (2, 1, 1))
    source = np.arange(1000, dtype=float).reshape(10, 10, 10) + 1j
    solver.set_source(source)
    for local in solver.local_domains:
        np.testing.assert_array_equal(local.source, source[local.region])


def test_set_source_rejects_wrong_shape():
    solver = make_solver((10, 10, 10), (2, 1, 1))
    with pytest.raises(ValueError):
        solver.set_source(np.zeros((5, 5, 5)))


def test_rejects_non_3d_permittivity():
    with pytest.raises(ValueError):
        SchwarzHelmholtzSolver(np.ones((4, 4)), 0.1, 0.5, (1, 1, 1), 2, ScalarDomain)


def test_zero_source_gives_zero_solution():
    solver = make_solver((8, 8, 8), (2, 2, 1))
    solver.set_source(np.zeros((8, 8, 8)))
    assert solver.schwarz_iteration() == 0.0
    assert np.count_nonzero(solver.gather_solution()) == 0


def test_single_subdomain_matches_local_solution():
    solver = make_solver((6, 6, 6), (1, 1, 1))
    source = np.full((6, 6, 6), 1.0 + 0.5j)
    solver.set_source(source)
    residual = solver.schwarz_iteration()
    gathered = solver.gather_solution()
    np.testing.assert_allclose(gathered, -2.0 / 3.0 * source, rtol=1e-2)
    assert residual == pytest.approx(np.linalg.norm(gathered), rel=1e-9)


def test_multiple_subdomains_assemble_consistent_field():
    solver = make_solver((12, 8, 8), (3, 2, 1), overlap=2)
    source = np.full((12, 8, 8), 2.0 + 0.0j)
    solver.set_source(source)
    first = solver.schwarz_iteration()
    second = solver.schwarz_iteration()
    assert second < first
    gathered = solver.gather_solution()
    assert gathered.shape == (12, 8, 8)
    np.testing.assert_allclose(gathered, -2.0 / 3.0 * source, rtol=1e-2)


def test_solve_helmholtz_schwarz_converges(capsys):
    source = np.full((12, 12, 4), 1.0 + 0.0j)
    result = solve_helmholtz_schwarz(
        np.ones((12, 12, 4)), 0.1, 0.5, source, (2, 2, 1), 5, 1e-8, ScalarDomain
    )
    out = capsys.readouterr().out
    assert "with 4 subdomains" in out
    assert "Converged after 2 iterations" in out
    np.testing.assert_allclose(result, -2.0 / 3.0 * source, rtol=1e-2)