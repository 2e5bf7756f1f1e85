import numpy as np
import pytest

from wavesim.iteration import (
    Domain,
    IterationConfig,
    IterationResult,
    forward,
    preconditioned_operator,
    preconditioned_richardson,
    preconditioner,
)


class DiagonalDomain(Domain):
    def __init__(self, b, g, s, shape):
        self._shape = shape
        self.b = b
        self.g = g
        self.s = s

    @property
    def shape(self):
        return self._shape

    def scale(self):
        return self.s

    def medium(self, x):
        return self.b * x

    def propagator(self, x):
        return self.g * x

    def inverse_propagator(self, x):
        return x / self.g


SHAPE = (4, 3, 2)


@pytest.fixture
def domain():
    return DiagonalDomain(0.5, 0.5, 1.0, SHAPE)


def test_domain_is_abstract():
    with pytest.raises(TypeError):
        Domain()


def test_config_defaults():
    config = IterationConfig()
    assert (config.max_iterations, config.threshold, config.alpha, config.full_residuals) == (
        100000,
        1e-6,
        0.75,
        False,
    )


def test_richardson_converges_to_fixed_point():
    dom = DiagonalDomain(0.5 + 0.2j, 0.5, 1.0, SHAPE)
    source = np.ones(SHAPE, dtype=complex)
    result = preconditioned_richardson(
        dom, source, IterationConfig(max_iterations=1000, threshold=1e-14)
    )
    assert result.residual_norm < 1e-14
    assert 0 < result.iterations < 1000
    # Fixed point of the iteration: x = (L+1)^-1 (B x - c y)
    fixed = dom.g * (dom.b * result.field - dom.s * source)
    np.testing.assert_allclose(result.field, fixed, atol=1e-6)


def test_richardson_scalar_solution(domain):
    source = np.ones(SHAPE)
    result = preconditioned_richardson(
        domain, source, IterationConfig(max_iterations=1000, threshold=1e-14)
    )
    np.testing.assert_allclose(result.field, -2.0 / 3.0, atol=1e-6)


def test_first_residual_is_normalised(domain):
    source = np.zeros(SHAPE, dtype=complex)
    source[2, 1, 1] = 1.0
    result = preconditioned_richardson(
        domain, source, IterationConfig(max_iterations=1, threshold=1e-10, full_residuals=True)
    )
    assert result.iterations == 1
    assert result.residual_history == pytest.approx([1.0])


def test_history_records_every_iteration_and_decreases(domain):
    source = np.ones(SHAPE)
    result = preconditioned_richardson(
        domain, source, IterationConfig(max_iterations=100, threshold=1e-4, full_residuals=True)
    )
    history = result.residual_history
    assert len(history) == result.iterations
    assert result.residual_norm < 1e-4
    assert result.iterations < 100
    assert all(later < earlier for earlier, later in zip(history, history[1:]))
    assert history[-1] == result.residual_norm


def test_no_history_unless_requested(domain):
    result = preconditioned_richardson(
        domain, np.ones(SHAPE), IterationConfig(max_iterations=5)
    )
    assert result.residual_history is None
    assert result.iterations == 5


def test_stops_at_max_iterations(domain):
    result = preconditioned_richardson(
        domain, np.ones(SHAPE), IterationConfig(max_iterations=7, threshold=0.0)
    )
    assert result.iterations == 7
    assert result.residual_norm > 0.0


def test_zero_source_returns_immediately(domain):
    result = preconditioned_richardson(
        domain, np.zeros(SHAPE), IterationConfig(full_residuals=True)
    )
    assert isinstance(result, IterationResult)
    assert result.iterations == 0
    assert result.residual_norm == 0.0
    assert result.residual_history == [0.0]
    assert np.count_nonzero(result.field) == 0
    assert result.field.shape == SHAPE


def test_forward_values(domain):
    out = forward(domain, np.ones(SHAPE))
    np.testing.assert_allclose(out, 1.5)


def test_preconditioner_values(domain):
    out = preconditioner(domain, np.ones(SHAPE))
    np.testing.assert_allclose(out, 0.25)
    assert np.sum(np.abs(out) ** 2) > 0.0


def test_preconditioned_operator_values(domain):
    out = preconditioned_operator(domain, np.ones(SHAPE))
    np.testing.assert_allclose(out, 0.375)


def test_preconditioned_operator_is_preconditioner_of_forward():
    rng = np.random.default_rng(3)
    b = rng.uniform(0.2, 0.8, SHAPE) + 1j * rng.uniform(-0.1, 0.1, SHAPE)
    g = rng.uniform(0.3, 0.9, SHAPE)
    dom = DiagonalDomain(b, g, 0.7 - 0.2j, SHAPE)
    x = rng.normal(size=SHAPE) + 1j * rng.normal(size=SHAPE)
    np.testing.assert_allclose(
        preconditioned_operator(dom, x), preconditioner(dom, forward(dom, x)), atol=1e-12
    )