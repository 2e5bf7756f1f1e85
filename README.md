# wavesim

Building blocks for simulating wave propagation on regular 3-D grids. Everything runs on numpy arrays.

The package contains these modules:

- **`wavesim.iteration`**: a preconditioned Richardson iteration for the modified Born series. It works with any object that implements the `Domain` interface.
- **`wavesim.maxwell`**: a finite-difference time-domain (FDTD) solver for the Maxwell equations.
- **`wavesim.maxwell_parallel`**: the same FDTD update, split into subdomains that are updated on a thread pool.
- **`wavesim.decomposition`**: splits a grid into rectangular subdomains and records which subdomains are neighbours.
- **`wavesim.schwarz`**: an overlapping Schwarz solver for the Helmholtz equation.
- **`wavesim.schwarz_wave`**: a Schwarz solver for the Helmholtz equation that uses Robin transmission conditions (impedance `i k`).
- **`wavesim.analytical`**: closed-form reference fields for rectangular cavities.
- **`wavesim.simulation`**: simulation parameters, sources, assembly of a source array, and extraction of a region of interest.

## Installation

```
pip install .
```

To also install the test dependencies:

```
pip install ".[test]"
```

## Domain decomposition

```python
from wavesim.decomposition import DomainDecomposition

dd = DomainDecomposition((100, 100, 100), (2, 2, 2), 1)
print(dd.num_subdomains())          # 8
first = dd.get_subdomain(0)
print(first.start, first.end)       # (0, 0, 0) (50, 50, 50)
print(first.neighbors.right)        # 4
```

How the grid is divided:

- The grid is divided evenly along each axis. The last subdomain on each axis also takes any remainder.
- `is_boundary(subdomain, i, j, k)` tells whether a point lies on the outer layer of a subdomain.
- `parallel_fdtd_update(decomposition, update_fn)` calls `update_fn(index, subdomain)` once for each subdomain, on a thread pool.

## Maxwell FDTD

```python
import numpy as np
from wavesim.maxwell import MaxwellDomain, MaxwellSource, PointDipole, Orientation, simulate_maxwell

shape = (20, 20, 20)
eps = np.ones(shape, dtype=complex)
mu = np.ones(shape, dtype=complex)
domain = MaxwellDomain(eps, mu, 1e-6, 1e-6, 1e-6, (False, False, False), (0, 0, 0))

source = MaxwellSource(PointDipole((10, 10, 10), Orientation.Z, 1.0), frequency=1e14)
snapshots = simulate_maxwell(domain, [source], 50, 10)
final = snapshots[-1]
```

How the solver behaves:

- **Time step.** The time step is 99% of the Courant limit for the grid spacing you give.
- **Lossy media.** `with_conductivity(sigma)` returns a copy of the domain that has the given conductivity.
- **Periodic axes.** On a periodic axis, the fields are wrapped after every half step.
- **Absorbing layer.** There is a simple absorbing layer on the x axis only. It damps the electric field.
- **Sources.** Only `PointDipole` sources add a signal to the grid. A `PlaneWave` or `GaussianPulse` source is accepted, but it leaves the fields unchanged.
- **Snapshots.** `simulate_maxwell` saves a snapshot every `save_interval` steps. The final state is always the last item of the returned list.

### Parallel variant

`wavesim.maxwell_parallel.ParallelMaxwellDomain` takes one more argument: the number of subdomains along each axis. Run it with `simulate_maxwell_parallel`. Each half step updates every subdomain concurrently. The result equals the single-domain update.

## Born series iteration

`preconditioned_richardson(domain, source, config)` works with a subclass of `wavesim.iteration.Domain`. The subclass provides these members:

| Member | Returns |
| --- | --- |
| `shape` | the grid shape (a property) |
| `scale()` | the scaling factor `c` |
| `medium(x)` | `B x` |
| `propagator(x)` | `(L + 1)^-1 x` |
| `inverse_propagator(x)` | `(L + 1) x` |

The iteration starts from a zero field. It stops when the normalised residual falls below `IterationConfig.threshold`, or after `max_iterations` steps.

The result is an `IterationResult` with these fields:

- `field`
- `iterations`
- `residual_norm`
- `residual_history`, which is filled only when `full_residuals` is set.

The module also has `forward`, `preconditioner` and `preconditioned_operator`, which apply the individual operators.

## Schwarz solvers

Both Schwarz solvers build one local Helmholtz domain per subdomain. Each local domain covers its subdomain extended by the overlap. The solvers create these domains with a `domain_factory(permittivity, pixel_size, wavelength)` callable that you supply; it must return a `Domain`.

The global field is assembled with a cosine partition of unity.

```python
from wavesim.schwarz import solve_helmholtz_schwarz
from wavesim.schwarz_wave import solve_helmholtz_wave_schwarz

field = solve_helmholtz_schwarz(
    permittivity, pixel_size, wavelength, source,
    (2, 2, 2), max_iterations=50, tolerance=1e-6, domain_factory=my_factory,
)
```

The two `solve_*` functions use an overlap of 4 cells and print their progress. If you want to control the sweeps yourself, use the solver classes directly:

- `SchwarzHelmholtzSolver`
- `WaveOptimizedSchwarzSolver`

Each class provides these methods:

- `set_source`
- `schwarz_iteration`
- `gather_solution`

## Analytical references

```python
from wavesim.analytical import rectangular_eigenvalues, rectangular_cavity_2d

k = rectangular_eigenvalues(1.0, 1.0, 1, 1)      # pi * sqrt(2)
field = rectangular_cavity_2d(32, 32, 1.0, 1.0, k, 3)
```

## Simulation helpers

`wavesim.simulation` contains the following:

- **`SimulationParams`** holds the settings of a simulation.
  - `validate(sources)` raises `ValueError` if the pixel size is not below half the wavelength, or if no source is given.
  - `boundary_pixels()` returns the boundary width in pixels.
- **`Source.point` and `Source.from_data`** create sources.
- **`build_source_array(sources, shape, offset)`** adds the sources into one array.
- **`extract_roi(field, roi)`** copies out a box of a field.
- **`SimulationResult`** holds the field, the iteration count, the final residual and, if recorded, the residual history and region of interest.

## What the package does not do

- **No Helmholtz domain.** The package has no concrete Helmholtz domain, meaning no implementation of the propagator or medium operators.
  - `preconditioned_richardson` and the Schwarz solvers need a `Domain` that you supply.
- **No end-to-end simulation.** There is no function that takes a permittivity and sources, adds absorbing boundaries and returns a field. The helpers in `wavesim.simulation` are the pieces you use to write one.
- **No command-line program.**

## Running the tests

```
pytest
```