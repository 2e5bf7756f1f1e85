"""Wave propagation tools: Born series iteration, FDTD Maxwell solvers, Schwarz decomposition and analytical references."""

__version__ = "0.1.20"