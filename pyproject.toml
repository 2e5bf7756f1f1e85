[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "wavesim"
version = "0.1.20"
description = "Wave propagation building blocks: Born series iteration, FDTD Maxwell solvers and Schwarz domain decomposition"
requires-python = ">=3.10"
keywords = [
    "wave propagation",
    "helmholtz",
    "maxwell",
    "fdtd",
    "born series",
    "domain decomposition",
    "schwarz",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Physics",
]
dependencies = [
    "numpy",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["wavesim"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
