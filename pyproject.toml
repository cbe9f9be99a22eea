[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "evmstate"
version = "0.1.0"
description = "Account state caching, block transitions, bundle changesets and reverts for EVM execution"
requires-python = ">=3.10"
keywords = ["ethereum", "evm", "state", "database", "changeset", "revert"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Database",
    "Typing :: Typed",
]
dependencies = [
    "pycryptodome",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["evmstate"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
