[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "haemil"
version = "0.1.0"
description = "Tenant-scoped event storage on SQLite and a set of guarded local tools for agent runtimes."
requires-python = ">=3.10"
dependencies = []
keywords = [
    "agent",
    "tools",
    "sqlite",
    "event-log",
    "multi-tenant",
    "command-validation",
    "glob",
    "grep",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Database",
    "Topic :: Software Development :: Libraries :: Application Frameworks",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["haemil"]

[tool.hatch.build.targets.sdist]
include = ["haemil", "tests", "pyproject.toml"]

[tool.pytest.ini_options]
addopts = "-ra"
