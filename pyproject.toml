[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "numatools"
version = "0.1.0"
description = "Per-node NUMA memory statistics, memory policy helpers and a STREAM-style bandwidth benchmark"
requires-python = ">=3.10"
dependencies = [
    "numpy",
]
keywords = ["numa", "numastat", "memory", "sysfs", "procfs", "monitoring", "stream", "netlink"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Monitoring",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
numastat = "numatools.numastat:main"

[tool.hatch.build.targets.wheel]
packages = ["numatools"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
