[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "amorpc"
version = "0.1.0"
description = "Building blocks for a threaded RPC system: a big-endian wire format, a bounded queue, a worker pool, a select-based poll loop, and a file-system coherence checker"
requires-python = ">=3.10"
dependencies = []
keywords = ["rpc", "marshalling", "thread-pool", "select", "distributed-systems", "coherence"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Distributed Computing",
    "Topic :: System :: Filesystems",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
amorpc-fscheck = "amorpc.fscheck:main"

[tool.hatch.build.targets.wheel]
packages = ["amorpc"]

[tool.pytest.ini_options]
addopts = "-ra"
