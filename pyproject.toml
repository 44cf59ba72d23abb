[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "trafstat"
version = "0.1.0"
description = "Network traffic statistics: packet decoding, traffic accounting, round-robin graphs, a daily usage log and a binary storage format"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "network",
    "traffic",
    "statistics",
    "pcap",
    "bandwidth",
    "monitoring",
    "accounting",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking :: Monitoring",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
trafstat = "trafstat.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["trafstat"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]
