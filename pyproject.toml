[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "olake"
version = "0.1.0"
description = "Building blocks for syncing MongoDB, MySQL and Postgres tables: connection configuration, type mapping and chunk planning for parallel backfills."
requires-python = ">=3.10"
keywords = ["database", "replication", "backfill", "mongodb", "mysql", "postgres", "chunking"]
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
]
dependencies = [
    "pymongo",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["olake"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
