[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "minidfs"
version = "0.1.0"
description = "A small distributed file store with DNS, Master, Data and Client nodes speaking a compact TCP packet protocol"
requires-python = ">=3.10"
keywords = ["distributed", "file-system", "replication", "tcp", "storage"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Distributed Computing",
    "Topic :: System :: Filesystems",
]
dependencies = [
    "python-dotenv",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
minidfs = "minidfs.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["minidfs"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
