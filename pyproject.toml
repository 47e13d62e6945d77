[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "opkgutil"
version = "0.1.0"
description = "Package-manager building blocks: gzip, tar and package extraction, file utilities, mode strings, a hash table and an ordered work list"
requires-python = ">=3.10"
dependencies = []
keywords = ["opkg", "ipk", "deb", "tar", "gzip", "inflate", "package-management"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Archiving :: Packaging",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["opkgutil"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
