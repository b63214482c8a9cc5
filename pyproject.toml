[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "otari"
version = "0.1.0"
description = "Run container stacks described in YAML as Podman quadlets managed by systemd"
requires-python = ">=3.11"
keywords = ["podman", "quadlet", "systemd", "containers", "orchestration"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Systems Administration",
]
dependencies = [
    "pyyaml",
    "tomli-w",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
otari = "otari.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["otari"]

[tool.pytest.ini_options]
addopts = "-ra"
