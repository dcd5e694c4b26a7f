[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "tfworkspace"
version = "0.1.0"
description = "Manage Terraform working directories: state and configuration files, CLI operations, log-based errors and shared provider processes."
requires-python = ">=3.10"
dependencies = []
keywords = ["terraform", "workspace", "infrastructure", "tfstate", "provider"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Systems Administration",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["tfworkspace"]

[tool.pytest.ini_options]
addopts = "-ra"
