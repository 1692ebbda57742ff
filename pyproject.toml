[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "alertstore"
version = "0.1.0"
description = "SQLite storage models for an alerting service: alert rules, active events, mutes, subscriptions, datasources, teams and roles"
requires-python = ">=3.10"
dependencies = []
keywords = ["monitoring", "alerting", "alert-rules", "sqlite", "models"]
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
    "Topic :: System :: Monitoring",
    "Topic :: Database",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["alertstore"]

[tool.hatch.build.targets.sdist]
include = ["alertstore", "tests", "pyproject.toml"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
ignore_missing_imports = true
