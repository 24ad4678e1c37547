[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "kindtool"
version = "0.1.0"
description = "Helpers for local Kubernetes clusters whose nodes run as containers: node roles, image loading, command execution and error aggregation"
requires-python = ">=3.11"
dependencies = []
keywords = ["kubernetes", "kind", "containers", "cluster", "docker", "containerd"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Clustering",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
kindtool-version = "kindtool.version:main"

[tool.hatch.build.targets.wheel]
packages = ["kindtool"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py311"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.11"
warn_unused_ignores = true
