[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "tinyws"
version = "0.1.0"
description = "A small, dependency-free WebSockets client and server with a polling, callback-driven API"
requires-python = ">=3.10"
dependencies = []
keywords = ["websockets", "websocket", "rfc6455", "client", "server", "networking"]
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
    "Topic :: Internet :: WWW/HTTP",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
tinyws = "tinyws.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["tinyws"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
