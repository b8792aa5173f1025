[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "quadnet"
version = "0.1.2"
description = "Small network abstractions: length-prefixed TCP sockets, a WebSocket client, a callback server and background HTTP requests"
requires-python = ">=3.10"
keywords = ["networking", "tcp", "websocket", "http", "games"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Software Development :: Libraries :: Python Modules",
    "Topic :: System :: Networking",
]
dependencies = [
    "websocket-client",
    "websockets>=12.0",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
quadnet-shared-world = "quadnet.shared_world:main"

[tool.hatch.build.targets.wheel]
packages = ["quadnet"]

[tool.pytest.ini_options]
addopts = "-ra"
