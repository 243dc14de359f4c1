[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "wschat"
version = "0.1.0"
description = "WebSocket chat backend core: configuration, data models, request and response shapes, and in-process message routing for direct and group chat."
requires-python = ">=3.11"
keywords = ["chat", "websocket", "messaging", "group chat", "instant messaging"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Communications :: Chat",
]
dependencies = [
    "cryptography",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["wschat"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]
