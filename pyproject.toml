[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "tracekit"
version = "0.1.0"
description = "Define tracepoints, record binary trace entries and render them as ftrace-style text lines"
requires-python = ">=3.10"
dependencies = []
keywords = ["tracing", "tracepoint", "ftrace", "events", "instrumentation"]
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
    "Topic :: System :: Logging",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
tracekit-demo = "tracekit.demo:main"

[tool.hatch.build.targets.wheel]
packages = ["tracekit"]

[tool.pytest.ini_options]
addopts = "-ra"
