[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "afina"
version = "0.1.0"
description = "Teaching toolkit: memcached-style commands, a logging service, synchronization primitives and small systems-programming demos"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "education",
    "memcached",
    "logging",
    "synchronization",
    "latch",
    "rwlock",
    "sockets",
    "echo-server",
    "pipes",
    "threads",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Education",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Education",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
afina-latch = "afina.latch:main"
afina-rwlock = "afina.rwlock:main"
afina-sync = "afina.sync_demos:main"
afina-cat = "afina.fileio:cat_main"
afina-flags = "afina.fileio:flags_main"
afina-ls = "afina.fileio:ls_main"
afina-threads = "afina.thread_demos:main"
afina-echo = "afina.echo:main"
afina-servers = "afina.simple_servers:main"
afina-pipes = "afina.pipes:main"

[tool.hatch.build.targets.wheel]
packages = ["afina"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
