[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "minikern"
version = "0.1.0"
description = "File system, buffer cache, write-ahead log, pipes and console logic of a small Unix-like teaching kernel"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "filesystem",
    "kernel",
    "buffer-cache",
    "write-ahead-log",
    "disk-image",
    "teaching",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Education",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Filesystems",
    "Topic :: Education",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
minikern-mkfs = "minikern.mkfs:main"
minikern-grep = "minikern.grep:main"

[tool.hatch.build.targets.wheel]
packages = ["minikern"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 88
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
