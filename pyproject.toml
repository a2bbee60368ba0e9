[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "gephclient"
version = "0.1.0"
description = "HTTP-to-SOCKS5 proxy bridge, SOCKS5 wire codecs and client-side support utilities"
requires-python = ">=3.10"
dependencies = []
keywords = ["socks5", "http-proxy", "proxy", "connect", "asyncio", "sqlite", "logging"]
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
    "Framework :: AsyncIO",
    "Topic :: Internet :: Proxy Servers",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[tool.hatch.build.targets.wheel]
packages = ["gephclient"]

[tool.hatch.build.targets.sdist]
include = ["gephclient", "tests"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
