[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "samsynk"
version = "2025.8.2"
description = "A home automation and monitoring system."
requires-python = ">=3.10"
keywords = ["modbus", "rtu", "inverter", "solar", "prometheus", "home-automation"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Framework :: AsyncIO",
    "Framework :: aiohttp",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Home Automation",
    "Topic :: System :: Monitoring",
]
dependencies = [
    "aiohttp",
    "pyserial",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[project.scripts]
samsynk = "samsynk.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["samsynk"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
