[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "botplugins"
version = "0.1.0"
description = "Chat bot plugin toolkit: group reminders, group management helpers, MIDI note games and small web lookups."
requires-python = ">=3.10"
keywords = ["chat", "bot", "qq", "cq-code", "reminder", "cron", "midi", "group-management"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Natural Language :: Chinese (Simplified)",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Communications :: Chat",
    "Topic :: Multimedia :: Sound/Audio :: MIDI",
]
dependencies = [
    "requests>=2.28",
    "mido>=1.2",
    "lxml>=4.9",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
    "responses>=0.23",
]

[tool.hatch.build.targets.wheel]
packages = ["botplugins"]

[tool.hatch.build.targets.sdist]
include = ["botplugins", "tests", "pyproject.toml"]

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
ignore_missing_imports = true
