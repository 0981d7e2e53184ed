[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "padsynth"
version = "0.1.0"
description = "PADsynth wave tables, oscillators, effects, Scala tuning, presets and session-manager client for a polyphonic synthesizer."
requires-python = ">=3.10"
keywords = ["padsynth", "synthesizer", "audio", "dsp", "scala", "tuning", "effects", "nsm", "osc"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Multimedia :: Sound/Audio :: Sound Synthesis",
]
dependencies = [
    "numpy",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["padsynth"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 88
target-version = "py310"

[tool.mypy]
python_version = "3.10"
ignore_missing_imports = true
