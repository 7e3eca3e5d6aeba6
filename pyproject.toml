[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "pegkit"
version = "0.1.0"
description = "Parsing Expression Grammar (PEG) parsers built from grammar trees, with packrat caching, left recursion and precedence climbing."
requires-python = ">=3.10"
dependencies = []
keywords = ["peg", "parser", "parsing", "grammar", "packrat", "precedence-climbing"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Code Generators",
    "Topic :: Software Development :: Compilers",
    "Topic :: Text Processing :: General",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["pegkit"]

[tool.hatch.build.targets.sdist]
include = ["pegkit", "tests", "pyproject.toml"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
