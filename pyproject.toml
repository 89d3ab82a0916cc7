[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "cogni"
version = "0.1.0"
description = "Tools, a versioned tool registry and Model Context Protocol plumbing for LLM orchestration"
requires-python = ">=3.10"
keywords = [
    "llm",
    "orchestration",
    "tools",
    "agents",
    "mcp",
    "json-rpc",
    "json-schema",
    "registry",
    "semver",
]
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
    "Topic :: Software Development :: Libraries :: Application Frameworks",
    "Topic :: Scientific/Engineering :: Artificial Intelligence",
]
dependencies = [
    "jsonschema>=4.0",
    "semver>=3.0",
    "httpx>=0.24",
    "cachetools>=5.0",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
    "pytest-asyncio>=0.21",
]

[tool.hatch.build.targets.wheel]
packages = ["cogni"]

[tool.hatch.build.targets.sdist]
include = ["cogni", "tests", "README.md", "pyproject.toml"]

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
warn_redundant_casts = true
