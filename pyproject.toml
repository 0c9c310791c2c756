[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "clawkit"
version = "0.1.0"
description = "Building blocks for a local AI assistant: composable LLM providers, tiered model routing, turn memory and an experience library."
requires-python = ">=3.10"
dependencies = []
keywords = [
    "llm",
    "openai",
    "assistant",
    "model-routing",
    "memory",
    "knowledge-distillation",
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
    "Topic :: Scientific/Engineering :: Artificial Intelligence",
    "Topic :: Software Development :: Libraries :: Python Modules",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["clawkit"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]
