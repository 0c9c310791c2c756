"""Building blocks for a local AI assistant: providers, memory, knowledge, paths and frames."""

__version__ = "0.1.0"