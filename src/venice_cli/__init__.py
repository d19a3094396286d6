"""venice-cli: command-line client for OpenAI-compatible chat APIs."""

__version__ = "2.0.0"
