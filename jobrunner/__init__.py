"""Building blocks for running CI workflow jobs locally: expressions, step pipelines, job logging, containers and the github context."""

__version__ = "0.1.0"