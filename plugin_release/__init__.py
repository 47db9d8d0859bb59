"""Release tooling for self-hosted WordPress plugins."""

__version__ = "1.0.0"
