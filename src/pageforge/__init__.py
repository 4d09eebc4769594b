"""Production build orchestrator for page-based web applications."""

__version__ = "0.1.0"
