"""Queue-driven image optimizer."""

__version__ = "0.1.0"
