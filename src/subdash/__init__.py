"""Login gate for the subscription dashboard."""

__version__ = "0.1.0"
