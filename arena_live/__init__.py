"""Arena Live: real-time synchronization layer for the AI trading arena dashboard."""

__version__ = "0.1.0"
__author__ = "Arena Team"

__all__ = ["__version__", "__author__"]
