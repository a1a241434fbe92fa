"""Task dependency graph and critical-path engine."""

__version__ = "0.1.0"
