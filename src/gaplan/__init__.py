"""gaplan - milestone-driven schedule optimization."""

__version__ = "0.1.0"
