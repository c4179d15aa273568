"""Round-based multi-winner lottery settlement."""

__version__ = "0.1.0"
