"""Child growth tracking: WHO Z-scores, statistics and offline sync."""

__version__ = "0.1.0"
