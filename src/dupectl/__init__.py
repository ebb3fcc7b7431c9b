"""dupectl - file fingerprinting and duplicate detection toolkit."""

__version__ = "0.1.0"
