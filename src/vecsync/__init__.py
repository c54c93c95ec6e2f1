"""vecsync: a local, incrementally-updated semantic index."""

__version__ = "0.1.0"
