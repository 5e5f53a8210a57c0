"""Category grouper: density clustering and naming of embedded items."""

__version__ = "1.0.0"
