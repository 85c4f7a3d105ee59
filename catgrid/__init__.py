"""Category-sorted application grid for launcher hosts."""

__version__ = "0.3.0"
