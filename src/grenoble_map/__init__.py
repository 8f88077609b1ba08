"""Interactive Grenoble map: base tiles, points of interest, cycle paths and a legend."""

__version__ = "0.1.0"
