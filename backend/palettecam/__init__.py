"""
PaletteCam

Live camera palette extraction and GPU match-and-recolor.
"""

__version__ = "1.0.0"
