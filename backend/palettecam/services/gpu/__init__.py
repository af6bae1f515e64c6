"""
PaletteCam GPU Module

Device and resource ownership plus the full-screen recolor pass.
"""
