"""
PaletteCam pipeline services.
"""
