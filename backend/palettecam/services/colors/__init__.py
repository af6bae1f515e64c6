"""
PaletteCam Colors Module

Observed color collection, k-means palette extraction, the palette value
type and the reference matcher used to check the recolor shader.
"""
