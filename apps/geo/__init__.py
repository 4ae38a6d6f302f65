"""Geo features: coordinate systems, preview, repair and persistence."""
