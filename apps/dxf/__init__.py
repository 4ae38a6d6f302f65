"""DXF reading and conversion."""
