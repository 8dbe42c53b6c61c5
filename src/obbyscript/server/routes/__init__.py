"""Route builders for the inspection server."""
