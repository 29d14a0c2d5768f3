"""REST surface for session create/join/info."""
