"""Live scene computation: planes, corners, snapping, projection and capture."""
