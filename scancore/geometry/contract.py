from __future__ import annotations

"""
Geometry Contract

Single source of truth for thresholds, tolerances and defaults shared by the
scene and annotation modules. Settings defaults are taken from here.
"""

# Lengths in meters unless noted; normalized image units end with _N (0..1)

# Corners
CORNER_MIN_ANGLE_DEG = 60.0  # degrees
CORNER_MAX_ANGLE_DEG = 120.0  # degrees
CORNER_MAX_DISTANCE = 0.8  # m between plane centers
MIN_NORMAL_LENGTH = 0.001

# Snapping
CORNER_SNAP_RADIUS = 0.08  # m
EDGE_SNAP_RADIUS = 0.05  # m

# Projection
MIN_PROJECTION_DEPTH = 1e-4  # m in front of the camera
MIN_BASIS_LENGTH_N = 0.001  # shortest usable projected plane edge

# Frames
DEFAULT_FRAME_SIZE = 0.15  # normalized
MIN_FRAME_SIZE = 0.03  # normalized
MAX_FRAME_SIZE = 0.95  # normalized
FRAME_PALETTE = ("#3B82F6", "#10B981", "#F59E0B", "#EF4444", "#8B5CF6")
DEFAULT_COLOR = "#3B82F6"

# Live frames (m)
LIVE_FRAME_SIZE = 0.5
SURFACE_OFFSET = 0.005  # keeps frames off the surface they sit on

# Distance estimation
ESTIMATED_METERS_PER_PIXEL = 0.01  # used without any AR reference
MIN_PIXEL_DISTANCE = 1.0  # px; shorter AR measurements are ignored as scale references

# History
UNDO_CAPACITY = 20

# Room summary
PERPENDICULAR_MAX_DOT = 0.3
DEFAULT_ROOM_HEIGHT = 2.5  # m

# Floor plan (m)
WALL_THICKNESS = 0.15
CORNER_JOIN_RADIUS = 0.5  # segment end to detected corner
PROXIMITY_JOIN_DISTANCE = 0.3  # between loose segment ends
MIN_JOIN_DISTANCE = 0.001
MIN_SEGMENT_DIRECTION = 0.001
FLOOR_PLAN_PADDING = 0.5


def clamp(value: float, lo: float, hi: float) -> float:
    """Clamp value to [lo, hi]."""
    return lo if value < lo else hi if value > hi else value


def clamp01(value: float) -> float:
    return clamp(value, 0.0, 1.0)
