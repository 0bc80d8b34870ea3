"""Leaf-node 3D vector and matrix helpers. No scene imports."""

from __future__ import annotations

from typing import Sequence

import numpy as np
from numpy.typing import NDArray

from scancore.exceptions import DegenerateGeometry

Vec3 = NDArray[np.float64]

WORLD_UP: Vec3 = np.array([0.0, 1.0, 0.0])
WORLD_RIGHT: Vec3 = np.array([1.0, 0.0, 0.0])
WORLD_FORWARD: Vec3 = np.array([0.0, 0.0, 1.0])


def vec3(values: Sequence[float] | NDArray[np.float64]) -> Vec3:
    """Coerce a 3-sequence into a float64 array; short input is zero-padded."""
    arr = np.zeros(3, dtype=np.float64)
    data = np.asarray(values, dtype=np.float64).ravel()[:3]
    arr[: data.size] = data
    return arr


def unit(vector: Sequence[float] | Vec3, min_length: float = 1e-9) -> Vec3:
    """Return the normalized vector.

    Raises:
        DegenerateGeometry: if the vector is shorter than ``min_length`` or not finite.
    """
    v = vec3(vector)
    length = float(np.linalg.norm(v))
    if not np.isfinite(length) or length < min_length:
        raise DegenerateGeometry("Cannot normalize a zero-length vector", {"length": f"{length:.3g}"})
    return v / length


def unit_or(vector: Sequence[float] | Vec3, fallback: Vec3, min_length: float = 1e-9) -> Vec3:
    try:
        return unit(vector, min_length)
    except DegenerateGeometry:
        return np.array(fallback, dtype=np.float64)


def distance(a: Sequence[float] | Vec3, b: Sequence[float] | Vec3) -> float:
    return float(np.linalg.norm(vec3(a) - vec3(b)))


def closest_point_on_segment(point: Vec3, a: Vec3, b: Vec3) -> Vec3:
    """Project point onto segment ab with the parameter clamped to [0, 1]."""
    ab = b - a
    denom = float(np.dot(ab, ab))
    if denom <= 0.0:
        return a.copy()
    t = float(np.dot(point - a, ab)) / denom
    t = max(0.0, min(1.0, t))
    return a + t * ab


def angle_between_deg(n1: Vec3, n2: Vec3) -> float:
    """Angle between two unit vectors in degrees, with the dot clamped to [-1, 1]."""
    dot = float(np.clip(np.dot(n1, n2), -1.0, 1.0))
    return float(np.degrees(np.arccos(dot)))


def matrix_from_flat(values: Sequence[float], size: int) -> NDArray[np.float64]:
    """Rebuild a square matrix from a column-major flat list.

    Raises:
        DegenerateGeometry: if the list has the wrong length or non-finite entries.
    """
    flat = np.asarray(list(values), dtype=np.float64)
    if flat.size != size * size or not np.all(np.isfinite(flat)):
        raise DegenerateGeometry(
            f"Expected {size * size} finite values for a {size}x{size} matrix",
            {"count": str(flat.size)},
        )
    return flat.reshape(size, size).T.copy()


def matrix_to_flat(matrix: NDArray[np.float64]) -> list[float]:
    """Flatten a square matrix column-major."""
    return [float(v) for v in np.asarray(matrix, dtype=np.float64).T.ravel()]


def translation_matrix(position: Sequence[float]) -> NDArray[np.float64]:
    m = np.eye(4)
    m[:3, 3] = vec3(position)
    return m


def basis_matrix(
    position: Sequence[float],
    x_axis: Sequence[float],
    y_axis: Sequence[float],
    z_axis: Sequence[float],
) -> NDArray[np.float64]:
    """Build a 4x4 transform whose columns are the given axes and translation."""
    m = np.eye(4)
    m[:3, 0] = vec3(x_axis)
    m[:3, 1] = vec3(y_axis)
    m[:3, 2] = vec3(z_axis)
    m[:3, 3] = vec3(position)
    return m
