"""
POSEFIT Form Service - Joint Geometry

Pure vector math over joint positions. Works for 2D normalized points and
for 3D positions projected out of 4x4 joint transforms alike.
"""

import numpy as np


# Reference axes (zero-padded to the point dimension for 3D input)
VERTICAL = np.array([0.0, 1.0])
HORIZONTAL = np.array([1.0, 0.0])

_EPSILON = 1e-9


class DegenerateGeometryError(ValueError):
    """A vector used in an angle computation has zero magnitude or non-finite components."""


def translation(transform) -> np.ndarray:
    """Project a 4x4 joint transform to its translation component (x, y, z)."""
    matrix = np.asarray(transform, dtype=float)
    if matrix.shape != (4, 4):
        raise ValueError(f"Expected a 4x4 transform, got shape {matrix.shape}")
    return matrix[:3, 3].copy()


def _as_vector(point) -> np.ndarray:
    return np.asarray(point, dtype=float)


def _match_dimension(reference: np.ndarray, size: int) -> np.ndarray:
    if reference.shape[0] == size:
        return reference
    padded = np.zeros(size)
    padded[:min(size, reference.shape[0])] = reference[:size]
    return padded


def _angle_between_vectors(u: np.ndarray, v: np.ndarray) -> float:
    if not (np.isfinite(u).all() and np.isfinite(v).all()):
        raise DegenerateGeometryError("Cannot measure an angle from non-finite coordinates")

    norm_u = np.linalg.norm(u)
    norm_v = np.linalg.norm(v)
    if norm_u < _EPSILON or norm_v < _EPSILON:
        raise DegenerateGeometryError("Cannot measure an angle against a zero-length vector")

    cosine_angle = np.dot(u, v) / (norm_u * norm_v)
    cosine_angle = np.clip(cosine_angle, -1.0, 1.0)
    return float(np.degrees(np.arccos(cosine_angle)))


def angle_between(a, b, c) -> float:
    """
    Calculate angle at point b formed by points a-b-c.

    Args:
        a, b, c: 2D or 3D points

    Returns:
        Angle in degrees (0-180)

    Raises:
        DegenerateGeometryError: if a or c coincides with b
    """
    a, b, c = _as_vector(a), _as_vector(b), _as_vector(c)
    return _angle_between_vectors(a - b, c - b)


def alignment_angle(p1, p2, reference=VERTICAL) -> float:
    """
    Angle in degrees between the segment p1 -> p2 and a reference axis.

    VERTICAL is used for torso lean, HORIZONTAL for body-line alignment.
    """
    p1, p2 = _as_vector(p1), _as_vector(p2)
    segment = p2 - p1
    axis = _match_dimension(_as_vector(reference), segment.shape[0])
    return _angle_between_vectors(segment, axis)


def horizontal_offset(a, b) -> float:
    """Signed horizontal distance a.x - b.x (e.g. knee over ankle)."""
    return float(_as_vector(a)[0] - _as_vector(b)[0])


def midpoint(a, b) -> np.ndarray:
    return (_as_vector(a) + _as_vector(b)) / 2.0
