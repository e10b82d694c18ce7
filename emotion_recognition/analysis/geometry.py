"""Geometric primitives over landmark coordinates

All functions are pure. Any division by a zero-length reference raises
ZeroDivisionError, and a non-finite result raises FloatingPointError, so
callers can treat both as "no usable geometry for this face".
"""

import math
from typing import Sequence, Tuple

import numpy as np

from emotion_recognition.models.landmarks import LandmarkShape


def centroid(shape: LandmarkShape) -> np.ndarray:
    """Arithmetic mean of all landmark x and y coordinates independently"""
    return shape.points.astype(np.float64).mean(axis=0)


def truncated_centroid(shape: LandmarkShape) -> Tuple[int, int]:
    """Centroid with each coordinate truncated toward zero to a pixel position"""
    cx, cy = centroid(shape)
    return int(cx), int(cy)


def divide(numerator: float, denominator: float) -> float:
    """Divide, refusing zero denominators and non-finite results"""
    numerator = float(numerator)
    denominator = float(denominator)
    if denominator == 0.0:
        raise ZeroDivisionError("Reference length is zero")
    result = numerator / denominator
    if not math.isfinite(result):
        raise FloatingPointError(f"Non-finite ratio {numerator} / {denominator}")
    return result


def distance(a, b) -> float:
    """Euclidean distance between two points"""
    delta = np.asarray(b, dtype=np.float64) - np.asarray(a, dtype=np.float64)
    return float(math.hypot(delta[0], delta[1]))


def squared_distance(a, b) -> float:
    """Squared Euclidean distance between two points"""
    delta = np.asarray(b, dtype=np.float64) - np.asarray(a, dtype=np.float64)
    return float(delta[0] * delta[0] + delta[1] * delta[1])


def normalized_feature_length(reference, contributors: Sequence, scale_reference) -> float:
    """Summed distance of contributor points to a reference, scaled.

    Each contributor is translated by -reference and its magnitude summed;
    the total is divided by the distance between reference and scale_reference.
    """
    total = sum(distance(reference, point) for point in contributors)
    return divide(total, distance(reference, scale_reference))


def squared_distance_ratio(a, b, normalization: float) -> float:
    """Squared distance between two points divided by a normalization constant"""
    return divide(squared_distance(a, b), normalization)


def angle(point, reference=(0.0, 0.0)) -> float:
    """atan2(dy, dx) of point relative to reference, in radians"""
    dx = float(point[0]) - float(reference[0])
    dy = float(point[1]) - float(reference[1])
    return math.atan2(dy, dx)


def direction_angle(point, reference) -> float:
    """Angle of the unit vector from reference to point, in radians.

    Unlike angle(), a point coinciding with its reference has no direction
    and raises ZeroDivisionError.
    """
    length = distance(reference, point)
    ux = divide(float(point[0]) - float(reference[0]), length)
    uy = divide(float(point[1]) - float(reference[1]), length)
    return math.atan2(uy, ux)
