"""Data model for a detected 68-point facial landmark shape"""

from dataclasses import dataclass
from typing import Iterable, Tuple

import numpy as np


NUM_LANDMARKS = 68


@dataclass(frozen=True, eq=False)
class LandmarkShape:
    """Ordered landmark points of one detected face

    Index semantics follow the 68-point iBUG scheme produced by the dlib
    shape predictor (e.g. 33 = nose tip, 48/54 = mouth corners, 17-26 = brows).

    Attributes:
        points: (68, 2) array of (x, y) coordinates, read-only
    """
    points: np.ndarray   # (68, 2) array of (x, y) coordinates

    def __post_init__(self):
        """Validate and freeze the landmark data"""
        assert isinstance(self.points, np.ndarray), "Points must be numpy array"
        assert self.points.shape == (NUM_LANDMARKS, 2), "Shape must have 68 (x, y) points"

        points = self.points.copy()
        points.setflags(write=False)
        object.__setattr__(self, "points", points)

    @classmethod
    def from_points(cls, points: Iterable[Tuple[float, float]]) -> "LandmarkShape":
        """Build a shape from an iterable of (x, y) pairs"""
        return cls(points=np.array([tuple(p) for p in points]))

    def part(self, index: int) -> np.ndarray:
        """Get the (x, y) coordinates of one landmark"""
        return self.points[index]

    @property
    def x(self) -> np.ndarray:
        return self.points[:, 0]

    @property
    def y(self) -> np.ndarray:
        return self.points[:, 1]

    def __len__(self) -> int:
        return len(self.points)
