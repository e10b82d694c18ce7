"""Data models for the three feature encodings of a landmark shape

Each record carries the emotion label first, followed by a fixed number of
feature columns in a fixed order. The order is part of the on-disk feature
table format and must not change.
"""

from dataclasses import dataclass, field, fields
from typing import ClassVar, Dict, List, Type

import numpy as np

from emotion_recognition.models.enums import FeatureVariant
from emotion_recognition.models.formatting import format_number
from emotion_recognition.models.landmarks import NUM_LANDMARKS


LABEL_COLUMN = "emotion"


@dataclass
class FeatureRecord:
    """Common behaviour of all feature records

    Attributes:
        emotion: Ground-truth label, or a placeholder when predicting
    """
    emotion: str

    variant: ClassVar[FeatureVariant]
    trailing_comma: ClassVar[bool] = False

    @classmethod
    def feature_columns(cls) -> List[str]:
        """Names of the feature columns, in table order"""
        return [f.name for f in fields(cls) if f.name != LABEL_COLUMN]

    @classmethod
    def columns(cls) -> List[str]:
        """Label column followed by the feature columns"""
        return [LABEL_COLUMN] + cls.feature_columns()

    @classmethod
    def field_count(cls) -> int:
        return len(cls.columns())

    def feature_vector(self) -> np.ndarray:
        """Feature values concatenated into one float vector"""
        return np.array(
            [getattr(self, name) for name in self.feature_columns()], dtype=np.float64
        )

    def to_csv_line(self) -> str:
        """Serialize the record as one feature-table line (without newline)"""
        cells = [self.emotion] + [format_number(v) for v in self.feature_vector()]
        line = ",".join(cells)
        return line + "," if self.trailing_comma else line


@dataclass
class EyebrowLipFeatures(FeatureRecord):
    """Variant A: eyebrow and lip lengths relative to nearby reference segments

    Attributes:
        left_eyebrow: Summed eyebrow-to-eye-corner lengths over the brow span
        right_eyebrow: Same for the right brow
        left_lip: Summed lip-to-nose-tip lengths over the upper-lip height
        right_lip: Same for the right half of the lip
        lip_height: Outer lip height over the nose-to-lip distance
        lip_width: Mouth corner distance over the nose-to-lip distance
    """
    left_eyebrow: float
    right_eyebrow: float
    left_lip: float
    right_lip: float
    lip_height: float
    lip_width: float

    variant: ClassVar[FeatureVariant] = FeatureVariant.EYEBROW_LIP_RATIOS


@dataclass(eq=False)
class RawLandmarkFeatures(FeatureRecord):
    """Variant B: the raw landmark layout plus per-point polar terms

    Attributes:
        raw_x: x coordinate of each landmark
        raw_y: y coordinate of each landmark
        angles: atan2(y, x) of each landmark about the image origin, radians
        squared_distances: Squared distance of each landmark to the centroid
    """
    raw_x: np.ndarray = field(default_factory=lambda: np.zeros(NUM_LANDMARKS))
    raw_y: np.ndarray = field(default_factory=lambda: np.zeros(NUM_LANDMARKS))
    angles: np.ndarray = field(default_factory=lambda: np.zeros(NUM_LANDMARKS))
    squared_distances: np.ndarray = field(default_factory=lambda: np.zeros(NUM_LANDMARKS))

    variant: ClassVar[FeatureVariant] = FeatureVariant.RAW_LANDMARKS
    trailing_comma: ClassVar[bool] = True

    _GROUPS: ClassVar[List[str]] = ["raw_x", "raw_y", "angles", "squared_distances"]

    def __post_init__(self):
        for name in self._GROUPS:
            values = np.asarray(getattr(self, name), dtype=np.float64)
            assert values.shape == (NUM_LANDMARKS,), f"{name} must hold {NUM_LANDMARKS} values"
            setattr(self, name, values)

    @classmethod
    def feature_columns(cls) -> List[str]:
        return [f"{name}_{i}" for name in cls._GROUPS for i in range(NUM_LANDMARKS)]

    def feature_vector(self) -> np.ndarray:
        return np.concatenate([getattr(self, name) for name in self._GROUPS])


@dataclass
class GeometricRatioFeatures(FeatureRecord):
    """Variant C: squared distances normalized by the nasal-bridge-to-centroid distance"""
    left_eyebrow_distance: float
    right_eyebrow_distance: float
    left_eye_width: float
    right_eye_width: float
    left_eye_height: float
    right_eye_height: float
    outer_lip_width: float
    inner_lip_width: float
    outer_lip_height: float
    inner_lip_height: float
    left_lip_edge_angle: float
    right_lip_edge_angle: float

    variant: ClassVar[FeatureVariant] = FeatureVariant.GEOMETRIC_RATIOS


RECORD_TYPES: Dict[FeatureVariant, Type[FeatureRecord]] = {
    FeatureVariant.EYEBROW_LIP_RATIOS: EyebrowLipFeatures,
    FeatureVariant.RAW_LANDMARKS: RawLandmarkFeatures,
    FeatureVariant.GEOMETRIC_RATIOS: GeometricRatioFeatures,
}


def record_type(variant: FeatureVariant) -> Type[FeatureRecord]:
    """Get the record class for a feature variant"""
    return RECORD_TYPES[FeatureVariant.parse(variant)]
