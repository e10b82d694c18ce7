"""Feature extraction from 68-point landmark shapes

Three encodings are supported, selected by FeatureVariant:

    A  EyebrowLipFeatures      6 ratios around brows and lips
    B  RawLandmarkFeatures     raw x/y, angle and squared centroid distance per point
    C  GeometricRatioFeatures  12 squared-distance ratios and lip edge angles

The per-variant functions raise ArithmeticError on degenerate geometry.
extract_features() wraps them and always returns an ExtractionResult.
"""

import logging
from pathlib import Path
from typing import Callable, Dict, Optional

import numpy as np

from emotion_recognition.analysis import geometry
from emotion_recognition.models.enums import FeatureVariant
from emotion_recognition.models.errors import ExtractionError, ExtractionFailure
from emotion_recognition.models.features import (
    EyebrowLipFeatures,
    FeatureRecord,
    GeometricRatioFeatures,
    RawLandmarkFeatures,
)
from emotion_recognition.models.landmarks import LandmarkShape
from emotion_recognition.models.results import ExtractionResult


logger = logging.getLogger(__name__)


# 68-point landmark indices
NASAL_BRIDGE_TOP = 27
NOSE_TIP = 33
LEFT_EYE_OUTER, LEFT_EYE_INNER = 36, 39
RIGHT_EYE_INNER, RIGHT_EYE_OUTER = 42, 45
LEFT_MOUTH_CORNER, RIGHT_MOUTH_CORNER = 48, 54
UPPER_LIP_TOP, LOWER_LIP_BOTTOM = 51, 57


def extract_eyebrow_lip_ratios(shape: LandmarkShape, label: str) -> EyebrowLipFeatures:
    """Variant A.

    Brow terms sum the distances from the inner eye corner to the middle of
    the brow, scaled by the eye-corner-to-inner-brow distance. Lip terms sum
    the distances from the nose tip to each half of the upper lip, scaled by
    the nose-to-upper-lip distance, which also scales lip height and width.
    """
    p = shape.part

    left_eyebrow = geometry.normalized_feature_length(
        p(LEFT_EYE_INNER), [p(18), p(19), p(20)], p(21))
    right_eyebrow = geometry.normalized_feature_length(
        p(RIGHT_EYE_INNER), [p(23), p(24), p(25)], p(22))

    left_lip = geometry.normalized_feature_length(
        p(NOSE_TIP), [p(48), p(49), p(50)], p(UPPER_LIP_TOP))
    right_lip = geometry.normalized_feature_length(
        p(NOSE_TIP), [p(52), p(53), p(54)], p(UPPER_LIP_TOP))

    nose_to_lip = geometry.distance(p(NOSE_TIP), p(UPPER_LIP_TOP))
    lip_height = geometry.divide(
        geometry.distance(p(UPPER_LIP_TOP), p(LOWER_LIP_BOTTOM)), nose_to_lip)
    lip_width = geometry.divide(
        geometry.distance(p(LEFT_MOUTH_CORNER), p(RIGHT_MOUTH_CORNER)), nose_to_lip)

    return EyebrowLipFeatures(
        emotion=label,
        left_eyebrow=left_eyebrow,
        right_eyebrow=right_eyebrow,
        left_lip=left_lip,
        right_lip=right_lip,
        lip_height=lip_height,
        lip_width=lip_width,
    )


def extract_raw_landmarks(shape: LandmarkShape, label: str) -> RawLandmarkFeatures:
    """Variant B.

    Coordinates are kept unnormalized. Squared distances are taken between
    pixel positions (centroid and point truncated toward zero). Angles are
    measured about the image origin, not the centroid.
    """
    x = shape.x.astype(np.float64)
    y = shape.y.astype(np.float64)
    cx, cy = geometry.truncated_centroid(shape)

    px = np.trunc(x)
    py = np.trunc(y)
    squared_distances = (cx - px) ** 2 + (cy - py) ** 2
    angles = np.arctan2(y, x)

    return RawLandmarkFeatures(
        emotion=label,
        raw_x=x,
        raw_y=y,
        angles=angles,
        squared_distances=squared_distances,
    )


def extract_geometric_ratios(shape: LandmarkShape, label: str) -> GeometricRatioFeatures:
    """Variant C.

    Every distance term is a squared distance divided by the squared distance
    from the top of the nasal bridge to the (pixel-truncated) centroid.
    """
    p = shape.part
    middle = geometry.truncated_centroid(shape)
    normalization = geometry.squared_distance(p(NASAL_BRIDGE_TOP), middle)
    if normalization == 0.0:
        raise ZeroDivisionError("Nasal bridge coincides with the face centroid")

    def to_middle(index: int) -> float:
        return geometry.squared_distance_ratio(p(index), middle, normalization)

    def between(a: int, b: int) -> float:
        return geometry.squared_distance_ratio(p(a), p(b), normalization)

    # 18 and 25 are each counted twice over a divisor of 5, as in existing feature tables
    left_eyebrow_distance = (to_middle(17) + to_middle(18) + to_middle(18)
                             + to_middle(19) + to_middle(20) + to_middle(21)) / 5
    right_eyebrow_distance = (to_middle(22) + to_middle(23) + to_middle(24)
                              + to_middle(25) + to_middle(25)) / 5

    return GeometricRatioFeatures(
        emotion=label,
        left_eyebrow_distance=left_eyebrow_distance,
        right_eyebrow_distance=right_eyebrow_distance,
        left_eye_width=between(LEFT_EYE_OUTER, LEFT_EYE_INNER),
        right_eye_width=between(RIGHT_EYE_INNER, RIGHT_EYE_OUTER),
        left_eye_height=between(40, 38),
        right_eye_height=between(46, 44),
        outer_lip_width=between(LEFT_MOUTH_CORNER, RIGHT_MOUTH_CORNER),
        inner_lip_width=between(60, 64),
        outer_lip_height=between(52, 58),
        inner_lip_height=between(63, 67),
        left_lip_edge_angle=geometry.direction_angle(p(LEFT_MOUTH_CORNER), middle),
        right_lip_edge_angle=geometry.direction_angle(p(RIGHT_MOUTH_CORNER), middle),
    )


EXTRACTORS: Dict[FeatureVariant, Callable[[LandmarkShape, str], FeatureRecord]] = {
    FeatureVariant.EYEBROW_LIP_RATIOS: extract_eyebrow_lip_ratios,
    FeatureVariant.RAW_LANDMARKS: extract_raw_landmarks,
    FeatureVariant.GEOMETRIC_RATIOS: extract_geometric_ratios,
}


def extract_features(shape: LandmarkShape, label: str, variant: FeatureVariant,
                     image: Optional[Path] = None) -> ExtractionResult:
    """Extract one feature record from a landmark shape.

    Args:
        shape: 68-point landmark shape of one face
        label: Emotion label stored verbatim in the record
        variant: Which encoding to produce
        image: Source image, only used to describe failures

    Returns:
        ExtractionResult holding the record, or an ExtractionError with reason
        DEGENERATE_GEOMETRY if the geometry could not be computed

    Raises:
        ConfigurationError: If variant is not a known selector
    """
    extractor = EXTRACTORS[FeatureVariant.parse(variant)]
    try:
        return ExtractionResult.success(extractor(shape, label))
    except ArithmeticError as e:
        logger.debug(f"Degenerate geometry for {variant}: {e}")
        return ExtractionResult.failure(ExtractionError(
            ExtractionFailure.DEGENERATE_GEOMETRY,
            f"Unable to compute {FeatureVariant.parse(variant).value} features: {e}",
            image,
        ))
