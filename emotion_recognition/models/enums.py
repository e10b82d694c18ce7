"""Enumerations for emotion labels and feature encodings"""

from enum import Enum
from typing import Union

from emotion_recognition.models.errors import ConfigurationError


class Emotion(Enum):
    """Closed set of ground-truth emotion labels"""
    ANGRY = "angry"
    DISGUSTED = "disgusted"
    FEAR = "fear"
    HAPPY = "happy"
    SAD = "sad"
    NEUTRAL = "neutral"
    SURPRISE = "surprise"


class FeatureVariant(Enum):
    """Feature encodings derived from a 68-point landmark shape.

    Exactly one variant is active per extraction, training or benchmark run.
    The value doubles as the name used in every file the variant produces.
    """
    EYEBROW_LIP_RATIOS = "EyebrowLipRatios"   # A: 6 ratios
    RAW_LANDMARKS = "RawLandmarks"            # B: 4 x 68 raw values
    GEOMETRIC_RATIOS = "GeometricRatios"      # C: 12 ratios

    @classmethod
    def parse(cls, selector: Union[str, "FeatureVariant"]) -> "FeatureVariant":
        """Resolve a user-supplied selector.

        Accepts a member, its value, its name, or the short letters A, B, C
        (case-insensitive).

        Raises:
            ConfigurationError: If the selector names no variant
        """
        if isinstance(selector, cls):
            return selector

        text = str(selector).strip()
        short = {"A": cls.EYEBROW_LIP_RATIOS, "B": cls.RAW_LANDMARKS, "C": cls.GEOMETRIC_RATIOS}
        if text.upper() in short:
            return short[text.upper()]

        for variant in cls:
            if text.lower() in (variant.value.lower(), variant.name.lower()):
                return variant

        raise ConfigurationError(
            f"Unknown feature variant '{selector}', expected one of "
            + ", ".join(v.value for v in cls)
        )
