"""Data models and interfaces"""

from emotion_recognition.models.errors import (
    EmotionRecognitionError,
    ExtractionFailure,
    ExtractionError,
    DatasetNotFoundError,
    ConfigurationError,
    MissingArtifactError,
    SessionError,
)
from emotion_recognition.models.enums import Emotion, FeatureVariant
from emotion_recognition.models.landmarks import LandmarkShape, NUM_LANDMARKS
from emotion_recognition.models.features import (
    FeatureRecord,
    EyebrowLipFeatures,
    RawLandmarkFeatures,
    GeometricRatioFeatures,
    record_type,
)
from emotion_recognition.models.results import (
    ExtractionResult,
    ConfusionMatrix,
    MetricSample,
    Prediction,
)
from emotion_recognition.models.interfaces import (
    LandmarkDetectorInterface,
    TrainerInterface,
)

__all__ = [
    # Errors
    "EmotionRecognitionError",
    "ExtractionFailure",
    "ExtractionError",
    "DatasetNotFoundError",
    "ConfigurationError",
    "MissingArtifactError",
    "SessionError",
    # Enums
    "Emotion",
    "FeatureVariant",
    # Landmarks
    "LandmarkShape",
    "NUM_LANDMARKS",
    # Features
    "FeatureRecord",
    "EyebrowLipFeatures",
    "RawLandmarkFeatures",
    "GeometricRatioFeatures",
    "record_type",
    # Results
    "ExtractionResult",
    "ConfusionMatrix",
    "MetricSample",
    "Prediction",
    # Interfaces
    "LandmarkDetectorInterface",
    "TrainerInterface",
]
