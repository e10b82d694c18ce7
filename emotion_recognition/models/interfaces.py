"""Base interfaces for the external collaborators of the core pipeline"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional

import numpy as np

from emotion_recognition.models.enums import FeatureVariant
from emotion_recognition.models.features import FeatureRecord
from emotion_recognition.models.landmarks import LandmarkShape
from emotion_recognition.models.results import MetricSample, Prediction


class LandmarkDetectorInterface(ABC):
    """Face detection plus 68-point shape prediction"""

    @abstractmethod
    def detect(self, image: np.ndarray) -> List[LandmarkShape]:
        """Detect every face in an RGB image

        Args:
            image: RGB image array (H, W, 3)

        Returns:
            One landmark shape per detected face, empty if none
        """
        pass

    @abstractmethod
    def detect_file(self, image_path: Path) -> List[LandmarkShape]:
        """Load an image from disk and detect every face in it

        Raises:
            ExtractionError: If the image cannot be read
        """
        pass

    def close(self) -> None:
        """Release any loaded models"""
        pass


class TrainerInterface(ABC):
    """Trains and evaluates a multiclass emotion classifier"""

    @abstractmethod
    def train(self, variant: FeatureVariant, max_iterations: Optional[int] = None,
              save: bool = True):
        """Train a fresh model on the variant's feature table

        Returns:
            A session holding the model, its label mapping and held-out split
        """
        pass

    @abstractmethod
    def evaluate(self, session) -> MetricSample:
        """Evaluate the session's model on its held-out split"""
        pass

    @abstractmethod
    def predict(self, session, record: FeatureRecord) -> Prediction:
        """Predict the emotion of one feature record"""
        pass
