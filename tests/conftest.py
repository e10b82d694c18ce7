"""Pytest configuration and fixtures"""

from pathlib import Path

import numpy as np
import pandas as pd
import pytest
from hypothesis import settings, Verbosity

from emotion_recognition.models.enums import FeatureVariant
from emotion_recognition.models.errors import ExtractionError, ExtractionFailure
from emotion_recognition.models.features import LABEL_COLUMN, record_type
from emotion_recognition.models.interfaces import LandmarkDetectorInterface, TrainerInterface
from emotion_recognition.models.landmarks import LandmarkShape
from emotion_recognition.models.results import ConfusionMatrix, MetricSample, Prediction

# Register Hypothesis profiles
settings.register_profile("ci", max_examples=100, verbosity=Verbosity.verbose)
settings.register_profile("dev", max_examples=20, verbosity=Verbosity.normal)
settings.register_profile("debug", max_examples=10, verbosity=Verbosity.verbose)

# Use CI profile by default
settings.load_profile("ci")


# A left/right symmetric face about x = 100 in the 68-point iBUG layout
SYMMETRIC_FACE_POINTS = [
    # Jaw 0-16
    (40, 80), (41, 95), (43, 110), (46, 125), (51, 139), (59, 151), (69, 161), (81, 168),
    (100, 171),
    (119, 168), (131, 161), (141, 151), (149, 139), (154, 125), (157, 110), (159, 95), (160, 80),
    # Brows 17-26
    (50, 62), (58, 56), (67, 54), (76, 55), (85, 58),
    (115, 58), (124, 55), (133, 54), (142, 56), (150, 62),
    # Nose 27-35
    (100, 65), (100, 75), (100, 85), (100, 95),
    (90, 102), (95, 104), (100, 106), (105, 104), (110, 102),
    # Eyes 36-47
    (60, 72), (66, 68), (73, 68), (79, 73), (73, 76), (66, 76),
    (121, 73), (127, 68), (134, 68), (140, 72), (134, 76), (127, 76),
    # Outer lip 48-59
    (80, 130), (87, 124), (94, 121), (100, 122), (106, 121), (113, 124), (120, 130),
    (113, 136), (106, 139), (100, 140), (94, 139), (87, 136),
    # Inner lip 60-67
    (84, 130), (94, 127), (100, 127), (106, 127), (116, 130), (106, 133), (100, 134), (94, 133),
]

# Index of the horizontally mirrored counterpart of each landmark
MIRROR_INDEX = (
    list(range(16, -1, -1))
    + list(range(26, 16, -1))
    + [27, 28, 29, 30]
    + [35, 34, 33, 32, 31]
    + [45, 44, 43, 42, 47, 46, 39, 38, 37, 36, 41, 40]
    + [54, 53, 52, 51, 50, 49, 48, 59, 58, 57, 56, 55]
    + [64, 63, 62, 61, 60, 67, 66, 65]
)


def make_symmetric_face(scale: float = 1.0, dx: float = 0.0, dy: float = 0.0) -> LandmarkShape:
    points = np.array(SYMMETRIC_FACE_POINTS, dtype=np.float64) * scale + np.array([dx, dy])
    return LandmarkShape(points=points)


@pytest.fixture
def symmetric_face():
    """Symmetric synthetic face with integer coordinates"""
    return make_symmetric_face()


@pytest.fixture
def collapsed_face():
    """Every landmark at the same position"""
    return LandmarkShape(points=np.full((68, 2), 50.0))


class FakeDetector(LandmarkDetectorInterface):
    """Detector returning canned shapes per image file name.

    Files listed in `unreadable` fail like undecodable images, files listed
    in `faceless` have no face, everything else gets `default_shape`.
    """

    def __init__(self, default_shape=None, shapes_by_name=None, unreadable=(), faceless=()):
        self.default_shape = default_shape if default_shape is not None else make_symmetric_face()
        self.shapes_by_name = shapes_by_name or {}
        self.unreadable = set(unreadable)
        self.faceless = set(faceless)
        self.calls = []
        self.closed = 0

    def detect(self, image):
        return [self.default_shape]

    def detect_file(self, image_path):
        image_path = Path(image_path)
        self.calls.append(image_path.name)
        if image_path.name in self.unreadable:
            raise ExtractionError(ExtractionFailure.UNREADABLE_IMAGE, "Unable to read image", image_path)
        if image_path.name in self.faceless:
            return []
        return self.shapes_by_name.get(image_path.name, [self.default_shape])

    def close(self):
        self.closed += 1


@pytest.fixture
def fake_detector():
    return FakeDetector()


def make_feature_table(variant=FeatureVariant.EYEBROW_LIP_RATIOS, labels=("angry", "happy", "sad"),
                       rows_per_label=30, seed=0) -> pd.DataFrame:
    """Feature table with one well-separated cluster per label"""
    rng = np.random.default_rng(seed)
    columns = record_type(variant).feature_columns()
    frames = []
    for i, label in enumerate(labels):
        centre = np.zeros(len(columns))
        centre[i % len(columns)] = 10.0
        values = centre + rng.normal(0.0, 0.5, size=(rows_per_label, len(columns)))
        frame = pd.DataFrame(values, columns=columns)
        frame.insert(0, LABEL_COLUMN, label)
        frames.append(frame)
    return pd.concat(frames, ignore_index=True)


@pytest.fixture
def feature_table():
    return make_feature_table()


def make_confusion_matrix(counts) -> ConfusionMatrix:
    """ConfusionMatrix from [actual][predicted] counts with derived precision and recall"""
    counts = np.asarray(counts, dtype=np.int64)
    predicted_totals = counts.sum(axis=0)
    actual_totals = counts.sum(axis=1)
    diagonal = np.diag(counts).astype(np.float64)
    precision = np.divide(diagonal, predicted_totals, out=np.zeros_like(diagonal),
                          where=predicted_totals > 0)
    recall = np.divide(diagonal, actual_totals, out=np.zeros_like(diagonal),
                       where=actual_totals > 0)
    return ConfusionMatrix(counts=counts, per_class_precision=precision, per_class_recall=recall)


def make_metric_sample(counts, log_loss=0.5, elapsed_ms=None) -> MetricSample:
    matrix = make_confusion_matrix(counts)
    total = matrix.counts.sum()
    return MetricSample(
        macro_accuracy=float(np.mean(matrix.per_class_recall)),
        micro_accuracy=float(np.trace(matrix.counts) / total),
        log_loss=log_loss,
        log_loss_reduction=1.0 - log_loss,
        confusion_matrix=matrix,
        elapsed_ms=elapsed_ms,
    )


class FakeSession:
    def __init__(self, variant, max_iterations, id_to_emotion):
        self.variant = variant
        self.max_iterations = max_iterations
        self.id_to_emotion = dict(id_to_emotion)
        self.closed = False

    def close(self):
        self.closed = True


class FakeTrainer(TrainerInterface):
    """Trainer that hands out canned metric samples in order"""

    def __init__(self, samples, id_to_emotion=None):
        self.samples = list(samples)
        self.id_to_emotion = id_to_emotion or {0: "angry", 1: "happy"}
        self.train_calls = []
        self.sessions = []

    def train(self, variant, max_iterations=None, save=True):
        self.train_calls.append((variant, max_iterations, save))
        session = FakeSession(variant, max_iterations, self.id_to_emotion)
        self.sessions.append(session)
        return session

    def evaluate(self, session):
        return self.samples[(len(self.train_calls) - 1) % len(self.samples)]

    def predict(self, session, record):
        return Prediction(predicted_emotion=self.id_to_emotion[0],
                          scores={name: 0.0 for name in self.id_to_emotion.values()})


@pytest.fixture(scope="session")
def face_factory():
    return make_symmetric_face


@pytest.fixture
def table_factory():
    return make_feature_table


@pytest.fixture
def confusion_factory():
    return make_confusion_matrix


@pytest.fixture
def sample_factory():
    return make_metric_sample


@pytest.fixture
def detector_factory():
    return FakeDetector


@pytest.fixture
def trainer_factory():
    return FakeTrainer
