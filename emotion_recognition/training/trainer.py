"""Emotion classifier training, evaluation and prediction

A multinomial logistic regression (maximum entropy) classifier is trained
on one variant's feature table. Everything a trained model needs afterwards
(label mapping, held-out split) lives in a TrainingSession created by
train() and passed explicitly to evaluate() and predict().
"""

import logging
import warnings
from pathlib import Path
from typing import Dict, Optional

import joblib
import numpy as np
import pandas as pd
from sklearn.exceptions import ConvergenceWarning
from sklearn.linear_model import LogisticRegression
from sklearn.model_selection import train_test_split

from emotion_recognition.analysis.pipeline import FeatureExtractionPipeline
from emotion_recognition.config.config_loader import config
from emotion_recognition.models.enums import FeatureVariant
from emotion_recognition.models.errors import MissingArtifactError, SessionError
from emotion_recognition.models.features import LABEL_COLUMN, FeatureRecord, record_type
from emotion_recognition.models.interfaces import TrainerInterface
from emotion_recognition.models.results import MetricSample, Prediction
from emotion_recognition.training.metrics import compute_metrics


logger = logging.getLogger(__name__)


def model_file_name(variant: FeatureVariant) -> str:
    return f"model{FeatureVariant.parse(variant).value}.joblib"


TEST_SPLIT_PREFIX = "testsetdataview"
TRAIN_SPLIT_PREFIX = "trainsetdataview"


def split_file_name(prefix: str, variant: FeatureVariant) -> str:
    return f"{prefix}{FeatureVariant.parse(variant).value}.csv"


class TrainingSession:
    """A trained model together with the state it was trained with.

    Attributes:
        variant: Feature variant the model consumes
        model: Fitted classifier, None once the session is closed
        id_to_emotion: Class id to label, ids assigned in sorted label order
        train_set: Rows the model was fitted on
        test_set: Held-out rows for evaluation
    """

    def __init__(self, variant: FeatureVariant, model: Optional[LogisticRegression],
                 id_to_emotion: Dict[int, str], train_set: Optional[pd.DataFrame] = None,
                 test_set: Optional[pd.DataFrame] = None):
        self.variant = FeatureVariant.parse(variant)
        self.model = model
        self.id_to_emotion = dict(id_to_emotion)
        self.train_set = train_set
        self.test_set = test_set

    @property
    def emotion_to_id(self) -> Dict[str, int]:
        return {emotion: i for i, emotion in self.id_to_emotion.items()}

    @property
    def num_classes(self) -> int:
        return len(self.id_to_emotion)

    @property
    def is_open(self) -> bool:
        return self.model is not None

    def require_model(self) -> LogisticRegression:
        if self.model is None:
            raise SessionError(
                f"No trained {self.variant.value} model in this session, train or load one first")
        return self.model

    def close(self) -> None:
        """Discard the model and its splits"""
        self.model = None
        self.train_set = None
        self.test_set = None

    def __enter__(self) -> "TrainingSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def save(self, output_dir: Path) -> Path:
        """Persist the model, its label mapping and both splits

        Returns:
            Path of the model file
        """
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        model_path = output_dir / model_file_name(self.variant)
        joblib.dump({
            'variant': self.variant.value,
            'model': self.require_model(),
            'id_to_emotion': self.id_to_emotion,
        }, model_path)

        if self.test_set is not None:
            self.test_set.to_csv(output_dir / split_file_name(TEST_SPLIT_PREFIX, self.variant), index=False)
        if self.train_set is not None:
            self.train_set.to_csv(output_dir / split_file_name(TRAIN_SPLIT_PREFIX, self.variant), index=False)

        logger.info(f"Saved {self.variant.value} model to {model_path}")
        return model_path

    @classmethod
    def load(cls, variant: FeatureVariant, output_dir: Path) -> "TrainingSession":
        """Restore a session saved by save()

        Raises:
            MissingArtifactError: If the model file does not exist
        """
        variant = FeatureVariant.parse(variant)
        output_dir = Path(output_dir)
        model_path = output_dir / model_file_name(variant)
        if not model_path.is_file():
            raise MissingArtifactError(
                model_path.name, [output_dir], "Train a model before evaluating or predicting")

        saved = joblib.load(model_path)
        test_set = _read_split(output_dir / split_file_name(TEST_SPLIT_PREFIX, variant))
        train_set = _read_split(output_dir / split_file_name(TRAIN_SPLIT_PREFIX, variant))

        logger.info(f"Loaded {variant.value} model from {model_path}")
        return cls(variant, saved['model'], saved['id_to_emotion'], train_set, test_set)


def _read_split(path: Path) -> Optional[pd.DataFrame]:
    if not path.is_file():
        return None
    return pd.read_csv(path, dtype={LABEL_COLUMN: str})


class EmotionTrainer(TrainerInterface):
    """Trains and evaluates emotion classifiers on extracted feature tables.

    Attributes:
        pipeline: Source of the feature tables
        output_dir: Where models and splits are saved
        test_fraction: Share of rows held out for evaluation
        random_state: Seed for the split and the solver, None for random
    """

    def __init__(self, pipeline: Optional[FeatureExtractionPipeline] = None,
                 output_dir: Optional[Path] = None,
                 test_fraction: Optional[float] = None,
                 random_state: Optional[int] = None):
        self.output_dir = Path(output_dir or config.get('paths.output_dir', '.'))
        self.pipeline = pipeline or FeatureExtractionPipeline(output_dir=self.output_dir)
        self.test_fraction = test_fraction or config.get('training.test_fraction', 0.2)
        self.random_state = random_state if random_state is not None else config.get(
            'training.random_state')

    def default_iterations(self, variant: FeatureVariant) -> int:
        variant = FeatureVariant.parse(variant)
        return int(config.get(f'training.max_iterations.{variant.value}', 100000))

    def train(self, variant: FeatureVariant, max_iterations: Optional[int] = None,
              save: bool = True, table: Optional[pd.DataFrame] = None) -> TrainingSession:
        """Train a fresh classifier on the variant's feature table.

        Args:
            variant: Feature variant to train on
            max_iterations: Solver iteration budget (config default when None)
            save: Persist the model and splits to output_dir
            table: Feature table to use instead of the one on disk

        Returns:
            A new TrainingSession

        Raises:
            MissingArtifactError: If no table was given and none exists on disk
            ValueError: If the table is empty or holds a single class
        """
        variant = FeatureVariant.parse(variant)
        max_iterations = max_iterations or self.default_iterations(variant)
        frame = table if table is not None else self.pipeline.load_table(variant)
        if frame.empty:
            raise ValueError(f"Feature table for {variant.value} has no rows")

        labels = sorted(frame[LABEL_COLUMN].astype(str).unique())
        id_to_emotion = dict(enumerate(labels))
        emotion_to_id = {emotion: i for i, emotion in id_to_emotion.items()}

        train_set, test_set = train_test_split(
            frame, test_size=self.test_fraction, random_state=self.random_state)

        features = record_type(variant).feature_columns()
        x_train = train_set[features].to_numpy(dtype=np.float64)
        y_train = train_set[LABEL_COLUMN].astype(str).map(emotion_to_id).to_numpy()

        logger.info(f"Training {variant.value} model on {len(train_set)} rows, "
                    f"{len(labels)} classes, max {max_iterations} iterations")
        model = LogisticRegression(max_iter=max_iterations, random_state=self.random_state)
        with warnings.catch_warnings():
            # Small iteration budgets are expected to stop before converging
            warnings.simplefilter("ignore", category=ConvergenceWarning)
            model.fit(x_train, y_train)

        session = TrainingSession(variant, model, id_to_emotion, train_set, test_set)
        if save:
            session.save(self.output_dir)
        return session

    def load_session(self, variant: FeatureVariant) -> TrainingSession:
        return TrainingSession.load(variant, self.output_dir)

    def probabilities(self, session: TrainingSession, x: np.ndarray) -> np.ndarray:
        """Class probabilities over every session class id.

        Classes absent from the training split get probability 0.
        """
        model = session.require_model()
        fitted = model.predict_proba(x)
        full = np.zeros((x.shape[0], session.num_classes), dtype=np.float64)
        full[:, model.classes_.astype(int)] = fitted
        return full

    def evaluate(self, session: TrainingSession) -> MetricSample:
        """Evaluate the session's model on its held-out split

        Raises:
            SessionError: If the session has no model or no test split
        """
        session.require_model()
        if session.test_set is None or session.test_set.empty:
            raise SessionError(f"No {session.variant.value} test split to evaluate against")

        features = record_type(session.variant).feature_columns()
        x_test = session.test_set[features].to_numpy(dtype=np.float64)
        y_test = session.test_set[LABEL_COLUMN].astype(str).map(session.emotion_to_id).to_numpy()

        metrics = compute_metrics(y_test, self.probabilities(session, x_test), session.num_classes)
        logger.info(f"Evaluated {session.variant.value} model: "
                    f"micro accuracy {metrics.micro_accuracy:.3f}, "
                    f"macro accuracy {metrics.macro_accuracy:.3f}")
        return metrics

    def predict(self, session: TrainingSession, record: FeatureRecord) -> Prediction:
        """Predict the emotion of one feature record

        Raises:
            SessionError: If the session has no model
        """
        if record.variant != session.variant:
            raise SessionError(
                f"Record is {record.variant.value} but the model expects {session.variant.value}")

        x = record.feature_vector().reshape(1, -1)
        scores = self.probabilities(session, x)[0]
        best = int(np.argmax(scores))
        return Prediction(
            predicted_emotion=session.id_to_emotion[best],
            scores={session.id_to_emotion[i]: float(p) for i, p in enumerate(scores)},
        )
