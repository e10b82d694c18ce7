"""Data models for extraction, evaluation and prediction results"""

from dataclasses import dataclass
from typing import Dict, Mapping, Optional

import numpy as np
import pandas as pd

from emotion_recognition.models.errors import ExtractionError
from emotion_recognition.models.features import FeatureRecord


@dataclass(frozen=True)
class ExtractionResult:
    """Outcome of extracting one image: a record or the reason there is none

    Attributes:
        record: Feature record when extraction succeeded
        error: Failure description when it did not
    """
    record: Optional[FeatureRecord] = None
    error: Optional[ExtractionError] = None

    def __post_init__(self):
        assert (self.record is None) != (self.error is None), \
            "Exactly one of record and error must be set"

    @property
    def ok(self) -> bool:
        return self.record is not None

    @classmethod
    def success(cls, record: FeatureRecord) -> "ExtractionResult":
        return cls(record=record)

    @classmethod
    def failure(cls, error: ExtractionError) -> "ExtractionResult":
        return cls(error=error)


@dataclass(frozen=True, eq=False)
class ConfusionMatrix:
    """Class-by-class counts of one evaluation

    Attributes:
        counts: (K, K) integer array indexed [actual][predicted]
        per_class_precision: Precision of each class index (0 when undefined)
        per_class_recall: Recall of each class index (0 when undefined)
    """
    counts: np.ndarray
    per_class_precision: np.ndarray
    per_class_recall: np.ndarray

    def __post_init__(self):
        assert self.counts.ndim == 2 and self.counts.shape[0] == self.counts.shape[1], \
            "Counts must be a square matrix"
        k = self.counts.shape[0]
        assert len(self.per_class_precision) == k, "Precision must have one value per class"
        assert len(self.per_class_recall) == k, "Recall must have one value per class"

    @property
    def num_classes(self) -> int:
        return self.counts.shape[0]

    def count_for_class_pair(self, predicted: int, actual: int) -> int:
        """Number of test rows of class `actual` that were predicted as `predicted`"""
        return int(self.counts[actual, predicted])

    def format_table(self, id_to_emotion: Mapping[int, str]) -> str:
        """Human-readable table with actual classes as rows"""
        names = [id_to_emotion.get(i, str(i)) for i in range(self.num_classes)]
        table = pd.DataFrame(self.counts, index=names, columns=names)
        table["Recall"] = np.round(self.per_class_recall, 4)
        precision = pd.DataFrame(
            [list(np.round(self.per_class_precision, 4)) + [np.nan]],
            index=["Precision"],
            columns=table.columns,
        )
        table = pd.concat([table, precision])
        table.index.name = "Actual \\ Predicted"
        return table.to_string(na_rep="")


@dataclass(frozen=True)
class MetricSample:
    """Metrics of one training + evaluation cycle

    Attributes:
        macro_accuracy: Mean per-class recall over classes present in the test split
        micro_accuracy: Fraction of test rows classified correctly
        log_loss: Mean negative log probability of the true class
        log_loss_reduction: 1 - log_loss / log_loss of the class-prior predictor
        confusion_matrix: Counts and per-class precision/recall
        elapsed_ms: Training time in milliseconds, if measured
    """
    macro_accuracy: float
    micro_accuracy: float
    log_loss: float
    log_loss_reduction: float
    confusion_matrix: ConfusionMatrix
    elapsed_ms: Optional[float] = None


@dataclass(frozen=True)
class Prediction:
    """Predicted emotion for one face

    Attributes:
        predicted_emotion: Most likely label
        scores: Probability of every label known to the model
    """
    predicted_emotion: str
    scores: Dict[str, float]

    def ranked(self):
        """Labels and scores, most likely first"""
        return sorted(self.scores.items(), key=lambda item: item[1], reverse=True)
