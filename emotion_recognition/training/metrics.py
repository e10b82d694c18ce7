"""Multiclass evaluation metrics

Produces the MetricSample consumed by the benchmark statistics: micro and
macro accuracy, log-loss against the true class, log-loss reduction over a
class-prior predictor, and the confusion matrix with per-class precision and
recall.
"""

import math

import numpy as np
from sklearn.metrics import (
    accuracy_score,
    confusion_matrix,
    log_loss as cross_entropy,
    precision_recall_fscore_support,
)

from emotion_recognition.models.results import ConfusionMatrix, MetricSample


def log_loss(y_true: np.ndarray, probabilities: np.ndarray) -> float:
    """Mean negative log probability assigned to the true class

    Every column of probabilities is a class id, whether y_true holds it or not.
    """
    labels = list(range(probabilities.shape[1]))
    return float(cross_entropy(y_true, probabilities, labels=labels))


def prior_log_loss(y_true: np.ndarray, num_classes: int) -> float:
    """Log-loss of always predicting the class frequencies of y_true"""
    frequencies = np.bincount(y_true, minlength=num_classes) / len(y_true)
    prior = np.tile(frequencies, (len(y_true), 1))
    return log_loss(y_true, prior)


def build_confusion_matrix(y_true: np.ndarray, y_pred: np.ndarray, num_classes: int) -> ConfusionMatrix:
    """Confusion matrix over every class index, present in the split or not"""
    labels = list(range(num_classes))
    counts = confusion_matrix(y_true, y_pred, labels=labels)
    precision, recall, _, _ = precision_recall_fscore_support(
        y_true, y_pred, labels=labels, average=None, zero_division=0)
    return ConfusionMatrix(
        counts=counts.astype(np.int64),
        per_class_precision=np.asarray(precision, dtype=np.float64),
        per_class_recall=np.asarray(recall, dtype=np.float64),
    )


def compute_metrics(y_true, probabilities, num_classes: int) -> MetricSample:
    """Evaluate class probabilities against true class ids.

    Args:
        y_true: True class id per row
        probabilities: (rows, num_classes) class probabilities
        num_classes: Number of classes known to the model

    Returns:
        MetricSample without elapsed time

    Raises:
        ValueError: If there are no rows or the shapes disagree
    """
    y_true = np.asarray(y_true, dtype=np.int64)
    probabilities = np.asarray(probabilities, dtype=np.float64)
    if len(y_true) == 0:
        raise ValueError("Cannot evaluate an empty test set")
    if probabilities.shape != (len(y_true), num_classes):
        raise ValueError(
            f"Expected probabilities of shape {(len(y_true), num_classes)}, "
            f"got {probabilities.shape}")

    y_pred = probabilities.argmax(axis=1)
    matrix = build_confusion_matrix(y_true, y_pred, num_classes)

    present = np.unique(y_true)
    macro_accuracy = float(np.mean(matrix.per_class_recall[present]))
    micro_accuracy = float(accuracy_score(y_true, y_pred))

    loss = log_loss(y_true, probabilities)
    prior_loss = prior_log_loss(y_true, num_classes)
    # A single-class split has a perfect prior, so there is nothing to reduce
    reduction = 1.0 - loss / prior_loss if len(present) > 1 else math.nan

    return MetricSample(
        macro_accuracy=macro_accuracy,
        micro_accuracy=micro_accuracy,
        log_loss=loss,
        log_loss_reduction=reduction,
        confusion_matrix=matrix,
    )
