"""Benchmark Statistics

Accumulates the metrics of repeated training runs and reports robust
summaries of them: minimum, median and maximum per scalar metric and per
confusion-matrix cell.

None of these accumulators are synchronized. Each one belongs to a single
benchmark sweep and must only be fed from that sweep's worker.
"""

import math
from io import StringIO
from typing import Dict, List, Mapping, Optional

import numpy as np

from emotion_recognition.models.errors import SessionError
from emotion_recognition.models.formatting import format_number
from emotion_recognition.models.results import ConfusionMatrix, MetricSample


class StatValue:
    """Append-only sample of doubles with lazily computed min, median and max.

    The summary is recomputed only when the number of samples changed since
    the last computation. Before any sample is added all three are NaN.
    """

    def __init__(self):
        self._values: List[float] = []
        self._count_at_last_compute = 0
        self._max = math.nan
        self._median = math.nan
        self._min = math.nan

    def add_value(self, value: float) -> None:
        """Append a sample. Any float is accepted, NaN and negatives included."""
        self._values.append(float(value))

    @property
    def count(self) -> int:
        return len(self._values)

    @property
    def values(self) -> List[float]:
        """Samples in insertion order"""
        return list(self._values)

    @property
    def max(self) -> float:
        self._recompute()
        return self._max

    @property
    def median(self) -> float:
        self._recompute()
        return self._median

    @property
    def min(self) -> float:
        self._recompute()
        return self._min

    def _recompute(self) -> None:
        if len(self._values) == self._count_at_last_compute:
            return

        self._count_at_last_compute = len(self._values)
        samples = np.asarray(self._values, dtype=np.float64)
        self._max = float(samples.max())
        self._min = float(samples.min())

        # Descending order; the two middle elements are the same either way
        ordered = sorted(self._values, reverse=True)
        n = len(ordered)
        if n % 2 == 0:
            self._median = (ordered[n // 2 - 1] + ordered[n // 2]) / 2.0
        else:
            self._median = ordered[n // 2]

    def __repr__(self) -> str:
        return f"StatValue(count={self.count}, min={self.min}, median={self.median}, max={self.max})"


class StatConfusionMatrix:
    """Confusion matrix whose cells summarize many runs.

    grid[i][j] holds the counts of class j predicted as class i, so rows are
    predicted classes and columns are actual classes.

    Attributes:
        num_classes: Number of classes, fixed at construction
        id_to_emotion: Class index to name, used for rendering
        per_class_precision: One accumulator per class index
        per_class_recall: One accumulator per class index
        grid: num_classes x num_classes accumulators indexed [predicted][actual]
    """

    STATISTICS = (("Max", "max"), ("Median", "median"), ("Min", "min"))

    def __init__(self, num_classes: int, id_to_emotion: Optional[Mapping[int, str]]):
        if not id_to_emotion:
            raise SessionError(
                "Class names are unknown, train a model before collecting confusion statistics")
        if num_classes <= 0:
            raise ValueError(f"num_classes must be positive, got {num_classes}")

        self.num_classes = num_classes
        self.id_to_emotion: Dict[int, str] = dict(id_to_emotion)
        self.per_class_precision = [StatValue() for _ in range(num_classes)]
        self.per_class_recall = [StatValue() for _ in range(num_classes)]
        self.grid = [[StatValue() for _ in range(num_classes)] for _ in range(num_classes)]

    def add_confusion_matrix(self, matrix: ConfusionMatrix) -> None:
        """Record one run's confusion matrix

        Raises:
            ValueError: If the matrix has a different class count
        """
        if matrix.num_classes != self.num_classes:
            raise ValueError(
                f"Expected a {self.num_classes}-class confusion matrix, "
                f"got {matrix.num_classes} classes")

        for i in range(self.num_classes):
            self.per_class_recall[i].add_value(matrix.per_class_recall[i])
            self.per_class_precision[i].add_value(matrix.per_class_precision[i])
            for j in range(self.num_classes):
                self.grid[i][j].add_value(matrix.count_for_class_pair(predicted=i, actual=j))

    def class_name(self, index: int) -> str:
        return self.id_to_emotion.get(index, str(index))

    def render(self, title: str) -> str:
        """Render the max, median and min matrices as stacked CSV blocks"""
        out = StringIO()
        for label, statistic in self.STATISTICS:
            out.write(f"{label} Confusion Matrix {title}.,")
            for i in range(self.num_classes):
                out.write(f"{self.class_name(i)},")
            out.write("Recall,\n")

            for i in range(self.num_classes):
                out.write(f"{i}. {self.class_name(i)},")
                for j in range(self.num_classes):
                    out.write(f"{format_number(getattr(self.grid[i][j], statistic))},")
                out.write(format_number(getattr(self.per_class_recall[i], statistic)))
                out.write("\n")

            out.write("Precision,")
            for i in range(self.num_classes):
                out.write(f"{format_number(getattr(self.per_class_precision[i], statistic))},")
            out.write("\n\n")
        return out.getvalue()


class BenchmarkStatistics:
    """All metric accumulators of one (variant, iteration count) cell"""

    def __init__(self, num_classes: int, id_to_emotion: Optional[Mapping[int, str]]):
        self.macro_accuracy = StatValue()
        self.micro_accuracy = StatValue()
        self.log_loss = StatValue()
        self.log_loss_reduction = StatValue()
        self.elapsed_ms = StatValue()
        self.confusion_matrix = StatConfusionMatrix(num_classes, id_to_emotion)

    @property
    def runs(self) -> int:
        return self.macro_accuracy.count

    def add_data(self, metrics: MetricSample, elapsed_ms: Optional[float] = None) -> None:
        """Record one run. elapsed_ms falls back to the time stored in metrics."""
        if elapsed_ms is None:
            elapsed_ms = metrics.elapsed_ms if metrics.elapsed_ms is not None else math.nan

        self.macro_accuracy.add_value(metrics.macro_accuracy)
        self.micro_accuracy.add_value(metrics.micro_accuracy)
        self.log_loss.add_value(metrics.log_loss)
        self.log_loss_reduction.add_value(metrics.log_loss_reduction)
        self.elapsed_ms.add_value(elapsed_ms)
        self.confusion_matrix.add_confusion_matrix(metrics.confusion_matrix)
