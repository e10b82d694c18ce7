"""Iteration Benchmark

Measures how the classifier's solver iteration budget affects its quality.
For one feature variant, every iteration count factor**exponent is trained
and evaluated `repeats` times on fresh splits; the metrics of each count are
aggregated into a BenchmarkStatistics and rendered into one CSV report.

The report is written only after the whole sweep finished. A failure during
training aborts the sweep and nothing is written.
"""

import logging
import time
from io import StringIO
from pathlib import Path
from typing import Dict, List, Optional

from emotion_recognition.analysis.pipeline import FeatureExtractionPipeline
from emotion_recognition.benchmark.statistics import BenchmarkStatistics, StatValue
from emotion_recognition.config.config_loader import config
from emotion_recognition.models.enums import FeatureVariant
from emotion_recognition.models.formatting import format_number
from emotion_recognition.models.interfaces import TrainerInterface
from emotion_recognition.training.trainer import EmotionTrainer


logger = logging.getLogger(__name__)


REPORT_PREFIX = "Iterations Benchmark"

# Title and BenchmarkStatistics attribute of each metric table, in report order
METRIC_TABLES = (
    ("Log Loss", "log_loss"),
    ("Log Loss Reduction", "log_loss_reduction"),
    ("Micro Accuracy", "micro_accuracy"),
    ("Macro Accuracy", "macro_accuracy"),
    ("Time Taken", "elapsed_ms"),
)


def report_file_name(variant: FeatureVariant) -> str:
    return f"{REPORT_PREFIX} {FeatureVariant.parse(variant).value}.csv"


class IterationBenchmark:
    """Sweeps the solver iteration budget for one feature variant at a time.

    Attributes:
        trainer: Trains and evaluates the classifier
        pipeline: Extracts the feature table first when it is missing (optional)
        repeats: Training runs per iteration count
        iteration_exponents: Ascending exponents, iterations = factor ** exponent
        factor: Base of the iteration count
        output_dir: Directory the report is written to
    """

    def __init__(self, trainer: Optional[TrainerInterface] = None,
                 pipeline: Optional[FeatureExtractionPipeline] = None,
                 repeats: Optional[int] = None,
                 iteration_exponents: Optional[List[int]] = None,
                 factor: Optional[int] = None,
                 output_dir: Optional[Path] = None):
        self.trainer = trainer or EmotionTrainer(pipeline=pipeline)
        self.pipeline = pipeline
        if repeats is None:
            repeats = config.get('benchmark.repeats', 5)
        if iteration_exponents is None:
            iteration_exponents = config.get('benchmark.iteration_exponents', [1, 2, 3, 4, 5, 6])
        self.repeats = repeats
        self.iteration_exponents = list(iteration_exponents)
        self.factor = factor or config.get('benchmark.factor', 10)
        self.output_dir = Path(output_dir or config.get('paths.output_dir', '.'))

        if self.repeats <= 0:
            raise ValueError(f"repeats must be positive, got {self.repeats}")
        if not self.iteration_exponents:
            raise ValueError("iteration_exponents must not be empty")

    def iterations(self, exponent: int) -> int:
        return int(self.factor ** exponent)

    def run(self, variant: FeatureVariant) -> Dict[int, BenchmarkStatistics]:
        """Train and evaluate every (repeat, exponent) cell of the sweep.

        Returns:
            Statistics per exponent, in ascending exponent order
        """
        variant = FeatureVariant.parse(variant)
        stats: Dict[int, BenchmarkStatistics] = {}

        for repeat in range(self.repeats):
            for exponent in self.iteration_exponents:
                iterations = self.iterations(exponent)

                start = time.perf_counter()
                session = self.trainer.train(variant, max_iterations=iterations, save=False)
                elapsed_ms = (time.perf_counter() - start) * 1000.0

                try:
                    metrics = self.trainer.evaluate(session)
                    if exponent not in stats:
                        stats[exponent] = BenchmarkStatistics(
                            metrics.confusion_matrix.num_classes, session.id_to_emotion)
                    stats[exponent].add_data(metrics, elapsed_ms)
                finally:
                    session.close()

                logger.info(f"{variant.value} run {repeat + 1}/{self.repeats}, "
                            f"{iterations} iterations: micro accuracy "
                            f"{metrics.micro_accuracy:.3f} in {elapsed_ms:.0f} ms")

        return stats

    def render_report(self, stats: Dict[int, BenchmarkStatistics]) -> str:
        """Render the metric tables followed by one confusion block per exponent"""
        out = StringIO()
        for title, attribute in METRIC_TABLES:
            out.write(f"{title}\n")
            out.write("Iterations, Median, Max, Min\n")
            for exponent, cell in stats.items():
                value: StatValue = getattr(cell, attribute)
                out.write(f"{self.iterations(exponent)}, {format_number(value.median)}, "
                          f"{format_number(value.max)}, {format_number(value.min)},\n")
            out.write("\n")

        for exponent, cell in stats.items():
            out.write("\n")
            out.write(cell.confusion_matrix.render(f"Iterations {self.iterations(exponent)}"))
            out.write("\n")
        return out.getvalue()

    def report_path(self, variant: FeatureVariant) -> Path:
        return self.output_dir / report_file_name(variant)

    def write_report(self, stats: Dict[int, BenchmarkStatistics], variant: FeatureVariant) -> Path:
        path = self.report_path(variant)
        path.parent.mkdir(parents=True, exist_ok=True)
        report = self.render_report(stats)
        with open(path, 'w', newline='') as f:
            f.write(report)
        logger.info(f"Wrote benchmark report {path}")
        return path

    def run_and_write(self, variant: FeatureVariant) -> Path:
        """Extract features if needed, run the sweep and write its report"""
        variant = FeatureVariant.parse(variant)
        if self.pipeline is not None:
            self.pipeline.extract_if_missing(variant)

        logger.info(f"Benchmarking {variant.value}: {self.repeats} repeats over "
                    f"{[self.iterations(e) for e in self.iteration_exponents]} iterations")
        stats = self.run(variant)
        return self.write_report(stats, variant)
