"""Main Application Entry Point

Command line front end for the recognition pipeline:

    python -m emotion_recognition.main extract   [variant]
    python -m emotion_recognition.main train     [variant]
    python -m emotion_recognition.main evaluate  [variant]
    python -m emotion_recognition.main predict   [variant] <image>
    python -m emotion_recognition.main draw      <image>
    python -m emotion_recognition.main benchmark [variant]

The variant is A, B, C or a variant name. Commands that take a variant run
every variant when none is given, except predict which defaults to A.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Iterable, List, Optional

from emotion_recognition.analysis.landmark_detector import DlibLandmarkDetector, draw_landmarks
from emotion_recognition.analysis.pipeline import (
    PREDICTION_LABEL,
    ExtractionSummary,
    FeatureExtractionPipeline,
)
from emotion_recognition.benchmark.benchmarker import IterationBenchmark
from emotion_recognition.config.config_loader import config
from emotion_recognition.models.enums import FeatureVariant
from emotion_recognition.models.errors import EmotionRecognitionError
from emotion_recognition.models.results import MetricSample, Prediction
from emotion_recognition.training.trainer import EmotionTrainer, TrainingSession


logger = logging.getLogger(__name__)

PROG = "python -m emotion_recognition.main"
VARIANT_HELP = "A, B, C or a variant name"

# Commands taking an optional variant, all variants when omitted
VARIANT_COMMANDS = (
    ("extract", "extract the feature table of a dataset"),
    ("train", "train and save a classifier, extracting features first if needed"),
    ("evaluate", "evaluate a saved classifier on its held-out split"),
    ("benchmark", "sweep the solver iteration budget and write a report"),
)


class ArgumentParser(argparse.ArgumentParser):
    """argparse parser that raises ValueError on bad usage instead of exiting"""

    def error(self, message):
        raise ValueError(f"{self.format_usage().strip()}\n{self.prog}: error: {message}")


def configure_logging() -> None:
    """Log to stdout and, when logging.file is set, to that file as well"""
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    log_file = config.get('logging.file')
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, str(config.get('logging.level', 'INFO')).upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
    )


def format_evaluation(metrics: MetricSample, session: TrainingSession) -> str:
    lines = [
        f"Micro accuracy: {metrics.micro_accuracy:.3f}",
        f"Macro accuracy: {metrics.macro_accuracy:.3f}",
        f"Log loss: {metrics.log_loss:.3f}",
        f"Log loss reduction: {metrics.log_loss_reduction:.3f}",
        "",
        metrics.confusion_matrix.format_table(session.id_to_emotion),
    ]
    return "\n".join(lines)


def format_prediction(prediction: Prediction) -> str:
    lines = [f"Predicted emotion: {prediction.predicted_emotion}"]
    lines += [f"  {emotion}: {score:.3f}" for emotion, score in prediction.ranked()]
    return "\n".join(lines)


class EmotionRecognitionApp:
    """Wires the detector, extraction pipeline, trainer and benchmark together.

    Attributes:
        detector: Landmark detector shared by extraction, prediction and drawing
        pipeline: Feature extraction pipeline
        trainer: Classifier trainer and evaluator
        benchmark: Iteration benchmark driver
    """

    def __init__(self, detector=None, pipeline: Optional[FeatureExtractionPipeline] = None,
                 trainer: Optional[EmotionTrainer] = None,
                 benchmark: Optional[IterationBenchmark] = None,
                 output_dir: Optional[Path] = None):
        self.output_dir = Path(output_dir or config.get('paths.output_dir', '.'))
        self.detector = detector or DlibLandmarkDetector()
        self.pipeline = pipeline or FeatureExtractionPipeline(
            detector=self.detector, output_dir=self.output_dir)
        self.trainer = trainer or EmotionTrainer(pipeline=self.pipeline, output_dir=self.output_dir)
        self.benchmark = benchmark or IterationBenchmark(
            trainer=self.trainer, pipeline=self.pipeline, output_dir=self.output_dir)

    def extract(self, variant: FeatureVariant) -> ExtractionSummary:
        return self.pipeline.extract(variant)

    def train(self, variant: FeatureVariant) -> TrainingSession:
        """Train and save a model, extracting the feature table first if needed"""
        self.pipeline.extract_if_missing(variant)
        return self.trainer.train(variant, save=True)

    def evaluate(self, variant: FeatureVariant) -> MetricSample:
        with self.trainer.load_session(variant) as session:
            metrics = self.trainer.evaluate(session)
            print(format_evaluation(metrics, session))
        return metrics

    def predict(self, image_path: Path, variant: FeatureVariant) -> Prediction:
        """Predict the emotion of the first face in an image

        Raises:
            ExtractionError: If no features could be extracted from the image
            MissingArtifactError: If no model was trained for the variant
        """
        with self.trainer.load_session(variant) as session:
            result = self.pipeline.extract_image(image_path, variant, label=PREDICTION_LABEL)
            if not result.ok:
                raise result.error
            prediction = self.trainer.predict(session, result.record)

        print(format_prediction(prediction))
        return prediction

    def draw(self, image_path: Path, output_path: Optional[Path] = None) -> Path:
        return draw_landmarks(image_path, self.detector, output_path)

    def run_benchmarks(self, variants: Iterable[FeatureVariant]) -> List[Path]:
        return [self.benchmark.run_and_write(variant) for variant in variants]

    async def run_benchmarks_async(self, variants: Iterable[FeatureVariant]) -> List[Path]:
        """Run each sweep on a worker thread, one after the other.

        The event loop stays responsive while a sweep runs; sweeps never
        overlap since their statistics are not shared across writers.
        """
        reports = []
        for variant in variants:
            variant = FeatureVariant.parse(variant)
            logger.info(f"Starting {variant.value} benchmark in background")
            reports.append(await asyncio.to_thread(self.benchmark.run_and_write, variant))
        return reports


def build_parser() -> ArgumentParser:
    parser = ArgumentParser(prog=PROG, description="Facial landmark emotion recognition")
    commands = parser.add_subparsers(dest="command", metavar="command", required=True)

    for name, help_text in VARIANT_COMMANDS:
        command = commands.add_parser(name, help=help_text)
        command.add_argument("variant", nargs="?", type=FeatureVariant.parse, help=VARIANT_HELP)

    predict = commands.add_parser("predict", help="predict the emotion of the first face in an image")
    predict.add_argument("variant", nargs="?", type=FeatureVariant.parse,
                         default=FeatureVariant.EYEBROW_LIP_RATIOS,
                         help=f"{VARIANT_HELP} (default: A)")
    predict.add_argument("image", type=Path)

    draw = commands.add_parser("draw", help="draw the detected landmarks onto a copy of an image")
    draw.add_argument("image", type=Path)
    return parser


def parse_arguments(argv: List[str]):
    """Split argv into (command, variants, image)

    Raises:
        ValueError: If the command or its arguments are invalid
        ConfigurationError: If the variant is unknown
    """
    args = build_parser().parse_args(argv)
    image = getattr(args, "image", None)

    if args.command == "draw":
        return args.command, [], image
    if args.command == "predict":
        return args.command, [args.variant], image

    variants = [args.variant] if args.variant is not None else list(FeatureVariant)
    return args.command, variants, image


def run_command(app: EmotionRecognitionApp, command: str, variants: List[FeatureVariant],
                image: Optional[Path]) -> None:
    if command == "extract":
        for variant in variants:
            app.extract(variant)
    elif command == "train":
        for variant in variants:
            app.train(variant).close()
    elif command == "evaluate":
        for variant in variants:
            app.evaluate(variant)
    elif command == "predict":
        app.predict(image, variants[0])
    elif command == "draw":
        app.draw(image)
    elif command == "benchmark":
        asyncio.run(app.run_benchmarks_async(variants))


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    argv = sys.argv[1:] if argv is None else argv
    try:
        command, variants, image = parse_arguments(argv)
    except (ValueError, EmotionRecognitionError) as e:
        print(e, file=sys.stderr)
        return 2

    configure_logging()
    config.validate()

    try:
        run_command(EmotionRecognitionApp(), command, variants, image)
    except KeyboardInterrupt:
        logger.info("Application terminated by user")
        return 130
    except EmotionRecognitionError as e:
        logger.error(f"{command} failed: {e}")
        return 1
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
