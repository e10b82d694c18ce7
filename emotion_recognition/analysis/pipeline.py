"""Batch feature extraction and feature-table persistence

Turns a dataset of labelled face images into one feature table per
variant. Extraction is a lazy sequence of ExtractionResult values: images
that fail (unreadable, no face, degenerate geometry, unknown label) are
logged and skipped, and the batch carries on.

Feature table format (FeatureVector<Variant>.csv):

    Emotion, Mode: <Variant>
    <label>,<feature 1>,<feature 2>,...
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Iterator, List, Optional

import pandas as pd

from emotion_recognition.analysis.dataset import (
    discover_dataset_directories,
    iter_dataset_images,
    resolve_label,
)
from emotion_recognition.analysis.extractors import extract_features
from emotion_recognition.analysis.landmark_detector import DlibLandmarkDetector
from emotion_recognition.config.config_loader import config
from emotion_recognition.models.enums import FeatureVariant
from emotion_recognition.models.errors import (
    ConfigurationError,
    ExtractionError,
    ExtractionFailure,
    MissingArtifactError,
)
from emotion_recognition.models.features import record_type
from emotion_recognition.models.interfaces import LandmarkDetectorInterface
from emotion_recognition.models.results import ExtractionResult


logger = logging.getLogger(__name__)


FEATURE_TABLE_PREFIX = "FeatureVector"
MIN_VALID_TABLE_BYTES = 1024
PARTIAL_SUFFIX = ".partial"
PREDICTION_LABEL = "Not getting label, see argument this function was called with."


@dataclass
class ExtractionSummary:
    """Counts from writing one feature table

    Attributes:
        path: Feature table that was written
        written: Number of records written
        skipped: Failures, in encounter order
    """
    path: Path
    written: int = 0
    skipped: List[ExtractionError] = field(default_factory=list)


def feature_table_name(variant: FeatureVariant) -> str:
    return f"{FEATURE_TABLE_PREFIX}{FeatureVariant.parse(variant).value}.csv"


def feature_table_header(variant: FeatureVariant) -> str:
    return f"Emotion, Mode: {FeatureVariant.parse(variant).value}"


def is_feature_table_valid(path: Path) -> bool:
    """Whether an existing table holds enough data to be reused"""
    path = Path(path)
    return path.is_file() and path.stat().st_size > MIN_VALID_TABLE_BYTES


def extract_image(image_path: Path, detector: LandmarkDetectorInterface,
                  variant: FeatureVariant, label: Optional[str] = None) -> ExtractionResult:
    """Extract features from the first face of one image.

    Args:
        image_path: Image to process
        detector: Landmark detector to use
        variant: Which encoding to produce
        label: Label to store; resolved from the path when None

    Returns:
        ExtractionResult; never raises for per-image problems
    """
    image_path = Path(image_path)
    try:
        shapes = detector.detect_file(image_path)
    except ExtractionError as e:
        return ExtractionResult.failure(e)

    if not shapes:
        return ExtractionResult.failure(ExtractionError(
            ExtractionFailure.NO_FACE, "Unable to get facial features, no faces were found",
            image_path))

    if label is None:
        try:
            label = resolve_label(image_path)
        except ConfigurationError as e:
            return ExtractionResult.failure(ExtractionError(
                ExtractionFailure.UNKNOWN_LABEL, str(e), image_path))

    # Only the first detected face is used
    return extract_features(shapes[0], label, variant, image=image_path)


def iter_feature_results(images: Iterable[Path], detector: LandmarkDetectorInterface,
                         variant: FeatureVariant) -> Iterator[ExtractionResult]:
    """Lazily extract every image; re-iterating repeats the work without side effects"""
    variant = FeatureVariant.parse(variant)
    for image_path in images:
        yield extract_image(image_path, detector, variant)


def write_feature_table(results: Iterable[ExtractionResult], variant: FeatureVariant,
                        path: Path) -> ExtractionSummary:
    """Write successful records to a feature table, logging each failure

    Records go to a ".partial" file that replaces the table only once every
    result was consumed, so an aborted batch leaves no table behind.
    """
    variant = FeatureVariant.parse(variant)
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    partial = path.with_name(path.name + PARTIAL_SUFFIX)
    summary = ExtractionSummary(path=path)

    try:
        with open(partial, 'w', newline='') as f:
            f.write(feature_table_header(variant) + "\n")
            for result in results:
                if not result.ok:
                    logger.warning(f"Skipping image: {result.error}")
                    summary.skipped.append(result.error)
                    continue
                f.write(result.record.to_csv_line() + "\n")
                summary.written += 1
        partial.replace(path)
    finally:
        if partial.exists():
            logger.error(f"Extraction of {path.name} did not finish, discarding partial table")
            partial.unlink()

    logger.info(f"Wrote {summary.written} records to {path}, "
                f"skipped {len(summary.skipped)} image(s)")
    return summary


class FeatureExtractionPipeline:
    """Extracts feature tables from image datasets.

    Attributes:
        detector: Landmark detector (dlib by default, loaded on first use)
        output_dir: Directory holding the feature tables
        dataset_directories: Names of the dataset roots to look for
        search_start: Directory dataset roots are searched from
    """

    def __init__(self, detector: Optional[LandmarkDetectorInterface] = None,
                 output_dir: Optional[Path] = None,
                 dataset_directories: Optional[List[str]] = None,
                 search_start: Optional[Path] = None):
        self.detector = detector or DlibLandmarkDetector()
        self.output_dir = Path(output_dir or config.get('paths.output_dir', '.'))
        self.dataset_directories = dataset_directories or config.get('dataset.directories', [])
        self.search_start = search_start

    def table_path(self, variant: FeatureVariant) -> Path:
        return self.output_dir / feature_table_name(variant)

    def discover_images(self) -> List[Path]:
        """All dataset images, in a stable order

        Raises:
            DatasetNotFoundError: If no dataset root exists
        """
        roots = discover_dataset_directories(self.dataset_directories, self.search_start)
        images = list(iter_dataset_images(roots))
        logger.info(f"Found {len(images)} images in {len(roots)} dataset(s)")
        return images

    def extract_image(self, image_path: Path, variant: FeatureVariant,
                      label: Optional[str] = None) -> ExtractionResult:
        return extract_image(image_path, self.detector, variant, label)

    def iter_results(self, images: Iterable[Path], variant: FeatureVariant) -> Iterator[ExtractionResult]:
        return iter_feature_results(images, self.detector, variant)

    def write_table(self, results: Iterable[ExtractionResult], variant: FeatureVariant,
                    path: Optional[Path] = None) -> ExtractionSummary:
        return write_feature_table(results, variant, path or self.table_path(variant))

    def extract(self, variant: FeatureVariant) -> ExtractionSummary:
        """Extract the variant's feature table from every dataset image

        Raises:
            DatasetNotFoundError: If no dataset root exists
            MissingArtifactError: If the shape predictor is missing
        """
        variant = FeatureVariant.parse(variant)
        images = self.discover_images()
        logger.info(f"Extracting {variant.value} features")
        try:
            return self.write_table(self.iter_results(images, variant), variant)
        finally:
            self.detector.close()

    def extract_if_missing(self, variant: FeatureVariant) -> Optional[ExtractionSummary]:
        """Extract unless a usable table for the variant already exists

        Tables no larger than MIN_VALID_TABLE_BYTES are extracted again.
        """
        path = self.table_path(variant)
        if is_feature_table_valid(path):
            logger.info(f"Using existing feature table {path}")
            return None
        return self.extract(variant)

    def load_table(self, variant: FeatureVariant, path: Optional[Path] = None) -> pd.DataFrame:
        """Load a feature table with named columns

        Raises:
            MissingArtifactError: If the table does not exist
        """
        variant = FeatureVariant.parse(variant)
        path = Path(path or self.table_path(variant))
        if not path.is_file():
            raise MissingArtifactError(
                path.name, [path.parent], "Extract features before training")
        return read_feature_table(path, variant)


def read_feature_table(path: Path, variant: FeatureVariant) -> pd.DataFrame:
    """Parse a feature table, dropping the header line and any trailing empty column"""
    columns = record_type(variant).columns()
    try:
        frame = pd.read_csv(path, skiprows=1, header=None, dtype={0: str})
    except pd.errors.EmptyDataError:
        # Header line only
        return pd.DataFrame(columns=columns)
    if frame.shape[1] < len(columns):
        raise ValueError(
            f"{Path(path).name} has {frame.shape[1]} columns, expected {len(columns)}")
    frame = frame.iloc[:, :len(columns)].copy()
    frame.columns = columns
    return frame
