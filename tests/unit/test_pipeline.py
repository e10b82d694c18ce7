"""Unit tests for batch feature extraction and feature tables"""

from pathlib import Path

import pandas as pd
import pytest

from emotion_recognition.analysis.pipeline import (
    PREDICTION_LABEL,
    FeatureExtractionPipeline,
    feature_table_header,
    feature_table_name,
    is_feature_table_valid,
    read_feature_table,
)
from emotion_recognition.models.enums import FeatureVariant
from emotion_recognition.models.errors import (
    DatasetNotFoundError,
    ExtractionFailure,
    MissingArtifactError,
)
from emotion_recognition.models.features import LABEL_COLUMN, RawLandmarkFeatures


@pytest.fixture
def dataset_root(tmp_path):
    """A Google Set with two emotions and a MUG set with one unlabelled image"""
    google = tmp_path / "Google Set"
    for subdirectory, files in {"happy": ["h1.png", "h2.png"], "sadness": ["s1.png"]}.items():
        (google / subdirectory).mkdir(parents=True)
        for name in files:
            (google / subdirectory / name).write_bytes(b"")

    mug = tmp_path / "MUG Images" / "subject1"
    mug.mkdir(parents=True)
    (mug / "001_su_001.png").write_bytes(b"")
    (mug / "0002.png").write_bytes(b"")
    return tmp_path


@pytest.fixture
def pipeline(fake_detector, dataset_root, tmp_path):
    return FeatureExtractionPipeline(
        detector=fake_detector,
        output_dir=tmp_path / "out",
        dataset_directories=["MUG Images", "Google Set"],
        search_start=dataset_root,
    )


def test_table_names():
    assert feature_table_name("A") == "FeatureVectorEyebrowLipRatios.csv"
    assert feature_table_header(FeatureVariant.RAW_LANDMARKS) == "Emotion, Mode: RawLandmarks"


def test_discover_images(pipeline):
    names = [p.name for p in pipeline.discover_images()]

    assert names == ["0002.png", "001_su_001.png", "h1.png", "h2.png", "s1.png"]


def test_discover_images_without_datasets(fake_detector, tmp_path):
    pipeline = FeatureExtractionPipeline(
        detector=fake_detector, output_dir=tmp_path,
        dataset_directories=["CK+"], search_start=tmp_path)

    with pytest.raises(DatasetNotFoundError):
        pipeline.discover_images()


def test_extract_image_labels_from_path(pipeline, dataset_root):
    result = pipeline.extract_image(dataset_root / "Google Set" / "sadness" / "s1.png", "A")

    assert result.ok
    assert result.record.emotion == "sad"


def test_extract_image_explicit_label(pipeline, dataset_root):
    result = pipeline.extract_image(
        dataset_root / "MUG Images" / "subject1" / "0002.png", "C", label=PREDICTION_LABEL)

    assert result.ok
    assert result.record.emotion == PREDICTION_LABEL


def test_extract_image_unknown_label(pipeline, dataset_root):
    result = pipeline.extract_image(dataset_root / "MUG Images" / "subject1" / "0002.png", "A")

    assert not result.ok
    assert result.error.reason == ExtractionFailure.UNKNOWN_LABEL


def test_extract_image_no_face(detector_factory, tmp_path):
    pipeline = FeatureExtractionPipeline(
        detector=detector_factory(faceless={"happy.png"}), output_dir=tmp_path)

    result = pipeline.extract_image(tmp_path / "happy.png", "A", label="happy")

    assert not result.ok
    assert result.error.reason == ExtractionFailure.NO_FACE


def test_extract_image_unreadable(detector_factory, tmp_path):
    pipeline = FeatureExtractionPipeline(
        detector=detector_factory(unreadable={"x.png"}), output_dir=tmp_path)

    result = pipeline.extract_image(tmp_path / "x.png", "A", label="happy")

    assert result.error.reason == ExtractionFailure.UNREADABLE_IMAGE


def test_extract_image_uses_first_face(detector_factory, face_factory, tmp_path):
    first = face_factory()
    second = face_factory(scale=3.0, dx=5.0)
    pipeline = FeatureExtractionPipeline(
        detector=detector_factory(shapes_by_name={"two.png": [first, second]}), output_dir=tmp_path)

    result = pipeline.extract_image(tmp_path / "two.png", "B", label="happy")

    assert result.record.raw_x.tolist() == first.x.tolist()


def test_extract_image_degenerate_geometry(detector_factory, collapsed_face, tmp_path):
    pipeline = FeatureExtractionPipeline(
        detector=detector_factory(default_shape=collapsed_face), output_dir=tmp_path)

    result = pipeline.extract_image(tmp_path / "flat.png", "C", label="happy")

    assert result.error.reason == ExtractionFailure.DEGENERATE_GEOMETRY


def test_iter_results_is_lazy_and_restartable(pipeline, fake_detector):
    """Test that nothing is extracted until iterated and re-iteration repeats the work"""
    images = pipeline.discover_images()

    results = pipeline.iter_results(images, "A")
    assert fake_detector.calls == []

    first = [r.ok for r in results]
    second = [r.ok for r in pipeline.iter_results(images, "A")]

    assert first == second == [False, True, True, True, True]
    assert len(fake_detector.calls) == 2 * len(images)


def test_extract_writes_table_and_skips_failures(pipeline, fake_detector):
    summary = pipeline.extract("A")

    assert summary.written == 4
    assert [e.reason for e in summary.skipped] == [ExtractionFailure.UNKNOWN_LABEL]
    assert fake_detector.closed == 1

    lines = summary.path.read_text().splitlines()
    assert summary.path.name == "FeatureVectorEyebrowLipRatios.csv"
    assert lines[0] == "Emotion, Mode: EyebrowLipRatios"
    assert [line.split(",")[0] for line in lines[1:]] == ["surprise", "happy", "happy", "sad"]
    assert all(len(line.split(",")) == 7 for line in lines[1:])


def test_extract_if_missing_skips_existing_table(pipeline, fake_detector):
    pipeline.table_path("A").parent.mkdir(parents=True)
    pipeline.table_path("A").write_text(
        "Emotion, Mode: EyebrowLipRatios\n" + "happy,1,2,3,4,5,6\n" * 100)

    assert pipeline.extract_if_missing("A") is None
    assert fake_detector.calls == []


def test_extract_if_missing_replaces_header_only_table(pipeline, fake_detector):
    """Test that a table too small to hold data is extracted again"""
    pipeline.table_path("A").parent.mkdir(parents=True)
    pipeline.table_path("A").write_text("Emotion, Mode: EyebrowLipRatios\n")

    summary = pipeline.extract_if_missing("A")

    assert summary is not None
    assert summary.written == 4
    assert len(fake_detector.calls) == 5


@pytest.fixture
def broken_detector(detector_factory):
    """Detector whose predictor file is missing, failing on the first image"""
    class MissingPredictorDetector(detector_factory):
        def detect_file(self, image_path):
            raise MissingArtifactError("shape_predictor_68_face_landmarks.dat", [Path(".")])

    return MissingPredictorDetector()


def test_interrupted_extraction_leaves_no_table(pipeline, broken_detector):
    working_detector = pipeline.detector
    pipeline.detector = broken_detector

    with pytest.raises(MissingArtifactError):
        pipeline.extract("A")

    assert not pipeline.table_path("A").exists()
    assert list(pipeline.output_dir.iterdir()) == []

    pipeline.detector = working_detector
    summary = pipeline.extract_if_missing("A")

    assert summary.written == 4
    assert len(pipeline.load_table("A")) == 4


def test_interrupted_extraction_keeps_previous_table(pipeline, broken_detector):
    pipeline.extract("C")
    previous = pipeline.table_path("C").read_text()

    pipeline.detector = broken_detector
    with pytest.raises(MissingArtifactError):
        pipeline.extract("C")

    assert pipeline.table_path("C").read_text() == previous


def test_extract_if_missing_extracts_absent_table(pipeline):
    summary = pipeline.extract_if_missing("C")

    assert summary is not None
    assert pipeline.table_path("C").is_file()


def test_load_table_named_columns(pipeline):
    pipeline.extract("C")

    frame = pipeline.load_table("C")

    assert list(frame.columns)[:3] == [LABEL_COLUMN, "left_eyebrow_distance", "right_eyebrow_distance"]
    assert len(frame) == 4
    assert frame[LABEL_COLUMN].tolist() == ["surprise", "happy", "happy", "sad"]


def test_load_table_drops_trailing_empty_column(pipeline):
    """Test that raw landmark rows ending in a comma load with exactly their columns"""
    pipeline.extract("B")

    frame = pipeline.load_table("B")

    assert list(frame.columns) == RawLandmarkFeatures.columns()
    assert not frame.isna().any().any()


def test_load_table_missing(pipeline):
    with pytest.raises(MissingArtifactError, match="FeatureVectorGeometricRatios.csv"):
        pipeline.load_table("C")


def test_read_header_only_table_is_empty(tmp_path):
    path = tmp_path / "table.csv"
    path.write_text("Emotion, Mode: EyebrowLipRatios\n")

    frame = read_feature_table(path, "A")

    assert frame.empty
    assert list(frame.columns)[0] == LABEL_COLUMN
    assert len(frame.columns) == 7


def test_read_feature_table_rejects_short_rows(tmp_path):
    path = tmp_path / "table.csv"
    path.write_text("Emotion, Mode: GeometricRatios\nhappy,1,2\n")

    with pytest.raises(ValueError):
        read_feature_table(path, "C")


def test_is_feature_table_valid(tmp_path):
    small = tmp_path / "small.csv"
    small.write_text("x" * 1024)
    large = tmp_path / "large.csv"
    large.write_text("x" * 1025)

    assert not is_feature_table_valid(small)
    assert is_feature_table_valid(large)
    assert not is_feature_table_valid(tmp_path / "missing.csv")
