"""Unit tests for the dlib landmark detector wrapper

The dlib models are replaced by callables with dlib's signatures, so these
tests need neither dlib nor the shape predictor file.
"""

import cv2
import numpy as np
import pytest

from emotion_recognition.analysis.landmark_detector import (
    DlibLandmarkDetector,
    draw_landmarks,
    landmark_style,
    load_rgb_image,
)
from emotion_recognition.models.errors import ExtractionError, ExtractionFailure, MissingArtifactError
from emotion_recognition.models.landmarks import LandmarkShape


class FakePoint:
    def __init__(self, x, y):
        self.x = x
        self.y = y


class FakeDetection:
    """Mimics dlib.full_object_detection"""

    def __init__(self, points):
        self._points = points
        self.num_parts = len(points)

    def part(self, index):
        x, y = self._points[index]
        return FakePoint(x, y)


def make_detector(symmetric_face, faces=1):
    seen_images = []

    def face_detector(image):
        seen_images.append(image)
        return [f"face{i}" for i in range(faces)]

    def shape_predictor(image, face):
        offset = int(face[-1]) * 200
        return FakeDetection([(int(x) + offset, int(y)) for x, y in symmetric_face.points])

    detector = DlibLandmarkDetector(face_detector=face_detector, shape_predictor=shape_predictor)
    return detector, seen_images


@pytest.fixture
def face_image(tmp_path):
    """A 400x200 blue BGR image on disk"""
    image = np.zeros((200, 400, 3), dtype=np.uint8)
    image[:, :, 0] = 255
    path = tmp_path / "face.png"
    cv2.imwrite(str(path), image)
    return path


def test_detect_returns_one_shape_per_face(symmetric_face):
    detector, _ = make_detector(symmetric_face, faces=2)

    shapes = detector.detect(np.zeros((10, 10, 3), dtype=np.uint8))

    assert len(shapes) == 2
    assert all(isinstance(shape, LandmarkShape) for shape in shapes)
    np.testing.assert_array_equal(shapes[0].points, symmetric_face.points)
    assert shapes[1].part(0)[0] == symmetric_face.part(0)[0] + 200


def test_detect_no_faces(symmetric_face):
    detector, _ = make_detector(symmetric_face, faces=0)

    assert detector.detect(np.zeros((10, 10, 3), dtype=np.uint8)) == []


def test_detect_file_converts_to_rgb(symmetric_face, face_image):
    detector, seen_images = make_detector(symmetric_face)

    shapes = detector.detect_file(face_image)

    assert len(shapes) == 1
    # Blue in BGR ends up in the last channel once converted to RGB
    assert seen_images[0][0, 0].tolist() == [0, 0, 255]


def test_load_rgb_image_unreadable(tmp_path):
    path = tmp_path / "broken.png"
    path.write_bytes(b"not an image")

    with pytest.raises(ExtractionError) as excinfo:
        load_rgb_image(path)

    assert excinfo.value.reason == ExtractionFailure.UNREADABLE_IMAGE
    assert excinfo.value.image == path


def test_load_fails_without_predictor_file(tmp_path):
    """Test that a missing shape predictor names the file and the unzip hint"""
    detector = DlibLandmarkDetector(predictor_file="shape_predictor_68_face_landmarks.dat",
                                    search_start=tmp_path)

    with pytest.raises(MissingArtifactError) as excinfo:
        detector.load()

    message = str(excinfo.value)
    assert "shape_predictor_68_face_landmarks.dat" in message
    assert "unzip shape_predictor_68_face_landmarks.zip" in message


def test_close_releases_models(symmetric_face):
    detector, _ = make_detector(symmetric_face)

    detector.close()

    assert detector.face_detector is None
    assert detector.shape_predictor is None


@pytest.mark.parametrize("index,style", [
    (0, "first"),
    (33, "reference"),
    (21, "reference"),
    (19, "left_eyebrow"),
    (24, "right_eyebrow"),
    (49, "left_lip"),
    (53, "right_lip"),
    (10, "other"),
])
def test_landmark_style(index, style):
    assert landmark_style(index) == style


def test_draw_landmarks_writes_annotated_image(symmetric_face, face_image, tmp_path):
    detector, _ = make_detector(symmetric_face)
    output = tmp_path / "output.png"

    written = draw_landmarks(face_image, detector, output)

    assert written == output
    annotated = cv2.imread(str(output))
    assert annotated.shape == (200, 400, 3)
    # Landmark 0 at (40, 80) is drawn white
    assert annotated[80, 40].tolist() == [255, 255, 255]
    # Untouched pixels keep the original blue
    assert annotated[5, 395].tolist() == [255, 0, 0]
