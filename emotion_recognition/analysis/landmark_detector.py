"""Landmark detection using dlib

Wraps dlib's HOG frontal face detector and its 68-point shape predictor.
The predictor model (shape_predictor_68_face_landmarks.dat) is looked up
around the working directory the same way as every other artifact.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import cv2
import numpy as np

from emotion_recognition.analysis.dataset import find_file
from emotion_recognition.config.config_loader import config
from emotion_recognition.models.errors import ExtractionError, ExtractionFailure
from emotion_recognition.models.interfaces import LandmarkDetectorInterface
from emotion_recognition.models.landmarks import LandmarkShape


logger = logging.getLogger(__name__)


# BGR colours and rectangle thickness used by draw_landmarks()
HIGHLIGHT_STYLES: Dict[str, Tuple[Tuple[int, int, int], int]] = {
    "first": ((255, 255, 255), 8),
    "reference": ((255, 0, 255), 4),
    "left_eyebrow": ((0, 0, 255), 6),
    "right_eyebrow": ((0, 128, 255), 6),
    "left_lip": ((0, 255, 255), 2),
    "right_lip": ((128, 0, 255), 2),
    "other": ((0, 0, 0), 4),
}
REFERENCE_POINTS = frozenset({21, 22, 39, 42, 33, 51, 57, 48, 54})


def landmark_style(index: int) -> str:
    """Highlight group of a landmark index"""
    if index == 0:
        return "first"
    if index in REFERENCE_POINTS:
        return "reference"
    if index in (18, 19, 20):
        return "left_eyebrow"
    if index in (23, 24, 25):
        return "right_eyebrow"
    if index in (49, 50):
        return "left_lip"
    if index in (52, 53):
        return "right_lip"
    return "other"


class DlibLandmarkDetector(LandmarkDetectorInterface):
    """Detects faces and their 68 landmarks in RGB images.

    The dlib models are loaded lazily on first use, or can be injected
    directly (any callables with dlib's signatures will do).

    Attributes:
        predictor_file: File name of the shape predictor model
        face_detector: dlib frontal face detector (None until loaded)
        shape_predictor: dlib shape predictor (None until loaded)
    """

    def __init__(self, predictor_file: Optional[str] = None, face_detector=None,
                 shape_predictor=None, search_start: Optional[Path] = None):
        self.predictor_file = predictor_file or config.get(
            'paths.shape_predictor', 'shape_predictor_68_face_landmarks.dat')
        self.search_start = search_start
        self.face_detector = face_detector
        self.shape_predictor = shape_predictor

    def load(self) -> None:
        """Load the dlib face detector and shape predictor.

        Raises:
            MissingArtifactError: If the shape predictor file cannot be found
        """
        if self.face_detector is not None and self.shape_predictor is not None:
            return

        predictor_path = find_file(
            self.predictor_file,
            start=self.search_start,
            hint=(f"You need to unzip {Path(self.predictor_file).stem}.zip "
                  "before continuing"),
        )

        import dlib

        logger.info(f"Loading dlib shape predictor from {predictor_path}")
        if self.face_detector is None:
            self.face_detector = dlib.get_frontal_face_detector()
        if self.shape_predictor is None:
            self.shape_predictor = dlib.shape_predictor(str(predictor_path))
        logger.info("dlib models loaded successfully")

    def close(self) -> None:
        """Release the loaded models"""
        self.face_detector = None
        self.shape_predictor = None

    def __enter__(self) -> "DlibLandmarkDetector":
        self.load()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def detect(self, image: np.ndarray) -> List[LandmarkShape]:
        """Detect every face in an RGB image and predict its landmarks"""
        self.load()
        shapes = []
        for face in self.face_detector(image):
            detection = self.shape_predictor(image, face)
            points = [(detection.part(i).x, detection.part(i).y)
                      for i in range(detection.num_parts)]
            shapes.append(LandmarkShape.from_points(points))
        return shapes

    def detect_file(self, image_path: Path) -> List[LandmarkShape]:
        """Load an image with OpenCV and detect every face in it

        Raises:
            ExtractionError: With reason UNREADABLE_IMAGE if the file cannot be decoded
        """
        image = load_rgb_image(image_path)
        return self.detect(image)


def load_rgb_image(image_path: Path) -> np.ndarray:
    """Read an image from disk as an RGB array

    Raises:
        ExtractionError: With reason UNREADABLE_IMAGE if the file cannot be decoded
    """
    image_path = Path(image_path)
    bgr = cv2.imread(str(image_path), cv2.IMREAD_COLOR)
    if bgr is None:
        raise ExtractionError(
            ExtractionFailure.UNREADABLE_IMAGE, "Unable to read image", image_path)
    return cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB)


def draw_landmarks(image_path: Path, detector: LandmarkDetectorInterface,
                   output_path: Optional[Path] = None) -> Path:
    """Draw the landmarks of every detected face and save the annotated image.

    Args:
        image_path: Image to annotate
        detector: Landmark detector to use
        output_path: Where to write the result (defaults to paths.landmark_output)

    Returns:
        Path of the written image
    """
    output_path = Path(output_path or config.get('paths.landmark_output', 'output.png'))
    rgb = load_rgb_image(image_path)
    canvas = cv2.cvtColor(rgb, cv2.COLOR_RGB2BGR)

    shapes = detector.detect(rgb)
    if not shapes:
        logger.warning(f"No faces found in {Path(image_path).name}, nothing drawn")

    for shape in shapes:
        for index, (x, y) in enumerate(shape.points):
            colour, thickness = HIGHLIGHT_STYLES[landmark_style(index)]
            corner = (int(x), int(y))
            cv2.rectangle(canvas, corner, corner, colour, thickness)

    if not cv2.imwrite(str(output_path), canvas):
        raise OSError(f"Unable to write annotated image to {output_path}")
    logger.info(f"Annotated {len(shapes)} face(s) into {output_path}")
    return output_path
