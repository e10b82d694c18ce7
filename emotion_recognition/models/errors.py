"""Exception types shared across the recognition pipeline"""

from enum import Enum
from pathlib import Path
from typing import Optional, Sequence


class EmotionRecognitionError(Exception):
    """Base class for all errors raised by emotion_recognition"""
    pass


class ExtractionFailure(Enum):
    """Why a single image produced no feature record"""
    NO_FACE = "no_face"
    UNREADABLE_IMAGE = "unreadable_image"
    DEGENERATE_GEOMETRY = "degenerate_geometry"
    UNKNOWN_LABEL = "unknown_label"


class ExtractionError(EmotionRecognitionError):
    """A single image could not be turned into a feature record.

    Batch extraction returns these inside an ExtractionResult instead of
    raising them, so one bad image never stops the batch.

    Attributes:
        reason: Failure kind
        image: Path of the offending image, if known
    """

    def __init__(self, reason: ExtractionFailure, message: str, image: Optional[Path] = None):
        self.reason = reason
        self.image = image
        where = f" ({image.name})" if image is not None else ""
        super().__init__(f"{message}{where}")


class DatasetNotFoundError(EmotionRecognitionError):
    """No dataset directory could be located"""

    def __init__(self, names: Sequence[str]):
        self.names = list(names)
        super().__init__(
            "Unable to find any image data sets! Looked for: " + ", ".join(self.names)
        )


class ConfigurationError(EmotionRecognitionError):
    """Invalid selector or label that must not be silently defaulted"""
    pass


class MissingArtifactError(EmotionRecognitionError, FileNotFoundError):
    """A required file (shape predictor, model, feature table) is absent"""

    def __init__(self, file_name: str, searched: Sequence[Path] = (), hint: str = ""):
        self.file_name = file_name
        self.searched = list(searched)
        message = f"File {file_name} was not found"
        if self.searched:
            message += " in " + ", ".join(str(p) for p in self.searched)
        if hint:
            message += f". {hint}"
        super().__init__(message)


class SessionError(EmotionRecognitionError):
    """Operation needs a trained model but the session has none"""
    pass
