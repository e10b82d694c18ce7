"""Dataset discovery, file lookup and ground-truth labels

Images are expected as <dataset root>/<subdirectory>/<image>. Labels come
from the subdirectory name for the Google Set, Cohn-Kanade and CK+ layouts,
and from the file name for the MUG layout.
"""

import logging
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Tuple

from emotion_recognition.config.config_loader import config
from emotion_recognition.models.enums import Emotion
from emotion_recognition.models.errors import (
    ConfigurationError,
    DatasetNotFoundError,
    MissingArtifactError,
)


logger = logging.getLogger(__name__)


DIRECTORY_LABELLED_SETS = ("Google Set", "Cohn-Kanade Images", "CK+")

# First matching substring wins, so the order matters
DIRECTORY_LABEL_RULES: Tuple[Tuple[Tuple[str, ...], Emotion], ...] = (
    (("anger",), Emotion.ANGRY),
    (("disgust",), Emotion.DISGUSTED),
    (("fear",), Emotion.FEAR),
    (("happy", "joy", "happiness"), Emotion.HAPPY),
    (("sadness",), Emotion.SAD),
    (("neutral",), Emotion.NEUTRAL),
    (("surprise",), Emotion.SURPRISE),
)

FILE_NAME_LABEL_RULES: Tuple[Tuple[Tuple[str, ...], Emotion], ...] = (
    (("an",), Emotion.ANGRY),
    (("di",), Emotion.DISGUSTED),
    (("fe",), Emotion.FEAR),
    (("ha",), Emotion.HAPPY),
    (("sa",), Emotion.SAD),
    (("ne",), Emotion.NEUTRAL),
    (("su",), Emotion.SURPRISE),
)


def _search_dirs(start: Optional[Path], depth: int) -> List[Path]:
    """The start directory followed by up to depth - 1 of its parents"""
    current = Path(start) if start is not None else Path.cwd()
    current = current.resolve()
    dirs = [current]
    for parent in current.parents:
        if len(dirs) >= depth:
            break
        dirs.append(parent)
    return dirs[:depth]


def find_file(file_name: str, start: Optional[Path] = None, depth: Optional[int] = None,
              required: bool = True, hint: str = "") -> Optional[Path]:
    """Find a file in the start directory or one of its parents.

    Args:
        file_name: File name with extension
        start: Directory to start from (defaults to the working directory)
        depth: Number of directories to look in, start included
        required: Raise instead of returning None when not found
        hint: Extra advice appended to the error message

    Raises:
        MissingArtifactError: If required and the file was not found
    """
    depth = depth or config.get('paths.search_depth', 5)
    searched = _search_dirs(start, depth)
    for directory in searched:
        candidate = directory / file_name
        if candidate.is_file():
            return candidate

    if required:
        raise MissingArtifactError(
            file_name, searched,
            hint or f"Try placing it no more than {depth - 1} directories above {searched[0]}",
        )
    return None


def find_directory(directory_name: str, start: Optional[Path] = None,
                   depth: Optional[int] = None) -> Optional[Path]:
    """Find a directory in the start directory or one of its parents"""
    depth = depth or max(config.get('paths.search_depth', 5) - 1, 1)
    for directory in _search_dirs(start, depth):
        candidate = directory / directory_name
        if candidate.is_dir():
            return candidate
    return None


def discover_dataset_directories(names: Optional[Sequence[str]] = None,
                                 start: Optional[Path] = None) -> List[Path]:
    """Locate every known dataset root that exists.

    Raises:
        DatasetNotFoundError: If none of the roots exist
    """
    names = list(names or config.get('dataset.directories', []))
    found = []
    for name in names:
        directory = find_directory(name, start)
        if directory is None:
            logger.debug(f"Dataset directory not found: {name}")
            continue
        logger.info(f"Found dataset directory: {directory}")
        found.append(directory)

    if not found:
        raise DatasetNotFoundError(names)
    return found


def iter_dataset_images(roots: Sequence[Path], pattern: Optional[str] = None) -> Iterator[Path]:
    """Yield images inside the immediate subdirectories of each root, sorted"""
    pattern = pattern or config.get('dataset.image_pattern', '*.png')
    for root in roots:
        for subdirectory in sorted(p for p in Path(root).iterdir() if p.is_dir()):
            yield from sorted(subdirectory.glob(pattern))


def _match(text: str, rules) -> Optional[Emotion]:
    for needles, emotion in rules:
        if any(needle in text for needle in needles):
            return emotion
    return None


def label_from_directory_name(directory_name: str) -> str:
    """Label for the Google Set and Cohn-Kanade layouts

    Raises:
        ConfigurationError: If the name matches no known emotion
    """
    emotion = _match(directory_name, DIRECTORY_LABEL_RULES)
    if emotion is None:
        raise ConfigurationError(
            f"Directory '{directory_name}' names no known emotion; only the Google Set "
            "and Cohn-Kanade layouts are labelled by directory"
        )
    return emotion.value


def label_from_file_name(file_name: str) -> str:
    """Label for the MUG layout

    Raises:
        ConfigurationError: If the name matches no known emotion
    """
    emotion = _match(file_name, FILE_NAME_LABEL_RULES)
    if emotion is None:
        raise ConfigurationError(
            f"Image '{file_name}' names no known emotion; only the MUG layout "
            "is labelled by file name"
        )
    return emotion.value


def resolve_label(image_path: Path) -> str:
    """Ground-truth emotion of a dataset image

    Raises:
        ConfigurationError: If the path follows no known labelling convention
    """
    image_path = Path(image_path)
    if image_path.parent.parent.name in DIRECTORY_LABELLED_SETS:
        return label_from_directory_name(image_path.parent.name)
    return label_from_file_name(image_path.name)
