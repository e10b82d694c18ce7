"""Landmark detection, feature extraction and dataset processing"""

from emotion_recognition.analysis.extractors import extract_features
from emotion_recognition.analysis.landmark_detector import DlibLandmarkDetector, draw_landmarks
from emotion_recognition.analysis.pipeline import FeatureExtractionPipeline

__all__ = ['extract_features', 'DlibLandmarkDetector', 'draw_landmarks', 'FeatureExtractionPipeline']
