"""Facial landmark emotion recognition and classifier benchmarking"""

__version__ = "0.1.0"
