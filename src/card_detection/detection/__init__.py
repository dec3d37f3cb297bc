"""
Detection module for the Card Detection System.

This module provides the detection pipeline:
- Image decoding and tensor preprocessing
- Raw output decoding and non-max suppression
- The Detector entry point
"""

from .types import BoundingBox, DecodedImage, DetectionResult, RawDetection
from .config import DetectorConfig
from .detector import Detector
from .crops import extract_crops

__all__ = [
    'BoundingBox',
    'DecodedImage',
    'DetectionResult',
    'RawDetection',
    'DetectorConfig',
    'Detector',
    'extract_crops',
]
