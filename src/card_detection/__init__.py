"""Card Detection System.

On-device single-shot detection of trading cards in photos.

Main modules:
- detection: Decode, preprocess, post-process and the Detector itself
- deployment: Inference engines (ONNX Runtime, TorchScript) and the model cache
- utils: Configuration, logging, and visualization
- applications: Command-line front end
- api: Invocation boundary for host applications
"""

__version__ = "0.1.0"

from .errors import (
    DetectionError,
    ImageDecodeError,
    ModelLoadError,
    ModelBuildError,
    InferenceError,
    InferenceTimeoutError,
)
from .detection import BoundingBox, DetectionResult, Detector, DetectorConfig
from .api import detect_card

__all__ = [
    "DetectionError",
    "ImageDecodeError",
    "ModelLoadError",
    "ModelBuildError",
    "InferenceError",
    "InferenceTimeoutError",
    "BoundingBox",
    "DetectionResult",
    "Detector",
    "DetectorConfig",
    "detect_card",
]
