"""
Invocation boundary for host applications.

A host shell hands over encoded image bytes and gets back a JSON-ready
dictionary: ``{'detections': [...]}`` on success or ``{'error': '...'}``
when the pipeline fails.
"""

import threading
from typing import Any, Dict, Optional

from .detection.detector import Detector
from .errors import DetectionError
from .utils.logger import get_logger


logger = get_logger(__name__)

_default_detector: Optional[Detector] = None
_default_lock = threading.Lock()


def get_default_detector() -> Detector:
    """
    Return the lazily created detector used when none is passed.

    It is built from the packaged defaults, so a relative ``model.path`` is
    looked up under ``model.dir`` or the working directory. Hosts that keep
    the model elsewhere install their own with :func:`set_default_detector`.
    """
    global _default_detector

    with _default_lock:
        if _default_detector is None:
            _default_detector = Detector.from_config_file()
        return _default_detector


def set_default_detector(detector: Optional[Detector]) -> None:
    """Replace the default detector, closing the previous one."""
    global _default_detector

    with _default_lock:
        previous, _default_detector = _default_detector, detector

    if previous is not None and previous is not detector:
        previous.close()


def detect_card(image_bytes: bytes, detector: Optional[Detector] = None) -> Dict[str, Any]:
    """
    Detect cards in an encoded image.

    Args:
        image_bytes: Encoded image bytes.
        detector: Detector to use; the default detector when omitted.

    Returns:
        ``{'detections': [{'points': ..., 'confidence': ..., 'class': ...}]}``
        or ``{'error': message}``.
    """
    detector = detector or get_default_detector()

    try:
        boxes = detector.detect(image_bytes)
    except DetectionError as exc:
        logger.error("Card detection failed: %s", exc)
        return {'error': str(exc)}

    return {'detections': [box.to_dict() for box in boxes]}
