"""
Data Types for the Card Detection System.

Defines the records that flow through the pipeline: the decoded image,
the raw model detection and the externally visible bounding box.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np


Point = Tuple[float, float]


@dataclass
class DecodedImage:
    """RGB pixel grid decoded from an encoded image."""
    width: int
    height: int
    pixels: np.ndarray  # Shape: (height, width, 3), uint8, RGB


@dataclass(frozen=True)
class RawDetection:
    """One detection record in normalized model-input coordinates."""
    y1: float
    x1: float
    y2: float
    x2: float
    confidence: float

    @classmethod
    def from_chunk(cls, chunk: Sequence[float]) -> 'RawDetection':
        """Build from an output chunk laid out as [y1, x1, y2, x2, confidence, ...]."""
        return cls(
            y1=float(chunk[0]),
            x1=float(chunk[1]),
            y2=float(chunk[2]),
            x2=float(chunk[3]),
            confidence=float(chunk[4]),
        )


@dataclass
class BoundingBox:
    """
    Detected object in original image pixel space.

    Points are ordered top-left, top-right, bottom-right, bottom-left.
    """
    points: List[Point]
    confidence: float
    class_name: str

    @classmethod
    def from_corners(
        cls,
        x1: float,
        y1: float,
        x2: float,
        y2: float,
        confidence: float,
        class_name: str
    ) -> 'BoundingBox':
        """Build a box from its top-left and bottom-right corners."""
        return cls(
            points=[(x1, y1), (x2, y1), (x2, y2), (x1, y2)],
            confidence=confidence,
            class_name=class_name,
        )

    @property
    def xyxy(self) -> Tuple[float, float, float, float]:
        """Axis-aligned (x1, y1, x2, y2) extent of the box."""
        xs = [p[0] for p in self.points]
        ys = [p[1] for p in self.points]
        return min(xs), min(ys), max(xs), max(ys)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the wire representation."""
        return {
            'points': [[float(x), float(y)] for x, y in self.points],
            'confidence': float(self.confidence),
            'class': self.class_name,
        }


@dataclass
class DetectionResult:
    """Detections for one image of a batch."""
    image_index: int
    detections: List[BoundingBox] = field(default_factory=list)
    error: Optional[str] = None
    inference_time_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        result = {
            'image_index': self.image_index,
            'num_detections': len(self.detections),
            'inference_time_ms': self.inference_time_ms,
            'detections': [box.to_dict() for box in self.detections],
        }
        if self.error is not None:
            result['error'] = self.error
        return result
