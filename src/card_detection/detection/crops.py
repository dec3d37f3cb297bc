"""Cut detected cards out of the source image."""

import math
from typing import List, Sequence

import numpy as np

from .types import BoundingBox


def crop_box(pixels: np.ndarray, box: BoundingBox) -> np.ndarray:
    """
    Crop the axis-aligned extent of a box.

    Returns:
        Copy of the region; may be empty when the box has no area.
    """
    height, width = pixels.shape[:2]
    x1, y1, x2, y2 = box.xyxy

    left = min(max(int(math.floor(x1)), 0), width)
    top = min(max(int(math.floor(y1)), 0), height)
    right = min(max(int(math.ceil(x2)), 0), width)
    bottom = min(max(int(math.ceil(y2)), 0), height)

    return pixels[top:bottom, left:right].copy()


def extract_crops(
    pixels: np.ndarray,
    boxes: Sequence[BoundingBox],
    min_confidence: float = 0.5
) -> List[np.ndarray]:
    """
    Extract the image region of each sufficiently confident box.

    Args:
        pixels: Source image (H, W, C).
        boxes: Detections in the image's pixel space.
        min_confidence: Crop cutoff, stricter than the detection threshold.

    Returns:
        Non-empty crops in box order.
    """
    crops = []
    for box in boxes:
        if box.confidence < min_confidence:
            continue
        crop = crop_box(pixels, box)
        if crop.size > 0:
            crops.append(crop)
    return crops
