"""
Visualization Utilities for the Card Detection System.

This module provides drawing functions for detection results.
"""

from typing import Optional, Sequence, Tuple

import cv2
import numpy as np

from ..detection.types import BoundingBox


# Default color palette (BGR)
COLORS = [
    (0, 255, 0),      # Green
    (0, 0, 255),      # Red
    (255, 0, 0),      # Blue
    (0, 255, 255),    # Yellow
    (255, 0, 255),    # Magenta
    (255, 255, 0),    # Cyan
]


def draw_boxes(
    image: np.ndarray,
    boxes: Sequence[BoundingBox],
    score_threshold: float = 0.0,
    color: Optional[Tuple[int, int, int]] = None,
    line_thickness: int = 2,
    font_scale: float = 0.5
) -> np.ndarray:
    """
    Draw bounding boxes on image.

    Args:
        image: Input image (BGR format for OpenCV).
        boxes: Detections in the image's pixel space.
        score_threshold: Minimum score to display.
        color: Box color; cycles through the palette when omitted.
        line_thickness: Box line thickness.
        font_scale: Font scale for labels.

    Returns:
        Copy of the image with drawn boxes.
    """
    image = image.copy()

    for i, box in enumerate(boxes):
        if box.confidence < score_threshold:
            continue

        box_color = color or COLORS[i % len(COLORS)]
        points = np.round(np.array(box.points)).astype(np.int32).reshape(-1, 1, 2)
        cv2.polylines(image, [points], True, box_color, line_thickness)

        x1, y1 = int(round(box.points[0][0])), int(round(box.points[0][1]))
        label = f'{box.class_name}: {box.confidence:.2f}'

        (text_width, text_height), _ = cv2.getTextSize(
            label, cv2.FONT_HERSHEY_SIMPLEX, font_scale, 1
        )
        text_top = max(y1 - text_height - 5, 0)

        cv2.rectangle(
            image,
            (x1, text_top),
            (x1 + text_width, text_top + text_height + 5),
            box_color, -1
        )
        cv2.putText(
            image, label,
            (x1, text_top + text_height),
            cv2.FONT_HERSHEY_SIMPLEX,
            font_scale, (255, 255, 255), 1
        )

    return image


def visualize_detections(
    image_rgb: np.ndarray,
    boxes: Sequence[BoundingBox],
    output_path: Optional[str] = None,
    score_threshold: float = 0.0
) -> np.ndarray:
    """
    Draw detections on an RGB image and optionally save it.

    Args:
        image_rgb: Input image (H, W, 3), RGB.
        boxes: Detections.
        output_path: Optional path to save visualization.
        score_threshold: Minimum score to display.

    Returns:
        Visualization image (BGR).
    """
    image_bgr = cv2.cvtColor(image_rgb, cv2.COLOR_RGB2BGR)
    vis_image = draw_boxes(image_bgr, boxes, score_threshold)

    if output_path is not None:
        cv2.imwrite(output_path, vis_image)

    return vis_image
