"""
Detection Post-processing.

Turns the raw model output buffer into bounding boxes in the original
image's pixel space.
"""

from typing import List, Sequence, Tuple

import numpy as np

from ..errors import InferenceError
from ..utils.logger import get_logger
from .config import DetectorConfig
from .types import BoundingBox, RawDetection


logger = get_logger(__name__)


def parse_raw_detections(output: np.ndarray, chunk_size: int = 6) -> List[RawDetection]:
    """
    Split a flat output buffer into detection records.

    Each chunk is laid out as [y1, x1, y2, x2, confidence, ...]; slots past
    the confidence are ignored. A trailing partial chunk is dropped.

    Args:
        output: Model output of any shape; it is read in row-major order.
        chunk_size: Number of floats per detection.

    Returns:
        Raw detections in buffer order.
    """
    flat = np.asarray(output, dtype=np.float32).reshape(-1)

    remainder = flat.size % chunk_size
    if remainder:
        logger.warning(
            "Output buffer of %d values is not a multiple of %d; dropping %d trailing values",
            flat.size, chunk_size, remainder
        )
        flat = flat[:flat.size - remainder]

    chunks = flat.reshape(-1, chunk_size)
    return [RawDetection.from_chunk(chunk) for chunk in chunks]


def filter_by_confidence(
    detections: Sequence[RawDetection],
    threshold: float
) -> List[RawDetection]:
    """Keep detections with confidence >= threshold. NaN scores are dropped."""
    return [d for d in detections if d.confidence >= threshold]


def scale_detection(
    detection: RawDetection,
    reference_size: Tuple[int, int],
    image_size: Tuple[int, int],
    class_name: str
) -> BoundingBox:
    """
    Scale a normalized detection into image pixel space.

    Args:
        detection: Normalized detection.
        reference_size: (width, height) the normalized coordinates refer to.
        image_size: (width, height) of the original image; the box is
            clipped to it.
        class_name: Label for the box.

    Returns:
        Bounding box in original image pixels.
    """
    ref_width, ref_height = reference_size
    width, height = image_size

    # Scale in float32, the precision of the model output
    xs = np.array([detection.x1, detection.x2], dtype=np.float32)
    ys = np.array([detection.y1, detection.y2], dtype=np.float32)
    xs = np.clip(np.nan_to_num(xs), 0.0, 1.0).astype(np.float32) * np.float32(ref_width)
    ys = np.clip(np.nan_to_num(ys), 0.0, 1.0).astype(np.float32) * np.float32(ref_height)
    xs = np.clip(xs, 0.0, width)
    ys = np.clip(ys, 0.0, height)

    return BoundingBox.from_corners(
        x1=float(xs.min()),
        y1=float(ys.min()),
        x2=float(xs.max()),
        y2=float(ys.max()),
        confidence=float(detection.confidence),
        class_name=class_name,
    )


def box_iou(box: np.ndarray, others: np.ndarray) -> np.ndarray:
    """IoU of one (x1, y1, x2, y2) box against an [N, 4] array."""
    xx1 = np.maximum(box[0], others[:, 0])
    yy1 = np.maximum(box[1], others[:, 1])
    xx2 = np.minimum(box[2], others[:, 2])
    yy2 = np.minimum(box[3], others[:, 3])

    inter = np.clip(xx2 - xx1, 0, None) * np.clip(yy2 - yy1, 0, None)
    area = (box[2] - box[0]) * (box[3] - box[1])
    areas = (others[:, 2] - others[:, 0]) * (others[:, 3] - others[:, 1])
    union = area + areas - inter

    return np.divide(inter, union, out=np.zeros_like(inter), where=union > 0)


def non_max_suppression(
    boxes: Sequence[BoundingBox],
    iou_threshold: float = 0.45,
    max_detections: int = 100
) -> List[BoundingBox]:
    """
    Greedy class-agnostic non-max suppression.

    Args:
        boxes: Candidate boxes.
        iou_threshold: Boxes overlapping a kept box by more than this are removed.
        max_detections: Maximum number of boxes to keep.

    Returns:
        Kept boxes, highest confidence first.
    """
    if not boxes:
        return []

    coords = np.array([box.xyxy for box in boxes], dtype=np.float64)
    scores = np.array([box.confidence for box in boxes], dtype=np.float64)
    order = np.argsort(-scores, kind='stable')

    keep = []
    while order.size > 0 and len(keep) < max_detections:
        i = order[0]
        keep.append(i)
        if order.size == 1:
            break
        ious = box_iou(coords[i], coords[order[1:]])
        order = order[1:][ious <= iou_threshold]

    return [boxes[i] for i in keep]


def decode_detections(
    outputs: Sequence[np.ndarray],
    reference_size: Tuple[int, int],
    image_size: Tuple[int, int],
    config: DetectorConfig
) -> List[BoundingBox]:
    """
    Convert model outputs into bounding boxes.

    Args:
        outputs: Model outputs; only the first one is read.
        reference_size: (width, height) normalized coordinates refer to.
        image_size: (width, height) of the original image.
        config: Detector configuration.

    Returns:
        Boxes above the score threshold, in buffer order (or confidence
        order when NMS is enabled).

    Raises:
        InferenceError: If the model produced no output.
    """
    if len(outputs) == 0:
        raise InferenceError("Model produced no outputs")

    raw = parse_raw_detections(outputs[0], config.chunk_size)
    kept = filter_by_confidence(raw, config.score_threshold)

    boxes = [
        scale_detection(d, reference_size, image_size, config.class_name)
        for d in kept
    ]

    if config.nms_enabled:
        boxes = non_max_suppression(boxes, config.iou_threshold, config.max_detections)

    logger.debug("%d raw detections, %d above threshold, %d returned", len(raw), len(kept), len(boxes))
    return boxes
