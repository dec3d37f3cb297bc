#!/usr/bin/env python
"""
Command-line card detection.

Runs the detector on an image or a directory of images and prints one JSON
line per image.

Usage:
    card-detect --model model.onnx --input photo.jpg
    card-detect --model model.onnx --input photos/ --output outputs/detect --save-crops --save-vis
    card-detect --config configs/detector.yaml --input photo.jpg --nms
"""

import argparse
import json
import logging
import os
import sys
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

import cv2
import yaml
from tqdm import tqdm

from ..detection.config import DetectorConfig
from ..detection.crops import extract_crops
from ..detection.detector import Detector
from ..detection.preprocessing import decode_image
from ..errors import DetectionError
from ..utils.logger import get_logger, setup_logger
from ..utils.visualization import visualize_detections


IMAGE_EXTENSIONS = ('.jpg', '.jpeg', '.png', '.bmp', '.webp')

logger = get_logger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description='Detect trading cards in images',
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    parser.add_argument(
        '--input', type=str, required=True,
        help='Input image path or directory of images'
    )
    parser.add_argument(
        '--model', type=str, default=None,
        help='Path to model (.onnx or TorchScript .pt); overrides the config'
    )
    parser.add_argument(
        '--config', type=str, default=None,
        help='YAML config merged over the packaged defaults'
    )
    parser.add_argument(
        '--backend', type=str, default=None,
        choices=['auto', 'onnx', 'torchscript'],
        help='Inference backend; overrides the config'
    )
    parser.add_argument(
        '--device', type=str, default=None,
        help='Device for TorchScript models (cpu, cuda)'
    )
    parser.add_argument(
        '--threshold', type=float, default=None,
        help='Confidence score threshold; overrides the config'
    )
    parser.add_argument(
        '--nms', action='store_true',
        help='Apply non-max suppression to the detections'
    )
    parser.add_argument(
        '--timeout', type=float, default=None,
        help='Inference timeout in seconds'
    )
    parser.add_argument(
        '--output', type=str, default='outputs/detect',
        help='Output directory for crops and visualizations'
    )
    parser.add_argument(
        '--save-crops', action='store_true',
        help='Save each detected card as a separate image'
    )
    parser.add_argument(
        '--crop-threshold', type=float, default=0.5,
        help='Minimum confidence for saved crops'
    )
    parser.add_argument(
        '--save-vis', action='store_true',
        help='Save images with the detections drawn on them'
    )
    parser.add_argument(
        '--benchmark', type=int, default=0,
        help='Run N timed dummy inferences and print latency statistics'
    )
    parser.add_argument(
        '--log-level', type=str, default='WARNING',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging level'
    )

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> DetectorConfig:
    """Combine the YAML config with command line overrides."""
    config = DetectorConfig.from_yaml(args.config)

    overrides = {}
    if args.model is not None:
        overrides['model_path'] = args.model
    if args.backend is not None:
        overrides['backend'] = args.backend
    if args.device is not None:
        overrides['device'] = args.device
    if args.threshold is not None:
        overrides['score_threshold'] = args.threshold
    if args.nms:
        overrides['nms_enabled'] = True
    if args.timeout is not None:
        overrides['inference_timeout'] = args.timeout

    return replace(config, **overrides)


def collect_images(input_path: str) -> List[Path]:
    """List image files for a file or directory input."""
    path = Path(input_path)
    if path.is_dir():
        return sorted(
            p for p in path.iterdir()
            if p.is_file() and p.suffix.lower() in IMAGE_EXTENSIONS
        )
    return [path]


def save_outputs(
    image_bytes: bytes,
    boxes: list,
    image_path: Path,
    args: argparse.Namespace
) -> None:
    """Write crops and/or visualization for one image."""
    pixels = decode_image(image_bytes).pixels
    os.makedirs(args.output, exist_ok=True)

    if args.save_vis:
        vis_path = os.path.join(args.output, f'{image_path.stem}_result.jpg')
        visualize_detections(pixels, boxes, output_path=vis_path)

    if args.save_crops:
        crops = extract_crops(pixels, boxes, args.crop_threshold)
        for i, crop in enumerate(crops):
            crop_path = os.path.join(args.output, f'{image_path.stem}_card_{i + 1}.png')
            cv2.imwrite(crop_path, cv2.cvtColor(crop, cv2.COLOR_RGB2BGR))


def run(detector: Detector, images: List[Path], args: argparse.Namespace) -> int:
    """Detect on every image; return the number of failures."""
    failures = 0
    progress = tqdm(images, desc='Detecting', unit='img', disable=len(images) < 2, file=sys.stderr)

    for image_path in progress:
        record = {'image': str(image_path)}
        try:
            image_bytes = image_path.read_bytes()
        except OSError as exc:
            record['error'] = f"Cannot read image: {exc}"
            failures += 1
            print(json.dumps(record))
            continue

        try:
            boxes = detector.detect(image_bytes)
        except DetectionError as exc:
            record['error'] = str(exc)
            failures += 1
            print(json.dumps(record))
            continue

        record['detections'] = [box.to_dict() for box in boxes]
        print(json.dumps(record))

        if args.save_crops or args.save_vis:
            try:
                save_outputs(image_bytes, boxes, image_path, args)
            except OSError as exc:
                logger.error("Cannot write outputs for %s: %s", image_path, exc)
                failures += 1

    return failures


def main(argv: Optional[List[str]] = None) -> int:
    """Main detection function."""
    args = parse_args(argv)
    setup_logger(log_level=getattr(logging, args.log_level))

    try:
        config = build_config(args)
    except (FileNotFoundError, ValueError, yaml.YAMLError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    images = collect_images(args.input)
    if not images:
        print(f"Error: no images found in {args.input}", file=sys.stderr)
        return 2

    with Detector(config) as detector:
        if args.benchmark > 0:
            try:
                stats = detector.load_model().engine.benchmark(
                    detector.input_shape, args.benchmark
                )
            except DetectionError as exc:
                print(f"Error: {exc}", file=sys.stderr)
                return 1
            print(json.dumps({'benchmark': stats}))

        failures = run(detector, images, args)

    return 1 if failures else 0


if __name__ == '__main__':
    sys.exit(main())
