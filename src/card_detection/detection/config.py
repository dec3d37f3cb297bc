"""
Detector Configuration.

Flat, validated view over the nested YAML configuration.
"""

import os
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional, Tuple

from ..utils.config_loader import (
    get_nested_value,
    load_config,
    load_config_with_defaults,
    merge_configs,
    DEFAULT_CONFIG_PATH,
)


BACKENDS = ('auto', 'onnx', 'torchscript')
LAYOUTS = ('nhwc', 'nchw')
RESIZE_MODES = ('nearest', 'bilinear')


def _optional_float(value: Any) -> Optional[float]:
    return None if value is None else float(value)


def _resolve_path(path: Any, base_dir: Optional[str]) -> str:
    path = os.path.expanduser(str(path))
    if base_dir is None or os.path.isabs(path):
        return path
    return os.path.join(base_dir, path)


@dataclass
class DetectorConfig:
    """Settings for a :class:`~card_detection.detection.detector.Detector`."""
    model_path: str = 'model.onnx'
    backend: str = 'auto'
    device: str = 'cpu'
    input_size: Tuple[int, int] = (640, 640)  # (height, width)
    layout: str = 'nhwc'
    resize: str = 'nearest'
    pad_to_square: bool = False
    chunk_size: int = 6
    score_threshold: float = 0.3
    class_name: str = 'pokemon_card'
    nms_enabled: bool = False
    iou_threshold: float = 0.45
    max_detections: int = 100
    inference_timeout: Optional[float] = None
    num_workers: int = 1

    def __post_init__(self) -> None:
        self.input_size = tuple(int(v) for v in self.input_size)
        self.validate()

    def validate(self) -> None:
        """
        Check value ranges.

        Raises:
            ValueError: If any setting is out of range.
        """
        if self.backend not in BACKENDS:
            raise ValueError(f"Unknown backend: {self.backend}")
        if self.layout not in LAYOUTS:
            raise ValueError(f"Unknown input layout: {self.layout}")
        if self.resize not in RESIZE_MODES:
            raise ValueError(f"Unknown resize mode: {self.resize}")
        if len(self.input_size) != 2 or min(self.input_size) <= 0:
            raise ValueError(f"Invalid input size: {self.input_size}")
        if self.chunk_size < 5:
            raise ValueError(
                f"chunk_size must be at least 5, got {self.chunk_size}"
            )
        if not 0.0 <= self.score_threshold <= 1.0:
            raise ValueError(
                f"score_threshold must be in [0, 1], got {self.score_threshold}"
            )
        if not 0.0 <= self.iou_threshold <= 1.0:
            raise ValueError(
                f"iou_threshold must be in [0, 1], got {self.iou_threshold}"
            )
        if self.max_detections < 1:
            raise ValueError("max_detections must be positive")
        if self.inference_timeout is not None and self.inference_timeout <= 0:
            raise ValueError("inference_timeout must be positive or None")
        if self.num_workers < 1:
            raise ValueError("num_workers must be positive")

    @classmethod
    def from_dict(
        cls,
        config: Dict[str, Any],
        base_dir: Optional[str] = None
    ) -> 'DetectorConfig':
        """
        Build from a nested configuration dictionary.

        Missing keys fall back to the packaged defaults. A relative
        ``model.path`` is resolved against ``model.dir``; a relative
        ``model.dir`` (or, when unset, the path itself) is resolved against
        ``base_dir``.

        Args:
            config: Nested configuration (same shape as ``detector.yaml``).
            base_dir: Directory relative paths are anchored to; the current
                working directory when None.

        Returns:
            Detector configuration.
        """
        config = merge_configs(load_config(DEFAULT_CONFIG_PATH), config)

        def get(key_path: str) -> Any:
            return get_nested_value(config, key_path)

        model_dir = get('model.dir')
        if model_dir is not None:
            base_dir = _resolve_path(model_dir, base_dir)

        return cls(
            model_path=_resolve_path(get('model.path'), base_dir),
            backend=get('model.backend'),
            device=get('model.device'),
            input_size=tuple(get('input.size')),
            layout=get('input.layout'),
            resize=get('input.resize'),
            pad_to_square=bool(get('input.pad_to_square')),
            chunk_size=int(get('output.chunk_size')),
            score_threshold=float(get('output.score_threshold')),
            class_name=str(get('output.class_name')),
            nms_enabled=bool(get('nms.enabled')),
            iou_threshold=float(get('nms.iou_threshold')),
            max_detections=int(get('nms.max_detections')),
            inference_timeout=_optional_float(get('runtime.inference_timeout')),
            num_workers=int(get('runtime.num_workers')),
        )

    @classmethod
    def from_yaml(cls, config_path: Optional[str] = None) -> 'DetectorConfig':
        """
        Load from a YAML file merged over the packaged defaults.

        Relative model paths in the file are resolved against the file's
        own directory.
        """
        base_dir = None
        if config_path is not None:
            base_dir = os.path.dirname(os.path.abspath(config_path))
        return cls.from_dict(load_config_with_defaults(config_path), base_dir)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a flat dictionary."""
        result = asdict(self)
        result['input_size'] = list(self.input_size)
        return result
