"""
Card Detector.

Runs the detection pipeline on encoded image bytes:
decode -> preprocess -> infer -> postprocess.

Each call is synchronous and keeps no state between calls apart from the
shared model handle. Use :meth:`Detector.detect_async` to keep a UI thread
responsive while inference runs on a background worker.
"""

import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import replace
from typing import Iterable, List, Optional

import numpy as np

from ..deployment.inference_engine import resolve_backend
from ..deployment.model_cache import CachedModel, ModelCache, get_model_cache
from ..errors import DetectionError
from ..utils.logger import get_logger
from .config import DetectorConfig
from .postprocessing import decode_detections
from .preprocessing import decode_image, from_array, preprocess
from .types import BoundingBox, DecodedImage, DetectionResult


logger = get_logger(__name__)


class Detector:
    """
    Single-shot card detector.

    Example:
        >>> with Detector(model_path='model.onnx') as detector:
        ...     boxes = detector.detect(image_bytes)
    """

    def __init__(
        self,
        config: Optional[DetectorConfig] = None,
        model_path: Optional[str] = None,
        cache: Optional[ModelCache] = None
    ) -> None:
        """
        Initialize detector. The model is loaded on first use.

        Args:
            config: Detector configuration; defaults are used when omitted.
            model_path: Optional model path overriding ``config.model_path``.
            cache: Model cache; the process-wide cache by default.
        """
        config = config or DetectorConfig()
        if model_path is not None:
            config = replace(config, model_path=str(model_path))

        self.config = config
        self.cache = cache if cache is not None else get_model_cache()

        self._model: Optional[CachedModel] = None
        self._model_lock = threading.Lock()
        self._executor: Optional[ThreadPoolExecutor] = None
        self._executor_lock = threading.Lock()

    @classmethod
    def from_config_file(cls, config_path: Optional[str] = None, **kwargs) -> 'Detector':
        """Create a detector from a YAML config merged over the defaults."""
        return cls(DetectorConfig.from_yaml(config_path), **kwargs)

    @property
    def input_shape(self) -> tuple:
        height, width = self.config.input_size
        if self.config.layout == 'nchw':
            return (1, 3, height, width)
        return (1, height, width, 3)

    @property
    def is_loaded(self) -> bool:
        return self._model is not None

    def load_model(self) -> CachedModel:
        """
        Acquire the model from the cache, loading it on first use.

        Raises:
            ModelLoadError: If the artifact is missing or unreadable.
            ModelBuildError: If the inference session cannot be built.
        """
        with self._model_lock:
            if self._model is None:
                backend = resolve_backend(self.config.backend, self.config.model_path)
                kwargs = {}
                if backend == 'torchscript':
                    kwargs['device'] = self.config.device
                self._model = self.cache.acquire(
                    self.config.model_path, backend, **kwargs
                )
                self._check_input_shape(self._model)
            return self._model

    def _check_input_shape(self, model: CachedModel) -> None:
        declared = model.engine.input_shape
        if not declared or len(declared) != len(self.input_shape):
            return
        for expected, actual in zip(self.input_shape, declared):
            if isinstance(actual, int) and actual > 0 and actual != expected:
                logger.warning(
                    "Model input shape %s does not match preprocessing shape %s",
                    declared, self.input_shape
                )
                return

    def detect(self, image_bytes: bytes) -> List[BoundingBox]:
        """
        Detect cards in an encoded image.

        Args:
            image_bytes: Encoded image (PNG, JPEG, ...).

        Returns:
            Boxes with confidence >= the score threshold, in original image
            pixel coordinates. May be empty.

        Raises:
            ImageDecodeError: If the bytes are not a valid image.
            ModelLoadError: If the model artifact cannot be read.
            ModelBuildError: If the inference session cannot be built.
            InferenceError: If the inference call fails or times out.
        """
        return self._detect_decoded(decode_image(image_bytes))

    def detect_array(self, pixels: np.ndarray) -> List[BoundingBox]:
        """Detect cards in an already decoded RGB array (H, W, 3)."""
        return self._detect_decoded(from_array(pixels))

    def _detect_decoded(self, image: DecodedImage) -> List[BoundingBox]:
        model = self.load_model()
        tensor, reference_size = preprocess(image, self.config)

        start_time = time.perf_counter()
        outputs = model.run(tensor, timeout=self.config.inference_timeout)
        inference_time = (time.perf_counter() - start_time) * 1000

        boxes = decode_detections(
            outputs, reference_size, (image.width, image.height), self.config
        )
        logger.debug(
            "Detected %d card(s) in %dx%d image (inference: %.1fms)",
            len(boxes), image.width, image.height, inference_time
        )
        return boxes

    def detect_images(self, images: Iterable[bytes]) -> List[DetectionResult]:
        """
        Detect cards in several encoded images.

        A failing image is reported in its result's ``error`` field with an
        empty detection list; the remaining images are still processed.

        Args:
            images: Encoded images.

        Returns:
            One result per image, in input order.
        """
        results = []

        for index, image_bytes in enumerate(images):
            start_time = time.perf_counter()
            try:
                detections = self.detect(image_bytes)
                error = None
            except DetectionError as exc:
                logger.warning("Error detecting objects in image %d: %s", index, exc)
                detections = []
                error = str(exc)

            results.append(DetectionResult(
                image_index=index,
                detections=detections,
                error=error,
                inference_time_ms=(time.perf_counter() - start_time) * 1000,
            ))

        return results

    def detect_async(self, image_bytes: bytes) -> Future:
        """
        Run :meth:`detect` on a background worker.

        Returns:
            Future resolving to the list of boxes, or raising the
            corresponding DetectionError.
        """
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.config.num_workers,
                    thread_name_prefix='card-detection'
                )
            return self._executor.submit(self.detect, image_bytes)

    def warmup(self) -> None:
        """Load the model and run one dummy inference."""
        model = self.load_model()
        dummy_input = np.zeros(self.input_shape, dtype=np.float32)
        model.run(dummy_input, timeout=self.config.inference_timeout)
        logger.info("Detector warmed up: %s", self.config.model_path)

    def close(self) -> None:
        """Stop background workers and release the model reference."""
        with self._executor_lock:
            if self._executor is not None:
                self._executor.shutdown(wait=True)
                self._executor = None

        with self._model_lock:
            if self._model is not None:
                self.cache.release(self._model)
                self._model = None

    def __enter__(self) -> 'Detector':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
