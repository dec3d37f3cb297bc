"""
Inference Engine for the Card Detection System.

This module provides a unified inference interface supporting multiple backends:
- ONNX Runtime
- TorchScript (PyTorch)

Every engine maps backend failures onto the detection error taxonomy:
unreadable artifacts raise ModelLoadError, session construction failures
raise ModelBuildError and failed runs raise InferenceError.
"""

import os
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
import torch

from ..errors import InferenceError, ModelBuildError, ModelLoadError
from ..utils.logger import get_logger


logger = get_logger(__name__)

ONNX_SUFFIXES = ('.onnx',)
TORCHSCRIPT_SUFFIXES = ('.pt', '.pth', '.torchscript')

# onnxruntime exception names that mean the artifact itself is bad
_ORT_LOAD_ERRORS = ('InvalidProtobuf', 'NoSuchFile', 'InvalidArgument')


def _check_model_file(model_path: str) -> None:
    if not os.path.exists(model_path):
        raise ModelLoadError(f"Model file not found: {model_path}")
    if not os.path.isfile(model_path):
        raise ModelLoadError(f"Model path is not a file: {model_path}")
    if not os.access(model_path, os.R_OK):
        raise ModelLoadError(f"Model file is not readable: {model_path}")


class InferenceEngine(ABC):
    """
    Abstract base class for inference engines.

    Provides unified interface for running inference with different backends.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None) -> None:
        """
        Initialize inference engine.

        Args:
            config: Engine configuration.
        """
        self.config = config or {}
        self.warmup_iterations = self.config.get('warmup_iterations', 1)
        self.model_path: Optional[str] = None

    @abstractmethod
    def load_model(self, model_path: str) -> None:
        """
        Load model from path.

        Args:
            model_path: Path to model file.

        Raises:
            ModelLoadError: If the file is missing or cannot be parsed.
            ModelBuildError: If the runtime session cannot be constructed.
        """
        raise NotImplementedError

    @abstractmethod
    def predict(self, tensor: np.ndarray) -> List[np.ndarray]:
        """
        Run one inference call.

        Args:
            tensor: Input tensor, float32.

        Returns:
            Model outputs in declaration order.

        Raises:
            InferenceError: If the run fails.
        """
        raise NotImplementedError

    @property
    def is_loaded(self) -> bool:
        return False

    @property
    def input_shape(self) -> Optional[Tuple[Any, ...]]:
        """Declared input shape, or None when the backend does not expose one."""
        return None

    def warmup(self, input_shape: Sequence[int] = (1, 640, 640, 3)) -> None:
        """
        Warmup the inference engine.

        Args:
            input_shape: Shape of warmup input.
        """
        dummy_input = np.zeros(tuple(input_shape), dtype=np.float32)

        for _ in range(self.warmup_iterations):
            self.predict(dummy_input)

        logger.info("Warmup complete with %d iterations", self.warmup_iterations)

    def benchmark(
        self,
        input_shape: Sequence[int] = (1, 640, 640, 3),
        num_iterations: int = 20
    ) -> Dict[str, float]:
        """
        Benchmark inference speed.

        Args:
            input_shape: Shape of benchmark input.
            num_iterations: Number of benchmark iterations.

        Returns:
            Dictionary with latency and throughput metrics.
        """
        dummy_input = np.random.rand(*input_shape).astype(np.float32)

        self.warmup(input_shape)

        times = []
        for _ in range(num_iterations):
            start = time.perf_counter()
            self.predict(dummy_input)
            times.append(time.perf_counter() - start)

        times = np.array(times)

        return {
            'mean_latency_ms': float(times.mean() * 1000),
            'std_latency_ms': float(times.std() * 1000),
            'min_latency_ms': float(times.min() * 1000),
            'max_latency_ms': float(times.max() * 1000),
            'fps': float(1.0 / times.mean())
        }


class TorchScriptEngine(InferenceEngine):
    """
    TorchScript inference engine.

    Runs a scripted or traced PyTorch model with optional GPU acceleration.
    """

    def __init__(
        self,
        model_path: Optional[str] = None,
        device: str = 'cpu',
        config: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Initialize TorchScript engine.

        Args:
            model_path: Optional path to a TorchScript archive.
            device: Device to run inference on.
            config: Engine configuration.
        """
        super().__init__(config)

        if device.startswith('cuda') and not torch.cuda.is_available():
            logger.warning("CUDA not available; falling back to CPU")
            device = 'cpu'
        self.device = torch.device(device)
        self.model = None

        if model_path is not None:
            self.load_model(model_path)

    @property
    def is_loaded(self) -> bool:
        return self.model is not None

    def load_model(self, model_path: str) -> None:
        """Load TorchScript model from archive."""
        _check_model_file(model_path)

        try:
            model = torch.jit.load(model_path, map_location='cpu')
        except (RuntimeError, ValueError, OSError) as exc:
            raise ModelLoadError(
                f"Model load error: {model_path} is not a TorchScript archive ({exc})"
            ) from exc

        try:
            model = model.to(self.device)
            model.eval()
        except RuntimeError as exc:
            raise ModelBuildError(f"Failed to prepare model on {self.device}: {exc}") from exc

        self.model = model
        self.model_path = model_path
        logger.info("TorchScript model loaded: %s (device: %s)", model_path, self.device)

    @torch.no_grad()
    def predict(self, tensor: np.ndarray) -> List[np.ndarray]:
        """Run inference on a single input tensor."""
        if self.model is None:
            raise InferenceError("Model not loaded")

        try:
            inputs = torch.from_numpy(np.ascontiguousarray(tensor, dtype=np.float32))
            outputs = self.model(inputs.to(self.device))
        except RuntimeError as exc:
            raise InferenceError(f"Inference failed: {exc}") from exc

        return self._postprocess(outputs)

    def _postprocess(self, outputs: Any) -> List[np.ndarray]:
        """Flatten model outputs into a list of numpy arrays."""
        if isinstance(outputs, torch.Tensor):
            return [outputs.detach().cpu().numpy()]
        if isinstance(outputs, dict):
            outputs = list(outputs.values())
        if isinstance(outputs, (list, tuple)):
            result = []
            for output in outputs:
                result.extend(self._postprocess(output))
            return result
        raise InferenceError(f"Unsupported model output type: {type(outputs).__name__}")


class ONNXEngine(InferenceEngine):
    """
    ONNX Runtime inference engine.

    Optimized inference using ONNX Runtime with support for
    CPU and CUDA execution providers.
    """

    def __init__(
        self,
        model_path: Optional[str] = None,
        providers: Optional[List[str]] = None,
        config: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Initialize ONNX Runtime engine.

        Args:
            model_path: Optional path to ONNX model.
            providers: Execution providers (e.g., ['CUDAExecutionProvider']).
            config: Engine configuration.
        """
        super().__init__(config)

        try:
            import onnxruntime as ort
        except ImportError as exc:
            raise ModelBuildError(
                "onnxruntime is required for ONNX models; install the 'deploy' extra"
            ) from exc
        self.ort = ort

        available = ort.get_available_providers()
        self.providers = [
            p for p in (providers or ['CUDAExecutionProvider', 'CPUExecutionProvider'])
            if p in available
        ] or ['CPUExecutionProvider']

        self.session = None
        self.input_name = None
        self.output_names = None

        if model_path is not None:
            self.load_model(model_path)

    @property
    def is_loaded(self) -> bool:
        return self.session is not None

    @property
    def input_shape(self) -> Optional[Tuple[Any, ...]]:
        if self.session is None:
            return None
        return tuple(self.session.get_inputs()[0].shape)

    def load_model(self, model_path: str) -> None:
        """Load ONNX model."""
        _check_model_file(model_path)

        sess_options = self.ort.SessionOptions()
        sess_options.graph_optimization_level = (
            self.ort.GraphOptimizationLevel.ORT_ENABLE_ALL
        )

        try:
            self.session = self.ort.InferenceSession(
                model_path,
                sess_options,
                providers=self.providers
            )
        except Exception as exc:
            if type(exc).__name__ in _ORT_LOAD_ERRORS:
                raise ModelLoadError(f"Model load error: {model_path} ({exc})") from exc
            raise ModelBuildError(f"Failed to build ONNX session for {model_path}: {exc}") from exc

        self.input_name = self.session.get_inputs()[0].name
        self.output_names = [o.name for o in self.session.get_outputs()]
        self.model_path = model_path

        logger.info("ONNX model loaded: %s", model_path)
        logger.info("Providers: %s", self.session.get_providers())

    def predict(self, tensor: np.ndarray) -> List[np.ndarray]:
        """Run inference on a single input tensor."""
        if self.session is None:
            raise InferenceError("Model not loaded")

        try:
            return self.session.run(
                self.output_names,
                {self.input_name: np.ascontiguousarray(tensor, dtype=np.float32)}
            )
        except Exception as exc:
            raise InferenceError(f"Inference failed: {exc}") from exc


def resolve_backend(backend: str, model_path: str) -> str:
    """
    Resolve the 'auto' backend from the model file suffix.

    Raises:
        ValueError: If the backend name is unknown.
        ModelLoadError: If 'auto' cannot match the file suffix.
    """
    if backend in ('onnx', 'torchscript'):
        return backend
    if backend != 'auto':
        raise ValueError(f"Unknown backend: {backend}")

    suffix = os.path.splitext(model_path)[1].lower()
    if suffix in ONNX_SUFFIXES:
        return 'onnx'
    if suffix in TORCHSCRIPT_SUFFIXES:
        return 'torchscript'
    raise ModelLoadError(f"Unsupported model format: {model_path}")


def create_engine(
    backend: str,
    model_path: Optional[str] = None,
    **kwargs
) -> InferenceEngine:
    """
    Factory function to create inference engine.

    Args:
        backend: Backend type ('auto', 'onnx', 'torchscript').
        model_path: Path to model file. Required for 'auto'.
        **kwargs: Additional engine arguments.

    Returns:
        Inference engine instance, loaded when ``model_path`` is given.
    """
    if backend == 'auto':
        if model_path is None:
            raise ValueError("model_path is required for the 'auto' backend")
        backend = resolve_backend(backend, model_path)

    if model_path is not None:
        _check_model_file(model_path)

    if backend == 'onnx':
        engine = ONNXEngine(**kwargs)
    elif backend == 'torchscript':
        engine = TorchScriptEngine(**kwargs)
    else:
        raise ValueError(f"Unknown backend: {backend}")

    if model_path is not None:
        engine.load_model(model_path)

    return engine
