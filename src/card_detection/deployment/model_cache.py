"""
Process-wide Model Cache.

Models are loaded lazily on first use, shared between detectors that ask
for the same artifact, and dropped when the last reference is released
(or when the process exits). Inference on a cached model is serialized by
a per-model lock, so several detectors can decode and preprocess in
parallel while sharing one session.
"""

import atexit
import os
import threading
from concurrent.futures import Future, TimeoutError as FutureTimeoutError
from typing import Any, Dict, Hashable, List, Optional, Tuple

import numpy as np

from ..errors import InferenceTimeoutError
from ..utils.logger import get_logger
from .inference_engine import InferenceEngine, create_engine, resolve_backend


logger = get_logger(__name__)


class CachedModel:
    """Shared handle to a loaded inference engine."""

    def __init__(self, key: Hashable, engine: InferenceEngine) -> None:
        self.key = key
        self.engine = engine
        self.ref_count = 0
        self._lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._stalled_calls = 0

    @property
    def model_path(self) -> Optional[str]:
        return self.engine.model_path

    @property
    def stalled_calls(self) -> int:
        """Number of timed-out calls still running on the engine."""
        with self._state_lock:
            return self._stalled_calls

    def _run_locked(self, tensor: np.ndarray) -> List[np.ndarray]:
        with self._lock:
            return self.engine.predict(tensor)

    def run(self, tensor: np.ndarray, timeout: Optional[float] = None) -> List[np.ndarray]:
        """
        Run one inference call, serialized against other callers.

        Timed calls run on a helper thread. A call that times out keeps
        running and holds the model until it returns; while any such call
        is outstanding, new timed calls fail immediately instead of queueing
        more helper threads behind it.

        Args:
            tensor: Model input.
            timeout: Optional bound in seconds on waiting for the lock plus
                the call itself.

        Returns:
            Model outputs.

        Raises:
            InferenceError: If the call fails.
            InferenceTimeoutError: If the call does not finish in time, or a
                previously timed-out call is still running.
        """
        if timeout is None:
            return self._run_locked(tensor)

        with self._state_lock:
            stalled = self._stalled_calls
        if stalled:
            raise InferenceTimeoutError(
                f"Model is still running {stalled} timed-out inference call(s)"
            )

        future: Future = Future()
        abandoned = threading.Event()

        def target() -> None:
            if not future.set_running_or_notify_cancel():
                return
            try:
                future.set_result(self._run_locked(tensor))
            except BaseException as exc:
                future.set_exception(exc)
            finally:
                with self._state_lock:
                    if abandoned.is_set():
                        self._stalled_calls -= 1

        worker = threading.Thread(target=target, name='card-detection-inference', daemon=True)
        worker.start()

        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError as exc:
            with self._state_lock:
                if not future.cancel() and not future.done():
                    abandoned.set()
                    self._stalled_calls += 1
            raise InferenceTimeoutError(
                f"Inference did not finish within {timeout:.3f}s"
            ) from exc


class ModelCache:
    """
    Reference-counted cache of loaded models.

    Thread-safe: all lookups and mutations hold the cache lock.
    """

    def __init__(self) -> None:
        self._models: Dict[Hashable, CachedModel] = {}
        self._lock = threading.Lock()

    @staticmethod
    def make_key(model_path: str, backend: str = 'auto', **engine_kwargs) -> Tuple[Any, ...]:
        """Cache key for a model path, resolved backend and engine arguments."""
        resolved = resolve_backend(backend, model_path)
        options = tuple(sorted((k, repr(v)) for k, v in engine_kwargs.items()))
        return (os.path.abspath(model_path), resolved, options)

    def acquire(self, model_path: str, backend: str = 'auto', **engine_kwargs) -> CachedModel:
        """
        Get a model, loading it on first use.

        Each call must be balanced by :meth:`release`.

        Args:
            model_path: Path to the model artifact.
            backend: Backend name ('auto', 'onnx', 'torchscript').
            **engine_kwargs: Extra engine arguments (e.g. device).

        Returns:
            Shared model handle.

        Raises:
            ModelLoadError: If the artifact is missing or unreadable.
            ModelBuildError: If the inference session cannot be built.
        """
        key = self.make_key(model_path, backend, **engine_kwargs)

        with self._lock:
            model = self._models.get(key)
            if model is None:
                logger.info("Loading model %s (backend: %s)", key[0], key[1])
                engine = create_engine(key[1], model_path, **engine_kwargs)
                model = CachedModel(key, engine)
                self._models[key] = model
            model.ref_count += 1
            logger.debug("Acquired %s (refs: %d)", key[0], model.ref_count)
            return model

    def release(self, model: CachedModel) -> None:
        """Drop one reference; unload the model when none remain."""
        with self._lock:
            cached = self._models.get(model.key)
            if cached is not model or model.ref_count <= 0:
                logger.warning("Release of model that is not cached: %s", model.key[0])
                return
            model.ref_count -= 1
            logger.debug("Released %s (refs: %d)", model.key[0], model.ref_count)
            if model.ref_count == 0:
                del self._models[model.key]
                logger.info("Unloaded model %s", model.key[0])

    def clear(self) -> None:
        """Drop every cached model regardless of reference counts."""
        with self._lock:
            if self._models:
                logger.info("Clearing %d cached model(s)", len(self._models))
            for model in self._models.values():
                model.ref_count = 0
            self._models.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._models)

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._models


_default_cache = ModelCache()
atexit.register(_default_cache.clear)


def get_model_cache() -> ModelCache:
    """Return the process-wide model cache."""
    return _default_cache
