"""
Deployment module for the Card Detection System.

This module provides:
- Inference engines for ONNX Runtime and TorchScript models
- The process-wide model cache
"""

from .inference_engine import InferenceEngine, ONNXEngine, TorchScriptEngine, create_engine
from .model_cache import CachedModel, ModelCache, get_model_cache

__all__ = [
    'InferenceEngine',
    'ONNXEngine',
    'TorchScriptEngine',
    'create_engine',
    'CachedModel',
    'ModelCache',
    'get_model_cache',
]
