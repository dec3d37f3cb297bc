"""
Pytest configuration for the Card Detection System.

This module provides shared fixtures and configuration for tests.
"""

import inspect
import io
import os
import sys
from typing import List, Sequence

import numpy as np
import pytest
import torch
import torch.nn as nn
from PIL import Image

# Add src directory to path
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'src'))

from card_detection.deployment.model_cache import ModelCache


class ConstantDetector(nn.Module):
    """Model that ignores its input and emits a fixed output buffer."""

    def __init__(self, output: torch.Tensor) -> None:
        super().__init__()
        self.register_buffer('output', output)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        return self.output + x.sum() * 0.0


class FailingDetector(nn.Module):
    """Model whose forward pass always fails with a shape error."""

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        return x.view(7, -1)


def encode_image(
    width: int,
    height: int,
    fmt: str = 'PNG',
    color=(128, 64, 32),
    mode: str = 'RGB'
) -> bytes:
    """Encode a solid image to bytes."""
    buffer = io.BytesIO()
    Image.new(mode, (width, height), color=color).save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def image_bytes():
    """Get a small encoded PNG image."""
    return encode_image(64, 48)


@pytest.fixture
def hd_image_bytes():
    """Get an encoded 1280x720 PNG image."""
    return encode_image(1280, 720)


@pytest.fixture
def make_model(tmp_path):
    """Factory writing a TorchScript model that emits the given detection chunks."""
    counter = {'n': 0}

    def _make(chunks: Sequence[Sequence[float]], shape=None) -> str:
        output = torch.tensor(chunks, dtype=torch.float32).reshape(shape or (1, -1))
        model = torch.jit.script(ConstantDetector(output))
        counter['n'] += 1
        path = tmp_path / f'model_{counter["n"]}.pt'
        model.save(str(path))
        return str(path)

    return _make


@pytest.fixture
def make_onnx_model(tmp_path):
    """Factory writing an ONNX model with a fixed NHWC input that emits the given chunks."""
    pytest.importorskip('onnx')
    pytest.importorskip('onnxruntime')

    def _make(chunks: Sequence[Sequence[float]], input_shape=(1, 640, 640, 3)) -> str:
        output = torch.tensor(chunks, dtype=torch.float32).reshape(1, -1)
        path = tmp_path / 'model.onnx'
        export_kwargs = {}
        if 'dynamo' in inspect.signature(torch.onnx.export).parameters:
            export_kwargs['dynamo'] = False
        torch.onnx.export(
            ConstantDetector(output).eval(),
            (torch.zeros(input_shape),),
            str(path),
            input_names=['images'],
            output_names=['detections'],
            opset_version=17,
            **export_kwargs
        )
        return str(path)

    return _make


@pytest.fixture
def failing_model_path(tmp_path):
    """Get path to a TorchScript model whose inference fails."""
    path = tmp_path / 'failing.pt'
    torch.jit.script(FailingDetector()).save(str(path))
    return str(path)


@pytest.fixture
def model_cache():
    """Get an isolated model cache."""
    cache = ModelCache()
    yield cache
    cache.clear()


@pytest.fixture
def sample_chunks() -> List[List[float]]:
    """Get raw detection chunks: one confident, one below threshold."""
    return [
        [0.1, 0.2, 0.5, 0.6, 0.9, 0.0],
        [0.3, 0.3, 0.4, 0.4, 0.1, 0.0],
    ]


@pytest.fixture
def rgb_image():
    """Get a random RGB image array."""
    rng = np.random.default_rng(0)
    return rng.integers(0, 256, size=(48, 64, 3), dtype=np.uint8)
