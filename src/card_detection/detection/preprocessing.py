"""
Image Preprocessing for the Card Detection System.

Decodes encoded image bytes and turns the pixel grid into the float
tensor the detection model expects.
"""

import io
from typing import Tuple

import numpy as np
from PIL import Image, UnidentifiedImageError

from ..errors import ImageDecodeError
from .config import DetectorConfig
from .types import DecodedImage


RESAMPLE_FILTERS = {
    'nearest': Image.NEAREST,
    'bilinear': Image.BILINEAR,
}


def decode_image(image_bytes: bytes) -> DecodedImage:
    """
    Decode encoded image bytes (PNG, JPEG, ...) into an RGB pixel grid.

    Args:
        image_bytes: Encoded image data.

    Returns:
        Decoded image with its original dimensions.

    Raises:
        ImageDecodeError: If the bytes are empty, corrupt, in an unsupported
            format, or decode to an image with zero width or height.
    """
    if not image_bytes:
        raise ImageDecodeError("Image data is empty")

    try:
        with Image.open(io.BytesIO(image_bytes)) as image:
            image.load()
            rgb = image.convert('RGB')
    except UnidentifiedImageError as exc:
        raise ImageDecodeError(f"Unsupported or unrecognized image format: {exc}") from exc
    except (OSError, ValueError, SyntaxError, EOFError, Image.DecompressionBombError) as exc:
        raise ImageDecodeError(f"Failed to decode image: {exc}") from exc

    width, height = rgb.size
    if width == 0 or height == 0:
        raise ImageDecodeError(f"Image has zero dimensions: {width}x{height}")

    return DecodedImage(width=width, height=height, pixels=np.asarray(rgb, dtype=np.uint8))


def from_array(pixels: np.ndarray) -> DecodedImage:
    """
    Wrap an already decoded RGB array.

    Raises:
        ImageDecodeError: If the array is not a non-empty (H, W, 3) image.
    """
    pixels = np.asarray(pixels)
    if pixels.ndim != 3 or pixels.shape[2] != 3 or pixels.shape[0] == 0 or pixels.shape[1] == 0:
        raise ImageDecodeError(f"Expected an (H, W, 3) RGB array, got shape {pixels.shape}")
    if pixels.dtype != np.uint8:
        pixels = np.clip(pixels, 0, 255).astype(np.uint8)
    return DecodedImage(width=pixels.shape[1], height=pixels.shape[0], pixels=pixels)


def pad_to_square(pixels: np.ndarray) -> np.ndarray:
    """Zero-pad an (H, W, 3) array on the bottom and right to a square."""
    height, width = pixels.shape[:2]
    side = max(height, width)
    return np.pad(
        pixels,
        ((0, side - height), (0, side - width), (0, 0)),
        mode='constant'
    )


def resize_image(
    pixels: np.ndarray,
    size: Tuple[int, int],
    mode: str = 'nearest'
) -> np.ndarray:
    """
    Resize an RGB array to a fixed size.

    Args:
        pixels: Image array (H, W, 3), uint8.
        size: Target (height, width).
        mode: 'nearest' or 'bilinear'.

    Returns:
        Resized uint8 array of shape (height, width, 3).
    """
    target_height, target_width = size
    if pixels.shape[0] == target_height and pixels.shape[1] == target_width:
        return pixels

    image = Image.fromarray(np.ascontiguousarray(pixels))
    resized = image.resize((target_width, target_height), RESAMPLE_FILTERS[mode])
    return np.asarray(resized, dtype=np.uint8)


def to_tensor(pixels: np.ndarray, layout: str = 'nhwc') -> np.ndarray:
    """
    Convert an RGB uint8 array to a normalized float32 batch of one.

    Each channel value is divided by 255.0. Channel order stays R, G, B.

    Args:
        pixels: Image array (H, W, 3), uint8.
        layout: 'nhwc' for (1, H, W, 3) or 'nchw' for (1, 3, H, W).

    Returns:
        Contiguous float32 tensor.
    """
    tensor = pixels.astype(np.float32) / 255.0

    if layout == 'nchw':
        tensor = np.transpose(tensor, (2, 0, 1))

    return np.ascontiguousarray(tensor[np.newaxis, ...])


def preprocess(
    image: DecodedImage,
    config: DetectorConfig
) -> Tuple[np.ndarray, Tuple[int, int]]:
    """
    Turn a decoded image into the model input tensor.

    Args:
        image: Decoded image.
        config: Detector configuration.

    Returns:
        Tuple of (tensor, (reference_width, reference_height)). The reference
        size is what normalized output coordinates are scaled by: the original
        image size, or the padded square side when padding is enabled.
    """
    pixels = image.pixels
    reference_size = (image.width, image.height)

    if config.pad_to_square:
        pixels = pad_to_square(pixels)
        side = max(image.width, image.height)
        reference_size = (side, side)

    resized = resize_image(pixels, config.input_size, config.resize)
    return to_tensor(resized, config.layout), reference_size
