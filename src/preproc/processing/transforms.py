"""
Low-Level Image Transforms

This module contains the numpy/OpenCV kernels behind each pipeline step.
Kernels take and return arrays; the step layer writes the result back into
the image container.

Functions:
    load_image: Load image file as BGR numpy array
    bgr_to_rgb: Swap channel order BGR -> RGB
    resize_by_short: Resize so the short side matches a target size
    center_crop: Crop a centered window
    normalize: Scale to [0, 1] then apply mean/std normalization
    hwc_to_chw: Transpose HWC -> CHW
    normalize_and_permute: normalize + hwc_to_chw in one pass

Kernels raise ValueError when an image cannot be transformed.
"""

from typing import Sequence, Tuple

import cv2
import numpy as np


# =============================================================================
# Constants
# =============================================================================

# ImageNet normalization constants
# Reference: https://pytorch.org/vision/stable/models.html
IMAGENET_MEAN: Tuple[float, float, float] = (0.485, 0.456, 0.406)
IMAGENET_STD: Tuple[float, float, float] = (0.229, 0.224, 0.225)

PIXEL_SCALE: float = 1.0 / 255.0

# Pixel depths accepted by the OpenCV-backed kernels
CV_DTYPES: Tuple[np.dtype, ...] = (
    np.dtype(np.uint8),
    np.dtype(np.uint16),
    np.dtype(np.float32),
)


# =============================================================================
# Image Loading
# =============================================================================

def load_image(image_path: str) -> np.ndarray:
    """
    Load an image file as a BGR numpy array.

    Channel order is left as decoded by OpenCV; the pipeline's first
    step performs the BGR to RGB conversion.

    Args:
        image_path: Path to image file (JPEG, PNG, etc.)

    Returns:
        BGR uint8 array with shape [H, W, 3]

    Raises:
        ValueError: If image cannot be loaded (file not found or corrupted)
    """
    bgr = cv2.imread(image_path, cv2.IMREAD_COLOR)

    if bgr is None:
        raise ValueError(f"Failed to load image: {image_path}")

    return bgr


def _check_hwc(image: np.ndarray, op: str) -> None:
    if image.ndim != 3:
        raise ValueError(f"{op}: expected 3D array [H, W, C], got {image.ndim}D")
    if image.shape[0] < 1 or image.shape[1] < 1:
        raise ValueError(f"{op}: invalid image dimensions {image.shape[:2]}")


def _check_cv_depth(image: np.ndarray, op: str) -> None:
    if image.dtype not in CV_DTYPES:
        raise ValueError(
            f"{op}: unsupported pixel type {image.dtype}, "
            f"expected one of {[str(d) for d in CV_DTYPES]}"
        )


# =============================================================================
# Color Transforms
# =============================================================================

def bgr_to_rgb(image: np.ndarray) -> np.ndarray:
    """
    Convert a BGR image to RGB.

    Args:
        image: BGR array with shape [H, W, 3]

    Returns:
        RGB array with the same shape and dtype

    Raises:
        ValueError: If the image is not a 3-channel HWC array of a pixel
            type OpenCV can convert
    """
    _check_hwc(image, "BGR2RGB")
    _check_cv_depth(image, "BGR2RGB")
    if image.shape[2] != 3:
        raise ValueError(f"BGR2RGB: expected 3 channels, got {image.shape[2]}")

    return cv2.cvtColor(image, cv2.COLOR_BGR2RGB)


# =============================================================================
# Geometric Transforms
# =============================================================================

def resize_by_short(
    image: np.ndarray,
    target_size: int,
    interpolation: int = cv2.INTER_LINEAR,
    use_scale: bool = False,
) -> np.ndarray:
    """
    Resize so that the shorter side equals target_size.

    Aspect ratio is preserved.

    Args:
        image: Array with shape [H, W, C]
        target_size: Length of the short side after resize
        interpolation: OpenCV interpolation flag (default: bilinear)
        use_scale: Convert to float32 in [0, 1] before resizing

    Returns:
        Resized array

    Raises:
        ValueError: If the image is not HWC, target_size is not positive,
            or the pixel type is not one OpenCV can resize

    Example:
        >>> image = np.zeros((480, 640, 3), dtype=np.uint8)
        >>> resize_by_short(image, 256).shape
        (256, 341, 3)
    """
    _check_hwc(image, "ResizeByShort")
    if target_size <= 0:
        raise ValueError(f"ResizeByShort: target size must be positive, got {target_size}")

    height, width = image.shape[:2]
    scale = target_size / min(height, width)

    new_width = int(round(width * scale))
    new_height = int(round(height * scale))

    if use_scale:
        image = image.astype(np.float32) * PIXEL_SCALE

    if (new_width, new_height) == (width, height):
        return image

    _check_cv_depth(image, "ResizeByShort")
    return cv2.resize(image, (new_width, new_height), interpolation=interpolation)


def center_crop(image: np.ndarray, width: int, height: int) -> np.ndarray:
    """
    Crop a centered (height, width) window.

    Args:
        image: Array with shape [H, W, C]
        width: Crop width
        height: Crop height

    Returns:
        Cropped array with shape [height, width, C]

    Raises:
        ValueError: If the crop window is larger than the image
    """
    _check_hwc(image, "CenterCrop")

    img_h, img_w = image.shape[:2]
    if height > img_h or width > img_w:
        raise ValueError(
            f"CenterCrop: crop size ({height}, {width}) is larger than "
            f"image size ({img_h}, {img_w})"
        )

    offset_y = (img_h - height) // 2
    offset_x = (img_w - width) // 2

    return image[offset_y : offset_y + height, offset_x : offset_x + width]


# =============================================================================
# Intensity Transforms
# =============================================================================

def _normalize_coefficients(
    mean: Sequence[float],
    std: Sequence[float],
    channels: int,
) -> Tuple[np.ndarray, np.ndarray]:
    if len(mean) != channels or len(std) != channels:
        raise ValueError(
            f"Normalize: image has {channels} channels, but mean/std have "
            f"{len(mean)}/{len(std)} values"
        )

    mean_arr = np.asarray(mean, dtype=np.float32)
    std_arr = np.asarray(std, dtype=np.float32)

    # (x / 255 - mean) / std == x * alpha + beta
    alpha = (PIXEL_SCALE / std_arr).astype(np.float32)
    beta = (-mean_arr / std_arr).astype(np.float32)
    return alpha, beta


def normalize(
    image: np.ndarray,
    mean: Sequence[float] = IMAGENET_MEAN,
    std: Sequence[float] = IMAGENET_STD,
    channels_first: bool = False,
) -> np.ndarray:
    """
    Scale pixels from [0, 255] to [0, 1] and apply mean/std normalization.

    Formula: normalized = (pixel / 255.0 - mean) / std

    Args:
        image: Array with shape [H, W, C] (or [C, H, W] if channels_first)
        mean: Per-channel means
        std: Per-channel standard deviations
        channels_first: Whether the image is laid out CHW

    Returns:
        Normalized float32 array with the same shape

    Example:
        >>> image = np.zeros((2, 2, 3), dtype=np.uint8)
        >>> normalized = normalize(image)
        >>> normalized.dtype
        dtype('float32')
        >>> bool(normalized[0, 0, 0] < -2.0)
        True
    """
    if image.ndim != 3:
        raise ValueError(f"Normalize: expected 3D array, got {image.ndim}D")

    channels = image.shape[0] if channels_first else image.shape[2]
    alpha, beta = _normalize_coefficients(mean, std, channels)

    if channels_first:
        alpha = alpha.reshape(-1, 1, 1)
        beta = beta.reshape(-1, 1, 1)

    return image.astype(np.float32) * alpha + beta


def hwc_to_chw(image: np.ndarray) -> np.ndarray:
    """
    Transpose HWC -> CHW (channels first for ONNX).

    Args:
        image: Array with shape [H, W, C]

    Returns:
        Contiguous array with shape [C, H, W]
    """
    _check_hwc(image, "HWC2CHW")
    return np.ascontiguousarray(image.transpose(2, 0, 1))


def normalize_and_permute(
    image: np.ndarray,
    mean: Sequence[float] = IMAGENET_MEAN,
    std: Sequence[float] = IMAGENET_STD,
) -> np.ndarray:
    """
    Normalize an HWC image and write it out as CHW in one pass.

    Equivalent to hwc_to_chw(normalize(image, mean, std)) without the
    intermediate HWC float buffer.

    Args:
        image: Array with shape [H, W, C]
        mean: Per-channel means
        std: Per-channel standard deviations

    Returns:
        Normalized float32 array with shape [C, H, W]
    """
    _check_hwc(image, "NormalizeAndPermute")

    channels = image.shape[2]
    alpha, beta = _normalize_coefficients(mean, std, channels)

    out = np.empty((channels, image.shape[0], image.shape[1]), dtype=np.float32)
    for c in range(channels):
        np.multiply(image[:, :, c], alpha[c], out=out[c], dtype=np.float32)
        out[c] += beta[c]

    return out
