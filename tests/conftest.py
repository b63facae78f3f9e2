"""
Pytest Fixtures - Shared Test Fixtures for preproc

This module provides reusable fixtures for all test modules.

Fixtures:
    sample_image: Sample BGR image (480x640) for testing
    sample_image_portrait: Sample BGR image (500x300) for testing
    sample_image_small: Small BGR image (100x100) for failure cases
    imagenet_ops: Transform op list of the standard ImageNet recipe
    write_config: Factory writing a YAML recipe into tmp_path
    settings: Settings isolated from the environment
    fake_device_factory: Factory for accelerator handles that need no GPU
"""

from pathlib import Path
from typing import Any, Callable, List, Sequence

import numpy as np
import pytest
import yaml

from preproc.processing import transforms
from preproc.processing.device import DeviceContext
from preproc.settings import Settings


# =============================================================================
# Image Fixtures
# =============================================================================

@pytest.fixture
def sample_image() -> np.ndarray:
    """
    Sample landscape BGR image for testing.

    Returns:
        BGR uint8 array with shape [480, 640, 3]
    """
    rng = np.random.default_rng(42)
    return rng.integers(0, 256, (480, 640, 3), dtype=np.uint8)


@pytest.fixture
def sample_image_portrait() -> np.ndarray:
    """
    Sample portrait BGR image for testing.

    Returns:
        BGR uint8 array with shape [500, 300, 3]
    """
    rng = np.random.default_rng(43)
    return rng.integers(0, 256, (500, 300, 3), dtype=np.uint8)


@pytest.fixture
def sample_image_small() -> np.ndarray:
    """
    Image smaller than the standard 224 crop.

    Returns:
        BGR uint8 array with shape [100, 100, 3]
    """
    rng = np.random.default_rng(44)
    return rng.integers(0, 256, (100, 100, 3), dtype=np.uint8)


# =============================================================================
# Configuration Fixtures
# =============================================================================

IMAGENET_MEAN = [0.485, 0.456, 0.406]
IMAGENET_STD = [0.229, 0.224, 0.225]


@pytest.fixture
def imagenet_ops() -> List[dict]:
    """Transform ops of the standard ImageNet recipe."""
    return [
        {"ResizeImage": {"resize_short": 256}},
        {"CropImage": {"size": 224}},
        {
            "NormalizeImage": {
                "mean": IMAGENET_MEAN,
                "std": IMAGENET_STD,
                "scale": 0.00392157,
            }
        },
        {"ToCHWImage": None},
    ]


@pytest.fixture
def write_config(tmp_path: Path) -> Callable[..., Path]:
    """
    Factory that writes a recipe to a YAML file.

    Usage:
        path = write_config(ops)                     # preprocessing: [...]
        path = write_config(document=raw_mapping)    # any document
    """

    def _write(
        ops: Sequence[Any] | None = None,
        document: Any = None,
        name: str = "config.yaml",
    ) -> Path:
        if document is None:
            document = {"preprocessing": list(ops or [])}
        path = tmp_path / name
        path.write_text(yaml.safe_dump(document, sort_keys=False))
        return path

    return _write


@pytest.fixture
def imagenet_config(write_config, imagenet_ops) -> Path:
    """Path to a YAML file holding the standard ImageNet recipe."""
    return write_config(imagenet_ops)


@pytest.fixture
def settings() -> Settings:
    """Settings that do not depend on the environment or a .env file."""
    return Settings(LOG_LEVEL="INFO", DEVICE_ID=0, USE_GPU=False, _env_file=None)


# =============================================================================
# Device Fixtures
# =============================================================================

class FakeDeviceContext(DeviceContext):
    """Accelerator handle that runs the fused kernel on the CPU and records calls."""

    def __init__(self, available: bool = True) -> None:
        super().__init__()
        self._available = available
        self.selected: List[int] = []
        self.accelerated_devices: List[int] = []

    def set_device(self, index: int) -> None:
        self.selected.append(index)
        self.current_index = index

    def normalize_and_permute(self, image, mean, std, device_index):
        self.accelerated_devices.append(device_index)
        return transforms.normalize_and_permute(image, mean, std)


@pytest.fixture
def fake_device_factory() -> Callable[..., FakeDeviceContext]:
    """Factory for FakeDeviceContext instances."""
    return FakeDeviceContext


@pytest.fixture
def fake_device() -> FakeDeviceContext:
    """Available fake accelerator."""
    return FakeDeviceContext(available=True)
