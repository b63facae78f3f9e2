"""
Accelerator Device Context

The active CUDA device is process-wide state. DeviceContext wraps it in an
explicit handle that is passed to each preprocessor, so tests can give
different instances different device assumptions.

PyTorch is an optional dependency (``pip install preproc[gpu]``); it is
imported lazily, and without it the context reports the accelerator as
unavailable.
"""

import logging
from typing import Optional, Sequence

import numpy as np

logger = logging.getLogger(__name__)


class DeviceContext:
    """
    Handle over the accelerator runtime.

    Attributes:
        current_index: Device index selected through this handle
            (None until set_device() is called)

    Example:
        >>> device = DeviceContext()
        >>> if device.available:
        ...     device.set_device(0)
    """

    def __init__(self) -> None:
        self.current_index: Optional[int] = None
        self._available: Optional[bool] = None

    @property
    def available(self) -> bool:
        """Whether an accelerated runtime is usable in this process."""
        if self._available is None:
            self._available = self._probe()
        return self._available

    @staticmethod
    def _probe() -> bool:
        try:
            import torch
        except ImportError:
            logger.debug("PyTorch not installed, accelerated path unavailable")
            return False

        return bool(torch.cuda.is_available())

    def set_device(self, index: int) -> None:
        """
        Make ``index`` the active device for subsequent accelerated work.

        Raises:
            RuntimeError: If the accelerator is unavailable
        """
        if not self.available:
            raise RuntimeError("Cannot select a device: accelerator unavailable")

        import torch

        torch.cuda.set_device(index)
        self.current_index = index
        logger.info("Switched accelerator device", extra={"device_id": index})

    @staticmethod
    def torch_device(index: int):
        """CUDA device for ``index``; a negative index means the current device."""
        import torch

        if index < 0:
            return torch.device("cuda")
        return torch.device("cuda", index)

    def normalize_and_permute(
        self,
        image: np.ndarray,
        mean: Sequence[float],
        std: Sequence[float],
        device_index: int,
    ) -> np.ndarray:
        """
        Fused normalize + HWC -> CHW on the accelerator.

        Args:
            image: Array with shape [H, W, C]
            mean: Per-channel means
            std: Per-channel standard deviations
            device_index: CUDA device to run on (negative: the current one)

        Returns:
            Normalized float32 array with shape [C, H, W], back on the host

        Raises:
            ValueError: If the image shape does not match mean/std
        """
        if image.ndim != 3:
            raise ValueError(f"NormalizeAndPermute: expected 3D array, got {image.ndim}D")
        if image.shape[2] != len(mean) or image.shape[2] != len(std):
            raise ValueError(
                f"NormalizeAndPermute: image has {image.shape[2]} channels, but "
                f"mean/std have {len(mean)}/{len(std)} values"
            )

        import torch

        device = self.torch_device(device_index)
        tensor = torch.from_numpy(np.ascontiguousarray(image)).to(device)
        tensor = tensor.to(torch.float32)

        mean_t = torch.tensor(mean, device=device, dtype=torch.float32).view(1, 1, -1)
        std_t = torch.tensor(std, device=device, dtype=torch.float32).view(1, 1, -1)

        tensor = (tensor / 255.0 - mean_t) / std_t
        tensor = tensor.permute(2, 0, 1).contiguous()

        return tensor.cpu().numpy()
