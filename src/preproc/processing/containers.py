"""
Image and Tensor Containers

Mat is the mutable per-image container the pipeline transforms in place.
BatchTensor is the model-ready output of a run, tagged with a device index.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Sequence

import numpy as np

from preproc.processing.transforms import load_image


class Layout(Enum):
    """Memory layout of an image buffer."""

    HWC = "HWC"
    CHW = "CHW"


# =============================================================================
# Image Container
# =============================================================================

class Mat:
    """
    Mutable image container.

    Steps replace ``data`` (and ``layout`` when they permute) in place; the
    caller keeps the same Mat object across the whole pipeline.

    Attributes:
        data: Pixel buffer, [H, W, C] or [C, H, W] depending on layout
        layout: Current memory layout

    Example:
        >>> mat = Mat(np.zeros((480, 640, 3), dtype=np.uint8))
        >>> (mat.height, mat.width, mat.channels)
        (480, 640, 3)
    """

    def __init__(self, data: np.ndarray, layout: Layout = Layout.HWC) -> None:
        if not isinstance(data, np.ndarray):
            raise ValueError(f"Expected numpy array, got {type(data)}")
        if data.ndim != 3:
            raise ValueError(f"Expected 3D array, got {data.ndim}D")

        self.data = data
        self.layout = layout

    @classmethod
    def from_file(cls, image_path: str) -> "Mat":
        """Decode an image file into a BGR HWC Mat."""
        return cls(load_image(image_path))

    @property
    def shape(self) -> tuple[int, ...]:
        return self.data.shape

    @property
    def height(self) -> int:
        return self.data.shape[1] if self.layout is Layout.CHW else self.data.shape[0]

    @property
    def width(self) -> int:
        return self.data.shape[2] if self.layout is Layout.CHW else self.data.shape[1]

    @property
    def channels(self) -> int:
        return self.data.shape[0] if self.layout is Layout.CHW else self.data.shape[2]

    def share_with_tensor(self, name: str = "") -> "BatchTensor":
        """
        Wrap the pixel buffer as a tensor without copying it.

        Returns:
            BatchTensor whose data is this Mat's buffer
        """
        return BatchTensor(data=self.data, name=name)

    def __repr__(self) -> str:
        return f"Mat(shape={self.shape}, dtype={self.data.dtype}, layout={self.layout.value})"


# =============================================================================
# Tensor Container
# =============================================================================

@dataclass(eq=False)
class BatchTensor:
    """
    Tensor container for model input.

    Attributes:
        data: Tensor buffer
        name: Optional tensor name
        device_id: Device the consumer should pick the tensor up on
            (-1 if untagged)
    """

    data: np.ndarray
    name: str = ""
    device_id: int = -1

    @property
    def shape(self) -> tuple[int, ...]:
        return self.data.shape

    @property
    def dtype(self) -> np.dtype:
        return self.data.dtype

    def expand_dim(self, axis: int = 0) -> "BatchTensor":
        """Insert a size-one dimension in place (view, no copy)."""
        self.data = np.expand_dims(self.data, axis=axis)
        return self


def concat(tensors: Sequence[BatchTensor], axis: int = 0) -> BatchTensor:
    """
    Concatenate tensors along an axis.

    Args:
        tensors: Tensors with equal shapes outside ``axis``
        axis: Concatenation axis

    Returns:
        New BatchTensor holding the concatenated buffer

    Raises:
        ValueError: If tensors is empty or shapes disagree outside ``axis``
    """
    if not tensors:
        raise ValueError("Cannot concatenate an empty list of tensors")

    reference: List[int] = list(tensors[0].shape)
    for i, tensor in enumerate(tensors[1:], start=1):
        shape = list(tensor.shape)
        if len(shape) != len(reference) or any(
            a != b for d, (a, b) in enumerate(zip(shape, reference)) if d != axis % len(reference)
        ):
            raise ValueError(
                f"Tensor {i} has shape {tuple(shape)}, incompatible with "
                f"{tuple(reference)} for concatenation on axis {axis}"
            )

    data = np.concatenate([tensor.data for tensor in tensors], axis=axis)
    return BatchTensor(data=data, name=tensors[0].name)
