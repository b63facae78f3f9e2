"""
Pipeline Step Model

A step is one executable image transform. The set of step kinds is closed:

    ColorConvert          BGR -> RGB, always first
    ResizeShort           resize so the short side matches a target
    CenterCrop            centered crop
    Normalize             [0, 255] -> (x / 255 - mean) / std
    LayoutPermute         HWC -> CHW
    NormalizeAndPermute   Normalize + LayoutPermute, produced by fusion only

Each kind has one entry in the standard dispatch table; kinds with an
accelerated kernel also have one in the accelerated table. Steps mutate the
Mat they are given and raise ValueError when it cannot be transformed.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, ClassVar, Dict, Mapping, Tuple, Union

import cv2

from preproc.processing import transforms
from preproc.processing.containers import Layout, Mat
from preproc.processing.device import DeviceContext


# =============================================================================
# Step Specifications
# =============================================================================

@dataclass(frozen=True)
class StepSpec:
    """
    One transform op read from configuration.

    Attributes:
        name: Op name, e.g. "ResizeImage"
        params: Read-only parameter mapping
        index: Position of the op in the configuration list
    """

    name: str
    params: Mapping[str, Any] = field(default_factory=dict)
    index: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "params", MappingProxyType(dict(self.params)))


# =============================================================================
# Step Variants
# =============================================================================

class StepKind(Enum):
    """Closed set of step kinds."""

    COLOR_CONVERT = "BGR2RGB"
    RESIZE_SHORT = "ResizeByShort"
    CENTER_CROP = "CenterCrop"
    NORMALIZE = "Normalize"
    LAYOUT_PERMUTE = "HWC2CHW"
    NORMALIZE_AND_PERMUTE = "NormalizeAndPermute"


class StepBase:
    """Identity shared by every step variant."""

    kind: ClassVar[StepKind]

    @property
    def name(self) -> str:
        """Identity name, e.g. "NormalizeAndPermute"."""
        return self.kind.value


@dataclass(frozen=True)
class ColorConvert(StepBase):
    kind = StepKind.COLOR_CONVERT


@dataclass(frozen=True)
class ResizeShort(StepBase):
    """Resize so the short side equals target_size."""

    target_size: int
    interpolation: int = cv2.INTER_LINEAR
    use_scale: bool = False

    kind = StepKind.RESIZE_SHORT


@dataclass(frozen=True)
class CenterCrop(StepBase):
    width: int
    height: int

    kind = StepKind.CENTER_CROP


@dataclass(frozen=True)
class Normalize(StepBase):
    mean: Tuple[float, ...]
    std: Tuple[float, ...]

    kind = StepKind.NORMALIZE


@dataclass(frozen=True)
class LayoutPermute(StepBase):
    kind = StepKind.LAYOUT_PERMUTE


@dataclass(frozen=True)
class NormalizeAndPermute(StepBase):
    """Normalize and HWC -> CHW in a single pass."""

    mean: Tuple[float, ...]
    std: Tuple[float, ...]

    kind = StepKind.NORMALIZE_AND_PERMUTE


Step = Union[
    ColorConvert,
    ResizeShort,
    CenterCrop,
    Normalize,
    LayoutPermute,
    NormalizeAndPermute,
]


def step_name(step: Step) -> str:
    """Identity name of a step, e.g. "NormalizeAndPermute"."""
    return step.name


# =============================================================================
# Standard Kernels
# =============================================================================

def _require_hwc(image: Mat, step: Step) -> None:
    if image.layout is not Layout.HWC:
        raise ValueError(
            f"{step_name(step)}: expected HWC layout, got {image.layout.value}"
        )


def _color_convert(step: ColorConvert, image: Mat) -> None:
    _require_hwc(image, step)
    image.data = transforms.bgr_to_rgb(image.data)


def _resize_short(step: ResizeShort, image: Mat) -> None:
    _require_hwc(image, step)
    image.data = transforms.resize_by_short(
        image.data,
        step.target_size,
        interpolation=step.interpolation,
        use_scale=step.use_scale,
    )


def _center_crop(step: CenterCrop, image: Mat) -> None:
    _require_hwc(image, step)
    image.data = transforms.center_crop(image.data, step.width, step.height)


def _normalize(step: Normalize, image: Mat) -> None:
    image.data = transforms.normalize(
        image.data,
        step.mean,
        step.std,
        channels_first=image.layout is Layout.CHW,
    )


def _layout_permute(step: LayoutPermute, image: Mat) -> None:
    _require_hwc(image, step)
    image.data = transforms.hwc_to_chw(image.data)
    image.layout = Layout.CHW


def _normalize_and_permute(step: NormalizeAndPermute, image: Mat) -> None:
    _require_hwc(image, step)
    image.data = transforms.normalize_and_permute(image.data, step.mean, step.std)
    image.layout = Layout.CHW


_STANDARD_KERNELS: Dict[StepKind, Callable[[Any, Mat], None]] = {
    StepKind.COLOR_CONVERT: _color_convert,
    StepKind.RESIZE_SHORT: _resize_short,
    StepKind.CENTER_CROP: _center_crop,
    StepKind.NORMALIZE: _normalize,
    StepKind.LAYOUT_PERMUTE: _layout_permute,
    StepKind.NORMALIZE_AND_PERMUTE: _normalize_and_permute,
}


# =============================================================================
# Accelerated Kernels
# =============================================================================

def _normalize_and_permute_accelerated(
    step: NormalizeAndPermute,
    image: Mat,
    device: DeviceContext,
    device_index: int,
) -> None:
    _require_hwc(image, step)
    image.data = device.normalize_and_permute(
        image.data, step.mean, step.std, device_index
    )
    image.layout = Layout.CHW


_ACCELERATED_KERNELS: Dict[StepKind, Callable[[Any, Mat, DeviceContext, int], None]] = {
    StepKind.NORMALIZE_AND_PERMUTE: _normalize_and_permute_accelerated,
}


# =============================================================================
# Dispatch
# =============================================================================

def supports_acceleration(step: Step) -> bool:
    """Whether the step kind has an accelerated kernel."""
    return step.kind in _ACCELERATED_KERNELS


def run_step(step: Step, image: Mat) -> None:
    """
    Apply a step to an image using the standard (CPU) kernel.

    Args:
        step: Step to apply
        image: Image, mutated in place

    Raises:
        ValueError: If the step cannot be applied to the image
    """
    _STANDARD_KERNELS[step.kind](step, image)


def run_step_accelerated(
    step: Step,
    image: Mat,
    device: DeviceContext,
    device_index: int,
) -> None:
    """
    Apply a step to an image using its accelerated kernel.

    Args:
        step: Step to apply; must support acceleration
        image: Image, mutated in place
        device: Accelerator handle
        device_index: Device to run on

    Raises:
        ValueError: If the step has no accelerated kernel or cannot be
            applied to the image
    """
    kernel = _ACCELERATED_KERNELS.get(step.kind)
    if kernel is None:
        raise ValueError(f"{step_name(step)} has no accelerated kernel")

    kernel(step, image, device, device_index)
