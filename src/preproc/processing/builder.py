"""
Pipeline Builder

Translates the configured transform ops into an ordered, validated and
fused step sequence.

Supported ops:
    ResizeImage     resize_short: int            -> ResizeShort
    CropImage       size: int                    -> CenterCrop(size, size)
    NormalizeImage  mean, std: [float], scale    -> Normalize
    ToCHWImage                                   -> LayoutPermute

A ColorConvert (BGR -> RGB) step is always placed first.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import cv2

from preproc.config import get_float, get_float_list, get_int
from preproc.errors import ConfigSchemaError
from preproc.processing.fusion import fuse_transforms
from preproc.processing.steps import (
    CenterCrop,
    ColorConvert,
    LayoutPermute,
    Normalize,
    ResizeShort,
    Step,
    StepSpec,
)


# =============================================================================
# Constants
# =============================================================================

SUPPORTED_SCALE: float = 0.00392157
"""Only [0, 255] input pixels are supported (scale == 1 / 255)."""

SCALE_TOLERANCE: float = 1e-6

Pipeline = Tuple[Step, ...]


@dataclass(frozen=True)
class BuildOptions:
    """
    Feature toggles applied while building.

    Attributes:
        disable_normalize: Drop NormalizeImage ops (normalization done elsewhere)
        disable_permute: Drop ToCHWImage ops (model consumes HWC)
    """

    disable_normalize: bool = False
    disable_permute: bool = False


# =============================================================================
# Spec Parsing
# =============================================================================

def parse_step_specs(entries: Iterable[Any]) -> List[StepSpec]:
    """
    Convert raw configuration entries into StepSpecs.

    Each entry must be a single-key mapping ``{OpName: params}`` where params
    is a mapping or empty.

    Raises:
        ConfigSchemaError: If an entry is malformed
    """
    specs = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise ConfigSchemaError(
                "Require the transform information in yaml be Map type, "
                f"got {type(entry).__name__}",
                op_index=index,
            )
        if len(entry) != 1:
            raise ConfigSchemaError(
                f"Expected a single-key mapping, got keys {list(entry.keys())}",
                op_index=index,
            )

        name, params = next(iter(entry.items()))
        if not isinstance(name, str):
            raise ConfigSchemaError(
                f"Expected op name to be a string, got {name!r}", op_index=index
            )
        if params is None:
            params = {}
        if not isinstance(params, dict):
            raise ConfigSchemaError(
                f"Expected parameters of {name} to be a mapping, "
                f"got {type(params).__name__}",
                op_index=index,
            )

        specs.append(StepSpec(name=name, params=params, index=index))

    return specs


# =============================================================================
# Op Builders
# =============================================================================

def _build_resize(spec: StepSpec, options: BuildOptions) -> Optional[Step]:
    target_size = get_int(spec.params, "resize_short")
    if target_size <= 0:
        raise ConfigSchemaError(f"resize_short must be positive, got {target_size}")
    return ResizeShort(
        target_size=target_size,
        interpolation=cv2.INTER_LINEAR,
        use_scale=False,
    )


def _build_crop(spec: StepSpec, options: BuildOptions) -> Optional[Step]:
    size = get_int(spec.params, "size")
    if size <= 0:
        raise ConfigSchemaError(f"size must be positive, got {size}")
    return CenterCrop(width=size, height=size)


def _build_normalize(spec: StepSpec, options: BuildOptions) -> Optional[Step]:
    if options.disable_normalize:
        return None

    mean = get_float_list(spec.params, "mean")
    std = get_float_list(spec.params, "std")
    scale = get_float(spec.params, "scale")

    if abs(scale - SUPPORTED_SCALE) >= SCALE_TOLERANCE:
        raise ConfigSchemaError(
            f"Only support scale in Normalize be {SUPPORTED_SCALE}, means the "
            f"pixel is in range of [0, 255]; got {scale}"
        )
    if len(mean) != len(std):
        raise ConfigSchemaError(
            f"mean and std must have the same length, got {len(mean)} and {len(std)}"
        )
    if any(s == 0 for s in std):
        raise ConfigSchemaError(f"std must not contain zeros, got {std}")

    return Normalize(mean=tuple(mean), std=tuple(std))


def _build_permute(spec: StepSpec, options: BuildOptions) -> Optional[Step]:
    if options.disable_permute:
        return None
    return LayoutPermute()


_OP_BUILDERS: Dict[str, Callable[[StepSpec, BuildOptions], Optional[Step]]] = {
    "ResizeImage": _build_resize,
    "CropImage": _build_crop,
    "NormalizeImage": _build_normalize,
    "ToCHWImage": _build_permute,
}


# =============================================================================
# Pipeline Construction
# =============================================================================

def build_pipeline(
    specs: Sequence[StepSpec],
    options: BuildOptions = BuildOptions(),
) -> Pipeline:
    """
    Build an executable pipeline from step specifications.

    Args:
        specs: Ordered step specifications
        options: Feature toggles

    Returns:
        Fused, immutable step sequence starting with ColorConvert

    Raises:
        ConfigSchemaError: On an unsupported op or invalid parameter

    Example:
        >>> specs = [StepSpec("ResizeImage", {"resize_short": 256})]
        >>> [step.kind.value for step in build_pipeline(specs)]
        ['BGR2RGB', 'ResizeByShort']
    """
    steps: List[Step] = [ColorConvert()]

    for spec in specs:
        builder = _OP_BUILDERS.get(spec.name)
        if builder is None:
            raise ConfigSchemaError(
                f"Unsupported preprocess operator: {spec.name}. "
                f"Supported: {list(_OP_BUILDERS)}",
                op_index=spec.index,
            )

        try:
            step = builder(spec, options)
        except ConfigSchemaError as e:
            if e.op_index is not None:
                raise
            raise ConfigSchemaError(f"{spec.name}: {e}", op_index=spec.index) from e

        if step is not None:
            steps.append(step)

    return fuse_transforms(steps)
