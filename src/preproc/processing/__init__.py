"""
Processing Module - Classification Preprocessing Pipeline

This module turns a declarative list of transform ops into an executable,
fused step pipeline and runs it over batches of images:

- builder: op list -> validated step sequence
- fusion: adjacent step fusion (Normalize + HWC2CHW)
- steps: closed step model with standard and accelerated dispatch
- preprocessor: ClasPreprocessor, the batch executor and assembler
"""

from preproc.processing.builder import (
    BuildOptions,
    Pipeline,
    build_pipeline,
    parse_step_specs,
)
from preproc.processing.containers import BatchTensor, Layout, Mat, concat
from preproc.processing.device import DeviceContext
from preproc.processing.fusion import fuse_transforms
from preproc.processing.preprocessor import (
    ClasPreprocessor,
    PreprocessorState,
    RunResult,
)
from preproc.processing.steps import (
    CenterCrop,
    ColorConvert,
    LayoutPermute,
    Normalize,
    NormalizeAndPermute,
    ResizeShort,
    Step,
    StepKind,
    StepSpec,
)

__all__ = [
    # Step model
    "StepSpec",
    "StepKind",
    "Step",
    "ColorConvert",
    "ResizeShort",
    "CenterCrop",
    "Normalize",
    "LayoutPermute",
    "NormalizeAndPermute",
    # Build
    "BuildOptions",
    "Pipeline",
    "build_pipeline",
    "parse_step_specs",
    "fuse_transforms",
    # Containers
    "Mat",
    "Layout",
    "BatchTensor",
    "concat",
    # Execution
    "DeviceContext",
    "ClasPreprocessor",
    "PreprocessorState",
    "RunResult",
]
