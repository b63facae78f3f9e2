"""
preproc - Classification Preprocessing Pipeline

Builds a performance-tuned preprocessing pipeline from a PaddleClas-style
YAML recipe and runs it over image batches to produce one model-ready
NCHW tensor per call, so inference reproduces the training-time recipe.

- processing: step model, builder, fusion, executor
- config: YAML recipe loading and typed field access
- settings: environment-driven runtime settings
- errors: error taxonomy
- logger: JSON structured logging (call setup_logging() once at startup)
"""

from preproc.errors import (
    BatchAssemblyError,
    BuildError,
    ConfigLoadError,
    ConfigSchemaError,
    PreprocessError,
    RunPreconditionError,
    StepExecutionError,
)
from preproc.logger import setup_logging
from preproc.processing import (
    BatchTensor,
    ClasPreprocessor,
    DeviceContext,
    Mat,
    PreprocessorState,
    RunResult,
)

__all__ = [
    "ClasPreprocessor",
    "PreprocessorState",
    "RunResult",
    "DeviceContext",
    "Mat",
    "BatchTensor",
    "PreprocessError",
    "ConfigLoadError",
    "ConfigSchemaError",
    "BuildError",
    "RunPreconditionError",
    "StepExecutionError",
    "BatchAssemblyError",
    "setup_logging",
]

__version__ = "0.1.0"
