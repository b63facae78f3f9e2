"""Error taxonomy for the preprocessing pipeline.

Configuration and build errors are fatal to construction. Run errors are
reported back to the caller inside a RunResult instead of being raised.

Hierarchy:
    PreprocessError
    ├── ConfigLoadError       file missing, unreadable or not valid YAML
    ├── ConfigSchemaError     missing key, wrong type, unsupported operator
    ├── BuildError            pipeline construction failed (wraps the above)
    ├── RunPreconditionError  instance not built, empty batch
    ├── StepExecutionError    a step rejected a specific image
    └── BatchAssemblyError    per-image tensors could not be concatenated
"""


class PreprocessError(Exception):
    """Base class for all preprocessing errors."""


class ConfigLoadError(PreprocessError):
    """Configuration file could not be read or parsed."""


class ConfigSchemaError(PreprocessError):
    """Configuration content does not describe a valid pipeline.

    Attributes:
        op_index: Position of the offending transform op (None if the error
            is not tied to a single op)
    """

    def __init__(self, message: str, op_index: int | None = None) -> None:
        if op_index is not None:
            message = f"transform op #{op_index}: {message}"
        super().__init__(message)
        self.op_index = op_index


class BuildError(PreprocessError):
    """Building the preprocessing pipeline failed.

    Attributes:
        config_file: Configuration file the build was attempted from
    """

    def __init__(self, message: str, config_file: str | None = None) -> None:
        super().__init__(message)
        self.config_file = config_file


class RunPreconditionError(PreprocessError):
    """Run was called on an unusable instance or with an empty batch."""


class StepExecutionError(PreprocessError):
    """A pipeline step failed on one image of the batch.

    Attributes:
        image_index: Index of the failing image in the batch
        step_name: Name of the step that failed
    """

    def __init__(self, image_index: int, step_name: str, reason: str = "") -> None:
        message = f"Failed to process image {image_index} in {step_name}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.image_index = image_index
        self.step_name = step_name


class BatchAssemblyError(PreprocessError):
    """Preprocessed images could not be assembled into one batch tensor."""
