"""
Classification Preprocessing Pipeline

This module provides the ClasPreprocessor class, which builds a step
pipeline from a PaddleClas-style YAML recipe and runs it over batches of
BGR images to produce one NCHW float32 tensor per call.

Pipeline (typical ImageNet recipe):
    1. BGR -> RGB (always first)
    2. Resize short side to 256 (bilinear)
    3. Center crop 224x224
    4. Normalize + HWC -> CHW (fused into one step)
    5. Add batch dimension, concatenate → [N, 3, 224, 224]

Lifecycle:
    UNBUILT --construct--> BUILT --toggle ok--> BUILT
                               \--any build failure--> FAILED

A failed toggle-triggered rebuild discards the previous pipeline: the
instance moves to FAILED and refuses to run until a later rebuild succeeds.

Instances are not thread-safe; do not call toggles or use_gpu() while a
run() is in flight on the same instance.
"""

import logging
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import List, Optional, Sequence

import cv2

from preproc.config import get_transform_ops, load_config
from preproc.errors import (
    BatchAssemblyError,
    BuildError,
    ConfigLoadError,
    ConfigSchemaError,
    PreprocessError,
    RunPreconditionError,
    StepExecutionError,
)
from preproc.processing.builder import BuildOptions, Pipeline, build_pipeline, parse_step_specs
from preproc.processing.containers import BatchTensor, Mat, concat
from preproc.processing.device import DeviceContext
from preproc.processing.steps import (
    run_step,
    run_step_accelerated,
    step_name,
    supports_acceleration,
)
from preproc.settings import Settings, get_settings

logger = logging.getLogger(__name__)


# =============================================================================
# Data Classes
# =============================================================================

class PreprocessorState(Enum):
    """Build state of a ClasPreprocessor."""

    UNBUILT = "unbuilt"
    BUILT = "built"
    FAILED = "failed"


@dataclass
class RunResult:
    """
    Result container for one run() call.

    Exactly one of tensor and error is set.

    Attributes:
        tensor: Batched tensor [N, ...] tagged with the configured device id
        error: Why the run failed
    """

    tensor: Optional[BatchTensor] = None
    error: Optional[PreprocessError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def raise_for_error(self) -> BatchTensor:
        """
        Return the tensor, or raise the stored error.

        Raises:
            PreprocessError: If the run failed
        """
        if self.error is not None:
            raise self.error
        return self.tensor


# =============================================================================
# Preprocessor Class
# =============================================================================

class ClasPreprocessor:
    """
    Preprocessor for image classification models.

    The pipeline is built once from the configuration file at construction
    and rebuilt from the (re-read) file whenever a toggle is changed.

    Attributes:
        config_file: Path of the YAML recipe

    Example:
        >>> preprocessor = ClasPreprocessor("configs/imagenet_cls.yaml")
        >>> images = [Mat(np.zeros((480, 640, 3), dtype=np.uint8))]
        >>> result = preprocessor.run(images)
        >>> result.tensor.shape
        (1, 3, 224, 224)
    """

    def __init__(
        self,
        config_file: str | Path,
        device: Optional[DeviceContext] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        """
        Initialize ClasPreprocessor and build its pipeline.

        Args:
            config_file: Path to the YAML recipe
            device: Accelerator handle (default: a new DeviceContext)
            settings: Runtime settings (default: get_settings())

        Raises:
            BuildError: If the configuration cannot be loaded or describes
                an invalid pipeline
        """
        settings = settings if settings is not None else get_settings()

        self.config_file = str(config_file)
        self._device = device if device is not None else DeviceContext()
        self._device_id = settings.DEVICE_ID
        self._use_cuda = False
        self._options = BuildOptions()
        self._pipeline: Pipeline = ()
        self._state = PreprocessorState.UNBUILT

        self._rebuild(self._options)

        if settings.USE_GPU:
            self.use_gpu(settings.DEVICE_ID)

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def state(self) -> PreprocessorState:
        return self._state

    @property
    def initialized(self) -> bool:
        return self._state is PreprocessorState.BUILT

    @property
    def pipeline(self) -> Pipeline:
        return self._pipeline

    @property
    def step_names(self) -> List[str]:
        return [step_name(step) for step in self._pipeline]

    @property
    def options(self) -> BuildOptions:
        return self._options

    @property
    def device_id(self) -> int:
        return self._device_id

    @property
    def use_cuda(self) -> bool:
        return self._use_cuda

    # -------------------------------------------------------------------------
    # Build
    # -------------------------------------------------------------------------

    def _rebuild(self, options: BuildOptions) -> None:
        """Replace the pipeline wholesale, or move to FAILED and raise."""
        try:
            config = load_config(self.config_file)
            specs = parse_step_specs(get_transform_ops(config))
            pipeline = build_pipeline(specs, options)
        except (ConfigLoadError, ConfigSchemaError) as e:
            self._options = options
            self._pipeline = ()
            self._state = PreprocessorState.FAILED
            logger.error(
                f"Failed to build preprocess pipeline from configuration file: {e}",
                extra={"config_file": self.config_file},
            )
            raise BuildError(
                f"Failed to create ClasPreprocessor from {self.config_file}: {e}",
                config_file=self.config_file,
            ) from e

        self._options = options
        self._pipeline = pipeline
        self._state = PreprocessorState.BUILT
        logger.info(
            "Built preprocess pipeline",
            extra={"config_file": self.config_file, "steps": self.step_names},
        )

    def disable_normalize(self) -> None:
        """
        Drop normalization from the pipeline and rebuild.

        Raises:
            BuildError: If the rebuild fails (the instance is then FAILED)
        """
        self._rebuild(replace(self._options, disable_normalize=True))

    def disable_permute(self) -> None:
        """
        Drop the HWC -> CHW permutation from the pipeline and rebuild.

        Raises:
            BuildError: If the rebuild fails (the instance is then FAILED)
        """
        self._rebuild(replace(self._options, disable_permute=True))

    # -------------------------------------------------------------------------
    # Device Selection
    # -------------------------------------------------------------------------

    def use_gpu(self, gpu_id: int = -1) -> None:
        """
        Enable the accelerated path for steps that have one.

        A negative gpu_id keeps the current device index; a non-negative one
        also switches the active device before subsequent runs.

        Args:
            gpu_id: Device index, or -1 to keep the current one
        """
        if not self._device.available:
            logger.warning(
                "Accelerator runtime unavailable, will force to use CPU to run "
                "preprocessing.",
                extra={"device_id": self._device_id},
            )
            self._use_cuda = False
            return

        self._use_cuda = True
        if gpu_id < 0:
            return

        self._device_id = gpu_id
        self._device.set_device(gpu_id)

    # -------------------------------------------------------------------------
    # Run
    # -------------------------------------------------------------------------

    def __call__(
        self,
        images: Sequence[Mat],
        outputs: Optional[List[BatchTensor]] = None,
    ) -> RunResult:
        return self.run(images, outputs)

    def run(
        self,
        images: Sequence[Mat],
        outputs: Optional[List[BatchTensor]] = None,
    ) -> RunResult:
        """
        Run the pipeline over a batch and assemble one tensor.

        Images are transformed in place. If a step fails, images processed
        before the failure stay in their partially transformed state.

        Args:
            images: Non-empty batch of BGR HWC images
            outputs: Optional list, replaced in place with [tensor] on success

        Returns:
            RunResult with the batched tensor, or the error that stopped the run
        """
        if self._state is not PreprocessorState.BUILT:
            return self._fail(
                RunPreconditionError(
                    f"The preprocessor is not initialized (state: {self._state.value})."
                )
            )
        if len(images) == 0:
            return self._fail(
                RunPreconditionError("The size of input images should be greater than 0.")
            )
        for i, image in enumerate(images):
            if not isinstance(image, Mat):
                return self._fail(
                    RunPreconditionError(
                        f"Image {i} is {type(image).__name__}, expected Mat"
                    )
                )

        for i, image in enumerate(images):
            for step in self._pipeline:
                try:
                    if self._use_cuda and supports_acceleration(step):
                        run_step_accelerated(step, image, self._device, self._device_id)
                    else:
                        run_step(step, image)
                except (ValueError, RuntimeError, cv2.error) as e:
                    error = StepExecutionError(i, step_name(step), str(e))
                    error.__cause__ = e
                    return self._fail(error, image_index=i, step=step_name(step))

        tensors = [image.share_with_tensor().expand_dim(0) for image in images]

        if len(tensors) == 1:
            tensor = tensors[0]
        else:
            try:
                tensor = concat(tensors, axis=0)
            except ValueError as e:
                error = BatchAssemblyError(f"Failed to concatenate batch: {e}")
                error.__cause__ = e
                return self._fail(error)

        tensor.device_id = self._device_id
        logger.debug(
            "Preprocessed batch",
            extra={"num_images": len(images), "device_id": self._device_id},
        )

        if outputs is not None:
            outputs[:] = [tensor]

        return RunResult(tensor=tensor)

    def _fail(self, error: PreprocessError, **extra) -> RunResult:
        logger.error(str(error), extra=extra)
        return RunResult(error=error)
