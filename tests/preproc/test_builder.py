"""
Unit Tests for the Pipeline Builder

This module tests preproc/processing/builder.py.

Test Categories:
- Spec parsing: Malformed op entries
- Op translation: Supported ops, parameters, toggles
- Validation: Unsupported ops, scale range, parameter types
- Fusion: Normalize + ToCHW become one step
"""

import pytest

from preproc.errors import ConfigSchemaError
from preproc.processing.builder import (
    SUPPORTED_SCALE,
    BuildOptions,
    build_pipeline,
    parse_step_specs,
)
from preproc.processing.steps import (
    CenterCrop,
    ColorConvert,
    LayoutPermute,
    Normalize,
    NormalizeAndPermute,
    ResizeShort,
    StepKind,
    StepSpec,
)

MEAN = [0.485, 0.456, 0.406]
STD = [0.229, 0.224, 0.225]


def normalize_spec(scale: float = SUPPORTED_SCALE, **overrides) -> StepSpec:
    params = {"mean": MEAN, "std": STD, "scale": scale}
    params.update(overrides)
    return StepSpec("NormalizeImage", params)


@pytest.fixture
def imagenet_specs(imagenet_ops) -> list[StepSpec]:
    return parse_step_specs(imagenet_ops)


# =============================================================================
# Spec Parsing Tests
# =============================================================================

class TestParseStepSpecs:
    """Tests for converting raw entries to StepSpecs."""

    def test_preserves_order_and_index(self, imagenet_ops) -> None:
        specs = parse_step_specs(imagenet_ops)

        assert [spec.name for spec in specs] == [
            "ResizeImage",
            "CropImage",
            "NormalizeImage",
            "ToCHWImage",
        ]
        assert [spec.index for spec in specs] == [0, 1, 2, 3]

    def test_null_params_become_empty(self) -> None:
        specs = parse_step_specs([{"ToCHWImage": None}])

        assert dict(specs[0].params) == {}

    def test_non_mapping_entry(self) -> None:
        with pytest.raises(ConfigSchemaError, match="Map type") as exc_info:
            parse_step_specs([{"ToCHWImage": None}, "ResizeImage"])

        assert exc_info.value.op_index == 1

    def test_multi_key_entry(self) -> None:
        entry = {"ResizeImage": {"resize_short": 256}, "CropImage": {"size": 224}}

        with pytest.raises(ConfigSchemaError, match="single-key"):
            parse_step_specs([entry])

    def test_empty_entry(self) -> None:
        with pytest.raises(ConfigSchemaError, match="single-key"):
            parse_step_specs([{}])

    def test_non_mapping_params(self) -> None:
        with pytest.raises(ConfigSchemaError, match="to be a mapping"):
            parse_step_specs([{"CropImage": 224}])


# =============================================================================
# Build Tests
# =============================================================================

class TestBuildPipeline:
    """Tests for op translation."""

    def test_example_recipe(self, imagenet_specs) -> None:
        """Resize/Crop/Normalize/ToCHW builds the fused four-step pipeline."""
        pipeline = build_pipeline(imagenet_specs)

        assert pipeline == (
            ColorConvert(),
            ResizeShort(256),
            CenterCrop(224, 224),
            NormalizeAndPermute(tuple(MEAN), tuple(STD)),
        )

    @pytest.mark.parametrize(
        "ops",
        [
            [],
            [{"ResizeImage": {"resize_short": 128}}],
            [{"ToCHWImage": None}],
            [{"CropImage": {"size": 32}}, {"ResizeImage": {"resize_short": 64}}],
        ],
    )
    def test_always_starts_with_color_convert(self, ops) -> None:
        pipeline = build_pipeline(parse_step_specs(ops))

        assert isinstance(pipeline[0], ColorConvert)
        assert sum(isinstance(step, ColorConvert) for step in pipeline) == 1

    def test_resize_policy(self) -> None:
        import cv2

        (_, resize) = build_pipeline([StepSpec("ResizeImage", {"resize_short": 256})])

        assert resize.interpolation == cv2.INTER_LINEAR
        assert resize.use_scale is False

    def test_crop_is_square(self) -> None:
        (_, crop) = build_pipeline([StepSpec("CropImage", {"size": 192})])

        assert (crop.width, crop.height) == (192, 192)

    def test_normalize_without_permute_is_not_fused(self) -> None:
        pipeline = build_pipeline([normalize_spec()])

        assert pipeline[-1] == Normalize(tuple(MEAN), tuple(STD))

    def test_pipeline_is_immutable(self, imagenet_specs) -> None:
        assert isinstance(build_pipeline(imagenet_specs), tuple)

    def test_rebuild_is_idempotent(self, imagenet_specs) -> None:
        options = BuildOptions(disable_permute=True)

        assert build_pipeline(imagenet_specs, options) == build_pipeline(imagenet_specs, options)


class TestBuildOptions:
    """Tests for the normalize/permute toggles."""

    def test_disable_normalize(self, imagenet_specs) -> None:
        pipeline = build_pipeline(imagenet_specs, BuildOptions(disable_normalize=True))

        kinds = [step.kind for step in pipeline]
        assert StepKind.NORMALIZE not in kinds
        assert StepKind.NORMALIZE_AND_PERMUTE not in kinds
        assert pipeline[-1] == LayoutPermute()

    def test_disable_normalize_skips_parameter_checks(self) -> None:
        pipeline = build_pipeline([normalize_spec(scale=0.003)], BuildOptions(disable_normalize=True))

        assert pipeline == (ColorConvert(),)

    def test_disable_permute(self, imagenet_specs) -> None:
        pipeline = build_pipeline(imagenet_specs, BuildOptions(disable_permute=True))

        assert pipeline[-1] == Normalize(tuple(MEAN), tuple(STD))
        assert StepKind.LAYOUT_PERMUTE not in [step.kind for step in pipeline]

    def test_disable_both(self, imagenet_specs) -> None:
        options = BuildOptions(disable_normalize=True, disable_permute=True)

        pipeline = build_pipeline(imagenet_specs, options)

        assert [step.kind for step in pipeline] == [
            StepKind.COLOR_CONVERT,
            StepKind.RESIZE_SHORT,
            StepKind.CENTER_CROP,
        ]


class TestBuildValidation:
    """Tests for build failures."""

    def test_unsupported_operator(self, imagenet_ops) -> None:
        specs = parse_step_specs(imagenet_ops + [{"FlipImage": {"axis": 1}}])

        with pytest.raises(ConfigSchemaError, match="Unsupported preprocess operator: FlipImage") as exc_info:
            build_pipeline(specs)

        assert exc_info.value.op_index == 4

    @pytest.mark.parametrize("scale", [0.00392157, 1 / 255, 0.0039221])
    def test_scale_accepted(self, scale: float) -> None:
        build_pipeline([normalize_spec(scale=scale)])

    @pytest.mark.parametrize("scale", [0.003, 1.0, 0.0039230])
    def test_scale_rejected(self, scale: float) -> None:
        with pytest.raises(ConfigSchemaError, match="Only support scale"):
            build_pipeline([normalize_spec(scale=scale)])

    def test_missing_resize_short(self) -> None:
        with pytest.raises(ConfigSchemaError, match="ResizeImage.*resize_short") as exc_info:
            build_pipeline([StepSpec("ResizeImage", {"size": 256}, index=3)])

        assert exc_info.value.op_index == 3

    def test_crop_size_must_be_int(self) -> None:
        with pytest.raises(ConfigSchemaError, match="to be an int"):
            build_pipeline([StepSpec("CropImage", {"size": "224"})])

    @pytest.mark.parametrize("value", [0, -1])
    def test_sizes_must_be_positive(self, value: int) -> None:
        with pytest.raises(ConfigSchemaError, match="positive"):
            build_pipeline([StepSpec("CropImage", {"size": value})])
        with pytest.raises(ConfigSchemaError, match="positive"):
            build_pipeline([StepSpec("ResizeImage", {"resize_short": value})])

    def test_normalize_missing_std(self) -> None:
        spec = StepSpec("NormalizeImage", {"mean": MEAN, "scale": SUPPORTED_SCALE})

        with pytest.raises(ConfigSchemaError, match="'std'"):
            build_pipeline([spec])

    def test_normalize_length_mismatch(self) -> None:
        with pytest.raises(ConfigSchemaError, match="same length"):
            build_pipeline([normalize_spec(std=[0.5])])

    def test_normalize_zero_std(self) -> None:
        with pytest.raises(ConfigSchemaError, match="zeros"):
            build_pipeline([normalize_spec(std=[0.5, 0.0, 0.5])])
