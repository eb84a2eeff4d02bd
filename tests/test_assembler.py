"""Tests for the metadata assembler."""

from __future__ import annotations

import pytest

from classifyx.pipeline.assembler import assemble, to_percentage_string, to_web_color
from classifyx.pipeline.models import ColorFeature, FeatureKind, TagFeature


class TestFormatting:
    @pytest.mark.parametrize(
        ("coverage", "expected"),
        [
            (0.595, "60%"),
            (0.004, "0%"),
            (0.005, "1%"),
            (0.125, "13%"),
            (0.5, "50%"),
            (0.0, "0%"),
            (1.0, "100%"),
            (1e-05, "0%"),
            (-0.0, "0%"),
        ],
    )
    def test_percentage_rounds_half_up(self, coverage: float, expected: str) -> None:
        assert to_percentage_string(coverage) == expected

    @pytest.mark.parametrize(
        ("rgb", "expected"),
        [
            ((10, 0, 255), "#0a00ff"),
            ((0, 0, 0), "#000000"),
            ((255, 255, 255), "#ffffff"),
            ((169, 9, 254), "#a909fe"),
        ],
    )
    def test_web_color(self, rgb: tuple[int, int, int], expected: str) -> None:
        assert to_web_color(ColorFeature("c", 0.5, *rgb)) == expected


class TestAssemble:
    def test_tags(self) -> None:
        tree = assemble([TagFeature("sunset", 0.95), TagFeature("beach", 0.2)], FeatureKind.TAG)
        assert tree == {
            "ccai:labels": [
                {"ccai:name": "sunset", "ccai:percentage": 0.95},
                {"ccai:name": "beach", "ccai:percentage": 0.2},
            ]
        }

    def test_colors_have_three_aligned_projections(self) -> None:
        features = [
            ColorFeature("navy", 0.595, 0, 0, 128),
            ColorFeature("white", 0.004, 255, 255, 255),
        ]

        tree = assemble(features, FeatureKind.COLOR)

        assert tree["ccai:colorNames"] == ["navy, 60%", "white, 0%"]
        assert tree["ccai:colorRGB"] == ["#000080, 60%", "#ffffff, 0%"]
        assert tree["ccai:colors"] == [
            {"ccai:name": "navy", "ccai:percentage": 0.595, "ccai:red": 0, "ccai:green": 0, "ccai:blue": 128},
            {"ccai:name": "white", "ccai:percentage": 0.004, "ccai:red": 255, "ccai:green": 255, "ccai:blue": 255},
        ]

    def test_negative_zero_coverage_has_no_sign(self) -> None:
        tree = assemble([ColorFeature("red", -0.0, 255, 0, 0)], FeatureKind.COLOR)
        assert tree["ccai:colorNames"] == ["red, 0%"]
        assert tree["ccai:colorRGB"] == ["#ff0000, 0%"]

    def test_empty_sets(self) -> None:
        assert assemble([], FeatureKind.TAG) == {"ccai:labels": []}
        assert assemble([], FeatureKind.COLOR) == {"ccai:colorNames": [], "ccai:colorRGB": [], "ccai:colors": []}

    def test_wrong_feature_variant(self) -> None:
        with pytest.raises(TypeError):
            assemble([TagFeature("sky", 0.5)], FeatureKind.COLOR)
