"""Metadata assembler: features to the namespaced tree handed to the serializer."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Any, TypeAlias

from classifyx.pipeline.models import ColorFeature, FeatureKind, TagFeature

if TYPE_CHECKING:
    from classifyx.pipeline.models import FeatureSet

NAMESPACE_PREFIX = "ccai"
NAMESPACE_URI = "https://example.com/schema/ccai"
NAMESPACES: dict[str, str] = {NAMESPACE_PREFIX: NAMESPACE_URI}

NamespacedTree: TypeAlias = dict[str, Any]


def _key(name: str) -> str:
    return f"{NAMESPACE_PREFIX}:{name}"


def to_percentage_string(coverage: float) -> str:
    """Format a [0, 1] fraction as a whole percent, rounding half up.

    The value goes through its shortest decimal repr so that 0.595 rounds to
    60% rather than to the 59% its binary product with 100 would give.
    """
    # abs() folds -0.0 into 0.0; coverage is never negative otherwise.
    percent = (Decimal(repr(abs(coverage))) * 100).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    return f"{percent}%"


def to_web_color(color: ColorFeature) -> str:
    return f"#{color.red:02x}{color.green:02x}{color.blue:02x}"


def assemble_tags(features: FeatureSet) -> NamespacedTree:
    labels = []
    for tag in features:
        if not isinstance(tag, TagFeature):
            raise TypeError(f"expected a tag feature, got {tag!r}")
        labels.append({_key("name"): tag.name, _key("percentage"): tag.confidence})
    return {_key("labels"): labels}


def assemble_colors(features: FeatureSet) -> NamespacedTree:
    names: list[str] = []
    web_colors: list[str] = []
    structs: list[dict[str, Any]] = []
    for color in features:
        if not isinstance(color, ColorFeature):
            raise TypeError(f"expected a color feature, got {color!r}")
        percentage = to_percentage_string(color.coverage)
        names.append(f"{color.name}, {percentage}")
        web_colors.append(f"{to_web_color(color)}, {percentage}")
        structs.append(
            {
                _key("name"): color.name,
                _key("percentage"): color.coverage,
                _key("red"): color.red,
                _key("green"): color.green,
                _key("blue"): color.blue,
            }
        )
    return {
        _key("colorNames"): names,
        _key("colorRGB"): web_colors,
        _key("colors"): structs,
    }


def assemble(features: FeatureSet, kind: FeatureKind) -> NamespacedTree:
    """Shape sorted features into the metadata tree, preserving their order."""
    if kind is FeatureKind.TAG:
        return assemble_tags(features)
    return assemble_colors(features)
