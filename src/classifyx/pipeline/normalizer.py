"""Feature normalizer: decoded classifier JSON to tag and color features.

Values are validated, never clamped. Output keeps the classifier's order.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING

from classifyx.errors import InvalidFeatureError, MalformedResponseError
from classifyx.pipeline.models import ColorFeature, FeatureKind, TagFeature

if TYPE_CHECKING:
    from classifyx.pipeline.models import FeatureSet, JsonRecord

_CHANNELS = ("red", "green", "blue")


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _unit_interval(field: str, value: object) -> float:
    if not _is_number(value) or not 0.0 <= value <= 1.0:  # type: ignore[operator]
        raise InvalidFeatureError(field, value)
    return float(value)  # type: ignore[arg-type]


def _channel(field: str, value: object) -> int:
    if not isinstance(value, int) or isinstance(value, bool) or not 0 <= value <= 255:
        raise InvalidFeatureError(field, value)
    return value


def _first_entry(record: JsonRecord, container: str) -> Mapping[str, object] | None:
    if not isinstance(record, Sequence) or isinstance(record, (str, bytes)):
        raise MalformedResponseError(f"expected {container} to be a JSON array")
    if not record:
        return None
    first = record[0]
    if not isinstance(first, Mapping):
        raise MalformedResponseError(f"expected {container}[0] to be a JSON object")
    return first


def normalize_tags(record: JsonRecord) -> FeatureSet:
    if not isinstance(record, Mapping):
        raise MalformedResponseError("expected the tag response to be a JSON object")
    result = record.get("result")
    if not result:
        return []
    first = _first_entry(result, "result")
    if first is None:
        return []

    tags = first.get("tags") or []
    if not isinstance(tags, Sequence) or isinstance(tags, (str, bytes)):
        raise MalformedResponseError("expected result[0].tags to be a JSON array")

    features: FeatureSet = []
    for entry in tags:
        if not isinstance(entry, Mapping) or not isinstance(entry.get("tag"), str):
            raise MalformedResponseError(f"malformed tag entry: {entry!r}")
        features.append(TagFeature(name=entry["tag"], confidence=_unit_interval("confidence", entry.get("confidence"))))
    return features


def normalize_colors(record: JsonRecord) -> FeatureSet:
    if isinstance(record, Mapping) and not record:
        return []
    first = _first_entry(record, "color response")
    if first is None:
        return []

    colors = first.get("colors") or {}
    if not isinstance(colors, Mapping):
        raise MalformedResponseError("expected colors to be a JSON object")

    features: FeatureSet = []
    for name, entry in colors.items():
        if not isinstance(entry, Mapping) or not isinstance(entry.get("rgb"), Mapping):
            raise MalformedResponseError(f"malformed color entry {name!r}: {entry!r}")
        rgb = entry["rgb"]
        red, green, blue = (_channel(channel, rgb.get(channel)) for channel in _CHANNELS)
        features.append(
            ColorFeature(
                name=name,
                coverage=_unit_interval("coverage", entry.get("coverage")),
                red=red,
                green=green,
                blue=blue,
            )
        )
    return features


def normalize(record: JsonRecord, kind: FeatureKind) -> FeatureSet:
    """Map a decoded record to features of the given kind.

    Raises:
        InvalidFeatureError: If a confidence, coverage or channel value is out of range.
        MalformedResponseError: If the record does not have the expected shape.
    """
    if kind is FeatureKind.TAG:
        return normalize_tags(record)
    return normalize_colors(record)
