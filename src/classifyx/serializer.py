"""Metadata document serializers."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Mapping

    from classifyx.pipeline.assembler import NamespacedTree


class MetadataSerializer(Protocol):
    """Protocol for turning a namespaced tree into document bytes."""

    def serialize(self, tree: NamespacedTree, namespaces: Mapping[str, str]) -> bytes:
        """Serialize ``tree`` whose keys use the prefixes declared in ``namespaces``."""
        ...


class JsonMetadataSerializer:
    """Writes ``{"namespaces": ..., "metadata": ...}`` as UTF-8 JSON."""

    def __init__(self, indent: int | None = 2) -> None:
        self._indent = indent

    def serialize(self, tree: NamespacedTree, namespaces: Mapping[str, str]) -> bytes:
        document = {"namespaces": dict(namespaces), "metadata": tree}
        return json.dumps(document, indent=self._indent, ensure_ascii=False).encode("utf-8")
