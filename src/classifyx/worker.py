"""Metadata worker: one source asset in, one metadata document out.

The worker is the boundary where an invocation is abandoned, so it is the
only place that logs pipeline errors. Nothing is written unless every stage
succeeded.
"""

from __future__ import annotations

import logging
import mimetypes
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

import httpx

from classifyx.errors import ClassifierCallError, ClassifierError, InvalidRequestError, SourceCorruptError
from classifyx.instructions import resolve_job
from classifyx.pipeline.aggregator import aggregate, collect
from classifyx.pipeline.assembler import NAMESPACES, assemble
from classifyx.pipeline.invoker import ClassifierInvoker
from classifyx.pipeline.models import ClassificationRequest
from classifyx.pipeline.runner import ClassificationRunner
from classifyx.serializer import JsonMetadataSerializer

if TYPE_CHECKING:
    from collections.abc import Mapping

    from classifyx.config import Settings
    from classifyx.instructions import JobConfig
    from classifyx.pipeline.assembler import NamespacedTree
    from classifyx.pipeline.models import Credentials
    from classifyx.serializer import MetadataSerializer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SourceAsset:
    """The asset to classify: a local file and/or a publicly fetchable URL."""

    path: Path | None = None
    url: str | None = None


@dataclass(frozen=True)
class Rendition:
    """Where the metadata document goes, and the job's instructions."""

    path: Path
    instructions: Mapping[str, str] = field(default_factory=dict)


def read_source(source: SourceAsset) -> bytes:
    """Read the source file, rejecting missing or empty input."""
    if source.path is None:
        raise SourceCorruptError("source has no local file")
    try:
        data = source.path.read_bytes()
    except OSError as exc:
        raise SourceCorruptError(f"source file is unreadable: {exc}") from exc
    if not data:
        raise SourceCorruptError("source file is empty")
    return data


def guess_media_type(path: Path) -> str:
    media_type, _ = mimetypes.guess_type(path.name)
    if media_type is None or not media_type.startswith("image/"):
        return "image/jpeg"
    return media_type


class MetadataWorker:
    """Runs the classification pipeline for one asset per call.

    Args:
        settings: Process-wide defaults.
        serializer: Document serializer; JSON by default.
        credentials_override: Credentials used instead of the per-job ones,
            e.g. fixed test credentials.
        transport: httpx transport for the classifier calls (tests inject a mock).
    """

    def __init__(
        self,
        settings: Settings,
        *,
        serializer: MetadataSerializer | None = None,
        credentials_override: Credentials | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._serializer = serializer or JsonMetadataSerializer()
        self._credentials_override = credentials_override
        self._transport = transport

    async def extract(self, source: SourceAsset, instructions: Mapping[str, str]) -> NamespacedTree:
        """Classify the source and return the assembled metadata tree."""
        data = read_source(source)
        job = resolve_job(instructions, self._settings, self._credentials_override)
        request = self._build_request(source, data, job)

        logger.info(
            "Classifying %s with %d %s classifier(s): %s",
            source.path.name if source.path else source.url,
            len(job.targets),
            job.kind,
            ", ".join(target.id for target in job.targets),
        )

        async with httpx.AsyncClient(transport=self._transport, timeout=self._settings.request_timeout) as client:
            invoker = ClassifierInvoker(client, job.credentials, job.kind)
            runner = ClassificationRunner(invoker, job.kind, self._settings.max_concurrent_calls)
            outcomes = await runner.run(job.targets, request)

        features = aggregate(collect(outcomes))
        return assemble(features, job.kind)

    async def process(self, source: SourceAsset, rendition: Rendition) -> NamespacedTree:
        """Classify the source and write the serialized document to the rendition path."""
        try:
            tree = await self.extract(source, rendition.instructions)
        except ClassifierCallError as exc:
            logger.error(
                "Classification failed: classifier=%s status=%s request_id=%s: %s",
                exc.classifier_id,
                exc.status_code,
                exc.request_id,
                exc.message,
            )
            raise
        except ClassifierError as exc:
            logger.error(
                "Classification failed: classifier=%s request_id=%s: %s",
                exc.classifier_id,
                exc.request_id,
                exc.message,
            )
            raise
        except (SourceCorruptError, InvalidRequestError) as exc:
            logger.error("Job rejected: %s", exc)
            raise

        document = self._serializer.serialize(tree, NAMESPACES)
        rendition.path.write_bytes(document)
        logger.info("Wrote %d bytes of metadata to %s", len(document), rendition.path)
        return tree

    @staticmethod
    def _build_request(source: SourceAsset, data: bytes, job: JobConfig) -> ClassificationRequest:
        if not job.kind.requires_upload and not source.url:
            raise InvalidRequestError("tag classification needs a publicly fetchable source URL")
        path = source.path or Path("asset")
        return ClassificationRequest(
            asset_url=source.url,
            asset_bytes=data if job.kind.requires_upload else None,
            asset_name=path.name,
            media_type=guess_media_type(path),
            threshold=job.threshold,
            top_n=job.top_n,
            analyzer_params=job.analyzer_params,
        )
