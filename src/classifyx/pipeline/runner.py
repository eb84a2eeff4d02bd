"""Classification runner: concurrent classifier calls with ordered results.

Architecture:
    TaskGroup -> asyncio.Semaphore(N) -> invoke -> decode -> normalize

Each target's outcome is stored at the target's index, so completion order
never leaks into the result order. Cancelling ``run`` cancels every call that
is still in flight.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from classifyx.errors import ClassifierError
from classifyx.pipeline.aggregator import ClassifierOutcome
from classifyx.pipeline.decoder import decode
from classifyx.pipeline.normalizer import normalize

if TYPE_CHECKING:
    from collections.abc import Sequence

    from classifyx.pipeline.invoker import ClassifierInvoker
    from classifyx.pipeline.models import ClassificationRequest, ClassifierTarget, FeatureKind, FeatureSet

logger = logging.getLogger(__name__)


class ClassificationRunner:
    """Runs one job's classifier calls, at most ``max_concurrent`` at a time."""

    def __init__(self, invoker: ClassifierInvoker, kind: FeatureKind, max_concurrent: int = 4) -> None:
        self._invoker = invoker
        self._kind = kind
        self._semaphore = asyncio.Semaphore(max_concurrent)

    async def classify(self, target: ClassifierTarget, request: ClassificationRequest) -> FeatureSet:
        """Invoke, decode and normalize a single target."""
        async with self._semaphore:
            response = await self._invoker.invoke(target, request)
        try:
            features = normalize(decode(response), self._kind)
        except ClassifierError as exc:
            exc.attribute(target.id, response.request_id)
            raise
        logger.info("Classifier %s returned %d %s features", target.id, len(features), self._kind)
        return features

    async def _outcome(self, target: ClassifierTarget, request: ClassificationRequest) -> ClassifierOutcome:
        try:
            features = await self.classify(target, request)
        except ClassifierError as exc:
            return ClassifierOutcome(target=target, error=exc.attribute(target.id))
        return ClassifierOutcome(target=target, features=features)

    async def run(self, targets: Sequence[ClassifierTarget], request: ClassificationRequest) -> list[ClassifierOutcome]:
        """Call every target and return their outcomes in target order."""
        async with asyncio.TaskGroup() as group:
            tasks = [group.create_task(self._outcome(target, request)) for target in targets]
        return [task.result() for task in tasks]
