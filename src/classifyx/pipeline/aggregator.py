"""Aggregation of per-classifier feature sets."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from classifyx.errors import ClassifierError
    from classifyx.pipeline.models import ClassifierTarget, FeatureSet

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClassifierOutcome:
    """Result of one classifier call: either features or the error that stopped it."""

    target: ClassifierTarget
    features: FeatureSet | None = None
    error: ClassifierError | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


def collect(outcomes: Sequence[ClassifierOutcome]) -> list[FeatureSet]:
    """Apply the failure policy and return the feature sets to aggregate.

    A failed mandatory target aborts with its error; the first failure in
    target order wins. Failed optional targets are dropped. If nothing
    succeeded the first failure is raised regardless of policy.
    """
    failures = [(outcome.target, outcome.error) for outcome in outcomes if outcome.error is not None]
    for target, error in failures:
        if not target.optional:
            raise error

    if failures and len(failures) == len(outcomes):
        raise failures[0][1]

    for target, error in failures:
        logger.warning("Skipping optional classifier %s: %s", target.id, error)
    return [outcome.features or [] for outcome in outcomes if outcome.succeeded]


def aggregate(sets: Iterable[FeatureSet]) -> FeatureSet:
    """Concatenate in target order and sort by score, highest first.

    ``sorted`` is stable with ``reverse=True`` as well, so equal scores keep
    their concatenation order.
    """
    merged: FeatureSet = [feature for features in sets for feature in features]
    return sorted(merged, key=lambda feature: feature.score, reverse=True)
