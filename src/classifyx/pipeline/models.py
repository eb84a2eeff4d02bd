"""Value types passed between the pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any, TypeAlias

from classifyx.errors import InvalidRequestError

if TYPE_CHECKING:
    from collections.abc import Mapping

CLASSIFIER_ID_PLACEHOLDER = "CLASSIFIER_ID"

JsonRecord: TypeAlias = Any


class FeatureKind(StrEnum):
    TAG = "tag"
    COLOR = "color"

    @property
    def requires_upload(self) -> bool:
        """Color analyzers receive the asset bytes; tag classifiers fetch a URL."""
        return self is FeatureKind.COLOR


@dataclass(frozen=True)
class Credentials:
    """Bearer token, API key and org id sent with every classifier call."""

    access_token: str
    api_key: str
    ims_org_id: str | None = None

    def __repr__(self) -> str:
        return f"Credentials(api_key={self.api_key!r}, ims_org_id={self.ims_org_id!r})"


@dataclass(frozen=True)
class ClassifierTarget:
    """A classifier id and the endpoint template it is called through."""

    id: str
    endpoint_template: str
    optional: bool = False

    @property
    def url(self) -> str:
        return self.endpoint_template.replace(CLASSIFIER_ID_PLACEHOLDER, self.id)


@dataclass(frozen=True)
class ClassificationRequest:
    """What to classify and how; shared read-only by every call of a job."""

    asset_url: str | None = None
    asset_bytes: bytes | None = field(default=None, repr=False)
    asset_name: str = "asset"
    media_type: str = "image/jpeg"
    threshold: float = 0.0
    top_n: int = 3
    analyzer_params: Mapping[str, Any] | None = None

    def __post_init__(self) -> None:
        if isinstance(self.threshold, bool) or not 0.0 <= self.threshold <= 1.0:
            raise InvalidRequestError(f"threshold must be within [0, 1], got {self.threshold!r}")
        if isinstance(self.top_n, bool) or not isinstance(self.top_n, int) or self.top_n < 0:
            raise InvalidRequestError(f"top_n must be a non-negative integer, got {self.top_n!r}")
        if self.asset_url is None and self.asset_bytes is None:
            raise InvalidRequestError("a classification request needs an asset URL or asset bytes")


@dataclass(frozen=True)
class RawResponse:
    """Undecoded classifier response. Header names are stored lower-cased."""

    status_code: int
    headers: Mapping[str, str]
    body: bytes

    def header(self, name: str) -> str | None:
        return self.headers.get(name.lower())

    @property
    def request_id(self) -> str | None:
        return self.header("x-request-id")


@dataclass(frozen=True)
class TagFeature:
    name: str
    confidence: float

    @property
    def score(self) -> float:
        return self.confidence


@dataclass(frozen=True)
class ColorFeature:
    name: str
    coverage: float
    red: int
    green: int
    blue: int

    @property
    def score(self) -> float:
        return self.coverage


Feature: TypeAlias = TagFeature | ColorFeature
FeatureSet: TypeAlias = list[Feature]
