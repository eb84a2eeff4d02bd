"""Per-job instruction parsing and resolution against the process defaults."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from classifyx.config import split_ids
from classifyx.errors import InvalidRequestError
from classifyx.pipeline.models import ClassifierTarget, Credentials, FeatureKind

if TYPE_CHECKING:
    from collections.abc import Mapping

    from classifyx.config import Settings


class JobInstructions(BaseModel):
    """Free-form job instructions as handed over by the processing harness."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    feature_kind: FeatureKind = Field(default=FeatureKind.TAG, alias="FEATURE_KIND")
    classifier_ids: list[str] | None = Field(default=None, alias="CLASSIFIER_IDS")
    optional_classifier_ids: list[str] = Field(default_factory=list, alias="OPTIONAL_CLASSIFIER_IDS")
    endpoint: str | None = Field(default=None, alias="CCAI_ENDPOINT")
    analyzer_id: str | None = Field(default=None, alias="ANALYZER_ID")
    threshold: float | None = Field(default=None, ge=0.0, le=1.0, alias="THRESHOLD")
    top_n: int | None = Field(default=None, ge=0, alias="TOP_N")
    analyzer_params: dict[str, Any] | None = Field(default=None, alias="SENSEI_PARAMS")

    access_token: str | None = Field(default=None, alias="stageToken")
    api_key: str | None = Field(default=None, alias="stageApiKey")
    ims_org_id: str | None = Field(default=None, alias="stageImsOrgId")

    @field_validator("feature_kind", mode="before")
    @classmethod
    def _lower_kind(cls, value: object) -> object:
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("classifier_ids", "optional_classifier_ids", mode="before")
    @classmethod
    def _ids(cls, value: object) -> object:
        return split_ids(value)

    @field_validator("analyzer_params", mode="before")
    @classmethod
    def _params(cls, value: object) -> object:
        if isinstance(value, str):
            try:
                return json.loads(value)
            except ValueError as exc:
                raise ValueError(f"SENSEI_PARAMS is not valid JSON: {exc}") from exc
        return value

    @classmethod
    def parse(cls, instructions: Mapping[str, Any]) -> JobInstructions:
        try:
            return cls.model_validate(dict(instructions))
        except ValidationError as exc:
            raise InvalidRequestError(f"invalid job instructions: {exc}") from exc


@dataclass(frozen=True)
class JobConfig:
    """Everything a single invocation needs, resolved once up front."""

    kind: FeatureKind
    targets: tuple[ClassifierTarget, ...]
    credentials: Credentials
    threshold: float
    top_n: int
    analyzer_params: dict[str, Any] | None = None


def resolve_targets(instructions: JobInstructions, settings: Settings) -> tuple[ClassifierTarget, ...]:
    if instructions.feature_kind is FeatureKind.TAG:
        ids = instructions.classifier_ids or settings.tag_classifier_ids
        endpoint = instructions.endpoint or settings.tag_endpoint
    else:
        if instructions.classifier_ids:
            ids = instructions.classifier_ids
        else:
            ids = [instructions.analyzer_id or settings.color_analyzer_id]
        endpoint = instructions.endpoint or settings.color_endpoint

    if not ids:
        raise InvalidRequestError("no classifier ids configured")
    optional = set(instructions.optional_classifier_ids)
    targets = tuple(ClassifierTarget(id=cid, endpoint_template=endpoint, optional=cid in optional) for cid in ids)
    for target in targets:
        try:
            httpx.URL(target.url)
        except httpx.InvalidURL as exc:
            raise InvalidRequestError(f"classifier {target.id!r} has an invalid endpoint URL: {exc}") from exc
    return targets


def resolve_credentials(instructions: JobInstructions, override: Credentials | None = None) -> Credentials:
    if override is not None:
        return override
    if not instructions.access_token or not instructions.api_key:
        raise InvalidRequestError("job instructions carry no classifier credentials (stageToken, stageApiKey)")
    return Credentials(
        access_token=instructions.access_token,
        api_key=instructions.api_key,
        ims_org_id=instructions.ims_org_id,
    )


def resolve_job(
    instructions: Mapping[str, Any],
    settings: Settings,
    credentials_override: Credentials | None = None,
) -> JobConfig:
    """Build the job configuration from instructions, falling back to settings."""
    parsed = JobInstructions.parse(instructions)
    return JobConfig(
        kind=parsed.feature_kind,
        targets=resolve_targets(parsed, settings),
        credentials=resolve_credentials(parsed, credentials_override),
        threshold=settings.threshold if parsed.threshold is None else parsed.threshold,
        top_n=settings.top_n if parsed.top_n is None else parsed.top_n,
        analyzer_params=parsed.analyzer_params,
    )
