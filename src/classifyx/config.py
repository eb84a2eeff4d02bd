"""Environment-based configuration for ClassifyX."""

from __future__ import annotations

import json
from typing import Annotated, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from classifyx.pipeline.models import Credentials

DEFAULT_TAG_CLASSIFIER_IDS: list[str] = ["10021", "10023"]
DEFAULT_TAG_ENDPOINT = "https://ccai-tagging-stage-va7.adobe.io/custom/images/v0/classifiers/CLASSIFIER_ID/predict_tags"
DEFAULT_COLOR_ANALYZER_ID = "Feature:cintel-image-classifier:Service-60887e328ded447d86e01122a4f19c58"
DEFAULT_COLOR_ENDPOINT = "https://sensei-stage-va6.adobe.io/services/v2/predict"

TEST_CREDENTIALS = Credentials(
    access_token="test-access-token",  # noqa: S106
    api_key="test-client-id",
    ims_org_id="test-ims-org-id",
)


def split_ids(value: object) -> object:
    """Accept a JSON array, a comma separated string, or a list."""
    if not isinstance(value, str):
        return value
    text = value.strip()
    if text.startswith("["):
        try:
            return json.loads(text)
        except ValueError as exc:
            raise ValueError(f"invalid JSON array of classifier ids: {exc}") from exc
    return [item.strip() for item in text.split(",") if item.strip()]


class Settings(BaseSettings):
    """Application settings loaded from CLASSIFYX_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="CLASSIFYX_",
        case_sensitive=False,
    )

    # Server
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8083
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Authentication for the service surface (None = disabled)
    api_key: str | None = None

    # Substitute fixed test credentials for the per-job ones
    test_mode: bool = False

    # Tag classifiers
    tag_classifier_ids: Annotated[list[str], NoDecode] = Field(default_factory=lambda: list(DEFAULT_TAG_CLASSIFIER_IDS))
    tag_endpoint: str = DEFAULT_TAG_ENDPOINT

    # Color analyzer
    color_analyzer_id: str = DEFAULT_COLOR_ANALYZER_ID
    color_endpoint: str = DEFAULT_COLOR_ENDPOINT

    # Request tunables
    threshold: float = Field(default=0.0, ge=0.0, le=1.0)
    top_n: int = Field(default=3, ge=0)

    # Classifier calls
    request_timeout: float = Field(default=60.0, gt=0)
    max_concurrent_calls: int = Field(default=4, ge=1)

    # Service concurrency
    max_concurrent_jobs: int = Field(default=2, ge=1)
    job_queue_timeout: float = Field(default=5.0, gt=0)

    @field_validator("tag_classifier_ids", mode="before")
    @classmethod
    def _split_classifier_ids(cls, value: object) -> object:
        return split_ids(value)


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()


def credentials_override(settings: Settings) -> Credentials | None:
    """Return the credential override for test mode, or None outside of it."""
    if settings.test_mode:
        return TEST_CREDENTIALS
    return None
