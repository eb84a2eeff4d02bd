"""API route definitions."""

from __future__ import annotations

import json
import logging
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

from fastapi import APIRouter, Depends, Form, Request, UploadFile, status
from fastapi.responses import JSONResponse

from classifyx.api.middleware import verify_api_key
from classifyx.api.schemas import (
    ClassifierInfo,
    ClassifiersResponse,
    ErrorResponse,
    HealthResponse,
    ProcessResponse,
)
from classifyx.errors import ClassifierError, InvalidRequestError, SourceCorruptError
from classifyx.pipeline.models import CLASSIFIER_ID_PLACEHOLDER, FeatureKind
from classifyx.worker import Rendition, SourceAsset

if TYPE_CHECKING:
    from classifyx.config import Settings
    from classifyx.jobs import JobPool
    from classifyx.worker import MetadataWorker

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", dependencies=[Depends(verify_api_key)])


def _get_settings(request: Request) -> Settings:
    settings: Settings = request.app.state.settings
    return settings


def _get_job_pool(request: Request) -> JobPool:
    pool: JobPool = request.app.state.job_pool
    return pool


def _get_worker(request: Request) -> MetadataWorker:
    worker: MetadataWorker = request.app.state.worker
    return worker


def _error(status_code: int, detail: str, **extra: str | None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(detail=detail, **extra).model_dump())


def _parse_instructions(raw: str) -> dict[str, str]:
    try:
        instructions = json.loads(raw)
    except ValueError as exc:
        raise InvalidRequestError(f"instructions are not valid JSON: {exc}") from exc
    if not isinstance(instructions, dict):
        raise InvalidRequestError("instructions must be a JSON object")
    return instructions


@router.post(
    "/process",
    response_model=ProcessResponse,
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
        status.HTTP_422_UNPROCESSABLE_ENTITY: {"model": ErrorResponse},
        status.HTTP_502_BAD_GATEWAY: {"model": ErrorResponse},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse},
    },
    summary="Extract classifier metadata from an image",
)
async def process(
    request: Request,
    file: UploadFile,
    instructions: Annotated[str, Form()] = "{}",
    source_url: Annotated[str | None, Form()] = None,
) -> ProcessResponse | JSONResponse:
    """Run the worker on an uploaded asset and return the metadata document."""
    worker = _get_worker(request)
    pool = _get_job_pool(request)

    try:
        job_instructions = _parse_instructions(instructions)
    except InvalidRequestError as exc:
        return _error(status.HTTP_400_BAD_REQUEST, str(exc))

    with tempfile.TemporaryDirectory(prefix="classifyx-") as workdir:
        source_path = Path(workdir) / Path(file.filename or "asset").name
        source_path.write_bytes(await file.read())
        rendition = Rendition(path=Path(workdir) / "metadata.json", instructions=job_instructions)
        source = SourceAsset(path=source_path, url=source_url)

        try:
            tree = await pool.run(lambda: worker.process(source, rendition))
        except TimeoutError:
            return _error(status.HTTP_503_SERVICE_UNAVAILABLE, "Too many jobs in progress, retry later")
        except SourceCorruptError as exc:
            return _error(status.HTTP_422_UNPROCESSABLE_ENTITY, str(exc))
        except InvalidRequestError as exc:
            return _error(status.HTTP_400_BAD_REQUEST, str(exc))
        except ClassifierError as exc:
            return _error(
                status.HTTP_502_BAD_GATEWAY,
                str(exc),
                classifier_id=exc.classifier_id,
                request_id=exc.request_id,
            )
        document = rendition.path.read_text(encoding="utf-8")

    return ProcessResponse(metadata=tree, document=document)


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
)
async def health(request: Request) -> HealthResponse:
    """Return service health status."""
    settings = _get_settings(request)
    pool = _get_job_pool(request)
    return HealthResponse(
        status="ok",
        test_mode=settings.test_mode,
        active_jobs=pool.active_count,
        queue_depth=pool.queue_depth,
    )


@router.get(
    "/classifiers",
    response_model=ClassifiersResponse,
    summary="List default classifiers",
)
async def list_classifiers(request: Request) -> ClassifiersResponse:
    """Return the classifier targets used when a job names none."""
    settings = _get_settings(request)
    classifiers = [
        ClassifierInfo(
            id=classifier_id,
            kind=FeatureKind.TAG,
            endpoint=settings.tag_endpoint.replace(CLASSIFIER_ID_PLACEHOLDER, classifier_id),
        )
        for classifier_id in settings.tag_classifier_ids
    ]
    classifiers.append(
        ClassifierInfo(id=settings.color_analyzer_id, kind=FeatureKind.COLOR, endpoint=settings.color_endpoint)
    )
    return ClassifiersResponse(classifiers=classifiers)
