"""Classifier invoker: one HTTP call per classifier target.

Tag classifiers receive a JSON document referencing the asset by URL. Color
analyzers receive a multipart upload with the asset bytes in ``infile`` and the
analyzer parameter block in ``contentAnalyzerRequests``.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

import httpx

from classifyx.errors import ClassifierCallError, InvalidRequestError
from classifyx.pipeline.models import FeatureKind, RawResponse

if TYPE_CHECKING:
    from classifyx.pipeline.models import ClassificationRequest, ClassifierTarget, Credentials

logger = logging.getLogger(__name__)

UPLOAD_FIELD = "infile"
PARAMETERS_FIELD = "contentAnalyzerRequests"
RESULT_FIELD = "result"

_VENDOR_MESSAGE_KEYS = ("message", "error_message", "detail")


def build_headers(credentials: Credentials, kind: FeatureKind) -> dict[str, str]:
    """Return the fixed header set for a classifier call.

    The multipart Content-Type (with its boundary) is left to httpx, which
    generates it together with the body.
    """
    headers = {
        "Authorization": f"Bearer {credentials.access_token}",
        "cache-control": "no-cache,no-cache",
        "x-api-key": credentials.api_key,
    }
    if credentials.ims_org_id:
        headers["x-gw-ims-org-id"] = credentials.ims_org_id
    if kind.requires_upload:
        headers["Prefer"] = "respond-async, wait=59"
    else:
        headers["Content-Type"] = "application/json"
    return headers


def build_json_body(request: ClassificationRequest) -> dict[str, Any]:
    if request.asset_url is None:
        raise InvalidRequestError("tag classification needs a publicly fetchable asset URL")
    return {
        "threshold": request.threshold,
        "top_n": request.top_n,
        "assets": [{"type": "url", "asset": request.asset_url}],
    }


def build_analyzer_params(target: ClassifierTarget, request: ClassificationRequest) -> dict[str, Any]:
    """Return the parameter block describing the requested analyzer run."""
    if request.analyzer_params is not None:
        return dict(request.analyzer_params)
    return {
        "sensei:name": target.id,
        "sensei:invocation_mode": "synchronous",
        "sensei:invocation_batch": False,
        "sensei:engines": [
            {
                "sensei:execution_info": {"sensei:engine": target.id},
                "sensei:inputs": {
                    "documents": [
                        {
                            "sensei:multipart_field_name": UPLOAD_FIELD,
                            "dc:format": request.media_type,
                        }
                    ]
                },
                "sensei:params": {"top_n": request.top_n, "threshold": request.threshold},
                "sensei:outputs": {
                    RESULT_FIELD: {
                        "sensei:multipart_field_name": RESULT_FIELD,
                        "dc:format": "application/json",
                    }
                },
            }
        ],
    }


def vendor_message(body: bytes) -> str | None:
    """Extract the vendor's error message from a JSON error body, if any."""
    try:
        payload = json.loads(body)
    except (ValueError, UnicodeDecodeError, RecursionError):
        return None
    if not isinstance(payload, dict):
        return None
    for key in _VENDOR_MESSAGE_KEYS:
        value = payload.get(key)
        if isinstance(value, str) and value:
            return value
    return None


class ClassifierInvoker:
    """Executes classifier calls over a caller-owned ``httpx.AsyncClient``."""

    def __init__(self, client: httpx.AsyncClient, credentials: Credentials, kind: FeatureKind) -> None:
        self._client = client
        self._credentials = credentials
        self._kind = kind

    async def invoke(self, target: ClassifierTarget, request: ClassificationRequest) -> RawResponse:
        """Execute exactly one call and return the raw response.

        Raises:
            ClassifierCallError: On a non-2xx status, a transport error, a timeout or
                an unusable URL.
        """
        url = target.url
        headers = build_headers(self._credentials, self._kind)
        logger.debug("Calling classifier %s at %s", target.id, url)

        try:
            if self._kind.requires_upload:
                if request.asset_bytes is None:
                    raise InvalidRequestError("color analysis needs the asset bytes")
                params = build_analyzer_params(target, request)
                response = await self._client.post(
                    url,
                    headers=headers,
                    files={UPLOAD_FIELD: (request.asset_name, request.asset_bytes, request.media_type)},
                    data={PARAMETERS_FIELD: json.dumps(params)},
                )
            else:
                response = await self._client.post(url, headers=headers, json=build_json_body(request))
        except httpx.TimeoutException as exc:
            raise ClassifierCallError(
                f"request timed out: {exc}",
                classifier_id=target.id,
            ) from exc
        except httpx.HTTPError as exc:
            raise ClassifierCallError(
                f"request failed: {exc}",
                classifier_id=target.id,
            ) from exc
        except httpx.InvalidURL as exc:
            raise ClassifierCallError(
                f"invalid classifier URL: {exc}",
                classifier_id=target.id,
            ) from exc

        raw = RawResponse(
            status_code=response.status_code,
            headers={name.lower(): value for name, value in response.headers.items()},
            body=response.content,
        )
        if not response.is_success:
            message = vendor_message(raw.body)
            raise ClassifierCallError(
                f"HTTP {raw.status_code}" + (f": {message}" if message else ""),
                classifier_id=target.id,
                status_code=raw.status_code,
                request_id=raw.request_id,
                vendor_message=message,
            )
        return raw
