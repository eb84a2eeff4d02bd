"""Response decoder: plain JSON envelopes and multipart/form-data envelopes.

Multipart bodies are scanned as byte ranges. A delimiter only counts when it
starts a line (body start or directly after CRLF) and is followed by optional
linear whitespace and CRLF. The close delimiter carries a ``--`` suffix and may
also end the body right after its padding. The boundary text appearing
anywhere else, e.g. inside an uploaded image echoed back in another part, is
part content.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from classifyx.errors import MalformedResponseError
from classifyx.pipeline.invoker import RESULT_FIELD

if TYPE_CHECKING:
    from classifyx.pipeline.models import JsonRecord, RawResponse

logger = logging.getLogger(__name__)

CRLF = b"\r\n"
_HEADER_END = b"\r\n\r\n"
_LWSP = b" \t"


def parse_header_value(value: str) -> tuple[str, dict[str, str]]:
    """Split ``type/subtype; key=value; key="quoted"`` into its value and parameters.

    Parameter names are lower-cased; quoted values are unquoted.
    """
    head, *rest = _split_params(value)
    params: dict[str, str] = {}
    for item in rest:
        key, sep, raw = item.partition("=")
        if not sep:
            continue
        raw = raw.strip()
        if len(raw) >= 2 and raw[0] == raw[-1] == '"':
            raw = raw[1:-1].replace('\\"', '"').replace("\\\\", "\\")
        params[key.strip().lower()] = raw
    return head.strip().lower(), params


def _split_params(value: str) -> list[str]:
    # Semicolons inside quoted strings do not separate parameters.
    items: list[str] = []
    current: list[str] = []
    quoted = False
    escaped = False
    for char in value:
        if escaped:
            escaped = False
        elif char == "\\" and quoted:
            escaped = True
        elif char == '"':
            quoted = not quoted
        elif char == ";" and not quoted:
            items.append("".join(current))
            current = []
            continue
        current.append(char)
    items.append("".join(current))
    return items


def _delimiter_line_end(body: bytes, start: int, delimiter: bytes) -> tuple[int, bool] | None:
    """Check for a delimiter line at ``start``.

    Returns ``(offset after the line, is_close_delimiter)`` or None if the
    bytes at ``start`` are not a delimiter line.
    """
    pos = start + len(delimiter)
    closing = body.startswith(b"--", pos)
    if closing:
        pos += 2
    while pos < len(body) and body[pos] in _LWSP:
        pos += 1
    if body.startswith(CRLF, pos):
        return pos + 2, closing
    if closing and pos == len(body):
        return pos, True
    return None


def split_multipart(body: bytes, boundary: str) -> list[bytes]:
    """Split a multipart body into its parts (headers and content of each)."""
    delimiter = b"--" + boundary.encode("latin-1")
    parts: list[bytes] = []
    part_start: int | None = None
    search_from = 0

    while True:
        index = body.find(delimiter, search_from)
        if index < 0:
            break
        search_from = index + 1
        if index != 0 and body[index - 2 : index] != CRLF:
            continue
        line = _delimiter_line_end(body, index, delimiter)
        if line is None:
            continue

        line_end, closing = line
        if part_start is not None:
            # The CRLF preceding the delimiter belongs to the delimiter.
            content_end = max(index - 2, part_start)
            parts.append(body[part_start:content_end])
        if closing:
            part_start = None
            break
        part_start = line_end
        search_from = line_end

    if part_start is not None:
        logger.warning("Multipart body ended without a close delimiter")
        parts.append(body[part_start:])
    return parts


def parse_part(part: bytes) -> tuple[dict[str, str], bytes]:
    """Split one part into lower-cased headers and its content."""
    if part.startswith(CRLF):
        # No headers at all: the blank line comes first.
        return {}, part[2:]
    header_end = part.find(_HEADER_END)
    if header_end < 0:
        return _parse_headers(part), b""
    return _parse_headers(part[:header_end]), part[header_end + len(_HEADER_END) :]


def _parse_headers(block: bytes) -> dict[str, str]:
    headers: dict[str, str] = {}
    for raw_line in block.split(CRLF):
        line = raw_line.decode("utf-8", errors="replace")
        name, sep, value = line.partition(":")
        if sep:
            headers[name.strip().lower()] = value.strip()
    return headers


def part_name(headers: dict[str, str]) -> str | None:
    disposition = headers.get("content-disposition")
    if disposition is None:
        return None
    _, params = parse_header_value(disposition)
    return params.get("name")


def _parse_json(payload: bytes, what: str) -> JsonRecord:
    try:
        return json.loads(payload)
    except (ValueError, UnicodeDecodeError, RecursionError) as exc:
        raise MalformedResponseError(f"{what} is not valid JSON: {exc}") from exc


def decode_multipart(body: bytes, content_type: str) -> JsonRecord:
    _, params = parse_header_value(content_type)
    boundary = params.get("boundary")
    if not boundary:
        raise MalformedResponseError("multipart response has no boundary parameter")

    for part in split_multipart(body, boundary):
        headers, content = parse_part(part)
        if part_name(headers) == RESULT_FIELD:
            return _parse_json(content, f"multipart part {RESULT_FIELD!r}")

    logger.info("Multipart response carries no %r part", RESULT_FIELD)
    return {}


def decode(response: RawResponse) -> JsonRecord:
    """Extract the JSON payload from a successful classifier response.

    Raises:
        MalformedResponseError: If the envelope is unsupported or its JSON cannot be parsed.
    """
    content_type = response.header("content-type")
    if content_type is None:
        raise MalformedResponseError("response has no content-type")

    media_type, _ = parse_header_value(content_type)
    if media_type == "multipart/form-data":
        return decode_multipart(response.body, content_type)
    if media_type == "application/json" or media_type.endswith("+json"):
        return _parse_json(response.body, "response body")
    raise MalformedResponseError(f"unsupported content-type {media_type!r}")
