"""Fake classifier responses shared by the test modules."""

from __future__ import annotations

import json
from typing import Any

import httpx

BOUNDARY = "Boundary_7_1187355436_1700000000000"


def multipart_body(parts: list[tuple[str, bytes]], boundary: str = BOUNDARY) -> bytes:
    """Build a multipart/form-data body from ``(name, content)`` pairs."""
    delimiter = f"--{boundary}".encode()
    chunks: list[bytes] = []
    for name, content in parts:
        chunks.append(delimiter + b"\r\n")
        chunks.append(f'Content-Disposition: form-data; name="{name}"\r\n'.encode())
        chunks.append(b"Content-Type: application/octet-stream\r\n\r\n")
        chunks.append(content + b"\r\n")
    chunks.append(delimiter + b"--\r\n")
    return b"".join(chunks)


def json_response(payload: Any, status_code: int = 200, request_id: str | None = None) -> httpx.Response:
    headers = {"x-request-id": request_id} if request_id else {}
    return httpx.Response(status_code, json=payload, headers=headers)


def multipart_response(parts: list[tuple[str, bytes]], request_id: str | None = None) -> httpx.Response:
    headers = {"content-type": f"multipart/form-data; boundary={BOUNDARY}"}
    if request_id:
        headers["x-request-id"] = request_id
    return httpx.Response(200, content=multipart_body(parts), headers=headers)


def tag_payload(*tags: tuple[str, float]) -> dict[str, Any]:
    return {"result": [{"tags": [{"tag": name, "confidence": confidence} for name, confidence in tags]}]}


def color_payload(**colors: tuple[float, int, int, int]) -> list[dict[str, Any]]:
    return [
        {
            "colors": {
                name: {"coverage": coverage, "rgb": {"red": red, "green": green, "blue": blue}}
                for name, (coverage, red, green, blue) in colors.items()
            }
        }
    ]


def color_response(request_id: str | None = None, **colors: tuple[float, int, int, int]) -> httpx.Response:
    return multipart_response([("result", json.dumps(color_payload(**colors)).encode())], request_id=request_id)
