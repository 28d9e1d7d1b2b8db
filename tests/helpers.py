"""Test helpers for building fake Canvas responses."""

from __future__ import annotations

from unittest.mock import MagicMock

from requests.structures import CaseInsensitiveDict


def make_canvas_response(
    status_code: int = 200, body: bytes = b"[]", headers: dict | None = None
) -> MagicMock:
    """Build a stand-in for a streamed ``requests.Response``."""
    resp = MagicMock()
    resp.status_code = status_code
    resp.content = body
    resp.headers = CaseInsensitiveDict(headers or {})
    resp.__enter__.return_value = resp
    return resp
