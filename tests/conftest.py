"""Shared fixtures for the Canvas proxy tests."""

from __future__ import annotations

from collections.abc import Iterator
from unittest.mock import MagicMock, patch

import pytest
from flask.testing import FlaskClient

import canvas_proxy
from tests.helpers import make_canvas_response


@pytest.fixture
def client() -> FlaskClient:
    canvas_proxy.app.config["TESTING"] = True
    return canvas_proxy.app.test_client()


@pytest.fixture
def canvas_session() -> Iterator[MagicMock]:
    """Patch the outbound session; yields the session the view will use."""
    with patch("canvas_proxy.requests.Session") as session_cls:
        session = session_cls.return_value.__enter__.return_value
        session.send.return_value = make_canvas_response()
        yield session
