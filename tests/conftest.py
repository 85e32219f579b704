"""
Shared fixtures.

HTTP is never performed: tests hand a MagicMock in place of
``requests.Session`` and build responses with ``make_response``.
"""

from typing import Any, Optional
from unittest.mock import MagicMock

import pytest
import requests

from line_resolver.core.session import ResolutionSession
from line_resolver.core.store import HostStore
from line_resolver.crypto.envelope import get_envelope_cipher


def _make_response(
    status_code: int = 200,
    json_data: Any = None,
    content: bytes = b"",
    json_error: bool = False,
) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.ok = status_code < 400
    response.content = content
    if json_error:
        response.json.side_effect = ValueError("Expecting value")
    else:
        response.json.return_value = json_data
    if status_code >= 400:
        error = requests.exceptions.HTTPError(f"{status_code} Error")
        error.response = response
        response.raise_for_status.side_effect = error
    return response


@pytest.fixture
def make_response():
    """Factory for fake ``requests.Response`` objects."""
    return _make_response


@pytest.fixture
def envelope():
    return get_envelope_cipher()


@pytest.fixture
def api_ok_body(envelope):
    """Factory for a valid encrypted API config response."""

    def _build(urls: Optional[list] = None, advert: Optional[dict] = None, errcode: int = 0) -> dict:
        data = {"urls": urls or []}
        if advert is not None:
            data["advert"] = advert
        return {"data": envelope.encrypt({"errcode": errcode, "data": data})}

    return _build


@pytest.fixture
def store():
    return HostStore(api_hosts=[], clouds=[])


@pytest.fixture
def session():
    return ResolutionSession()


@pytest.fixture
def reporter():
    rep = MagicMock()
    rep.report_failed_domain_once.return_value = None
    return rep


@pytest.fixture
def http():
    return MagicMock()
