import asyncio

import aiohttp
import pytest

from translation import TranslationError, translate_texts


class _FakeResponse:
    def __init__(self, status, payload):
        self.status = status
        self.payload = payload

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def text(self, errors="strict"):
        return str(self.payload)

    async def json(self, content_type="application/json"):
        return self.payload


class _FakeSession:
    def __init__(self, status=200, payload=None, error=None):
        self.status = status
        self.payload = payload
        self.error = error
        self.requests = []

    def post(self, url, json=None, headers=None):
        self.requests.append((url, json, headers))
        if self.error:
            raise self.error
        return _FakeResponse(self.status, self.payload)


def test_translates_in_input_order():
    session = _FakeSession(payload={"translations": [{"text": "Hello"}, {"text": "World"}]})
    out = asyncio.run(translate_texts(["안녕", "세계"], "en", api_key="k", session=session))

    assert out == ["Hello", "World"]
    url, body, headers = session.requests[0]
    assert body == {"text": ["안녕", "세계"], "target_lang": "EN", "source_lang": "KO"}
    assert headers == {"Authorization": "DeepL-Auth-Key k"}


def test_upstream_status_is_kept():
    session = _FakeSession(status=403, payload={"message": "Forbidden"})
    with pytest.raises(TranslationError) as exc:
        asyncio.run(translate_texts(["a"], "EN", api_key="bad", session=session))
    assert exc.value.status == 403


def test_transport_error_is_500():
    session = _FakeSession(error=aiohttp.ClientConnectionError("refused"))
    with pytest.raises(TranslationError) as exc:
        asyncio.run(translate_texts(["a"], "EN", api_key="k", session=session))
    assert (exc.value.status, exc.value.message) == (500, "Translation failed")


def test_count_mismatch_is_an_error():
    session = _FakeSession(payload={"translations": []})
    with pytest.raises(TranslationError):
        asyncio.run(translate_texts(["a"], "EN", api_key="k", session=session))
