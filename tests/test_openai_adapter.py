from __future__ import annotations

import http.client

import pytest

from backdrop.adapters.images import openai_images as openai_module
from backdrop.adapters.images.base import ImageSourceError
from backdrop.adapters.images.openai_images import OpenAIImageAdapter, build_prompt
from backdrop.domain.models import ImageCriteria

CRITERIA = ImageCriteria(query="calm sea horizon", color="blue", orientation="landscape")


class ScriptedGenerator:
    def __init__(self, responses: list) -> None:
        self._responses = list(responses)
        self.bodies: list[dict] = []
        self.headers: list[dict[str, str]] = []

    def __call__(self, url: str, body: dict, *, headers: dict[str, str]):
        self.bodies.append(body)
        self.headers.append(headers)
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _adapter(**kwargs) -> OpenAIImageAdapter:
    options = {"api_key": "sk-test", "prompt": "A minimalist landscape."}
    options.update(kwargs)
    return OpenAIImageAdapter(**options)


def test_fetch_one_posts_generation_request(monkeypatch):
    generator = ScriptedGenerator([{"data": [{"url": "https://oai/img-1.png"}]}])
    monkeypatch.setattr(openai_module, "_post_json", generator)

    assert _adapter().fetch_one(CRITERIA) == "https://oai/img-1.png"

    body = generator.bodies[0]
    assert body["model"] == "dall-e-3"
    assert body["size"] == "1792x1024"
    assert body["n"] == 1
    assert "calm sea horizon" in body["prompt"]
    assert generator.headers[0]["Authorization"] == "Bearer sk-test"


def test_fetch_one_retries_when_reported_size_is_wrong(monkeypatch):
    generator = ScriptedGenerator(
        [
            {"size": "1024x1792", "data": [{"url": "https://oai/tall.png"}]},
            {"size": "1792x1024", "data": [{"url": "https://oai/wide.png"}]},
        ]
    )
    monkeypatch.setattr(openai_module, "_post_json", generator)

    assert _adapter().fetch_one(CRITERIA) == "https://oai/wide.png"
    assert len(generator.bodies) == 2


def test_size_that_cannot_satisfy_orientation_is_rejected():
    with pytest.raises(ValueError):
        _adapter(size="1024x1024", orientation="landscape")
    with pytest.raises(ValueError):
        _adapter(size="1792x1024", orientation="portrait")


def test_size_matching_orientation_is_accepted():
    assert _adapter(size="1024x1024", orientation="squarish").configured is True
    assert _adapter(size="1024x1792", orientation="portrait").configured is True
    assert _adapter(size="1024x1024", orientation=None).configured is True


def test_fetch_one_returns_none_without_url(monkeypatch):
    generator = ScriptedGenerator([{"data": [{"b64_json": "AAAA"}]}])
    monkeypatch.setattr(openai_module, "_post_json", generator)

    assert _adapter().fetch_one(CRITERIA) is None


def test_fetch_one_returns_none_on_error(monkeypatch):
    generator = ScriptedGenerator([ImageSourceError("OpenAI image request failed with status 500")])
    monkeypatch.setattr(openai_module, "_post_json", generator)

    assert _adapter().fetch_one(CRITERIA) is None


def test_fetch_many_stops_at_first_failure(monkeypatch):
    generator = ScriptedGenerator(
        [
            {"data": [{"url": "https://oai/1.png"}]},
            ImageSourceError("OpenAI image request failed with status 429"),
        ]
    )
    monkeypatch.setattr(openai_module, "_post_json", generator)

    assert _adapter().fetch_many(CRITERIA, 3) == ["https://oai/1.png"]
    assert len(generator.bodies) == 2


def test_unconfigured_adapter_skips_generation(monkeypatch):
    generator = ScriptedGenerator([])
    monkeypatch.setattr(openai_module, "_post_json", generator)
    adapter = _adapter(api_key=None)

    assert adapter.configured is False
    assert adapter.fetch_one(CRITERIA) is None
    assert adapter.fetch_many(CRITERIA, 3) == []


def test_invalid_size_is_rejected():
    with pytest.raises(ValueError):
        _adapter(size="huge")
    with pytest.raises(ValueError):
        _adapter(size="0x1024")


def test_build_prompt_mentions_palette():
    prompt = build_prompt("Base.", ImageCriteria(query="dune", color="black_and_white"))

    assert prompt == "Base. Subject: dune. Palette: black and white tones."


def test_post_json_wraps_truncated_response(monkeypatch):
    class TruncatedResponse:
        def __enter__(self):
            return self

        def __exit__(self, *exc_info):
            return False

        def read(self):
            raise http.client.IncompleteRead(b'{"data": [')

    monkeypatch.setattr(openai_module, "urlopen", lambda request, timeout: TruncatedResponse())

    with pytest.raises(ImageSourceError):
        openai_module._post_json(openai_module.OPENAI_IMAGE_GENERATIONS_URL, {}, headers={})
