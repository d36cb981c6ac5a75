"""Tests for HTTP-based adapters."""

import asyncio
import json

import httpx
import pytest

from nutrition_planner.adapters.openai_condition_client import OpenAIConditionClient
from nutrition_planner.adapters.wikipedia_client import HttpxWikipediaClient

WIKI_URL = "https://en.wikipedia.org/w/api.php"


class _FakeResponses:
    def __init__(self, output_text: str) -> None:
        self.output_text = output_text
        self.last_payload: dict[str, object] | None = None

    async def create(self, **kwargs: object) -> object:
        self.last_payload = kwargs
        return type("Resp", (), {"output_text": self.output_text})()


class _FakeOpenAI:
    def __init__(self, output_text: str) -> None:
        self.responses = _FakeResponses(output_text)


def test_openai_condition_client_parses_output() -> None:
    fake = _FakeOpenAI(json.dumps({"foods_to_avoid": ["salt"], "foods_to_include": []}))
    client = OpenAIConditionClient(client=fake)

    result = asyncio.run(
        client.analyze(
            model="gpt-5.2", prompt="Hypertension", schema={"type": "object"}
        )
    )

    assert result == {"foods_to_avoid": ["salt"], "foods_to_include": []}
    payload = fake.responses.last_payload
    assert payload is not None
    assert payload["model"] == "gpt-5.2"
    assert payload["store"] is False
    assert payload["text"]["format"]["type"] == "json_schema"


def test_openai_condition_client_rejects_empty_output() -> None:
    client = OpenAIConditionClient(client=_FakeOpenAI(""))

    with pytest.raises(RuntimeError):
        asyncio.run(client.analyze(model="gpt-5.2", prompt="x", schema={}))


def test_wikipedia_client_fetches_intro_and_categories() -> None:
    seen: list[dict[str, str]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        params = dict(request.url.params)
        seen.append(params)
        if params.get("list") == "search":
            assert params["srsearch"] == "celiac disease"
            return httpx.Response(
                200, json={"query": {"search": [{"pageid": 42, "title": "Coeliac"}]}}
            )
        assert params["pageids"] == "42"
        return httpx.Response(
            200,
            json={
                "query": {
                    "pages": {
                        "42": {
                            "title": "Coeliac disease",
                            "extract": "An autoimmune disorder triggered by gluten.",
                            "categories": [{"title": "Category:Autoimmune diseases"}],
                        }
                    }
                }
            },
        )

    transport = httpx.MockTransport(handler)
    client = HttpxWikipediaClient(
        base_url=WIKI_URL, http_client=httpx.AsyncClient(transport=transport)
    )

    summary = asyncio.run(client.fetch_summary("celiac disease"))

    assert summary is not None
    assert summary.title == "Coeliac disease"
    assert "gluten" in summary.extract
    assert summary.categories == ["Category:Autoimmune diseases"]
    assert len(seen) == 2


def test_wikipedia_client_returns_none_without_hits() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"query": {"search": []}})

    transport = httpx.MockTransport(handler)
    client = HttpxWikipediaClient(
        base_url=WIKI_URL, http_client=httpx.AsyncClient(transport=transport)
    )

    assert asyncio.run(client.fetch_summary("zzzz")) is None


def test_wikipedia_client_raises_on_http_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, json={})

    transport = httpx.MockTransport(handler)
    client = HttpxWikipediaClient(
        base_url=WIKI_URL, http_client=httpx.AsyncClient(transport=transport)
    )

    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(client.fetch_summary("asthma"))
