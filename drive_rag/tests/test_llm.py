from __future__ import annotations

import json

import httpx
import pytest

from drive_rag.rag.llm import (
    GeminiGenerator,
    LLMError,
    OllamaGenerator,
    OpenAIGenerator,
    build_generator,
)

pytestmark = pytest.mark.anyio


def factory_kwargs(**overrides):
    kwargs = dict(
        api_key_openai=None,
        api_key_gemini=None,
        openai_base_url="https://api.example.com/v1/",
        openai_model=None,
        gemini_model="gemini-1.5-flash",
        ollama_base_url="http://ollama:11434/",
        ollama_model="llama3.1",
        temperature=0.2,
        max_tokens=100,
        timeout=5,
    )
    kwargs.update(overrides)
    return kwargs


async def test_openai_generator_posts_prompt() -> None:
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"choices": [{"message": {"content": " Milan \n"}}]})

    generator = OpenAIGenerator(
        api_key="sk-test",
        base_url="https://api.example.com/v1",
        model="gpt-4o-mini",
        temperature=0.2,
        max_tokens=50,
        timeout=5,
        transport=httpx.MockTransport(handler),
    )
    assert await generator.generate("Where?") == "Milan"
    assert seen["url"] == "https://api.example.com/v1/chat/completions"
    assert seen["auth"] == "Bearer sk-test"
    assert seen["body"]["messages"] == [{"role": "user", "content": "Where?"}]
    assert seen["body"]["max_tokens"] == 50


async def test_ollama_generator_reads_message_content() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/chat"
        assert json.loads(request.content)["stream"] is False
        return httpx.Response(200, json={"message": {"content": "June 12"}})

    generator = OllamaGenerator(
        base_url="http://ollama:11434",
        model="llama3.1",
        temperature=0.1,
        max_tokens=50,
        timeout=5,
        transport=httpx.MockTransport(handler),
    )
    assert await generator.generate("When?") == "June 12"


async def test_http_failure_becomes_llm_error() -> None:
    generator = OpenAIGenerator(
        api_key="sk-test",
        base_url="https://api.example.com/v1",
        model="gpt-4o-mini",
        temperature=0.2,
        max_tokens=50,
        timeout=5,
        transport=httpx.MockTransport(lambda request: httpx.Response(503)),
    )
    with pytest.raises(LLMError) as excinfo:
        await generator.generate("Where?")
    assert excinfo.value.stage == "generation"


async def test_malformed_response_becomes_llm_error() -> None:
    generator = OllamaGenerator(
        base_url="http://ollama:11434",
        model="llama3.1",
        temperature=0.1,
        max_tokens=50,
        timeout=5,
        transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"done": True})),
    )
    with pytest.raises(LLMError):
        await generator.generate("When?")


def test_build_generator_selects_provider() -> None:
    ollama = build_generator("ollama", **factory_kwargs())
    assert isinstance(ollama, OllamaGenerator)
    assert ollama.base_url == "http://ollama:11434"
    openai = build_generator(
        "OpenAI", **factory_kwargs(api_key_openai="sk", openai_model="gpt-4o-mini")
    )
    assert isinstance(openai, OpenAIGenerator)
    assert openai.base_url == "https://api.example.com/v1"
    gemini = build_generator("google", **factory_kwargs(api_key_gemini="key"))
    assert isinstance(gemini, GeminiGenerator)


@pytest.mark.parametrize(
    "provider,overrides",
    [
        ("openai", {}),
        ("openai", {"api_key_openai": "sk"}),
        ("gemini", {}),
        ("anthropic", {}),
    ],
)
def test_build_generator_rejects_incomplete_config(provider: str, overrides: dict) -> None:
    with pytest.raises(LLMError):
        build_generator(provider, **factory_kwargs(**overrides))
