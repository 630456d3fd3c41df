import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock

import httpx
import openai
import pytest

from groupassist.core.llm_services import ChatCompletionClient, CompletionError, ConfigurationError


def fake_openai(create):
    return SimpleNamespace(
        chat=SimpleNamespace(completions=SimpleNamespace(create=create)),
        close=AsyncMock(),
    )


def completion_with(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def test_missing_credentials_raise_configuration_error():
    client = ChatCompletionClient(api_key=None, base_url="https://example.invalid/v1", default_model="m")
    with pytest.raises(ConfigurationError):
        asyncio.run(client.complete([{"role": "user", "content": "hi"}]))

    client = ChatCompletionClient(api_key="key", base_url=None, default_model="m")
    with pytest.raises(ConfigurationError):
        asyncio.run(client.complete([{"role": "user", "content": "hi"}]))


def test_complete_returns_stripped_content_and_uses_default_model():
    create = AsyncMock(return_value=completion_with("  Answer.  \n"))
    client = ChatCompletionClient("key", "https://example.invalid/v1", "default-model", client=fake_openai(create))
    assert asyncio.run(client.complete([{"role": "user", "content": "hi"}])) == "Answer."
    assert create.await_args.kwargs["model"] == "default-model"

    asyncio.run(client.complete([{"role": "user", "content": "hi"}], model_name="search-model"))
    assert create.await_args.kwargs["model"] == "search-model"


@pytest.mark.parametrize("response", [
    completion_with(""),
    completion_with("   "),
    completion_with(None),
    SimpleNamespace(choices=[]),
])
def test_empty_content_is_a_completion_error(response):
    create = AsyncMock(return_value=response)
    client = ChatCompletionClient("key", "https://example.invalid/v1", "m", client=fake_openai(create))
    with pytest.raises(CompletionError):
        asyncio.run(client.complete([{"role": "user", "content": "hi"}]))


def test_upstream_error_is_wrapped():
    request = httpx.Request("POST", "https://example.invalid/v1/chat/completions")
    create = AsyncMock(side_effect=openai.APIConnectionError(request=request))
    client = ChatCompletionClient("key", "https://example.invalid/v1", "m", client=fake_openai(create))
    with pytest.raises(CompletionError) as excinfo:
        asyncio.run(client.complete([{"role": "user", "content": "hi"}]))
    assert isinstance(excinfo.value.__cause__, openai.APIConnectionError)


def test_close_closes_underlying_client():
    fake = fake_openai(AsyncMock())
    client = ChatCompletionClient("key", "https://example.invalid/v1", "m", client=fake)
    asyncio.run(client.close())
    fake.close.assert_awaited_once()
