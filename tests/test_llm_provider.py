import asyncio
from types import SimpleNamespace

import openai
import pytest

from calendar_resolver.agent import llm_provider
from calendar_resolver.agent.errors import CollaboratorFailure, GenerationFailure
from calendar_resolver.agent.llm_provider import OpenAIGenerator, extract_json_object
from calendar_resolver.agent.schemas import ActionGenerationOutput


class FakeCompletions:
    def __init__(self, content=None, error=None, delay=0.0):
        self.content = content
        self.error = error
        self.delay = delay
        self.requests = []

    async def create(self, **kwargs):
        self.requests.append(kwargs)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _install_client(monkeypatch, completions):
    client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    monkeypatch.setattr(llm_provider, "get_async_client", lambda: client)
    return client


@pytest.mark.parametrize("raw, expected", [
    ('{"action": "delete"}', {"action": "delete"}),
    ('```json\n{"action": "delete"}\n```', {"action": "delete"}),
    ('Sure! Here it is: {"action": "create", "summary": "x"} Hope that helps.',
     {"action": "create", "summary": "x"}),
    ('[{"id": "e1"}, {"id": "e2"}]', {"id": "e1"}),
])
def test_extract_json_object(raw, expected):
    assert extract_json_object(raw) == expected


@pytest.mark.parametrize("raw", ["", "no json here", "[1, 2]", "{broken", '"just a string"'])
def test_extract_json_object_returns_none(raw):
    assert extract_json_object(raw) is None


async def test_generate_returns_parsed_object(monkeypatch):
    completions = FakeCompletions(content='{"action": "delete", "eventId": "e1"}')
    _install_client(monkeypatch, completions)
    generator = OpenAIGenerator("gpt-test", max_completion_tokens=123,
                                reasoning_effort="minimal", verbosity="low")

    result = await generator.generate("system rules",
                                      [{"role": "user", "content": "delete e1"}],
                                      ActionGenerationOutput)

    assert result == {"action": "delete", "eventId": "e1"}
    request = completions.requests[0]
    assert request["model"] == "gpt-test"
    assert request["response_format"] == {"type": "json_object"}
    assert request["max_completion_tokens"] == 123
    assert request["reasoning_effort"] == "minimal"
    assert request["messages"][0]["role"] == "system"
    assert request["messages"][0]["content"].startswith("system rules")
    assert "startDateTime" in request["messages"][0]["content"]
    assert request["messages"][1] == {"role": "user", "content": "delete e1"}


async def test_generate_without_json_is_generation_failure(monkeypatch):
    _install_client(monkeypatch, FakeCompletions(content="I cannot help with that."))
    generator = OpenAIGenerator("gpt-test")

    with pytest.raises(GenerationFailure) as exc_info:
        await generator.generate("rules", [{"role": "user", "content": "hi"}],
                                 ActionGenerationOutput)

    assert exc_info.value.raw_output == "I cannot help with that."


async def test_generate_timeout_is_collaborator_failure(monkeypatch):
    _install_client(monkeypatch, FakeCompletions(content="{}", delay=1.0))
    generator = OpenAIGenerator("gpt-test", timeout_seconds=0.01)

    with pytest.raises(CollaboratorFailure):
        await generator.generate("rules", [{"role": "user", "content": "hi"}],
                                 ActionGenerationOutput)


async def test_generate_api_error_is_collaborator_failure(monkeypatch):
    _install_client(monkeypatch, FakeCompletions(error=openai.OpenAIError("rate limited")))
    generator = OpenAIGenerator("gpt-test")

    with pytest.raises(CollaboratorFailure):
        await generator.generate("rules", [{"role": "user", "content": "hi"}],
                                 ActionGenerationOutput)


async def test_generate_without_api_key(monkeypatch):
    def _missing():
        raise RuntimeError("OPENAI_API_KEY is not set")

    monkeypatch.setattr(llm_provider, "get_async_client", _missing)
    generator = OpenAIGenerator("gpt-test")

    with pytest.raises(CollaboratorFailure):
        await generator.generate("rules", [{"role": "user", "content": "hi"}],
                                 ActionGenerationOutput)
