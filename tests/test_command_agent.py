"""Tests for the command agent facade."""

import asyncio
import json
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Sequence,
)
from unittest.mock import AsyncMock

import httpx
import pytest

from conductor.agent.command_agent import CommandAgent
from conductor.agent.providers import (
    OllamaProvider,
    PlaceholderProvider,
    ProviderError,
)
from conductor.core.schema import (
    ConversationTurn,
    ProviderConfig,
    ProviderKind,
    RawProviderResponse,
)
from conductor.dispatch.dispatcher import Dispatcher
from conductor.tools import ToolDefinition


@pytest.fixture
def make_agent(
    ollama_config: ProviderConfig, make_ollama_client: Any
) -> Callable[..., CommandAgent]:
    def factory(
        replies: List[Any], seen: List[Dict[str, Any]] | None = None, **kwargs: Any
    ) -> CommandAgent:
        return CommandAgent(ollama_config, http_client=make_ollama_client(replies, seen), **kwargs)

    return factory


@pytest.mark.asyncio
async def test_turns_are_recorded_with_normalized_message(make_agent: Any) -> None:
    agent = make_agent(['Lowering it. {"tool": "set_volume", "args": {"volume": 20}}'])

    response = await agent.process_command("turn it down")

    assert [c.name for c in response.tool_calls] == ["set_volume"]
    assert agent.history == [
        ConversationTurn(role="user", content="turn it down"),
        ConversationTurn(role="assistant", content="Lowering it."),
    ]


@pytest.mark.asyncio
async def test_prior_history_is_sent_to_the_provider(make_agent: Any) -> None:
    seen: List[Dict[str, Any]] = []
    agent = make_agent(["one", "two"], seen)
    await agent.process_command("first")
    await agent.process_command("second")

    messages = json.loads(seen[1]["body"])["messages"]
    assert [(m["role"], m["content"]) for m in messages[1:]] == [
        ("user", "first"),
        ("assistant", "one"),
        ("user", "second"),
    ]


@pytest.mark.asyncio
async def test_tool_only_reply_is_remembered_by_name(make_agent: Any) -> None:
    agent = make_agent(['{"tool": "get_queue", "args": {}}'])
    response = await agent.process_command("what's queued?")
    assert response.message == ""
    assert agent.history[-1].content == "Called tools: get_queue"


@pytest.mark.asyncio
async def test_provider_error_keeps_user_turn_only(make_agent: Any) -> None:
    agent = make_agent([httpx.ConnectError("down"), "ok"])

    with pytest.raises(ProviderError) as info:
        await agent.process_command("play jazz")
    assert info.value.retryable
    assert agent.history == [ConversationTurn(role="user", content="play jazz")]

    await agent.process_command("play jazz")
    assert [t.role for t in agent.history] == ["user", "user", "assistant"]


@pytest.mark.asyncio
async def test_deadline_expiry_is_a_retryable_provider_error(ollama_config: ProviderConfig) -> None:
    agent = CommandAgent(ollama_config)

    async def slow(*_: Any) -> RawProviderResponse:
        await asyncio.sleep(5)
        return RawProviderResponse(text="late")

    agent.provider.send = slow  # type: ignore[method-assign]
    with pytest.raises(ProviderError) as info:
        await agent.process_command("hello", deadline=0.01)
    assert info.value.kind == "timeout"
    assert info.value.retryable
    assert [t.role for t in agent.history] == ["user"]


@pytest.mark.asyncio
async def test_provider_switch_preserves_history(make_agent: Any) -> None:
    agent = make_agent(["first reply"])
    await agent.process_command("hi")
    before = agent.history

    agent.set_provider(ProviderConfig(kind=ProviderKind.ANTHROPIC))

    assert isinstance(agent.provider, PlaceholderProvider)
    assert agent.provider_kind is ProviderKind.ANTHROPIC
    assert agent.history == before
    response = await agent.process_command("still there?")
    assert "not supported yet" in response.message
    assert agent.history[:2] == before


@pytest.mark.asyncio
async def test_switch_from_structured_to_text_provider_keeps_history(
    ollama_config: ProviderConfig,
) -> None:
    """History written by the OpenRouter adapter is replayed to Ollama after a switch."""
    ollama_bodies: List[Dict[str, Any]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "or.test":
            call = {
                "id": "call_0",
                "type": "function",
                "function": {"name": "queue_music", "arguments": '{"query": "jazz"}'},
            }
            message = {"role": "assistant", "content": "Queuing jazz.", "tool_calls": [call]}
            return httpx.Response(
                200,
                json={
                    "id": "gen-1",
                    "object": "chat.completion",
                    "created": 1700000000,
                    "model": "test/model",
                    "choices": [{"index": 0, "message": message, "finish_reason": "tool_calls"}],
                },
            )
        ollama_bodies.append(json.loads(request.content))
        reply = {"role": "assistant", "content": "Louder it is."}
        return httpx.Response(200, json={"message": reply, "done": True})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    openrouter = ProviderConfig(
        kind=ProviderKind.OPENROUTER, api_key="sk-test", base_url="https://or.test/api/v1"
    )
    agent = CommandAgent(openrouter, http_client=client)

    response = await agent.process_command("play some jazz")
    assert [c.name for c in response.tool_calls] == ["queue_music"]
    before = agent.history

    agent.set_provider(ollama_config)

    assert isinstance(agent.provider, OllamaProvider)
    assert agent.history == before
    await agent.process_command("louder")
    messages = ollama_bodies[0]["messages"]
    assert [(m["role"], m["content"]) for m in messages[1:]] == [
        ("user", "play some jazz"),
        ("assistant", "Queuing jazz."),
        ("user", "louder"),
    ]
    assert agent.history[:2] == before


def test_failed_provider_switch_keeps_current_provider(
    ollama_config: ProviderConfig, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)
    agent = CommandAgent(ollama_config)
    with pytest.raises(ProviderError):
        agent.set_provider(ProviderConfig(kind=ProviderKind.OPENROUTER))
    assert isinstance(agent.provider, OllamaProvider)
    assert agent.provider_kind is ProviderKind.OLLAMA


@pytest.mark.asyncio
async def test_set_model_leaves_history_alone(make_agent: Any) -> None:
    agent = make_agent(["ok"])
    await agent.process_command("hi")
    agent.set_model("mistral")
    assert agent.model == "mistral"
    assert len(agent.history) == 2


@pytest.mark.asyncio
async def test_history_is_bounded(make_agent: Any) -> None:
    agent = make_agent([f"r{i}" for i in range(5)], max_turns=4)
    for i in range(5):
        await agent.process_command(f"u{i}")
    assert [t.content for t in agent.history] == ["u3", "r3", "u4", "r4"]
    agent.clear_history()
    assert agent.history == []


@pytest.mark.asyncio
async def test_overlapping_commands_are_serialised(ollama_config: ProviderConfig) -> None:
    agent = CommandAgent(ollama_config)
    release = asyncio.Event()

    async def send(
        history: Sequence[ConversationTurn], utterance: str, tools: Sequence[ToolDefinition]
    ) -> RawProviderResponse:
        if utterance == "first":
            await release.wait()
        return RawProviderResponse(text=f"re: {utterance}")

    agent.provider.send = send  # type: ignore[method-assign]
    first = asyncio.create_task(agent.process_command("first"))
    second = asyncio.create_task(agent.process_command("second"))
    await asyncio.sleep(0.01)
    release.set()
    await asyncio.gather(first, second)

    contents = [t.content for t in agent.history]
    assert contents == ["first", "re: first", "second", "re: second"]


@pytest.mark.asyncio
async def test_out_of_range_volume_never_reaches_the_dispatcher(
    make_agent: Any,
) -> None:
    agent = make_agent(['{"tool": "set_volume", "args": {"volume": 150}}'])
    player = AsyncMock()
    dispatcher = Dispatcher(player, player)

    response = await agent.process_command("set volume to 150")
    result = await dispatcher.execute(response.tool_calls)

    assert response.tool_calls == []
    assert "less than or equal to 100" in response.message
    player.set_volume.assert_not_called()
    assert result.summaries == []
    assert result.errors == []
