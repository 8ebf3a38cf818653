from types import SimpleNamespace

import pytest
from langchain_core.language_models.fake_chat_models import GenericFakeChatModel
from langchain_core.messages import AIMessage

from assistant_bridge.errors import TransportError
from assistant_bridge.llms.backend import ChatModelBackend
from assistant_bridge.runs.tokens import normalize_usage


@pytest.mark.asyncio
async def test_chat_model_reply_becomes_completion():
    reply = AIMessage(
        content="read_file path=a.txt",
        response_metadata={"finish_reason": "stop"},
        usage_metadata={"input_tokens": 11, "output_tokens": 7, "total_tokens": 18},
    )
    backend = ChatModelBackend(GenericFakeChatModel(messages=iter([reply])))

    result = await backend.complete("User: hi\nAssistant:")

    assert result.text == "read_file path=a.txt"
    assert result.stop_reason == "stop"
    assert normalize_usage(result.usage) == {"prompt_tokens": 11, "completion_tokens": 7, "total_tokens": 18}
    assert result.raw["content"] == "read_file path=a.txt"


@pytest.mark.asyncio
async def test_content_parts_are_joined():
    reply = AIMessage(content=[{"type": "text", "text": "Hello "}, {"type": "image_url"}, "world"])
    backend = ChatModelBackend(GenericFakeChatModel(messages=iter([reply])))

    result = await backend.complete("prompt")

    assert result.text == "Hello world"
    assert result.usage is None


@pytest.mark.asyncio
async def test_provider_errors_become_transport_errors():
    async def failing_invoke(_messages):
        raise ConnectionError("connection refused")

    backend = ChatModelBackend(SimpleNamespace(ainvoke=failing_invoke))

    with pytest.raises(TransportError, match="connection refused"):
        await backend.complete("prompt")
