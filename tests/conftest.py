import asyncio
from typing import Any, Optional, Union

import pytest
import pytest_asyncio

from assistant_bridge.client import AssistantBridge
from assistant_bridge.config.configuration import BridgeConfiguration
from assistant_bridge.llms.backend import CompletionResult

Reply = Union[str, CompletionResult, dict, Exception]


class FakeBackend:
    """Scripted completion backend that records every prompt it receives."""

    def __init__(self, replies: Optional[list[Reply]] = None, *, hold: bool = False) -> None:
        self.replies: list[Reply] = list(replies or [])
        self.prompts: list[str] = []
        self.started = asyncio.Event()
        self.release = asyncio.Event()
        if not hold:
            self.release.set()

    async def complete(self, prompt: str) -> Any:
        self.prompts.append(prompt)
        self.started.set()
        await self.release.wait()
        reply = self.replies.pop(0) if self.replies else "ok"
        if isinstance(reply, Exception):
            raise reply
        return reply


class RecordingCapability:
    def __init__(self, outputs: Optional[dict[str, Any]] = None) -> None:
        self.outputs = outputs or {}
        self.calls: list[tuple[str, dict[str, Any]]] = []

    async def execute(self, function_name: str, arguments: dict[str, Any]) -> str:
        self.calls.append((function_name, arguments))
        output = self.outputs.get(function_name, f"{function_name} done")
        if isinstance(output, Exception):
            raise output
        return output


@pytest.fixture
def config(tmp_path) -> BridgeConfiguration:
    return BridgeConfiguration(
        storage_path=str(tmp_path / "bridge.db"),
        cancel_delay=0.01,
        submit_delay=0.01,
    )


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def capability() -> RecordingCapability:
    return RecordingCapability()


@pytest_asyncio.fixture
async def make_bridge(config):
    created: list[AssistantBridge] = []

    async def _make(backend, capability=None, **overrides) -> AssistantBridge:
        bridge_config = config
        if overrides:
            bridge_config = BridgeConfiguration(
                **{
                    "storage_backend": config.storage_backend,
                    "storage_path": config.storage_path,
                    "cancel_delay": config.cancel_delay,
                    "submit_delay": config.submit_delay,
                    **overrides,
                }
            )
        bridge = AssistantBridge(backend, capability, config=bridge_config)
        await bridge.init()
        created.append(bridge)
        return bridge

    yield _make

    for instance in created:
        await instance.close()


@pytest_asyncio.fixture
async def bridge(make_bridge, backend, capability):
    return await make_bridge(backend, capability)


@pytest.fixture
def fake_backend_cls():
    return FakeBackend


@pytest.fixture
def recording_capability_cls():
    return RecordingCapability
