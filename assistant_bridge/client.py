from __future__ import annotations

import logging
from typing import Optional, Union

from .config.agents import AgentDirectory
from .config.configuration import BridgeConfiguration
from .llms.backend import CompletionBackend
from .resources import Assistants, Threads
from .runs.detector import FunctionCallDetector
from .runs.engine import RunEngine
from .runs.executor import CapabilityCallable, CapabilityExecutor, as_capability
from .storage.persistence import PersistenceAdapter, create_persistence
from .storage.store import ThreadStore

logger = logging.getLogger(__name__)


class AssistantBridge:
    """Assistant/thread/run interface over a stateless completion backend.

    Usage::

        bridge = AssistantBridge(backend, capability=run_tool)
        await bridge.init()
        thread = await bridge.threads.create(messages=[{"role": "user", "content": "hi"}])
        run = await bridge.threads.runs.create(thread.id, assistant_id="helper")
        run = await bridge.threads.runs.poll(thread.id, run.id)
    """

    def __init__(
        self,
        backend: CompletionBackend,
        capability: Union[CapabilityExecutor, CapabilityCallable, None] = None,
        *,
        config: Optional[BridgeConfiguration] = None,
        persistence: Optional[PersistenceAdapter] = None,
        agents: Optional[AgentDirectory] = None,
        detector: Optional[FunctionCallDetector] = None,
    ) -> None:
        self.config = config or BridgeConfiguration()
        if persistence is None:
            persistence = create_persistence(self.config.storage_backend, self.config.storage_path)
        if agents is None:
            agents = AgentDirectory.from_file(self.config.agents_file) if self.config.agents_file else AgentDirectory()

        self.store = ThreadStore(persistence)
        self.engine = RunEngine(
            self.store,
            backend,
            as_capability(capability),
            config=self.config,
            detector=detector,
        )
        self.threads = Threads(self.store, self.engine)
        self.assistants = Assistants(agents)

    async def init(self) -> None:
        await self.store.load()
        logger.info(
            "Assistant bridge ready (function calling %s)",
            "enabled" if self.engine.function_calling_enabled else "disabled",
        )

    async def close(self) -> None:
        await self.engine.close()
        await self.store.close()
