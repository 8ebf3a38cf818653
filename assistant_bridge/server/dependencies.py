from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends

from assistant_bridge.client import AssistantBridge
from assistant_bridge.config.configuration import BridgeConfiguration
from assistant_bridge.llms.llm import get_backend

logger = logging.getLogger(__name__)

_BRIDGE: Optional[AssistantBridge] = None


def initialise_bridge() -> AssistantBridge:
    """Create the bridge instance from environment configuration."""
    global _BRIDGE
    if _BRIDGE is not None:
        return _BRIDGE

    config = BridgeConfiguration.from_env()
    bridge = AssistantBridge(get_backend(), config=config)
    _BRIDGE = bridge
    logger.info(
        "Initialised assistant bridge with %s storage at %s",
        config.storage_backend,
        bridge.store.persistence.location,
    )
    return bridge


def set_bridge(bridge: Optional[AssistantBridge]) -> None:
    global _BRIDGE
    _BRIDGE = bridge


def get_bridge(_: AssistantBridge = Depends(initialise_bridge)) -> AssistantBridge:
    if _BRIDGE is None:
        raise RuntimeError("Assistant bridge has not been initialised")
    return _BRIDGE
