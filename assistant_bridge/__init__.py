# Copyright (c) 2025 Bytedance Ltd. and/or its affiliates
# SPDX-License-Identifier: MIT

from .client import AssistantBridge
from .errors import (
    BridgeError,
    ExecutionError,
    InvalidStateError,
    NotFoundError,
    TransportError,
    ValidationError,
)

__all__ = [
    "AssistantBridge",
    "BridgeError",
    "ExecutionError",
    "InvalidStateError",
    "NotFoundError",
    "TransportError",
    "ValidationError",
]
