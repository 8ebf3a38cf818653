from __future__ import annotations

from typing import Any


class BridgeError(Exception):
    """Base class for errors raised by the thread/run emulation layer."""

    code = "bridge_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message}


class NotFoundError(BridgeError):
    code = "not_found"


class InvalidStateError(BridgeError):
    code = "invalid_state"


class ValidationError(BridgeError):
    code = "validation_error"


class TransportError(BridgeError):
    """The language-model backend was unreachable or answered with an error."""

    code = "transport_error"


class ExecutionError(BridgeError):
    code = "execution_error"
