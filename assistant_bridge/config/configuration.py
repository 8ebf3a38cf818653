from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .loader import get_bool_env, get_float_env, get_int_env, get_str_env

DEFAULT_HISTORY_WINDOW = 10
DEFAULT_CANCEL_DELAY = 0.1
DEFAULT_SUBMIT_DELAY = 1.0


@dataclass(slots=True)
class BridgeConfiguration:
    """Runtime settings for the store and the run engine."""

    storage_backend: str = "sqlite"
    storage_path: str = "assistant_bridge.db"
    history_window: int = DEFAULT_HISTORY_WINDOW
    cancel_delay: float = DEFAULT_CANCEL_DELAY
    submit_delay: float = DEFAULT_SUBMIT_DELAY
    # None leaves the backend call unbounded.
    backend_timeout: Optional[float] = None
    enable_function_calling: bool = True
    agents_file: Optional[str] = None

    def __post_init__(self) -> None:
        if self.storage_backend not in ("sqlite", "json"):
            raise ValueError(f"Unknown storage backend {self.storage_backend!r}")
        if self.history_window < 1:
            raise ValueError("history_window must be at least 1")
        if self.backend_timeout is not None and self.backend_timeout <= 0:
            self.backend_timeout = None

    @classmethod
    def from_env(cls) -> "BridgeConfiguration":
        return cls(
            storage_backend=get_str_env("BRIDGE_STORAGE_BACKEND", "sqlite").lower() or "sqlite",
            storage_path=get_str_env("BRIDGE_STORAGE_PATH", "assistant_bridge.db"),
            history_window=get_int_env("BRIDGE_HISTORY_WINDOW", DEFAULT_HISTORY_WINDOW),
            cancel_delay=get_float_env("BRIDGE_CANCEL_DELAY", DEFAULT_CANCEL_DELAY),
            submit_delay=get_float_env("BRIDGE_SUBMIT_DELAY", DEFAULT_SUBMIT_DELAY),
            backend_timeout=get_float_env("BRIDGE_BACKEND_TIMEOUT", None),
            enable_function_calling=get_bool_env("BRIDGE_FUNCTION_CALLING", True),
            agents_file=get_str_env("BRIDGE_AGENTS_FILE") or None,
        )
