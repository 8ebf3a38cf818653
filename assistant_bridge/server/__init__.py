"""HTTP surface exposing threads, messages, runs and assistants."""

from .dependencies import get_bridge, initialise_bridge, set_bridge

__all__ = ["get_bridge", "initialise_bridge", "set_bridge"]
