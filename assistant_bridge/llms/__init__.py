from .backend import ChatModelBackend, CompletionBackend, CompletionResult

__all__ = ["ChatModelBackend", "CompletionBackend", "CompletionResult"]
