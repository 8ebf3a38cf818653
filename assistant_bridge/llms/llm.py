from __future__ import annotations

import logging
from typing import Optional

from langchain_core.language_models import BaseChatModel
from langchain_openai import ChatOpenAI

from assistant_bridge.config.loader import get_float_env, get_int_env, get_str_env

from .backend import ChatModelBackend

logger = logging.getLogger(__name__)

_ENV_PREFIX = "BASIC_MODEL__"


def get_chat_model() -> BaseChatModel:
    """Build the backend chat model from ``BASIC_MODEL__*`` environment variables."""
    model = get_str_env(f"{_ENV_PREFIX}MODEL")
    if not model:
        raise ValueError(f"{_ENV_PREFIX}MODEL must be set to build the backend chat model")

    kwargs: dict = {"model": model, "max_retries": get_int_env(f"{_ENV_PREFIX}MAX_RETRIES", 3)}
    base_url: Optional[str] = get_str_env(f"{_ENV_PREFIX}BASE_URL") or None
    if base_url:
        kwargs["base_url"] = base_url
    api_key = get_str_env(f"{_ENV_PREFIX}API_KEY")
    if api_key:
        kwargs["api_key"] = api_key
    temperature = get_float_env(f"{_ENV_PREFIX}TEMPERATURE", None)
    if temperature is not None:
        kwargs["temperature"] = temperature

    logger.info("Using chat model %s%s", model, f" at {base_url}" if base_url else "")
    return ChatOpenAI(**kwargs)


def get_backend() -> ChatModelBackend:
    return ChatModelBackend(get_chat_model())
