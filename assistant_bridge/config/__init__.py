from .agents import AgentDirectory, AgentProfile
from .configuration import BridgeConfiguration
from .loader import get_bool_env, get_float_env, get_int_env, get_str_env, load_env_file

__all__ = [
    "AgentDirectory",
    "AgentProfile",
    "BridgeConfiguration",
    "get_bool_env",
    "get_float_env",
    "get_int_env",
    "get_str_env",
    "load_env_file",
]
