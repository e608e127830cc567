"""Helper utilities for managing the llama.cpp server process and talking to it."""

from .client import LlamaClient, build_chat_payload
from .process import build_server_command, choose_port, launch_server, locate_server_executable
from .supervisor import CleanupResult, ServerHandle, ServerSupervisor

__all__ = [
    "LlamaClient",
    "build_chat_payload",
    "build_server_command",
    "choose_port",
    "launch_server",
    "locate_server_executable",
    "CleanupResult",
    "ServerHandle",
    "ServerSupervisor",
]
