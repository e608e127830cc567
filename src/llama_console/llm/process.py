from __future__ import annotations

import logging
import random
import subprocess
import sys
from pathlib import Path
from typing import Sequence

from ..errors import LaunchError, MissingDependencyError

__all__ = [
    "build_server_command",
    "choose_port",
    "launch_server",
    "locate_server_executable",
]

PORT_MIN = 1024
PORT_MAX = 65536


def locate_server_executable(llama_cpp_dir: Path, executable_name: str) -> Path:
    """Return the llama-server executable inside ``llama_cpp_dir`` or raise MissingDependencyError."""
    if not llama_cpp_dir.is_dir():
        raise MissingDependencyError("Error: llama.cpp folder not found.", path=llama_cpp_dir)

    executable = llama_cpp_dir / executable_name
    if not executable.is_file():
        raise MissingDependencyError(
            f"Error: {executable_name} not found in llama.cpp folder.",
            path=executable,
        )
    return executable


def choose_port(port_min: int = PORT_MIN, port_max: int = PORT_MAX, *, rng: random.Random | None = None) -> int:
    """Pick a port uniformly from [port_min, port_max). Availability is not checked."""
    if port_min >= port_max:
        raise ValueError(f"Empty port range: [{port_min}, {port_max})")
    return (rng or random).randrange(port_min, port_max)


def build_server_command(
    server_executable: Path,
    model_path: str | Path,
    *,
    host: str = "127.0.0.1",
    port: int,
    extra_args: Sequence[str] | None = None,
) -> list[str]:
    command = [
        str(server_executable),
        "--model",
        str(model_path),
        "--host",
        host,
        "--port",
        str(port),
        "--no-webui",
    ]
    if extra_args:
        command.extend(extra_args)
    return command


def launch_server(command: Sequence[str], *, cwd: Path, logger: logging.Logger) -> subprocess.Popen:
    """Spawn the server with inherited standard streams and no console window."""
    logger.info("Starting llama.cpp server: %s", " ".join(command))
    logger.info("Working directory: %s", cwd)

    creationflags = 0
    if sys.platform == "win32":
        creationflags = subprocess.CREATE_NO_WINDOW

    try:
        return subprocess.Popen(list(command), cwd=str(cwd), creationflags=creationflags)
    except OSError as exc:
        raise LaunchError(f"Failed to start llama-server: {exc}") from exc
