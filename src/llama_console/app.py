"""
アプリケーションのエントリーポイント。

流れ:
1) ログ設定と古いログの削除
2) llama.cpp フォルダと llama-server 実行ファイルの確認（無ければ終了コード1）
3) 停止フック（SIGINT / atexit）の登録
4) ランダムなポートで llama-server を起動
5) 対話セッションを実行

どの経路で終了しても、サーバープロセスは ServerSupervisor.stop() で停止される。
"""

from __future__ import annotations

import asyncio
import atexit
import logging
import signal
import sys

from .config import LOG_DIR, PROJECT_ROOT, ConsoleSettings, config_manager
from .console import run_session
from .errors import LaunchError, MissingDependencyError
from .llm.client import LlamaClient
from .llm.process import choose_port, locate_server_executable
from .llm.supervisor import ServerSupervisor
from .system.logging import cleanup_old_logs, setup_logging

__all__ = [
    "EXIT_LAUNCH_FAILED",
    "EXIT_MISSING_DEPENDENCY",
    "install_shutdown_hooks",
    "run",
]

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_MISSING_DEPENDENCY = 1
EXIT_LAUNCH_FAILED = 1


def _configure_logging(settings: ConsoleSettings) -> None:
    log_cfg = settings.logging
    setup_logging(
        log_dir=LOG_DIR if log_cfg.log_to_file else None,
        level=log_cfg.level,
        console_level=log_cfg.console_level,
        log_to_file=log_cfg.log_to_file,
        max_bytes=log_cfg.max_bytes,
        backup_count=log_cfg.backup_count,
    )
    if log_cfg.log_to_file:
        cleanup_old_logs(LOG_DIR, max_age_days=log_cfg.max_age_days)


def install_shutdown_hooks(supervisor: ServerSupervisor) -> None:
    """
    Register supervisor.stop() for interpreter exit and replace the default
    Ctrl+C behaviour with: stop the server, then exit with status 0.
    """
    atexit.register(supervisor.stop)

    def _on_interrupt(signum, frame) -> None:
        logger.info("Interrupt received (signal %s), stopping llama-server", signum)
        supervisor.stop()
        sys.exit(EXIT_OK)

    signal.signal(signal.SIGINT, _on_interrupt)


def run(settings: ConsoleSettings | None = None) -> int:
    """Run the console application and return the process exit code."""
    settings = settings or config_manager.settings
    _configure_logging(settings)

    server_cfg = settings.server
    llama_cpp_dir = server_cfg.llama_cpp_dir or PROJECT_ROOT / "llama.cpp"
    try:
        executable = locate_server_executable(llama_cpp_dir, server_cfg.executable_name)
    except MissingDependencyError as e:
        logger.error("%s (path: %s)", e, e.path)
        print(e)
        return EXIT_MISSING_DEPENDENCY

    supervisor = ServerSupervisor(
        model_path=server_cfg.model_path,
        host=server_cfg.host,
        extra_args=server_cfg.extra_args,
        terminate_timeout=server_cfg.process_terminate_timeout,
    )
    install_shutdown_hooks(supervisor)

    port = server_cfg.port or choose_port(server_cfg.port_min, server_cfg.port_max)
    try:
        handle = supervisor.start(executable, llama_cpp_dir, port=port)
    except LaunchError as e:
        logger.error("Failed to launch llama-server: %s", e, exc_info=True)
        print(f"Error: {e}")
        return EXIT_LAUNCH_FAILED

    client = LlamaClient(
        handle.base_url,
        timeout=settings.client.request_timeout,
        system_prompt=settings.client.system_prompt,
    )
    result = asyncio.run(
        run_session(
            client,
            supervisor,
            model=settings.client.model,
            exit_keyword=settings.console.exit_keyword,
            startup_delay=server_cfg.startup_delay_seconds,
        )
    )
    if not result.ok:
        logger.warning("llama-server cleanup reported an error: %s", result.error)
    return EXIT_OK
