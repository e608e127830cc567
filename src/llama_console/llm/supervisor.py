"""
ServerSupervisor - llama-server 子プロセスのライフサイクル管理

起動したサーバープロセスを ServerHandle として唯一所有し、
停止処理（プロセスツリーの終了）を冪等に提供します。

stop() は以下の3箇所から呼ばれる可能性があります:
    - 対話ループの正常終了（exit 入力）
    - SIGINT (Ctrl+C) ハンドラ
    - atexit によるプロセス終了時のティアダウン

いずれの経路でも例外は送出せず、結果は CleanupResult として返します。

Usage:
    supervisor = ServerSupervisor(model_path="models/ai.gguf")
    handle = supervisor.start(executable, port=choose_port())
    ...
    supervisor.stop()
"""

from __future__ import annotations

import logging
import subprocess
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

import psutil

from ..errors import LaunchError, MissingDependencyError
from .process import build_server_command, launch_server

__all__ = [
    "CleanupResult",
    "ServerHandle",
    "ServerSupervisor",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ServerHandle:
    """
    起動中サーバーへの参照

    Attributes:
        process: 起動したプロセス
        host: サーバーがバインドしているホスト
        port: サーバーがリッスンしているポート
    """

    process: subprocess.Popen
    host: str
    port: int

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"


@dataclass(frozen=True)
class CleanupResult:
    """
    停止処理の結果（ベストエフォート）

    Attributes:
        stopped: このコールでプロセスを終了させた場合True
        already_exited: 停止対象が存在しない、または既に終了していた場合True
        error: 握りつぶした終了エラーのメッセージ
    """

    stopped: bool = False
    already_exited: bool = False
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ServerSupervisor:
    """
    llama-server プロセスを1つだけ所有し、起動と停止を担当するクラス。
    """

    def __init__(
        self,
        *,
        model_path: str | Path = "models/ai.gguf",
        host: str = "127.0.0.1",
        extra_args: Sequence[str] | None = None,
        terminate_timeout: float = 5.0,
    ) -> None:
        self._model_path = model_path
        self._host = host
        self._extra_args = list(extra_args or [])
        self._terminate_timeout = terminate_timeout
        self._handle: ServerHandle | None = None
        # RLock: the SIGINT handler may run on the main thread while it is already inside stop()
        self._lock = threading.RLock()

    @property
    def handle(self) -> ServerHandle | None:
        return self._handle

    def is_running(self) -> bool:
        handle = self._handle
        return handle is not None and handle.process.poll() is None

    def start(
        self,
        executable_path: Path,
        working_directory: Path | None = None,
        *,
        port: int,
    ) -> ServerHandle:
        """
        サーバープロセスを起動する

        Args:
            executable_path: llama-server 実行ファイルへのパス
            working_directory: 作業ディレクトリ（Noneの場合は実行ファイルのフォルダ）
            port: サーバーに渡すポート番号

        Returns:
            起動したサーバーのハンドル

        Raises:
            MissingDependencyError: 実行ファイルが存在しない場合（起動前にチェック）
            LaunchError: 起動に失敗した場合、または既に起動済みの場合
        """
        if not executable_path.is_file():
            raise MissingDependencyError(f"llama-server binary not found: {executable_path}", path=executable_path)

        cwd = working_directory or executable_path.parent

        with self._lock:
            if self.is_running():
                raise LaunchError(f"llama-server is already running (PID: {self._handle.pid})")

            command = build_server_command(
                executable_path,
                self._model_path,
                host=self._host,
                port=port,
                extra_args=self._extra_args,
            )
            process = launch_server(command, cwd=cwd, logger=logger)
            self._handle = ServerHandle(process=process, host=self._host, port=port)

        logger.info("llama-server started with PID: %s on port %d", process.pid, port)
        return self._handle

    def stop(self) -> CleanupResult:
        """
        サーバープロセスとその子プロセスを停止する。何度呼んでも例外は送出しない。
        """
        with self._lock:
            handle = self._handle
            if handle is None:
                return CleanupResult(already_exited=True)

            try:
                if handle.process.poll() is not None:
                    logger.info("llama-server (PID: %s) already exited with code %s", handle.pid, handle.process.returncode)
                    return CleanupResult(already_exited=True)
                return self._terminate_process_tree(handle.process, self._terminate_timeout)
            except Exception as e:  # noqa: BLE001
                logger.error("Error while stopping llama-server (PID: %s): %s", handle.pid, e, exc_info=True)
                return CleanupResult(error=str(e))
            finally:
                self._handle = None

    def _terminate_process_tree(self, process: subprocess.Popen, timeout_sec: float) -> CleanupResult:
        """
        プロセスツリーを適切に終了させる内部メソッド
        """
        logger.info("Terminating llama-server (PID: %s)...", process.pid)

        try:
            parent = psutil.Process(process.pid)
            procs = [parent] + parent.children(recursive=True)

            for p in procs:
                try:
                    p.terminate()
                except psutil.NoSuchProcess:
                    pass

            _, alive = psutil.wait_procs(procs, timeout=timeout_sec)

            if alive:
                logger.warning("llama-server didn't terminate gracefully, forcing kill...")
                for p in alive:
                    try:
                        p.kill()
                    except psutil.NoSuchProcess:
                        pass
                _, alive = psutil.wait_procs(alive, timeout=timeout_sec)
                if alive:
                    logger.error("Failed to kill llama-server processes: %s", alive)
                    return CleanupResult(stopped=False, error=f"{len(alive)} process(es) still alive")
                logger.info("llama-server killed forcefully.")
            else:
                logger.info("llama-server terminated gracefully.")
            return CleanupResult(stopped=True)

        except psutil.NoSuchProcess:
            logger.info("llama-server already terminated.")
            return CleanupResult(already_exited=True)
        except Exception as e:  # noqa: BLE001
            logger.error("Error while terminating llama-server: %s", e, exc_info=True)
            return CleanupResult(error=str(e))
