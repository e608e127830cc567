"""
対話コンソール

流れ:
1) 起動待ちのカウントダウン（表示のみ。レディネスチェックではない）
2) ヘルスチェックを1回実行（失敗しても続行）
3) 対話ループ: 入力を1行ずつチャット補完として送信し、生のJSONを表示

'exit'（大文字小文字を区別しない）、入力の終端、または入力の読み取りエラーで
サーバーを停止して終了する。
"""

from __future__ import annotations

import asyncio
import logging
import math
import shutil
import sys
import threading
from enum import Enum
from typing import TYPE_CHECKING, Awaitable, Callable, Optional

if TYPE_CHECKING:
    from .llm.client import LlamaClient
    from .llm.supervisor import CleanupResult, ServerSupervisor

__all__ = [
    "PROMPT",
    "ChatLoop",
    "LoopState",
    "ainput",
    "delay_with_countdown",
    "report_health",
    "run_session",
]

logger = logging.getLogger(__name__)

PROMPT = "Enter prompt (type '{keyword}' to quit): "

ReadLine = Callable[[str], Awaitable[Optional[str]]]


async def ainput(prompt: str = "") -> str | None:
    """
    Read one line from stdin without blocking the event loop.

    The read runs on a daemon thread so an interrupt never waits for it.
    Returns None at end of input; otherwise the line without its newline.
    Errors raised by the read (undecodable bytes, closed stdin) are re-raised here.
    """
    # The prompt needs to be printed separately as readline doesn't handle it.
    print(prompt, end="", flush=True)

    loop = asyncio.get_running_loop()
    future: asyncio.Future[str] = loop.create_future()

    def _deliver(line: str) -> None:
        if not future.done():
            future.set_result(line)

    def _fail(exc: BaseException) -> None:
        if not future.done():
            future.set_exception(exc)

    def _read() -> None:
        try:
            line = sys.stdin.readline()
        except Exception as exc:  # noqa: BLE001
            callback, arg = _fail, exc
        else:
            callback, arg = _deliver, line
        try:
            loop.call_soon_threadsafe(callback, arg)
        except RuntimeError:
            # loop already closed during shutdown
            pass

    threading.Thread(target=_read, name="stdin-reader", daemon=True).start()

    line = await future
    if not line:
        return None
    return line.rstrip("\r\n")


async def delay_with_countdown(seconds: float) -> None:
    """Wait ``seconds`` while printing a per-second countdown on a single line."""
    total_seconds = math.ceil(seconds)
    for remaining in range(total_seconds, 0, -1):
        suffix = "" if remaining == 1 else "s"
        print(f"Waiting {remaining} second{suffix}...", end="\r", flush=True)
        await asyncio.sleep(1)

    # Clear the line after countdown completes
    width = shutil.get_terminal_size(fallback=(81, 24)).columns
    print(" " * (min(width - 1, 80) if width > 0 else 80), end="\r", flush=True)


async def report_health(client: LlamaClient) -> bool:
    """Run a single health check and print the raw body. Failures are non-fatal."""
    try:
        health = await client.check_health()
    except Exception as e:  # noqa: BLE001
        logger.info("Health check failed for %s: %s", client.base_url, e)
        print(f"Health check error: {e}")
        return False

    print(f"Health check: {health}")
    return True


class LoopState(Enum):
    RUNNING = "running"
    TERMINATING = "terminating"


class ChatLoop:
    """
    対話ループ（Running / Terminating の2状態）

    Running: 入力を読み、終了キーワードなら Terminating へ遷移。
             それ以外（空行を含む）はチャット補完として送信する。
    Terminating: スーパーバイザーの停止処理を呼び出して終了する。
    """

    def __init__(
        self,
        client: LlamaClient,
        supervisor: ServerSupervisor,
        *,
        model: str = "local",
        exit_keyword: str = "exit",
        read_line: ReadLine = ainput,
    ) -> None:
        self._client = client
        self._supervisor = supervisor
        self._model = model
        self._exit_keyword = exit_keyword
        self._read_line = read_line
        self._prompt = PROMPT.format(keyword=exit_keyword)
        self.state = LoopState.RUNNING

    def is_exit_command(self, text: str) -> bool:
        return text.casefold() == self._exit_keyword.casefold()

    async def handle_prompt(self, text: str) -> bool:
        """Send ``text`` as a chat completion and print the raw response."""
        try:
            result = await self._client.create_chat_completion(self._model, text)
        except Exception as e:  # noqa: BLE001
            logger.info("Chat completion request failed: %s", e)
            print(f"Error sending prompt: {e}")
            return False

        print("Model response:\n" + result)
        return True

    async def run(self) -> CleanupResult:
        self.state = LoopState.RUNNING

        while self.state is LoopState.RUNNING:
            try:
                line = await self._read_line(self._prompt)
            except (OSError, ValueError) as e:
                # UnicodeDecodeError is a ValueError; stdin is unusable either way
                logger.error("Failed to read input: %s", e, exc_info=True)
                print(f"\nError reading input: {e}")
                self.state = LoopState.TERMINATING
                continue

            if line is None:
                print()
                logger.info("End of input reached, shutting down")
                self.state = LoopState.TERMINATING
            elif self.is_exit_command(line):
                self.state = LoopState.TERMINATING
            else:
                await self.handle_prompt(line)

        return self._supervisor.stop()


async def run_session(
    client: LlamaClient,
    supervisor: ServerSupervisor,
    *,
    model: str = "local",
    exit_keyword: str = "exit",
    startup_delay: float = 10,
    read_line: ReadLine = ainput,
) -> CleanupResult:
    """Countdown, one health check, then the chat loop. The client is closed on return."""
    print(f"Server running at {client.base_url}")

    try:
        await delay_with_countdown(startup_delay)
        await report_health(client)

        chat_loop = ChatLoop(
            client,
            supervisor,
            model=model,
            exit_keyword=exit_keyword,
            read_line=read_line,
        )
        return await chat_loop.run()
    finally:
        await client.aclose()
