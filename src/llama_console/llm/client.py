"""
LlamaClient - llama-server の HTTP クライアント

ヘルスチェックとシングルターンのチャット補完を提供します。
どちらもレスポンスボディを解析せずにそのまま返します。

Usage:
    async with LlamaClient("http://127.0.0.1:19390") as client:
        print(await client.check_health())
        print(await client.create_chat_completion("local", "Hello"))
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

__all__ = [
    "CHAT_COMPLETIONS_PATH",
    "DEFAULT_SYSTEM_PROMPT",
    "HEALTH_PATH",
    "LlamaClient",
    "build_chat_payload",
]

logger = logging.getLogger(__name__)

HEALTH_PATH = "/v1/health"
CHAT_COMPLETIONS_PATH = "/v1/chat/completions"
DEFAULT_SYSTEM_PROMPT = "Short answer"


def build_chat_payload(model: str, user_message: str, *, system_prompt: str = DEFAULT_SYSTEM_PROMPT) -> dict[str, Any]:
    """Build a minimal OpenAI-style chat payload: one system message, one user message."""
    return {
        "model": model,
        "messages": [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_message},
        ],
    }


class LlamaClient:
    """
    llama-server 用の HTTP クライアント

    1つの httpx.AsyncClient をインスタンスの寿命の間使い回します。
    タイムアウトは既定で無効（None）、リトライは行いません。

    Attributes:
        _base_url: サーバーのベースURL（末尾スラッシュなし）
        _client: 共有 httpx.AsyncClient
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float | None = None,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._system_prompt = system_prompt
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    @property
    def base_url(self) -> str:
        return self._base_url

    async def check_health(self) -> str:
        """
        GET {base_url}/v1/health を呼び出し、レスポンスボディをそのまま返す

        Raises:
            httpx.HTTPStatusError: エラーステータスの場合
            httpx.RequestError: 接続に失敗した場合
        """
        response = await self._client.get(f"{self._base_url}{HEALTH_PATH}")
        response.raise_for_status()
        return response.text

    async def create_chat_completion(self, model: str, user_message: str) -> str:
        """
        POST {base_url}/v1/chat/completions にチャット補完リクエストを送信する

        ボディはステータス確認の前に読み込まれるため、エラー時も
        ``exc.response.text`` から参照できます。

        Args:
            model: モデル識別子（例: "local"）
            user_message: ユーザーのプロンプト

        Returns:
            レスポンスボディ（JSON文字列、未解析）

        Raises:
            httpx.HTTPStatusError: エラーステータスの場合
            httpx.RequestError: 接続に失敗した場合
        """
        payload = build_chat_payload(model, user_message, system_prompt=self._system_prompt)
        response = await self._client.post(f"{self._base_url}{CHAT_COMPLETIONS_PATH}", json=payload)
        response_text = response.text

        if response.is_error:
            logger.debug("Chat completion failed with status %s: %s", response.status_code, response_text)
        response.raise_for_status()
        return response_text

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "LlamaClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
