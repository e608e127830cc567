"""Error types raised while launching the llama.cpp server."""

from __future__ import annotations

__all__ = [
    "LaunchError",
    "MissingDependencyError",
]


class LaunchError(RuntimeError):
    """サーバープロセスの起動に失敗した場合のエラー"""


class MissingDependencyError(LaunchError):
    """
    llama.cpp フォルダまたは実行ファイルが見つからない場合のエラー

    起動前にチェックされ、アプリケーションは終了コード1で終了します。
    """

    def __init__(self, message: str, path: object = None) -> None:
        super().__init__(message)
        self.path = path
