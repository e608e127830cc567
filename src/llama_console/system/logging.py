"""
Logging Module for llama-console

ログ設定とメンテナンス機能を提供:
- アプリケーションログ設定（コンソール + ローテーションファイル）
- 古いログファイルのクリーンアップ

コンソールハンドラはプロンプト表示と混ざらないよう、既定で WARNING 以上のみ出力します。
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime, timedelta
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from logging import Logger

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(
    *,
    log_dir: Path | None = None,
    level: int | str = logging.INFO,
    console_level: int | str | None = None,
    log_to_console: bool = True,
    log_to_file: bool = True,
    max_bytes: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5,
    app_name: str = "llama_console",
) -> Logger:
    """
    アプリケーションロガーを設定する

    Args:
        log_dir: ログディレクトリのパス（Noneの場合ファイル出力なし）
        level: ルートロガーとファイルハンドラのログレベル
        console_level: コンソールハンドラのログレベル（Noneの場合 level と同じ）
        log_to_console: コンソール出力の有効/無効
        log_to_file: ファイル出力の有効/無効
        max_bytes: ログファイルの最大サイズ
        backup_count: ローテーションで保持するファイル数
        app_name: アプリケーション名（ログファイル名に使用）

    Returns:
        設定されたルートロガー
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # 既存ハンドラをクリア
    root_logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    if log_to_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(console_level if console_level is not None else level)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    if log_to_file and log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = log_dir / f"{app_name}.log"

        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    return root_logger


# ============================================================
# Log Maintenance Functions
# ============================================================


def cleanup_old_logs(
    log_dir: Path,
    max_age_days: int = 7,
    patterns: list[str] | None = None,
) -> int:
    """
    指定日数より古いログファイルを削除する

    Args:
        log_dir: ログファイルのディレクトリ
        max_age_days: 削除するまでの最大日数
        patterns: マッチさせるglobパターン（デフォルト: ["*.log", "*.log.*"]）

    Returns:
        削除されたファイル数
    """
    if patterns is None:
        patterns = ["*.log", "*.log.*"]

    if not log_dir.exists():
        logger.debug("Log directory does not exist: %s", log_dir)
        return 0

    cutoff = datetime.now() - timedelta(days=max_age_days)
    deleted_count = 0
    seen: set[Path] = set()

    for pattern in patterns:
        for log_file in log_dir.glob(pattern):
            if log_file in seen or not log_file.is_file():
                continue
            seen.add(log_file)

            mtime = datetime.fromtimestamp(log_file.stat().st_mtime)
            if mtime < cutoff:
                try:
                    log_file.unlink()
                    deleted_count += 1
                    logger.info(
                        "Deleted old log file: %s (age: %s days)",
                        log_file.name,
                        (datetime.now() - mtime).days,
                    )
                except OSError as e:
                    logger.warning("Failed to delete log file %s: %s", log_file, e)

    if deleted_count > 0:
        logger.info("Cleaned up %d old log files from %s", deleted_count, log_dir)

    return deleted_count
