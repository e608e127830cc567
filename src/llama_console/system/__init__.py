"""
System utilities for llama-console.
"""

from .logging import cleanup_old_logs, setup_logging

__all__ = [
    "cleanup_old_logs",
    "setup_logging",
]
