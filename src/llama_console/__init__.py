"""
llama-console: launch a local llama-server and chat with it from the terminal.
"""

__version__ = "0.1.0"
