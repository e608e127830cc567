import os
import sys
from pathlib import Path

import pytest

# --- 1. Path Setup ---
# Make 'llama_console' importable without an editable install
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_ROOT = PROJECT_ROOT / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

# --- 2. Environment Setup ---
# Keep the developer's config.yml out of the test run
os.environ["LLAMA_CONSOLE_CONFIG_PATH"] = str(PROJECT_ROOT / "tests" / "missing_config.yml")


@pytest.fixture
def llama_cpp_dir(tmp_path):
    """A llama.cpp folder containing a (fake) llama-server executable."""
    folder = tmp_path / "llama.cpp"
    folder.mkdir()
    executable = folder / "llama-server"
    executable.write_text("#!/bin/sh\n", encoding="utf-8")
    return folder
