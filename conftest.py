"""Shared pytest fixtures."""

import socket
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent))

from utils.logger import attach_output_channel, detach_output_channel


@pytest.fixture
def site(tmp_path):
    """一个带有 nginx.conf 和静态文件的临时工作区."""
    workspace = tmp_path / "workspace"
    (workspace / "html" / "docs").mkdir(parents=True)
    (workspace / "html" / "empty").mkdir()
    (workspace / "html" / "index.html").write_text("<h1>home</h1>", encoding="utf-8")
    (workspace / "html" / "docs" / "index.htm").write_text("docs", encoding="utf-8")
    (workspace / "html" / "app.js").write_text("console.log(1);", encoding="utf-8")
    (workspace / "html" / "fallback.html").write_text("fallback", encoding="utf-8")
    (workspace / "html" / "data.bin").write_bytes(b"\x00\x01")
    (workspace / "secret.txt").write_text("secret", encoding="utf-8")
    return workspace


@pytest.fixture
def free_port():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture
def output_lines():
    """收集输出频道的日志行."""
    lines = []
    handler_id = attach_output_channel(lines.append)
    yield lines
    detach_output_channel(handler_id)
