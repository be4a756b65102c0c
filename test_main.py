"""Command line entry point tests."""

import sys

import pytest
from loguru import logger

from main import APP_VERSION, build_arg_parser, main


@pytest.fixture
def restore_logger():
    yield
    logger.remove()
    logger.add(sys.stderr)


class TestMain:
    """Tests for main()."""

    def test_arg_defaults(self):
        args = build_arg_parser().parse_args([])
        assert args.host == "0.0.0.0"
        assert args.port == 0
        assert args.config == ""
        assert not args.print_config

    def test_version(self, capsys):
        with pytest.raises(SystemExit):
            build_arg_parser().parse_args(["--version"])
        assert APP_VERSION in capsys.readouterr().out

    def test_print_config(self, site, tmp_path, capsys, restore_logger):
        (site / "nginx.conf").write_text(
            "http { server { listen 8080; root html; location = /health { } } }", encoding="utf-8"
        )
        code = main(["--workspace", str(site), "--log-dir", str(tmp_path / "logs"), "--print-config"])
        out = capsys.readouterr().out
        assert code == 0
        assert '"listen_port": 8080' in out
        assert '"rule": "= /health"' in out
        assert list((tmp_path / "logs").glob("nginx_preview_*.log"))

    def test_print_config_without_config(self, tmp_path, restore_logger):
        code = main(["--workspace", str(tmp_path), "--log-dir", str(tmp_path / "logs"), "--print-config"])
        assert code == 1

    def test_invalid_port_setting(self, tmp_path, restore_logger):
        code = main(["--workspace", str(tmp_path), "--log-dir", str(tmp_path / "logs"), "--port", "70000"])
        assert code == 2
