"""Unit tests for bleedserve/run.py — command-line entry point."""

from __future__ import annotations

import os
from unittest.mock import patch

import pytest

import bleedserve.config as config_module
from bleedserve.run import build_parser, main
from bleedserve.utils.logger import configure_logging


class TestParser:
    def test_no_flags(self) -> None:
        args = build_parser().parse_args([])
        assert args.config is None
        assert args.loglevel is None

    def test_short_flags(self) -> None:
        args = build_parser().parse_args(["-c", "/etc/bleedserve.yaml", "-l", "debug"])
        assert args.config == "/etc/bleedserve.yaml"
        assert args.loglevel == "DEBUG"

    def test_long_flags(self) -> None:
        args = build_parser().parse_args(["--config", "c.yaml", "--loglevel", "WARNING"])
        assert args.config == "c.yaml"
        assert args.loglevel == "WARNING"

    def test_unknown_level_rejected(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args(["-l", "chatty"])


class TestMain:
    @pytest.fixture(autouse=True)
    def isolated_env(self, monkeypatch, tmp_path):
        monkeypatch.setattr(config_module, "DEFAULT_CONFIG_PATHS", [])
        # main() writes these into os.environ; setenv makes monkeypatch restore them
        monkeypatch.setenv("BLEEDSERVE_CONFIG", "")
        monkeypatch.setenv("LOG_LEVEL", "")
        monkeypatch.delenv("BLEEDSERVE_PORT", raising=False)
        monkeypatch.chdir(tmp_path)
        yield
        configure_logging("INFO")

    def test_runs_uvicorn_with_config(self, tmp_path, monkeypatch) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("version: 1\nlisten:\n  port: 9001\n")

        with patch("bleedserve.run.uvicorn.run") as run:
            main(["-c", str(path), "-l", "warning"])

        run.assert_called_once()
        target = run.call_args.args[0]
        kwargs = run.call_args.kwargs
        assert target == "bleedserve.main:app"
        assert kwargs["port"] == 9001
        assert kwargs["log_level"] == "warning"
        assert kwargs["limit_concurrency"] == 100

    def test_config_path_exported_for_lifespan(self, tmp_path) -> None:
        import os

        path = tmp_path / "config.yaml"
        path.write_text("version: 1\n")

        with patch("bleedserve.run.uvicorn.run"):
            main(["-c", str(path)])

        assert os.environ["BLEEDSERVE_CONFIG"] == str(path)

    def test_bad_config_exits_before_serving(self, tmp_path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("listen:\n  port: 9001\n")

        with patch("bleedserve.run.uvicorn.run") as run, pytest.raises(SystemExit):
            main(["-c", str(path)])

        run.assert_not_called()

    def test_config_log_level_used_without_flag(self, tmp_path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("version: 1\nlog_level: ERROR\n")

        with patch("bleedserve.run.uvicorn.run") as run:
            main(["-c", str(path)])

        assert run.call_args.kwargs["log_level"] == "error"

    def test_flag_beats_config_log_level(self, tmp_path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("version: 1\nlog_level: ERROR\n")

        with patch("bleedserve.run.uvicorn.run") as run:
            main(["-c", str(path), "-l", "debug"])

        assert run.call_args.kwargs["log_level"] == "debug"
        assert os.environ["LOG_LEVEL"] == "DEBUG"
