"""Tests for logging configuration and entrypoint wiring."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import focus_music.cli as cli_module
from focus_music.logging_utils import LOG_FILE_NAME, setup_logging


def _flush_root_handlers() -> None:
    for handler in logging.getLogger().handlers:
        flush = getattr(handler, "flush", None)
        if callable(flush):
            flush()


def _restore_root(handlers: list[logging.Handler], level: int) -> None:
    root = logging.getLogger()
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers.clear()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


def test_setup_logging_default_path_writes_json_lines(tmp_path) -> None:
    root = logging.getLogger()
    original_handlers = list(root.handlers)
    original_level = root.level
    try:
        log_path = setup_logging(log_dir=tmp_path, level="INFO", console=False)
        logger = logging.getLogger("focus_music.test")
        logger.info("switched", extra={"previous": "coding", "current": "focus"})
        _flush_root_handlers()
        assert log_path == tmp_path / LOG_FILE_NAME
        record = json.loads(log_path.read_text(encoding="utf-8").splitlines()[-1])
        assert record["message"] == "switched"
        assert record["level"] == "INFO"
        assert record["logger"] == "focus_music.test"
        assert record["context"] == {"previous": "coding", "current": "focus"}
    finally:
        _restore_root(original_handlers, original_level)


def test_setup_logging_custom_log_file_and_level(tmp_path) -> None:
    root = logging.getLogger()
    original_handlers = list(root.handlers)
    original_level = root.level
    custom_path = tmp_path / "custom" / "automation.log"
    try:
        setup_logging(log_dir=tmp_path, level="WARNING", log_file=custom_path)
        logger = logging.getLogger("focus_music.test")
        logger.info("hidden-info")
        logger.warning("visible-warning")
        _flush_root_handlers()
        text = custom_path.read_text(encoding="utf-8")
        assert "visible-warning" in text
        assert "hidden-info" not in text
        assert len(root.handlers) == 2
    finally:
        _restore_root(original_handlers, original_level)


def test_setup_logging_serializes_exceptions(tmp_path) -> None:
    root = logging.getLogger()
    original_handlers = list(root.handlers)
    original_level = root.level
    try:
        log_path = setup_logging(log_dir=tmp_path, console=False)
        try:
            raise RuntimeError("bridge exploded")
        except RuntimeError:
            logging.getLogger("focus_music.test").exception("failure")
        _flush_root_handlers()
        record = json.loads(log_path.read_text(encoding="utf-8").splitlines()[-1])
        assert "bridge exploded" in record["exception"]
    finally:
        _restore_root(original_handlers, original_level)


def test_cli_main_passes_effective_level_and_log_file(monkeypatch, tmp_path) -> None:
    captured: dict[str, object] = {}

    def fake_setup_logging(
        *, log_dir: Path, level: str, log_file: Path | None, console: bool
    ) -> Path:
        captured["log_dir"] = log_dir
        captured["level"] = level
        captured["log_file"] = log_file
        captured["console"] = console
        return log_file or log_dir

    monkeypatch.setattr(cli_module, "setup_logging", fake_setup_logging)
    monkeypatch.setattr(cli_module, "log_dir", lambda: tmp_path / "logs")

    rc = cli_module.main(
        [
            "--verbose",
            "--quiet",
            "--log-file",
            str(tmp_path / "cli.log"),
            "--config",
            str(tmp_path / "missing.json"),
            "classify",
            "--url",
            "https://github.com",
        ]
    )

    assert rc == 0
    assert captured["level"] == "WARNING"
    assert captured["log_file"] == tmp_path / "cli.log"
    assert captured["log_dir"] == tmp_path / "logs"
    assert captured["console"] is True
