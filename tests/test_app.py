"""Tests for the themeengine command line."""

from __future__ import annotations

import logging
from pathlib import Path
from urllib.error import URLError

import pytest
import yaml

from themeengine import app as app_module
from themeengine.app import build_parser, configure_logger, run_app
from themeengine.client.stylesheet_sync import StylesheetResponse
from themeengine.config.settings import AppSettings
from themeengine.themes.compiler import compile_theme_artifact
from themeengine.themes.defaults import default_theme
from themeengine.workers.compile_worker import PreviewCompiler


@pytest.fixture(autouse=True)
def isolated_logger():
    logger = logging.getLogger("themeengine")
    yield
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def cli(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("APPDATA", str(tmp_path / "appdata"))
    base = ["--settings", str(tmp_path / "themeengine.ini"), "--db", str(tmp_path / "settings.db")]

    def _run(*args: str) -> int:
        return run_app([*base, *args])

    return _run


def test_hash_prints_default_hash(cli, capsys):
    assert cli("hash") == 0
    assert capsys.readouterr().out.strip() == compile_theme_artifact(default_theme()).hash


def test_css_prints_stylesheet(cli, capsys):
    assert cli("css") == 0
    assert capsys.readouterr().out == compile_theme_artifact(default_theme()).css


def test_show_prints_yaml(cli, capsys):
    assert cli("show") == 0
    data = yaml.safe_load(capsys.readouterr().out)
    assert data["metadata"]["version"] == 1


def test_import_export_reset(cli, capsys, tmp_path: Path):
    source = default_theme()
    source.css_vars.light["sm-accent"] = "#ff0000"
    source.metadata.version = 9
    theme_file = tmp_path / "incoming.yaml"
    theme_file.write_text(yaml.safe_dump(source.to_dict(), sort_keys=False), encoding="utf-8")

    assert cli("import", str(theme_file), "--updated-by", "ops") == 0
    assert "version 2" in capsys.readouterr().out

    exported = tmp_path / "out.json"
    assert cli("export", str(exported)) == 0
    assert exported.exists()
    assert '"sm-accent": "#ff0000"' in exported.read_text(encoding="utf-8")

    assert cli("reset") == 0
    capsys.readouterr()
    assert cli("hash") == 0
    assert capsys.readouterr().out.strip() == compile_theme_artifact(default_theme()).hash


def test_invalid_import_exits_with_validation_code(cli, capsys, tmp_path: Path):
    theme_file = tmp_path / "bad.yaml"
    theme_file.write_text("logo: {}\n", encoding="utf-8")

    assert cli("import", str(theme_file)) == 2
    assert "could not be saved" in capsys.readouterr().err


def test_logger_writes_rotating_file(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("APPDATA", str(tmp_path / "appdata"))
    settings = AppSettings(tmp_path / "themeengine.ini")

    logger = configure_logger(settings)
    logger.info("hello")

    assert configure_logger(settings) is logger
    assert len(logger.handlers) == 1
    assert (settings.app_data_dir / "logs" / "themeengine.log").exists()


def test_parser_requires_command():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def _write_draft(path: Path, *tokens: str):
    draft = default_theme()
    for token in tokens:
        draft.css_vars.dark[token] = "#0a0b0c"
    path.write_text(yaml.safe_dump(draft.to_dict(), sort_keys=False), encoding="utf-8")
    return draft


def test_preview_prints_draft_css_without_committing(cli, capsys, tmp_path: Path):
    draft = _write_draft(tmp_path / "draft.yaml", "sm-accent")

    assert cli("preview", str(tmp_path / "draft.yaml")) == 0
    assert capsys.readouterr().out == compile_theme_artifact(draft).css

    assert cli("hash") == 0
    assert capsys.readouterr().out.strip() == compile_theme_artifact(default_theme()).hash


def test_preview_compiles_on_worker_thread_above_configured_threshold(cli, capsys, tmp_path: Path, monkeypatch):
    settings = AppSettings(tmp_path / "themeengine.ini")
    settings.compile_threshold = 1
    settings.sync()
    draft = _write_draft(tmp_path / "draft.yaml", "sm-accent", "sm-text", "sm-border")
    started = []
    original = PreviewCompiler._start_worker

    def tracking_start(self, request_id, theme):
        started.append(request_id)
        original(self, request_id, theme)

    monkeypatch.setattr(PreviewCompiler, "_start_worker", tracking_start)

    assert cli("preview", str(tmp_path / "draft.yaml")) == 0

    assert started == [1]
    assert capsys.readouterr().out == compile_theme_artifact(draft).css


class RecordingFetcher:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.urls: list[str] = []

    def __call__(self, url: str, headers: dict[str, str]) -> StylesheetResponse:
        self.urls.append(url)
        if self.error is not None:
            raise self.error
        return StylesheetResponse(body=":root { --sm-accent: #fff; }\n", etag='"feedfacefeedface"')


def test_fetch_css_uses_configured_base_url(cli, capsys, tmp_path: Path, monkeypatch):
    settings = AppSettings(tmp_path / "themeengine.ini")
    settings.theme_base_url = "https://themes.example.com/"
    settings.sync()
    fetcher = RecordingFetcher()
    monkeypatch.setattr(app_module, "urllib_fetcher", lambda: fetcher)
    output = tmp_path / "served.css"

    assert cli("fetch-css", "--output", str(output)) == 0

    current = compile_theme_artifact(default_theme()).hash
    assert fetcher.urls == [f"https://themes.example.com/api/theme.css?hash={current}"]
    assert output.read_text(encoding="utf-8") == ":root { --sm-accent: #fff; }\n"
    assert "feedfacefeedface" in capsys.readouterr().out


def test_fetch_css_base_url_flag_and_hash(cli, capsys, monkeypatch):
    fetcher = RecordingFetcher()
    monkeypatch.setattr(app_module, "urllib_fetcher", lambda: fetcher)

    assert cli("fetch-css", "--base-url", "http://127.0.0.1:8080", "--hash", "abc123") == 0

    assert fetcher.urls == ["http://127.0.0.1:8080/api/theme.css?hash=abc123"]
    assert capsys.readouterr().out == ":root { --sm-accent: #fff; }\n"


def test_fetch_css_network_failure_exits_nonzero(cli, capsys, monkeypatch):
    fetcher = RecordingFetcher(error=URLError("connection refused"))
    monkeypatch.setattr(app_module, "urllib_fetcher", lambda: fetcher)

    assert cli("fetch-css") == 1
    assert capsys.readouterr().err.strip() != ""
