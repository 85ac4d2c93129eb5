"""Command line bootstrap."""

from __future__ import annotations

import argparse
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Sequence

import yaml
from PySide6.QtCore import QCoreApplication, QEventLoop, QTimer

from themeengine import __version__
from themeengine.client.stylesheet_sync import StylesheetRevalidator, urllib_fetcher
from themeengine.config.settings import AppSettings
from themeengine.core.preview_cache import PreviewCache
from themeengine.core.theme_repository import ThemeRepository
from themeengine.errors import ErrorCode, ThemeEngineError, ThemeValidationError, format_error_for_user
from themeengine.service import ThemeService
from themeengine.themes.models import CompiledCSSArtifact, ThemeConfig
from themeengine.theme_io import dump_theme_file, load_theme_file

PREVIEW_TIMEOUT_MS = 30_000

_qt_app: QCoreApplication | None = None


def configure_logger(settings: AppSettings) -> logging.Logger:
    logger = logging.getLogger("themeengine")
    if logger.handlers:
        return logger

    logger.setLevel(logging.INFO)
    log_dir = settings.app_data_dir / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_dir / "themeengine.log",
        maxBytes=512_000,
        backupCount=3,
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
    logger.addHandler(handler)
    logger.propagate = False
    return logger


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="themeengine", description="Inspect and manage the stored theme.")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("--settings", type=str, default=None, help="Path to an INI settings file.")
    p.add_argument("--db", type=str, default=None, help="Override the settings database path.")
    sub = p.add_subparsers(dest="command", required=True)

    sub.add_parser("show", help="Print the committed theme as YAML.")
    sub.add_parser("css", help="Print the compiled stylesheet.")
    sub.add_parser("hash", help="Print the stylesheet hash.")

    export = sub.add_parser("export", help="Write the committed theme to a YAML or JSON file.")
    export.add_argument("path", type=str)

    imp = sub.add_parser("import", help="Commit a theme from a YAML or JSON file.")
    imp.add_argument("path", type=str)
    imp.add_argument("--updated-by", type=str, default="cli")

    sub.add_parser("reset", help="Delete the stored theme and fall back to the default.")

    preview = sub.add_parser("preview", help="Compile a draft theme file without committing it.")
    preview.add_argument("path", type=str)

    fetch = sub.add_parser("fetch-css", help="Download the served stylesheet for a hash.")
    fetch.add_argument("--hash", dest="theme_hash", type=str, default=None, help="Defaults to the committed hash.")
    fetch.add_argument("--base-url", type=str, default=None, help="Overrides the configured theme server.")
    fetch.add_argument("--output", type=str, default=None, help="Write the CSS here instead of stdout.")
    return p


def run_app(argv: Sequence[str] | None = None) -> int:
    """Run one command and return the process exit code."""
    args = build_parser().parse_args(argv)
    QCoreApplication.setApplicationName("ThemeEngine")
    QCoreApplication.setOrganizationName("ThemeEngine")

    settings = AppSettings(args.settings)
    logger = configure_logger(settings)
    db_path = args.db or settings.db_path
    logger.info("command=%s db=%s", args.command, db_path)

    with ThemeRepository(db_path) as repository:
        service = ThemeService(
            repository,
            preview_cache=PreviewCache(metrics=repository.metrics),
            preview_ttl_seconds=settings.preview_ttl_seconds,
            compile_threshold=settings.compile_threshold,
        )
        try:
            return _dispatch(args, service, settings)
        except ThemeValidationError as exc:
            logger.warning("command %s rejected: %s", args.command, exc)
            print(format_error_for_user(exc), file=sys.stderr)
            return 2
        except ThemeEngineError as exc:
            logger.warning("command %s failed: %s", args.command, exc.to_dict())
            print(format_error_for_user(exc), file=sys.stderr)
            return 1


def _dispatch(args: argparse.Namespace, service: ThemeService, settings: AppSettings) -> int:
    if args.command == "show":
        data = service.get_theme().to_dict()
        sys.stdout.write(yaml.safe_dump(data, sort_keys=False, default_flow_style=False, allow_unicode=True))
    elif args.command == "css":
        sys.stdout.write(service.get_compiled_artifact().css)
    elif args.command == "hash":
        print(service.get_compiled_artifact().hash)
    elif args.command == "export":
        target = dump_theme_file(service.get_theme(), args.path)
        print(f"Exported theme to {target}")
    elif args.command == "import":
        incoming = load_theme_file(args.path)
        # Imported documents replace whatever is stored, so they are based on the current version.
        incoming.metadata.version = service.get_theme().metadata.version
        committed = service.update_theme(incoming, args.updated_by)
        print(f"Committed theme version {committed.metadata.version}")
    elif args.command == "reset":
        service.reset_theme()
        print("Theme reset to default")
    elif args.command == "preview":
        sys.stdout.write(_compile_preview(service, load_theme_file(args.path)).css)
    elif args.command == "fetch-css":
        _fetch_css(args, service, settings)
    else:
        raise ValueError(f"Unsupported command: {args.command}")
    return 0


def _compile_preview(service: ThemeService, draft: ThemeConfig) -> CompiledCSSArtifact:
    """Compile draft through a PreviewCompiler, spinning an event loop while a worker thread runs."""
    global _qt_app
    if QCoreApplication.instance() is None:
        _qt_app = QCoreApplication([])

    compiler = service.preview_compiler()
    artifacts: list[CompiledCSSArtifact] = []
    loop = QEventLoop()
    compiler.compiled.connect(artifacts.append)
    compiler.compiled.connect(lambda _artifact: loop.quit())
    try:
        compiler.request(draft)
        if compiler.is_compiling:
            QTimer.singleShot(PREVIEW_TIMEOUT_MS, loop.quit)
            loop.exec()
    finally:
        compiler.shutdown()
    if not artifacts:
        raise ThemeEngineError(ErrorCode.COMPILE_FAILED, message="Preview compile did not finish")
    return artifacts[-1]


def _fetch_css(args: argparse.Namespace, service: ThemeService, settings: AppSettings) -> None:
    theme_hash = args.theme_hash or service.get_compiled_artifact().hash
    revalidator = StylesheetRevalidator(args.base_url or settings.theme_base_url, fetcher=urllib_fetcher())
    revalidator.revalidate(theme_hash)
    element = revalidator.element
    if args.output:
        Path(args.output).write_text(element.text, encoding="utf-8")
        print(f"Wrote stylesheet {element.hash} to {args.output}")
    else:
        sys.stdout.write(element.text)
