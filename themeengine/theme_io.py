"""Import and export of theme documents as YAML or JSON files."""

from __future__ import annotations

import json
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any

import yaml

from themeengine.core.theme_repository import iso_timestamp
from themeengine.errors import ThemeValidationError
from themeengine.themes.models import ThemeConfig
from themeengine.themes.schema import ThemeConfigPartial, parse_theme_config, parse_theme_partial

_MAX_THEME_FILE_BYTES = 1024 * 1024
_JSON_SUFFIXES = {".json"}


def load_theme_file(path: str | Path) -> ThemeConfig:
    """Read and validate a complete theme document."""
    return parse_theme_config(_load_document(Path(path)))


def load_theme_patch_file(path: str | Path) -> ThemeConfigPartial:
    """Read and validate a partial theme document, e.g. for ``patch_theme``."""
    return parse_theme_partial(_load_document(Path(path)))


def dump_theme_file(theme: ThemeConfig, path: str | Path) -> Path:
    """Write theme to path; ``.json`` files get JSON, anything else YAML."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    data = theme.to_dict()
    if target.suffix.lower() in _JSON_SUFFIXES:
        text = json.dumps(data, indent=2, ensure_ascii=False) + "\n"
    else:
        text = yaml.safe_dump(data, sort_keys=False, default_flow_style=False, allow_unicode=True)
    target.write_text(text, encoding="utf-8")
    return target


def _load_document(path: Path) -> dict[str, Any]:
    content = _read_text_limited(path, max_bytes=_MAX_THEME_FILE_BYTES)
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as exc:
        raise ThemeValidationError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ThemeValidationError(f"Expected a mapping at the top of {path}")
    return _normalize(data)


def _normalize(value: Any) -> Any:
    # Unquoted YAML timestamps load as datetime objects.
    if isinstance(value, dict):
        return {str(key): _normalize(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_normalize(item) for item in value]
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return iso_timestamp(value)
    if isinstance(value, date):
        return iso_timestamp(datetime(value.year, value.month, value.day, tzinfo=timezone.utc))
    return value


def _read_text_limited(path: Path, *, max_bytes: int) -> str:
    try:
        size = path.stat().st_size
    except OSError as exc:
        raise ThemeValidationError(f"Unable to stat {path}: {exc}") from exc
    if size > max_bytes:
        raise ThemeValidationError(f"{path}: file exceeds max size ({max_bytes} bytes)")
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ThemeValidationError(f"Unable to read {path}: {exc}") from exc
