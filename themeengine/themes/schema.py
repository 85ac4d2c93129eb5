"""Theme document parsing and validation."""

from __future__ import annotations

import json
import re
from datetime import datetime
from typing import Any, Mapping
from urllib.parse import urlsplit

from themeengine.errors import ThemeValidationError, ValidationIssue
from themeengine.themes.constants import (
    FONT_SLOTS,
    FONT_SOURCES,
    MAX_ASSET_URL_LEN,
    MAX_CSS_VALUE_LEN,
    MAX_FONT_FAMILY_LEN,
    MAX_FONT_WEIGHT,
    MAX_LOGO_ALT_LEN,
    MAX_LOGO_DATA_URI_BYTES,
    MAX_THEME_PAYLOAD_BYTES,
    MAX_TOKENS_PER_MODE,
    MIN_FONT_WEIGHT,
    THEME_MODES,
    THEME_TOKENS,
)
from themeengine.themes.models import (
    FONT_FIELDS,
    LOGO_FIELDS,
    METADATA_FIELDS,
    FontConfig,
    LimitIssue,
    LogoConfig,
    ThemeConfig,
    ThemeCssVars,
    ThemeFonts,
    ThemeMetadata,
    TokenDiagnostics,
)

# Validated patch documents keep the wire shape: nested dicts with camelCase keys.
ThemeConfigPartial = dict[str, Any]

_HEX_COLOR_RE = re.compile(r"^#(?:[0-9a-fA-F]{3,4}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$")
_FUNC_VALUE_RE = re.compile(
    r"^(?:rgb|rgba|hsl|hsla|hwb|lab|lch|oklab|oklch|color|color-mix|var|calc)\(.+\)$",
    re.IGNORECASE,
)
_KEYWORD_RE = re.compile(r"^[a-zA-Z]+$")
_LENGTH_RE = re.compile(r"^-?(?:\d+|\d*\.\d+)(?:px|rem|em|%|vh|vw|ch|pt)?$")
_BLOCKED_VALUE_RE = re.compile(r"(?:[;{}<>\\\n\r]|url\s*\(|expression\s*\(|@)", re.IGNORECASE)
_REFERENCE_RE = re.compile(r"^var\(\s*--[A-Za-z0-9_-]+\s*(?:,.*)?\)$")
_DATA_URI_RE = re.compile(r"^data:[^,]*?(;base64)?,(.*)$", re.IGNORECASE | re.DOTALL)

_LOGO_URL_KEYS = ("lightUrl", "darkUrl", "lightIconUrl", "darkIconUrl")
_SECTION_KEYS = {"logo", "fonts", "cssVars", "metadata"}


def parse_theme_config(data: Mapping[str, object]) -> ThemeConfig:
    """Validate a full wire document and build a ThemeConfig.

    Every rule is checked before raising, so the error lists every problem.
    """
    issues: list[ValidationIssue] = []
    if not isinstance(data, Mapping):
        raise ThemeValidationError("Expected a JSON object for the theme document")
    _reject_unknown_keys(data, allowed=_SECTION_KEYS, path="", issues=issues)

    logo = _parse_logo(_section(data, "logo", issues), "logo", issues)
    fonts_data = _section(data, "fonts", issues)
    _reject_unknown_keys(fonts_data, allowed=set(FONT_SLOTS), path="fonts", issues=issues)
    sans = _parse_font(_section(fonts_data, "sans", issues, "fonts"), "fonts.sans", issues)
    mono = _parse_font(_section(fonts_data, "mono", issues, "fonts"), "fonts.mono", issues)
    vars_data = _section(data, "cssVars", issues)
    _reject_unknown_keys(vars_data, allowed=set(THEME_MODES), path="cssVars", issues=issues)
    light = _parse_vars(_section(vars_data, "light", issues, "cssVars"), "cssVars.light", issues)
    dark = _parse_vars(_section(vars_data, "dark", issues, "cssVars"), "cssVars.dark", issues)
    metadata = _parse_metadata(_section(data, "metadata", issues), "metadata", issues)

    if issues or sans is None or mono is None or metadata is None:
        raise ThemeValidationError(issues or "Theme document is incomplete")
    return ThemeConfig(
        logo=logo,
        fonts=ThemeFonts(sans=sans, mono=mono),
        css_vars=ThemeCssVars(light=light, dark=dark),
        metadata=metadata,
    )


def parse_theme_json(text: str) -> ThemeConfig:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ThemeValidationError(f"Invalid JSON in theme document: {exc}") from exc
    return parse_theme_config(data)


def validate_theme(theme: ThemeConfig) -> ThemeConfig:
    """Re-run full validation on an in-memory theme and return a clean copy."""
    return parse_theme_config(theme.to_dict())


def parse_theme_partial(data: Mapping[str, object]) -> ThemeConfigPartial:
    """Validate a patch document. Every section and field is optional."""
    issues: list[ValidationIssue] = []
    if not isinstance(data, Mapping):
        raise ThemeValidationError("Expected a JSON object for the theme patch")
    _reject_unknown_keys(data, allowed=_SECTION_KEYS, path="", issues=issues)
    partial: ThemeConfigPartial = {}

    if "logo" in data:
        logo = _mapping_or_issue(data["logo"], "logo", issues)
        partial["logo"] = _check_partial_fields(logo, "logo", LOGO_FIELDS, _check_logo_field, issues)

    if "fonts" in data:
        fonts = _mapping_or_issue(data["fonts"], "fonts", issues)
        _reject_unknown_keys(fonts, allowed=set(FONT_SLOTS), path="fonts", issues=issues)
        partial["fonts"] = {}
        for slot in FONT_SLOTS:
            if slot not in fonts:
                continue
            slot_data = _mapping_or_issue(fonts[slot], f"fonts.{slot}", issues)
            partial["fonts"][slot] = _check_partial_fields(
                slot_data, f"fonts.{slot}", FONT_FIELDS, _check_font_field, issues
            )

    if "cssVars" in data:
        css_vars = _mapping_or_issue(data["cssVars"], "cssVars", issues)
        _reject_unknown_keys(css_vars, allowed=set(THEME_MODES), path="cssVars", issues=issues)
        partial["cssVars"] = {}
        for mode in THEME_MODES:
            if mode not in css_vars:
                continue
            mode_data = _mapping_or_issue(css_vars[mode], f"cssVars.{mode}", issues)
            path = f"cssVars.{mode}"
            _reject_unknown_keys(mode_data, allowed=set(THEME_TOKENS), path=path, issues=issues)
            cleaned: dict[str, str] = {}
            for token in THEME_TOKENS:
                if token in mode_data:
                    value = _check_css_value(mode_data[token], f"{path}.{token}", issues)
                    if value is not None:
                        cleaned[token] = value
            partial["cssVars"][mode] = cleaned

    if "metadata" in data:
        metadata = _mapping_or_issue(data["metadata"], "metadata", issues)
        partial["metadata"] = _check_partial_fields(
            metadata, "metadata", METADATA_FIELDS, _check_metadata_field, issues
        )

    if issues:
        raise ThemeValidationError(issues)
    return partial


def assert_theme_tokens(theme: ThemeConfig | Mapping[str, object]) -> TokenDiagnostics:
    """Report missing and extra token keys per mode without raising."""
    if isinstance(theme, ThemeConfig):
        light_keys = set(theme.css_vars.light)
        dark_keys = set(theme.css_vars.dark)
    else:
        css_vars = theme.get("cssVars") if isinstance(theme.get("cssVars"), Mapping) else {}
        light = css_vars.get("light") if isinstance(css_vars.get("light"), Mapping) else {}
        dark = css_vars.get("dark") if isinstance(css_vars.get("dark"), Mapping) else {}
        light_keys = set(light)
        dark_keys = set(dark)
    token_set = set(THEME_TOKENS)
    return TokenDiagnostics(
        light_missing=tuple(sorted(token_set - light_keys)),
        light_extra=tuple(sorted(str(key) for key in light_keys - token_set)),
        dark_missing=tuple(sorted(token_set - dark_keys)),
        dark_extra=tuple(sorted(str(key) for key in dark_keys - token_set)),
    )


def check_theme_limits(theme: ThemeConfig | Mapping[str, object]) -> list[LimitIssue]:
    """Collect every soft-limit violation instead of stopping at the first one."""
    data = theme.to_dict() if isinstance(theme, ThemeConfig) else dict(theme)
    problems: list[LimitIssue] = []

    payload_size = len(json.dumps(data, separators=(",", ":")).encode("utf-8"))
    if payload_size > MAX_THEME_PAYLOAD_BYTES:
        problems.append(
            LimitIssue(
                code="PAYLOAD_TOO_LARGE",
                detail=f"serialized theme is {payload_size} bytes (limit {MAX_THEME_PAYLOAD_BYTES})",
            )
        )

    css_vars = data.get("cssVars") if isinstance(data.get("cssVars"), Mapping) else {}
    for mode in THEME_MODES:
        mode_vars = css_vars.get(mode) if isinstance(css_vars.get(mode), Mapping) else {}
        if len(mode_vars) != MAX_TOKENS_PER_MODE:
            problems.append(
                LimitIssue(
                    code="TOKEN_LIMIT_EXCEEDED",
                    detail=f"cssVars.{mode} has {len(mode_vars)} tokens (expected {MAX_TOKENS_PER_MODE})",
                )
            )

    logo = data.get("logo") if isinstance(data.get("logo"), Mapping) else {}
    for key in _LOGO_URL_KEYS:
        value = logo.get(key)
        if not isinstance(value, str):
            continue
        size = data_uri_size(value)
        if size is not None and size > MAX_LOGO_DATA_URI_BYTES:
            problems.append(
                LimitIssue(
                    code="LOGO_TOO_LARGE",
                    detail=f"logo.{key} embeds {size} bytes (limit {MAX_LOGO_DATA_URI_BYTES})",
                )
            )
    return problems


def data_uri_size(value: str) -> int | None:
    """Decoded byte size of a data URI, or None when the value is not one."""
    match = _DATA_URI_RE.match(value)
    if match is None:
        return None
    body = match.group(2)
    if match.group(1):
        stripped = body.rstrip("=")
        return (len(stripped) * 3) // 4
    return len(body.encode("utf-8"))


def is_valid_asset_url(value: str) -> bool:
    """Asset URLs must be root-relative paths or absolute http(s) URLs."""
    if not value or len(value) > MAX_ASSET_URL_LEN:
        return False
    if any(ch.isspace() for ch in value):
        return False
    if value.startswith("/"):
        return not value.startswith("//")
    return is_http_url(value)


def is_http_url(value: str) -> bool:
    try:
        parts = urlsplit(value)
    except ValueError:
        return False
    return parts.scheme in {"http", "https"} and bool(parts.netloc)


def is_valid_css_value(value: str) -> bool:
    if not value or len(value) > MAX_CSS_VALUE_LEN:
        return False
    if _BLOCKED_VALUE_RE.search(value):
        return False
    return bool(
        _HEX_COLOR_RE.match(value)
        or _FUNC_VALUE_RE.match(value)
        or _KEYWORD_RE.match(value)
        or _LENGTH_RE.match(value)
    )


def is_reference_value(value: object) -> bool:
    """True for values that point at another custom property, e.g. ``var(--sm-accent)``."""
    return isinstance(value, str) and bool(_REFERENCE_RE.match(value.strip()))


def is_iso_datetime(value: str) -> bool:
    if "T" not in value:
        return False
    try:
        datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return False
    return True


# -- section parsers --


def _parse_logo(data: Mapping[str, object], path: str, issues: list[ValidationIssue]) -> LogoConfig:
    cleaned = _check_partial_fields(data, path, LOGO_FIELDS, _check_logo_field, issues)
    kwargs = {attr: cleaned[wire] for attr, wire in LOGO_FIELDS if wire in cleaned}
    return LogoConfig(**kwargs)


def _parse_font(
    data: Mapping[str, object],
    path: str,
    issues: list[ValidationIssue],
) -> FontConfig | None:
    cleaned = _check_partial_fields(data, path, FONT_FIELDS, _check_font_field, issues)
    for required in ("family", "source"):
        if required not in data:
            issues.append(ValidationIssue(f"{path}.{required}", "is required"))
    if "family" not in cleaned or "source" not in cleaned:
        return None
    if cleaned["source"] == "custom" and not cleaned.get("url"):
        issues.append(ValidationIssue(f"{path}.url", "is required when source is 'custom'"))
    kwargs = {attr: cleaned[wire] for attr, wire in FONT_FIELDS if wire in cleaned}
    return FontConfig(**kwargs)


def _parse_vars(
    data: Mapping[str, object],
    path: str,
    issues: list[ValidationIssue],
) -> dict[str, str]:
    _reject_unknown_keys(data, allowed=set(THEME_TOKENS), path=path, issues=issues)
    missing = [token for token in THEME_TOKENS if token not in data]
    if missing:
        issues.append(ValidationIssue(path, f"missing required tokens: {', '.join(sorted(missing))}"))
    values: dict[str, str] = {}
    for token in THEME_TOKENS:
        if token not in data:
            continue
        value = _check_css_value(data[token], f"{path}.{token}", issues)
        if value is not None:
            values[token] = value
    return values


def _parse_metadata(
    data: Mapping[str, object],
    path: str,
    issues: list[ValidationIssue],
) -> ThemeMetadata | None:
    cleaned = _check_partial_fields(data, path, METADATA_FIELDS, _check_metadata_field, issues)
    for required in ("updatedBy", "updatedAt"):
        if required not in data:
            issues.append(ValidationIssue(f"{path}.{required}", "is required"))
    if "updatedBy" not in cleaned or "updatedAt" not in cleaned:
        return None
    kwargs = {attr: cleaned[wire] for attr, wire in METADATA_FIELDS if wire in cleaned}
    return ThemeMetadata(**kwargs)


# -- field checks; each returns the cleaned value or None after recording an issue --


def _check_logo_field(key: str, value: object, path: str, issues: list[ValidationIssue]) -> Any:
    if key in _LOGO_URL_KEYS:
        if not isinstance(value, str) or not is_valid_asset_url(value):
            issues.append(ValidationIssue(path, "must be an HTTP(S) URL or absolute path"))
            return None
        return value
    if key == "alt":
        return _check_str(value, path, issues, max_len=MAX_LOGO_ALT_LEN, allow_empty=True)
    if key in {"width", "height"}:
        if not _is_int(value) or value <= 0:
            issues.append(ValidationIssue(path, "must be a positive integer"))
            return None
        return value
    if key == "etag":
        return _check_str(value, path, issues, max_len=256, allow_empty=True)
    if key == "updatedAt":
        return _check_datetime(value, path, issues)
    return None


def _check_font_field(key: str, value: object, path: str, issues: list[ValidationIssue]) -> Any:
    if key == "family":
        return _check_str(value, path, issues, max_len=MAX_FONT_FAMILY_LEN)
    if key == "source":
        if value not in FONT_SOURCES:
            issues.append(ValidationIssue(path, f"must be one of {', '.join(FONT_SOURCES)}"))
            return None
        return value
    if key == "weights":
        if not isinstance(value, list) or not all(
            _is_int(item) and MIN_FONT_WEIGHT <= item <= MAX_FONT_WEIGHT for item in value
        ):
            issues.append(
                ValidationIssue(path, f"must be integers between {MIN_FONT_WEIGHT} and {MAX_FONT_WEIGHT}")
            )
            return None
        return list(value)
    if key == "preload":
        if not isinstance(value, bool):
            issues.append(ValidationIssue(path, "must be a boolean"))
            return None
        return value
    if key == "url":
        if not isinstance(value, str) or len(value) > MAX_ASSET_URL_LEN or not is_http_url(value):
            issues.append(ValidationIssue(path, "must be an HTTP(S) URL"))
            return None
        return value
    return None


def _check_metadata_field(key: str, value: object, path: str, issues: list[ValidationIssue]) -> Any:
    if key == "version":
        if not _is_int(value) or value < 1:
            issues.append(ValidationIssue(path, "must be an integer >= 1"))
            return None
        return value
    if key == "updatedBy":
        return _check_str(value, path, issues, max_len=256)
    if key == "updatedAt":
        return _check_datetime(value, path, issues)
    if key == "previewHash":
        return _check_str(value, path, issues, max_len=128)
    return None


def _check_partial_fields(
    data: Mapping[str, object],
    path: str,
    fields: tuple[tuple[str, str], ...],
    check,
    issues: list[ValidationIssue],
) -> dict[str, Any]:
    allowed = {wire for _, wire in fields}
    _reject_unknown_keys(data, allowed=allowed, path=path, issues=issues)
    cleaned: dict[str, Any] = {}
    for _, wire in fields:
        if wire not in data or data[wire] is None:
            continue
        before = len(issues)
        value = check(wire, data[wire], f"{path}.{wire}", issues)
        if len(issues) == before:
            cleaned[wire] = value
    return cleaned


def _check_css_value(value: object, path: str, issues: list[ValidationIssue]) -> str | None:
    if not isinstance(value, str) or not value.strip():
        issues.append(ValidationIssue(path, "must be a non-empty string"))
        return None
    cleaned = value.strip()
    if not is_valid_css_value(cleaned):
        issues.append(ValidationIssue(path, f"invalid CSS value {cleaned!r}"))
        return None
    return cleaned


def _check_str(
    value: object,
    path: str,
    issues: list[ValidationIssue],
    *,
    max_len: int,
    allow_empty: bool = False,
) -> str | None:
    if not isinstance(value, str) or (not allow_empty and not value.strip()):
        issues.append(ValidationIssue(path, "must be a non-empty string"))
        return None
    if len(value) > max_len:
        issues.append(ValidationIssue(path, f"exceeds max length {max_len}"))
        return None
    if any(ch in value for ch in ("\n", "\r", "\t")):
        issues.append(ValidationIssue(path, "must be a single line string"))
        return None
    return value


def _check_datetime(value: object, path: str, issues: list[ValidationIssue]) -> str | None:
    if not isinstance(value, str) or not is_iso_datetime(value):
        issues.append(ValidationIssue(path, "must be an ISO-8601 date-time"))
        return None
    return value


def _section(
    data: Mapping[str, object],
    key: str,
    issues: list[ValidationIssue],
    parent: str = "",
) -> Mapping[str, object]:
    path = f"{parent}.{key}" if parent else key
    if key not in data:
        issues.append(ValidationIssue(path, "is required"))
        return {}
    return _mapping_or_issue(data[key], path, issues)


def _mapping_or_issue(value: object, path: str, issues: list[ValidationIssue]) -> Mapping[str, object]:
    if not isinstance(value, Mapping):
        issues.append(ValidationIssue(path, "must be an object"))
        return {}
    return value


def _reject_unknown_keys(
    data: Mapping[str, object],
    *,
    allowed: set[str],
    path: str,
    issues: list[ValidationIssue],
) -> None:
    unknown = sorted(str(key) for key in data.keys() if key not in allowed)
    if unknown:
        issues.append(ValidationIssue(path, f"unsupported keys found: {', '.join(unknown)}"))


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)
