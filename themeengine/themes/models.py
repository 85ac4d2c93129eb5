"""Theme framework models."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Literal

FontSource = Literal["fontsource", "google", "custom"]

# (attribute name, wire name) pairs; wire documents use camelCase keys.
LOGO_FIELDS: tuple[tuple[str, str], ...] = (
    ("light_url", "lightUrl"),
    ("dark_url", "darkUrl"),
    ("light_icon_url", "lightIconUrl"),
    ("dark_icon_url", "darkIconUrl"),
    ("alt", "alt"),
    ("width", "width"),
    ("height", "height"),
    ("etag", "etag"),
    ("updated_at", "updatedAt"),
)
FONT_FIELDS: tuple[tuple[str, str], ...] = (
    ("family", "family"),
    ("source", "source"),
    ("weights", "weights"),
    ("preload", "preload"),
    ("url", "url"),
)
METADATA_FIELDS: tuple[tuple[str, str], ...] = (
    ("version", "version"),
    ("updated_by", "updatedBy"),
    ("updated_at", "updatedAt"),
    ("preview_hash", "previewHash"),
)


def _fields_to_dict(obj: object, fields: tuple[tuple[str, str], ...]) -> dict[str, Any]:
    data: dict[str, Any] = {}
    for attr, wire in fields:
        value = getattr(obj, attr)
        if value is None:
            continue
        data[wire] = list(value) if isinstance(value, list) else value
    return data


@dataclass(slots=True)
class LogoConfig:
    """Logo and icon assets for both color modes."""

    light_url: str | None = None
    dark_url: str | None = None
    light_icon_url: str | None = None
    dark_icon_url: str | None = None
    alt: str = "Logo"
    width: int | None = None
    height: int | None = None
    etag: str | None = None
    updated_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _fields_to_dict(self, LOGO_FIELDS)


@dataclass(slots=True)
class FontConfig:
    """One font slot (sans or mono)."""

    family: str
    source: FontSource
    weights: list[int] | None = None
    preload: bool = False
    url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _fields_to_dict(self, FONT_FIELDS)


@dataclass(slots=True)
class ThemeFonts:
    sans: FontConfig
    mono: FontConfig

    def to_dict(self) -> dict[str, Any]:
        return {"sans": self.sans.to_dict(), "mono": self.mono.to_dict()}


@dataclass(slots=True)
class ThemeCssVars:
    """Token values per color mode, keyed by token name without the leading dashes."""

    light: dict[str, str] = field(default_factory=dict)
    dark: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"light": dict(self.light), "dark": dict(self.dark)}


@dataclass(slots=True)
class ThemeMetadata:
    version: int = 1
    updated_by: str = "system"
    updated_at: str = ""
    preview_hash: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _fields_to_dict(self, METADATA_FIELDS)


@dataclass(slots=True)
class ThemeConfig:
    """The root theme document, persisted as one JSON row."""

    logo: LogoConfig
    fonts: ThemeFonts
    css_vars: ThemeCssVars
    metadata: ThemeMetadata

    def to_dict(self) -> dict[str, Any]:
        """Wire representation with camelCase keys; unset optional fields are omitted."""
        return {
            "logo": self.logo.to_dict(),
            "fonts": self.fonts.to_dict(),
            "cssVars": self.css_vars.to_dict(),
            "metadata": self.metadata.to_dict(),
        }

    def clone(self) -> ThemeConfig:
        return clone_theme_config(self)


def clone_theme_config(theme: ThemeConfig) -> ThemeConfig:
    """Return a deep, fully independent copy of a theme."""
    return copy.deepcopy(theme)


@dataclass(frozen=True, slots=True)
class CompiledCSSArtifact:
    """Compiled stylesheet and the hash of exactly that text."""

    css: str
    hash: str


@dataclass(frozen=True, slots=True)
class ResolvedFontLink:
    """A `<link>` descriptor a renderer should emit for web fonts."""

    rel: Literal["preconnect", "stylesheet"]
    href: str
    cross_origin: str | None = None

    def to_dict(self) -> dict[str, str]:
        data = {"rel": self.rel, "href": self.href}
        if self.cross_origin is not None:
            data["crossOrigin"] = self.cross_origin
        return data


@dataclass(frozen=True, slots=True)
class LimitIssue:
    """A soft-limit violation reported by check_theme_limits."""

    code: str
    detail: str


@dataclass(frozen=True, slots=True)
class TokenDiagnostics:
    """Missing and extra token keys per mode, each sorted."""

    light_missing: tuple[str, ...] = ()
    light_extra: tuple[str, ...] = ()
    dark_missing: tuple[str, ...] = ()
    dark_extra: tuple[str, ...] = ()

    @property
    def is_clean(self) -> bool:
        return not (self.light_missing or self.light_extra or self.dark_missing or self.dark_extra)
