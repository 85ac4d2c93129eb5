"""Theme compilation helpers.

Everything here is a pure function of its arguments so it can run on a worker
thread, in another process or on the server without coordination.
"""

from __future__ import annotations

import hashlib
from typing import Iterable
from urllib.parse import quote_plus

from themeengine.themes.constants import (
    DEFAULT_GOOGLE_WEIGHTS,
    FONT_FALLBACKS,
    GOOGLE_FONTS_CSS_URL,
    GOOGLE_FONTS_ORIGIN,
    GOOGLE_FONTS_STATIC_ORIGIN,
    HASH_LENGTH,
    THEME_MODES,
    THEME_TOKENS,
)
from themeengine.themes.models import (
    CompiledCSSArtifact,
    FontConfig,
    ResolvedFontLink,
    ThemeConfig,
    ThemeFonts,
)

_MODE_SELECTORS = {"light": ":root", "dark": ".dark"}
_SORTED_TOKENS: tuple[str, ...] = tuple(sorted(THEME_TOKENS))


def compile_theme_css(theme: ThemeConfig) -> str:
    """Compile a theme into CSS text.

    Tokens are emitted in sorted order so the output never depends on the
    insertion order of the underlying mappings.
    """
    lines: list[str] = []
    imports = _font_import_urls((theme.fonts.sans, theme.fonts.mono))
    for url in imports:
        lines.append(f'@import url("{_escape_css_string(url)}");')
    if imports:
        lines.append("")

    for index, mode in enumerate(THEME_MODES):
        values = theme.css_vars.light if mode == "light" else theme.css_vars.dark
        if index:
            lines.append("")
        lines.append(f"{_MODE_SELECTORS[mode]} {{")
        for token in _SORTED_TOKENS:
            value = values.get(token)
            if value is None:
                continue
            lines.append(f"  --{token}: {value};")
        lines.append("}")
    return "\n".join(lines) + "\n"


def hash_css(css: str) -> str:
    return hashlib.sha256(css.encode("utf-8")).hexdigest()[:HASH_LENGTH]


def hash_theme(theme: ThemeConfig) -> str:
    """Hash of the compiled CSS, not of the raw document."""
    return hash_css(compile_theme_css(theme))


def compile_theme_artifact(theme: ThemeConfig) -> CompiledCSSArtifact:
    css = compile_theme_css(theme)
    return CompiledCSSArtifact(css=css, hash=hash_css(css))


def google_font_url(font: FontConfig) -> str:
    family = quote_plus(font.family)
    weights = font.weights or list(DEFAULT_GOOGLE_WEIGHTS)
    joined = ";".join(str(weight) for weight in weights)
    return f"{GOOGLE_FONTS_CSS_URL}?family={family}:wght@{joined}&display=swap"


def generate_font_links(fonts: ThemeFonts | Iterable[FontConfig]) -> list[ResolvedFontLink]:
    """Resolve `<link>` descriptors for web fonts, deduplicated by href."""
    candidates: list[ResolvedFontLink] = []
    for font in _iter_fonts(fonts):
        if font.source == "google":
            candidates.append(ResolvedFontLink(rel="preconnect", href=GOOGLE_FONTS_ORIGIN))
            candidates.append(
                ResolvedFontLink(
                    rel="preconnect",
                    href=GOOGLE_FONTS_STATIC_ORIGIN,
                    cross_origin="anonymous",
                )
            )
            candidates.append(ResolvedFontLink(rel="stylesheet", href=google_font_url(font)))
        elif font.source == "custom" and font.url:
            candidates.append(ResolvedFontLink(rel="stylesheet", href=font.url))

    links: list[ResolvedFontLink] = []
    seen: set[str] = set()
    for link in candidates:
        if link.href in seen:
            continue
        seen.add(link.href)
        links.append(link)
    return links


def resolve_font_variables(fonts: ThemeFonts) -> dict[str, str]:
    """CSS custom properties that point the app's font stacks at the configured families."""
    return {
        "--font-sans": _font_stack(fonts.sans, FONT_FALLBACKS["sans"]),
        "--font-mono": _font_stack(fonts.mono, FONT_FALLBACKS["mono"]),
    }


def count_changed_tokens(base: ThemeConfig, draft: ThemeConfig) -> int:
    """Number of token values (both modes) that differ between two themes."""
    changed = 0
    for mode in THEME_MODES:
        before = base.css_vars.light if mode == "light" else base.css_vars.dark
        after = draft.css_vars.light if mode == "light" else draft.css_vars.dark
        for token in set(before) | set(after):
            if before.get(token) != after.get(token):
                changed += 1
    return changed


def _font_import_urls(fonts: Iterable[FontConfig]) -> list[str]:
    urls: list[str] = []
    for font in fonts:
        if font.source == "google":
            url = google_font_url(font)
        elif font.source == "custom" and font.url:
            url = font.url
        else:
            continue
        if url not in urls:
            urls.append(url)
    return urls


def _iter_fonts(fonts: ThemeFonts | Iterable[FontConfig]) -> Iterable[FontConfig]:
    if isinstance(fonts, ThemeFonts):
        return (fonts.sans, fonts.mono)
    return fonts


def _font_stack(font: FontConfig, fallback: str) -> str:
    return f'"{_escape_css_string(font.family)}", {fallback}'


def _escape_css_string(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')
