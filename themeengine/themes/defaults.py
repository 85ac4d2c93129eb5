"""Compiled-in default theme, served whenever no valid theme row exists."""

from __future__ import annotations

from datetime import datetime, timezone

from themeengine.themes.models import (
    FontConfig,
    LogoConfig,
    ThemeConfig,
    ThemeCssVars,
    ThemeFonts,
    ThemeMetadata,
    clone_theme_config,
)

DEFAULT_LIGHT_VARS: dict[str, str] = {
    "sm-text": "oklch(0.2264 0 87)",
    "sm-text-contrast": "oklch(1 0 87)",
    "sm-accent": "oklch(0.5745 0.2028 263.15)",
    "sm-accent-hover": "oklch(0.5745 0.2028 263.15 / 0.2)",
    "sm-background-darkest": "oklch(0.9359 0.0275 265.45)",
    "sm-background-lightest": "oklch(0.967 0.014 268.49)",
    "sm-background-gradient-start": "oklch(0.9886 0.0026 286.35)",
    "sm-background-gradient-end": "oklch(0.9691 0.0103 261.79)",
    "sm-state-success": "oklch(0.2264 0 87)",
    "sm-state-success-background": "oklch(0.812 0.1064 153.89)",
    "sm-state-success-fg-deep": "hsl(140, 100%, 27%)",
    "sm-state-warning": "oklch(0.2264 0 87)",
    "sm-state-warning-background": "oklch(0.8354 0.1274 72.2)",
    "sm-state-error": "oklch(0.2264 0 87)",
    "sm-state-error-background": "oklch(0.7044 0.1872 23.19)",
    "sm-graphics-primary": "oklch(0.7675 0.0982 182.83)",
    "sm-graphics-secondary": "oklch(0.7284 0.1133 210.64)",
    "sm-graphics-tertiary": "oklch(0.6396 0.145 248.18)",
    "sm-graphics-quaternary": "oklch(0.6296 0.2209 300.47)",
    "sm-colored-shadow": "oklch(0.5745 0.2028 263.15 / 0.12)",
    "sm-inset-shadow": "rgba(0, 0, 0, 0.21)",
    "sm-muted": "oklch(0.2264 0 87 / 32%)",
    "sm-border": "oklch(0.2264 0 87 / 12%)",
    "radius": "0.625rem",
}

DEFAULT_DARK_VARS: dict[str, str] = {
    "sm-text": "oklch(1 0 87)",
    "sm-text-contrast": "oklch(0.2264 0 87)",
    "sm-accent": "oklch(0.6219 0.1772 263.65)",
    "sm-accent-hover": "oklch(0.5745 0.2028 263.15 / 0.2)",
    "sm-background-darkest": "oklch(0.2264 0 0)",
    "sm-background-lightest": "oklch(0.2809 0 0)",
    "sm-background-gradient-start": "oklch(0.3368 0 0)",
    "sm-background-gradient-end": "oklch(0.3092 0 0)",
    "sm-state-success": "oklch(1 0 87)",
    "sm-state-success-background": "oklch(0.812 0.1064 153.89)",
    "sm-state-success-fg-deep": "hsl(140, 100%, 27%)",
    "sm-state-warning": "oklch(1 0 87)",
    "sm-state-warning-background": "oklch(0.8354 0.1274 72.2)",
    "sm-state-error": "oklch(1 0 87)",
    "sm-state-error-background": "oklch(0.7044 0.1872 23.19)",
    "sm-graphics-primary": "oklch(0.7675 0.0982 182.83)",
    "sm-graphics-secondary": "oklch(0.7284 0.1133 210.64)",
    "sm-graphics-tertiary": "oklch(0.6396 0.145 248.18)",
    "sm-graphics-quaternary": "oklch(0.6296 0.2209 300.47)",
    "sm-colored-shadow": "oklch(0.2264 0 0)",
    "sm-inset-shadow": "rgba(0, 0, 0, 0.21)",
    "sm-muted": "oklch(1 0 87 / 32%)",
    "sm-border": "oklch(1 0 87 / 12%)",
    "radius": "0.625rem",
}

_DEFAULT_UPDATED_AT = datetime.now(timezone.utc).isoformat(timespec="milliseconds")

DEFAULT_THEME = ThemeConfig(
    logo=LogoConfig(
        light_url="/logos/settlemint-logo-h-lm.svg",
        dark_url="/logos/settlemint-logo-h-dm.svg",
        light_icon_url="/logos/settlemint-logo-i-lm.svg",
        dark_icon_url="/logos/settlemint-logo-i-dm.svg",
        alt="SettleMint",
    ),
    fonts=ThemeFonts(
        sans=FontConfig(family="Figtree Variable", source="fontsource", preload=True),
        mono=FontConfig(family="Roboto Mono Variable", source="fontsource", preload=True),
    ),
    css_vars=ThemeCssVars(light=dict(DEFAULT_LIGHT_VARS), dark=dict(DEFAULT_DARK_VARS)),
    metadata=ThemeMetadata(version=1, updated_by="system", updated_at=_DEFAULT_UPDATED_AT),
)


def default_theme() -> ThemeConfig:
    """Return a private copy of the default theme; callers may mutate it freely."""
    return clone_theme_config(DEFAULT_THEME)
