"""Theme document schema, defaults and compiler exports."""

from themeengine.themes.compiler import compile_theme_css, generate_font_links, hash_theme
from themeengine.themes.constants import THEME_SETTINGS_KEY, THEME_TOKENS
from themeengine.themes.defaults import DEFAULT_THEME, default_theme
from themeengine.themes.models import (
    CompiledCSSArtifact,
    FontConfig,
    LogoConfig,
    ResolvedFontLink,
    ThemeConfig,
    ThemeCssVars,
    ThemeFonts,
    ThemeMetadata,
    clone_theme_config,
)
from themeengine.themes.schema import parse_theme_config, parse_theme_partial

__all__ = [
    "DEFAULT_THEME",
    "THEME_SETTINGS_KEY",
    "THEME_TOKENS",
    "CompiledCSSArtifact",
    "FontConfig",
    "LogoConfig",
    "ResolvedFontLink",
    "ThemeConfig",
    "ThemeCssVars",
    "ThemeFonts",
    "ThemeMetadata",
    "clone_theme_config",
    "compile_theme_css",
    "default_theme",
    "generate_font_links",
    "hash_theme",
    "parse_theme_config",
    "parse_theme_partial",
]
