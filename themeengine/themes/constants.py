"""Theme framework constants."""

from __future__ import annotations

THEME_SETTINGS_KEY = "THEME"

# The only copy of the token vocabulary. Compiler and validator both read it here.
THEME_TOKENS: tuple[str, ...] = (
    "sm-text",
    "sm-text-contrast",
    "sm-accent",
    "sm-accent-hover",
    "sm-background-darkest",
    "sm-background-lightest",
    "sm-background-gradient-start",
    "sm-background-gradient-end",
    "sm-state-success",
    "sm-state-success-background",
    "sm-state-success-fg-deep",
    "sm-state-warning",
    "sm-state-warning-background",
    "sm-state-error",
    "sm-state-error-background",
    "sm-graphics-primary",
    "sm-graphics-secondary",
    "sm-graphics-tertiary",
    "sm-graphics-quaternary",
    "sm-colored-shadow",
    "sm-inset-shadow",
    "sm-muted",
    "sm-border",
    "radius",
)

THEME_MODES: tuple[str, ...] = ("light", "dark")
FONT_SLOTS: tuple[str, ...] = ("sans", "mono")
FONT_SOURCES: tuple[str, ...] = ("fontsource", "google", "custom")

DEFAULT_GOOGLE_WEIGHTS: tuple[int, ...] = (400, 700)
GOOGLE_FONTS_CSS_URL = "https://fonts.googleapis.com/css2"
GOOGLE_FONTS_ORIGIN = "https://fonts.googleapis.com"
GOOGLE_FONTS_STATIC_ORIGIN = "https://fonts.gstatic.com"

FONT_FALLBACKS: dict[str, str] = {
    "sans": "ui-sans-serif, system-ui, sans-serif",
    "mono": "ui-monospace, SFMono-Regular, monospace",
}

HASH_LENGTH = 16
DEFAULT_PREVIEW_TTL_SECONDS = 60

# Drafts with more changed tokens than this are compiled on a worker thread.
THEME_COMPILE_THRESHOLD = 4

MAX_ASSET_URL_LEN = 2048
MAX_LOGO_ALT_LEN = 200
MAX_FONT_FAMILY_LEN = 100
MAX_CSS_VALUE_LEN = 256
MIN_FONT_WEIGHT = 100
MAX_FONT_WEIGHT = 900

# Soft limits, reported by check_theme_limits rather than raised.
MAX_THEME_PAYLOAD_BYTES = 64 * 1024
MAX_LOGO_DATA_URI_BYTES = 256 * 1024
MAX_TOKENS_PER_MODE = len(THEME_TOKENS)
