"""Helpers that turn an editor draft into a submittable theme payload."""

from __future__ import annotations

from themeengine.themes.models import ThemeConfig, clone_theme_config


def sanitize_logo_url_for_payload(url: str | None) -> str | None:
    """Drop transient object URLs that only exist inside one editor session."""
    if url is None:
        return None
    cleaned = url.strip()
    if not cleaned or cleaned.lower().startswith("blob:"):
        return None
    return cleaned


def prepare_theme_payload(theme: ThemeConfig) -> ThemeConfig:
    """Clone a draft and strip logo URLs that cannot be persisted."""
    payload = clone_theme_config(theme)
    logo = payload.logo
    logo.light_url = sanitize_logo_url_for_payload(logo.light_url)
    logo.dark_url = sanitize_logo_url_for_payload(logo.dark_url)
    logo.light_icon_url = sanitize_logo_url_for_payload(logo.light_icon_url)
    logo.dark_icon_url = sanitize_logo_url_for_payload(logo.dark_icon_url)
    return payload
