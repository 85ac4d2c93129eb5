"""Hash-keyed revalidation of the compiled theme stylesheet."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

from themeengine import __version__
from themeengine.errors import ErrorCode, ThemeEngineError, classify_exception

logger = logging.getLogger("themeengine.client")

THEME_CSS_PATH = "/api/theme.css"
MANAGED_STYLE_ID = "theme-overrides"


@dataclass
class ManagedStyleElement:
    """The ``<style>`` element this module owns; ``dataset['hash']`` marks its content."""

    element_id: str = MANAGED_STYLE_ID
    text: str = ""
    dataset: dict[str, str] = field(default_factory=dict)
    writes: int = 0

    @property
    def hash(self) -> str | None:
        return self.dataset.get("hash")

    def replace(self, css: str, css_hash: str) -> None:
        self.text = css
        self.dataset["hash"] = css_hash
        self.writes += 1


@dataclass(frozen=True, slots=True)
class StylesheetResponse:
    body: str
    etag: str | None


Fetcher = Callable[[str, dict[str, str]], StylesheetResponse]


def normalize_etag(value: str | None) -> str | None:
    """Strip the weak prefix and surrounding quotes: ``W/"abc"`` becomes ``abc``."""
    if value is None:
        return None
    cleaned = value.strip()
    if cleaned.startswith(("W/", "w/")):
        cleaned = cleaned[2:].strip()
    if len(cleaned) >= 2 and cleaned[0] == cleaned[-1] == '"':
        cleaned = cleaned[1:-1]
    return cleaned or None


def urllib_fetcher(timeout: float = 10.0) -> Fetcher:
    def _fetch(url: str, headers: dict[str, str]) -> StylesheetResponse:
        request = Request(url, headers=headers)
        with urlopen(request, timeout=timeout) as response:
            charset = response.headers.get_content_charset() or "utf-8"
            body = response.read().decode(charset)
            return StylesheetResponse(body=body, etag=response.headers.get("ETag"))

    return _fetch


class StylesheetRevalidator:
    """Fetches compiled CSS by hash and swaps it into the managed element only when it changed."""

    def __init__(
        self,
        base_url: str,
        element: ManagedStyleElement | None = None,
        *,
        fetcher: Fetcher | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._element = element or ManagedStyleElement()
        self._fetcher = fetcher or urllib_fetcher()

    @property
    def element(self) -> ManagedStyleElement:
        return self._element

    def stylesheet_url(self, theme_hash: str) -> str:
        return f"{self._base_url}{THEME_CSS_PATH}?{urlencode({'hash': theme_hash})}"

    def revalidate(self, theme_hash: str) -> bool:
        """Return True when the element content was replaced."""
        headers = {
            "Accept": "text/css",
            "User-Agent": f"ThemeEngine/{__version__}",
        }
        try:
            response = self._fetcher(self.stylesheet_url(theme_hash), headers)
        except HTTPError as exc:
            code = ErrorCode.NETWORK_NOT_FOUND if exc.code == 404 else ErrorCode.NETWORK_UNAVAILABLE
            raise ThemeEngineError(code, details={"status": exc.code, "hash": theme_hash}) from exc
        except TimeoutError as exc:
            raise ThemeEngineError(ErrorCode.NETWORK_TIMEOUT, details={"hash": theme_hash}) from exc
        except (URLError, OSError) as exc:
            raise classify_exception(exc) from exc

        remote_hash = normalize_etag(response.etag) or theme_hash
        if remote_hash == self._element.hash:
            logger.debug("stylesheet %s unchanged; skipping write", remote_hash)
            return False
        self._element.replace(response.body, remote_hash)
        logger.debug("stylesheet replaced with %s", remote_hash)
        return True
