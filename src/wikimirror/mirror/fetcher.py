from collections.abc import Callable

import httpx
from httpx import BasicAuth
from pydantic import BaseModel

from ..core.config import Settings
from ..core.logging import log

Transform = Callable[[str], str]


class FetchResult(BaseModel):
    url: str
    ok: bool
    status: int | None = None  # None on transport failure
    body: str | None = None
    error: str | None = None


def hide_element(element_id: str) -> Transform:
    """Transform that hides the element carrying ``id="<element_id>"``."""
    marker = f'id="{element_id}"'

    def _transform(html: str) -> str:
        return html.replace(marker, marker + " style='display:none'")

    return _transform


class Fetcher:
    """Authenticated GET of rendered pages.

    Never raises for HTTP or transport problems; the caller gets a failed
    FetchResult instead and leaves the artifact absent.
    """

    def __init__(
        self,
        username: str,
        password: str,
        transform: Transform | None = None,
        timeout: float = 30.0,
        verify: bool = True,
        client: httpx.Client | None = None,
    ):
        self.transform = transform
        self._client = client or httpx.Client(
            timeout=timeout,
            verify=verify,
            follow_redirects=True,
            auth=BasicAuth(username, password),
            headers={"Accept": "text/html"},
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Fetcher":
        return cls(
            username=settings.CONFLUENCE_USERNAME or "",
            password=settings.CONFLUENCE_PASSWORD or "",
            transform=hide_element(settings.MIRROR_HIDDEN_ELEMENT_ID),
            timeout=settings.HTTP_TIMEOUT_SECONDS,
            verify=settings.HTTP_VERIFY_TLS,
        )

    def fetch(self, url: str) -> FetchResult:
        log.info("fetch.start", url=url)
        try:
            response = self._client.get(url)
        except httpx.HTTPError as e:
            log.warning("fetch.failed", url=url, error=str(e))
            return FetchResult(url=url, ok=False, error=f"{type(e).__name__}: {e}")

        if not response.is_success:
            log.warning("fetch.failed", url=url, status=response.status_code)
            return FetchResult(
                url=url,
                ok=False,
                status=response.status_code,
                error=f"HTTP {response.status_code}",
            )

        html = response.text
        if self.transform is not None:
            html = self.transform(html)
        return FetchResult(url=url, ok=True, status=response.status_code, body=html)

    def close(self) -> None:
        self._client.close()
