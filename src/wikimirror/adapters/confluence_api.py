from collections.abc import Iterable
from typing import Any
from urllib.parse import urljoin

import httpx
from httpx import BasicAuth
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from ..core.config import SETTINGS, Settings, wiki_base
from ..core.logging import log
from ..core.models import Page, Space

V2_PREFIX = "/api/v2"


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status == 429 or status >= 500
    return isinstance(exc, httpx.TransportError)


_retry = retry(
    wait=wait_exponential(min=1, max=30),
    stop=stop_after_attempt(5),
    retry=retry_if_exception(_is_retryable),
    reraise=True,
)


class ConfluenceClient:
    """Content store backed by the Confluence Cloud REST API (v2)."""

    def __init__(
        self,
        base_url: str | None = None,
        username: str | None = None,
        password: str | None = None,
        settings: Settings | None = None,
    ):
        settings = settings or SETTINGS
        # e.g. https://example.atlassian.net/wiki
        self.site_base = wiki_base(base_url or settings.CONFLUENCE_BASE_URL or "")
        self.api_base = self.site_base  # httpx base_url
        self._client = httpx.Client(
            base_url=self.api_base,
            timeout=settings.HTTP_TIMEOUT_SECONDS,
            verify=settings.HTTP_VERIFY_TLS,
            auth=BasicAuth(
                username or settings.CONFLUENCE_USERNAME or "",
                password or settings.CONFLUENCE_PASSWORD or "",
            ),
            headers={"Accept": "application/json"},
        )
        self._space_keys: dict[str, str] = {}  # space id -> key
        self._space_ids: dict[str, str] = {}  # space key -> id

    # ---------- pagination helper ----------
    def _next_link(self, resp: httpx.Response, data: dict) -> str | None:
        nxt = (data.get("_links") or {}).get("next")
        if nxt:
            # v2 returns absolute or relative; normalize
            if nxt.startswith("http"):
                return nxt
            # relative links already carry /wiki
            base_without_wiki = self.api_base.replace("/wiki", "")
            return urljoin(base_without_wiki + "/", nxt.lstrip("/"))

        # fallback: Link header
        link = resp.headers.get("Link", "")
        for part in link.split(","):
            if 'rel="next"' in part:
                url = part.split(";")[0].strip().strip("<>")
                if url.startswith("http"):
                    return url
                base_without_wiki = self.api_base.replace("/wiki", "")
                return urljoin(base_without_wiki + "/", url.lstrip("/"))
        return None

    @_retry
    def _get(self, url: str, params: dict | None = None) -> httpx.Response:
        r = self._client.get(url, params=params)
        r.raise_for_status()
        return r

    def _paginate(self, url: str, params: dict | None = None) -> Iterable[dict]:
        first = True
        while True:
            r = self._get(url, params=params if first else None)
            data = r.json()
            yield from data.get("results", [])
            nxt = self._next_link(r, data)
            if not nxt:
                break
            url, params, first = nxt, None, False

    # ---------- spaces ----------
    def _map_space(self, obj: dict) -> Space:
        space = Space(
            id=str(obj["id"]) if obj.get("id") is not None else None,
            key=obj.get("key", ""),
            name=obj.get("name"),
            type=obj.get("type"),
        )
        if space.id:
            self._space_keys[space.id] = space.key
            self._space_ids[space.key] = space.id
        return space

    def get_spaces(self, keys: list[str] | None = None, limit: int = 100) -> Iterable[Space]:
        params: dict[str, Any] = {"limit": limit}
        if keys:
            params["keys"] = ",".join(keys)
        for obj in self._paginate(f"{V2_PREFIX}/spaces", params):
            yield self._map_space(obj)

    def _space_id(self, space_key: str) -> str | None:
        if space_key not in self._space_ids:
            for _ in self.get_spaces(keys=[space_key]):
                pass
        return self._space_ids.get(space_key)

    def _space_key(self, space_id: str | None) -> str:
        if not space_id:
            return ""
        if space_id not in self._space_keys:
            r = self._get(f"{V2_PREFIX}/spaces/{space_id}")
            self._map_space(r.json())
        return self._space_keys.get(space_id, "")

    # ---------- pages ----------
    def get_page_labels(self, page_id: str) -> list[str]:
        return [
            label["name"]
            for label in self._paginate(f"{V2_PREFIX}/pages/{page_id}/labels", {"limit": 100})
            if label.get("name")
        ]

    def _map_page(self, obj: dict, space_key: str | None = None) -> Page:
        page_id = str(obj.get("id"))
        version = obj.get("version") or {}
        return Page(
            id=page_id,
            space_key=space_key or self._space_key(obj.get("spaceId")),
            title=obj.get("title", ""),
            url_path=(obj.get("_links") or {}).get("webui", ""),
            labels=self.get_page_labels(page_id),
            version=version.get("number"),
        )

    def get_pages(self, space_key: str, include_descendants: bool = True, limit: int = 100) -> Iterable[Page]:
        space_id = self._space_id(space_key)
        if space_id is None:
            log.warning("confluence.space.unknown", space_key=space_key)
            return
        params: dict[str, Any] = {
            "limit": limit,
            "depth": "all" if include_descendants else "root",
            "status": "current",
        }
        for obj in self._paginate(f"{V2_PREFIX}/spaces/{space_id}/pages", params):
            yield self._map_page(obj, space_key)

    def get_page(self, page_id: str) -> Page | None:
        try:
            r = self._get(f"{V2_PREFIX}/pages/{page_id}")
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                return None
            raise
        obj = r.json()
        if obj.get("status") not in (None, "current"):
            return None  # trashed or draft
        return self._map_page(obj)

    def close(self) -> None:
        self._client.close()
