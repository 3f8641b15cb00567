"""Global test configuration for wikimirror tests."""

import threading
import time

import pytest
import structlog

from wikimirror.core.config import Settings
from wikimirror.core.models import Page, Space
from wikimirror.mirror.fetcher import FetchResult
from wikimirror.mirror.target import TargetFactory
from wikimirror.mirror.writer import AtomicWriter


class FakeStore:
    """In-memory content store; tests mutate ``pages`` to simulate edits."""

    def __init__(self, spaces=None, pages=None):
        self.spaces = list(spaces or [])
        self.pages = {p.id: p for p in (pages or [])}
        self.get_page_calls = 0

    def put(self, page):
        self.pages[page.id] = page

    def remove(self, page_id):
        self.pages.pop(page_id, None)

    def get_spaces(self):
        return list(self.spaces)

    def get_pages(self, space_key, include_descendants=True):
        return [p for p in self.pages.values() if p.space_key == space_key]

    def get_page(self, page_id):
        self.get_page_calls += 1
        return self.pages.get(page_id)


class RecordingFetcher:
    """Fetcher stand-in that records calls and the peak number running at once."""

    def __init__(self, body="<html>ok</html>", delay=0.0, fail_urls=()):
        self.body = body
        self.delay = delay
        self.fail_urls = set(fail_urls)
        self.calls = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def fetch(self, url):
        with self._lock:
            self.calls.append(url)
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                time.sleep(self.delay)
            if url in self.fail_urls:
                return FetchResult(url=url, ok=False, status=503, error="HTTP 503")
            body = self.body(url) if callable(self.body) else self.body
            return FetchResult(url=url, ok=True, status=200, body=body)
        finally:
            with self._lock:
                self.in_flight -= 1

    def close(self):
        pass


def make_page(title="Home", space_key="DEV", page_id=None, labels=None):
    return Page(
        id=page_id or f"{space_key}-{title}",
        space_key=space_key,
        title=title,
        url_path=f"/display/{space_key}/{title.replace(' ', '+')}",
        labels=labels or [],
    )


@pytest.fixture
def cache_root(tmp_path):
    root = (tmp_path / "cache").resolve()
    root.mkdir()
    return root


@pytest.fixture
def settings(cache_root):
    return Settings(
        _env_file=None,
        WIKIMIRROR_ROOT_PATH=str(cache_root),
        CONFLUENCE_BASE_URL="https://wiki.example.com",
        CONFLUENCE_USERNAME="mirror",
        CONFLUENCE_PASSWORD="secret",
        MIRROR_DEBOUNCE_SECONDS=0.05,
    )


@pytest.fixture
def factory(cache_root):
    return TargetFactory(root=cache_root, retrieval_url="https://wiki.example.com")


@pytest.fixture
def writer():
    return AtomicWriter(fsync=False)


@pytest.fixture
def fetcher():
    return RecordingFetcher()


@pytest.fixture
def store():
    return FakeStore(spaces=[Space(id="1", key="DEV", type="global")])


@pytest.fixture(autouse=True)
def _reset_structlog():
    """Undo logging config bound to a test runner's (later closed) stderr."""
    yield
    structlog.reset_defaults()
