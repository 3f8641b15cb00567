"""Tests for MirrorService wiring."""

import pytest

from conftest import FakeStore, RecordingFetcher, make_page
from wikimirror.core.config import Settings
from wikimirror.core.errors import NotConfiguredError
from wikimirror.core.events import PageEvent
from wikimirror.core.models import Space
from wikimirror.mirror.service import MirrorService
from wikimirror.mirror.target import TargetFactory
from wikimirror.mirror.writer import AtomicWriter

pytestmark = pytest.mark.unit


@pytest.fixture
def service(settings, fetcher):
    store = FakeStore(
        spaces=[Space(key="DEV"), Space(key="~me", type="personal")],
        pages=[make_page("Home"), make_page("Foo Bar")],
    )
    svc = MirrorService(
        settings=settings,
        store=store,
        factory=TargetFactory.from_settings(settings),
        fetcher=fetcher,
        writer=AtomicWriter(fsync=False),
        debounce_seconds=0.0,
    )
    svc.start()
    yield svc
    svc.shutdown(timeout=5)


def test_from_settings_requires_configuration():
    with pytest.raises(NotConfiguredError):
        MirrorService.from_settings(Settings(_env_file=None, WIKIMIRROR_ROOT_PATH=None))


def test_from_settings_uses_configured_values(settings):
    svc = MirrorService.from_settings(settings, store=FakeStore(), debounce_seconds=1.5)
    try:
        assert svc.scheduler.debounce_seconds == 1.5
        assert svc.factory.root == settings.root_path
        assert svc.router.is_configured()
    finally:
        svc.fetcher.close()


def test_default_debounce_comes_from_settings(settings):
    svc = MirrorService.from_settings(settings, store=FakeStore())
    try:
        assert svc.scheduler.debounce_seconds == settings.MIRROR_DEBOUNCE_SECONDS
    finally:
        svc.fetcher.close()


def test_regenerate_all_writes_every_page(service, cache_root):
    stale = cache_root / "DEV" / "Deleted.html"
    stale.parent.mkdir(parents=True)
    stale.write_text("old")

    reports = service.regenerate_all()
    assert service.scheduler.join(timeout=5)

    assert [r.space_key for r in reports] == ["DEV", "~me"]
    assert not stale.exists()
    assert sorted(p.name for p in (cache_root / "DEV").iterdir()) == [
        "Foo Bar.html",
        "Foo+Bar.html",
        "Home.html",
    ]
    assert service.scheduler.completed == 2


def test_dispatch_goes_through_router(service, cache_root):
    page = make_page("Home")
    service.dispatch(PageEvent(kind="page_created", page=page))
    assert service.scheduler.join(timeout=5)
    assert (cache_root / "DEV" / "Home.html").read_text() == "<html>ok</html>"


def test_shutdown_closes_fetcher(settings):
    closed = []

    class ClosingFetcher(RecordingFetcher):
        def close(self):
            closed.append(True)

    svc = MirrorService(
        settings=settings,
        store=FakeStore(),
        factory=TargetFactory.from_settings(settings),
        fetcher=ClosingFetcher(),
        writer=AtomicWriter(fsync=False),
    )
    svc.start()
    svc.shutdown(timeout=5)
    assert closed == [True]
