"""Tests for orphan garbage collection."""

from unittest.mock import Mock

import pytest

from conftest import FakeStore, make_page
from wikimirror.core.models import Space
from wikimirror.mirror.reconciler import Reconciler
from wikimirror.mirror.scheduler import RegenerationScheduler

pytestmark = pytest.mark.unit


@pytest.fixture
def space_dir(cache_root):
    d = cache_root / "DEV"
    d.mkdir()
    return d


@pytest.fixture
def scheduler(factory, fetcher, writer):
    # Not started: reconciliation only needs submission
    return RegenerationScheduler(factory, fetcher, writer, debounce_seconds=60)


def test_deletes_orphans_and_keeps_current_pages(space_dir, cache_root, scheduler):
    store = FakeStore(pages=[make_page("Home"), make_page("Foo Bar")])
    for name in ("Home.html", "Foo Bar.html", "Foo+Bar.html", "Stale.html"):
        (space_dir / name).write_text("cached")

    report = Reconciler(store, scheduler, cache_root).reconcile(Space(key="DEV", type="global"))

    assert report.orphans_deleted == ["Stale.html"]
    assert report.pages_scheduled == 2
    assert sorted(p.name for p in space_dir.iterdir()) == ["Foo Bar.html", "Foo+Bar.html", "Home.html"]


def test_every_page_is_scheduled(space_dir, cache_root, scheduler):
    store = FakeStore(pages=[make_page("A"), make_page("B")])

    Reconciler(store, scheduler, cache_root).reconcile(Space(key="DEV"))

    assert scheduler.pending_count == 2


def test_only_artifact_extension_is_considered(space_dir, cache_root, scheduler):
    (space_dir / "notes.txt").write_text("keep")
    (space_dir / "Gone.html.tmp").write_text("keep")
    (space_dir / "Gone.html").write_text("drop")

    report = Reconciler(FakeStore(), scheduler, cache_root).reconcile(Space(key="DEV"))

    assert report.orphans_deleted == ["Gone.html"]
    assert (space_dir / "notes.txt").exists()
    assert (space_dir / "Gone.html.tmp").exists()


def test_nocache_pages_files_are_removed(space_dir, cache_root, scheduler):
    store = FakeStore(pages=[make_page("Secret", labels=["nocache"])])
    (space_dir / "Secret.html").write_text("leaked")

    report = Reconciler(store, scheduler, cache_root).reconcile(Space(key="DEV"))

    assert report.orphans_deleted == ["Secret.html"]


def test_personal_spaces_are_skipped(cache_root, scheduler):
    store = Mock()
    report = Reconciler(store, scheduler, cache_root).reconcile(Space(key="~alice", type="personal"))

    assert report.skipped
    store.get_pages.assert_not_called()


def test_missing_space_directory_is_empty(cache_root, scheduler):
    store = FakeStore(pages=[make_page("Home", space_key="NEW")])

    report = Reconciler(store, scheduler, cache_root).reconcile(Space(key="NEW"))

    assert report.orphans_deleted == []
    assert report.pages_scheduled == 1


def test_reconcile_all_walks_every_space(cache_root, scheduler):
    store = FakeStore(
        spaces=[Space(key="DEV"), Space(key="OPS"), Space(key="~bob", type="personal")],
        pages=[make_page("Home", space_key="DEV"), make_page("Runbook", space_key="OPS")],
    )
    (cache_root / "OPS").mkdir()
    (cache_root / "OPS" / "Old.html").write_text("x")

    reports = Reconciler(store, scheduler, cache_root).reconcile_all()

    assert [r.space_key for r in reports] == ["DEV", "OPS", "~bob"]
    assert reports[1].orphans_deleted == ["Old.html"]
    assert reports[2].skipped


def test_trailing_dot_title_is_kept_then_collected(space_dir, cache_root, scheduler):
    page = make_page("Release 1.")
    (space_dir / "Release 1..html").write_text("cached")
    store = FakeStore(pages=[page])

    assert Reconciler(store, scheduler, cache_root).reconcile(Space(key="DEV")).orphans_deleted == []
    assert (space_dir / "Release 1..html").exists()

    store.remove(page.id)
    report = Reconciler(store, scheduler, cache_root).reconcile(Space(key="DEV"))
    assert report.orphans_deleted == ["Release 1..html"]


def test_nested_titles_compare_by_relative_path(space_dir, cache_root, scheduler):
    (space_dir / "A").mkdir()
    (space_dir / "A" / "B.html").write_text("nested page")
    (space_dir / "B.html").write_text("orphan")
    (space_dir / "A" / "Gone.html").write_text("nested orphan")
    store = FakeStore(pages=[make_page("A/B")])

    report = Reconciler(store, scheduler, cache_root).reconcile(Space(key="DEV"))

    assert report.orphans_deleted == ["A/Gone.html", "B.html"]
    assert (space_dir / "A" / "B.html").exists()
