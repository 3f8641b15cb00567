"""Garbage collection of artifacts whose pages no longer exist.

Pages deleted or renamed while no notification reached the mirror leave
orphaned files behind. Reconciling a space schedules every current page and
deletes whatever the cache directory holds beyond that. Each pass triggers a
regeneration of the whole space, so it is meant for startup and operator
rebuilds, not a tight schedule.
"""

from pathlib import Path

from pydantic import BaseModel

from ..core.logging import log
from ..core.models import Space
from ..core.paths import safe_join
from ..core.store import ContentStore
from .scheduler import RegenerationScheduler


class ReconcileReport(BaseModel):
    space_key: str
    skipped: bool = False
    pages_scheduled: int = 0
    orphans_deleted: list[str] = []


class Reconciler:
    def __init__(
        self,
        store: ContentStore,
        scheduler: RegenerationScheduler,
        root: Path,
        extension: str = ".html",
    ):
        self.store = store
        self.scheduler = scheduler
        self.root = Path(root)
        self.extension = extension

    def _existing(self, directory: Path) -> set[str]:
        if not directory.is_dir():
            return set()
        # titles containing "/" nest below the space directory
        return {
            p.relative_to(directory).as_posix()
            for p in directory.rglob(f"*{self.extension}")
            if p.is_file()
        }

    def reconcile(self, space: Space) -> ReconcileReport:
        if space.is_personal:
            log.debug("reconcile.skip.personal", space_key=space.key)
            return ReconcileReport(space_key=space.key, skipped=True)

        directory = safe_join(self.root, space.key)
        existing = self._existing(directory)
        report = ReconcileReport(space_key=space.key)

        for page in self.store.get_pages(space.key, include_descendants=True):
            target = self.scheduler.submit(page, evict_immediately=False)
            report.pages_scheduled += 1
            if target.cacheable:
                existing -= target.names_under(directory)

        for garbage in sorted(existing):
            (directory / garbage).unlink(missing_ok=True)
            report.orphans_deleted.append(garbage)
            log.info("reconcile.orphan.deleted", space_key=space.key, file=garbage)

        log.info(
            "reconcile.space.done",
            space_key=space.key,
            pages=report.pages_scheduled,
            orphans=len(report.orphans_deleted),
        )
        return report

    def reconcile_all(self) -> list[ReconcileReport]:
        log.warning("reconcile.all.start")
        return [self.reconcile(space) for space in self.store.get_spaces()]
