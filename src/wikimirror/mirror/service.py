"""Wires the mirror components together from Settings."""

from ..core.config import Settings
from ..core.errors import NotConfiguredError
from ..core.logging import log
from ..core.store import ContentStore
from .fetcher import Fetcher
from .reconciler import ReconcileReport, Reconciler
from .router import Event, EventRouter
from .scheduler import RegenerationScheduler
from .target import TargetFactory
from .writer import AtomicWriter


class MirrorService:
    def __init__(
        self,
        settings: Settings,
        store: ContentStore,
        factory: TargetFactory,
        fetcher: Fetcher,
        writer: AtomicWriter,
        debounce_seconds: float | None = None,
    ):
        self.settings = settings
        self.store = store
        self.factory = factory
        self.fetcher = fetcher
        self.scheduler = RegenerationScheduler(
            factory=factory,
            fetcher=fetcher,
            writer=writer,
            store=store,
            debounce_seconds=(
                settings.MIRROR_DEBOUNCE_SECONDS if debounce_seconds is None else debounce_seconds
            ),
        )
        self.reconciler = Reconciler(
            store=store,
            scheduler=self.scheduler,
            root=factory.root,
            extension=factory.extension,
        )
        self.router = EventRouter(self.scheduler, factory, is_configured=settings.is_configured)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        store: ContentStore | None = None,
        debounce_seconds: float | None = None,
    ) -> "MirrorService":
        if not settings.is_configured():
            raise NotConfiguredError(
                "set WIKIMIRROR_ROOT_PATH, CONFLUENCE_BASE_URL (or CONFLUENCE_RETRIEVAL_URL) "
                "and CONFLUENCE_USERNAME"
            )
        if store is None:
            from ..adapters.confluence_api import ConfluenceClient

            store = ConfluenceClient(settings=settings)
        return cls(
            settings=settings,
            store=store,
            factory=TargetFactory.from_settings(settings),
            fetcher=Fetcher.from_settings(settings),
            writer=AtomicWriter(),
            debounce_seconds=debounce_seconds,
        )

    def start(self) -> None:
        self.factory.root.mkdir(parents=True, exist_ok=True)
        self.scheduler.start()

    def shutdown(self, drain: bool = False, timeout: float | None = None) -> None:
        self.scheduler.shutdown(drain=drain, timeout=timeout)
        self.fetcher.close()

    def dispatch(self, event: Event) -> None:
        self.router.dispatch(event)

    def regenerate_all(self) -> list[ReconcileReport]:
        """Reschedule every page and drop orphaned artifacts."""
        if not self.settings.is_configured():
            return []
        reports = self.reconciler.reconcile_all()
        log.info(
            "service.regenerate_all.scheduled",
            spaces=len(reports),
            pages=sum(r.pages_scheduled for r in reports),
        )
        return reports
