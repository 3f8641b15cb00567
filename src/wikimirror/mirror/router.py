from collections.abc import Callable

from ..core.events import ChangeKind, CommentEvent, LabelEvent, PageEvent
from ..core.logging import log
from .scheduler import RegenerationScheduler
from .target import TargetFactory

Event = PageEvent | LabelEvent | CommentEvent


class EventRouter:
    """Turns change notifications into scheduler requests.

    Safe to call from several delivery threads at once; all shared state
    lives in the scheduler.
    """

    def __init__(
        self,
        scheduler: RegenerationScheduler,
        factory: TargetFactory,
        is_configured: Callable[[], bool] = lambda: True,
    ):
        self.scheduler = scheduler
        self.factory = factory
        self.is_configured = is_configured
        self._handlers: dict[ChangeKind, Callable[[Event], None]] = {
            ChangeKind.PAGE_CREATED: self._on_page_changed,
            ChangeKind.PAGE_UPDATED: self._on_page_changed,
            ChangeKind.PAGE_MOVED: self._on_page_changed,
            ChangeKind.PAGE_REMOVED: self._on_page_removed,
            ChangeKind.LABEL_ADDED: self._on_label_changed,
            ChangeKind.LABEL_REMOVED: self._on_label_changed,
            ChangeKind.COMMENT_ADDED: self._on_comment_changed,
            ChangeKind.COMMENT_UPDATED: self._on_comment_changed,
            ChangeKind.COMMENT_REMOVED: self._on_comment_changed,
        }
        missing = set(ChangeKind) - set(self._handlers)
        if missing:
            raise ValueError(f"no handler for {sorted(k.value for k in missing)}")

    def dispatch(self, event: Event) -> None:
        if not self.is_configured():
            log.debug("router.skip.not_configured", kind=event.kind)
            return
        log.info("router.event", kind=event.kind)
        self._handlers[ChangeKind(event.kind)](event)

    def _on_page_removed(self, event: PageEvent) -> None:
        self.factory.derive(event.page).delete()

    def _on_page_changed(self, event: PageEvent) -> None:
        target = self.scheduler.submit(event.page, evict_immediately=True)
        original = event.original_page
        if original is None:
            return
        old = self.factory.derive(original)
        if old.key != target.key:
            # the new key's job never touches the old spelling
            log.info(
                "router.page.renamed",
                old="/".join(old.key),
                new="/".join(target.key),
            )
            old.delete()

    def _on_label_changed(self, event: LabelEvent) -> None:
        if event.labelled is not None:
            self.scheduler.submit(event.labelled, evict_immediately=True)

    def _on_comment_changed(self, event: CommentEvent) -> None:
        if event.owner is not None:
            self.scheduler.submit(event.owner, evict_immediately=True)
