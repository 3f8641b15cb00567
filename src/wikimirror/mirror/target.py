"""Cache targets: what one page's artifact looks like on disk.

A target is derived from a page snapshot every time it is needed and never
stored. Two snapshots of the same page map to the same ``key`` as long as the
space and title are unchanged.
"""

from pathlib import Path

from pydantic import BaseModel, ConfigDict

from ..core.config import Settings
from ..core.logging import log
from ..core.models import Page
from ..core.paths import cache_root, neutralize, safe_join

TargetKey = tuple[str, str]


class CacheTarget(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: TargetKey  # (space_key, title)
    source_url: str
    output_paths: frozenset[Path]
    cacheable: bool

    def names_under(self, directory: Path) -> set[str]:
        """Output paths relative to ``directory``, for those that live beneath it."""
        return {
            p.relative_to(directory).as_posix()
            for p in self.output_paths
            if p.is_relative_to(directory)
        }

    def delete(self) -> int:
        """Remove every output path; returns how many files existed."""
        removed = 0
        for path in self.output_paths:
            try:
                path.unlink()
                removed += 1
            except FileNotFoundError:
                pass
        if removed:
            log.info("target.deleted", key="/".join(self.key), files=removed)
        return removed

    def exists(self) -> bool:
        return any(p.exists() for p in self.output_paths)


class TargetFactory:
    """Derives CacheTargets for pages under one cache root."""

    def __init__(
        self,
        root: Path,
        retrieval_url: str,
        nocache_label: str = "nocache",
        extension: str = ".html",
    ):
        self.root = Path(root)
        self.retrieval_url = retrieval_url.rstrip("/")
        self.nocache_label = nocache_label
        self.extension = extension

    @classmethod
    def from_settings(cls, settings: Settings) -> "TargetFactory":
        return cls(
            root=cache_root(settings),
            retrieval_url=settings.retrieval_url,
            nocache_label=settings.MIRROR_NOCACHE_LABEL,
            extension=settings.MIRROR_EXTENSION,
        )

    def output_names(self, page: Page) -> set[str]:
        # Confluence writes '+' for ' ' in page URLs; write both spellings so
        # lookups with either convention hit
        name = f"{neutralize(page.space_key)}/{neutralize(page.title)}{self.extension}"
        return {name, name.replace(" ", "+")}

    def source_url(self, page: Page) -> str:
        path = page.url_path
        if path and not path.startswith("/"):
            path = "/" + path
        return self.retrieval_url + path

    def derive(self, page: Page) -> CacheTarget:
        return CacheTarget(
            key=(page.space_key, page.title),
            source_url=self.source_url(page),
            output_paths=frozenset(safe_join(self.root, n) for n in self.output_names(page)),
            cacheable=not page.has_label(self.nocache_label),
        )
