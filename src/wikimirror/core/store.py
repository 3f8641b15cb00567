from collections.abc import Iterable
from typing import Protocol

from .models import Page, Space


class ContentStore(Protocol):
    """Read side of the content store the mirror follows."""

    def get_spaces(self) -> Iterable[Space]: ...

    def get_pages(self, space_key: str, include_descendants: bool = True) -> Iterable[Page]: ...

    def get_page(self, page_id: str) -> Page | None: ...
