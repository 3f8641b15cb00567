"""Typed change notifications delivered by the content store.

Events arrive as one JSON object per change; ``kind`` selects the model::

    {"kind": "page_updated", "page": {...}, "original_page": {...}}
    {"kind": "label_added", "label": "nocache", "labelled": {...}}
    {"kind": "comment_added", "owner": {...}}
"""

import json
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter

from .models import Page


class ChangeKind(str, Enum):
    """Every notification kind the router understands."""

    PAGE_CREATED = "page_created"
    PAGE_UPDATED = "page_updated"
    PAGE_MOVED = "page_moved"
    PAGE_REMOVED = "page_removed"
    LABEL_ADDED = "label_added"
    LABEL_REMOVED = "label_removed"
    COMMENT_ADDED = "comment_added"
    COMMENT_UPDATED = "comment_updated"
    COMMENT_REMOVED = "comment_removed"


class PageEvent(BaseModel):
    kind: Literal["page_created", "page_updated", "page_moved", "page_removed"]
    page: Page
    original_page: Page | None = None  # snapshot before an update or move


class LabelEvent(BaseModel):
    kind: Literal["label_added", "label_removed"]
    label: str
    labelled: Page | None = None  # None when the labelled content is not a page


class CommentEvent(BaseModel):
    kind: Literal["comment_added", "comment_updated", "comment_removed"]
    owner: Page | None = None  # None when the comment hangs off a blog post etc.


ChangeEvent = Annotated[
    Union[PageEvent, LabelEvent, CommentEvent], Field(discriminator="kind")
]

_ADAPTER: TypeAdapter[ChangeEvent] = TypeAdapter(ChangeEvent)


def parse_event(raw: str | dict[str, Any]) -> PageEvent | LabelEvent | CommentEvent:
    """Validate one notification given as a JSON string or decoded dict."""
    if isinstance(raw, str):
        raw = json.loads(raw)
    return _ADAPTER.validate_python(raw)
