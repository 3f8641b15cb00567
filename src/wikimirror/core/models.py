from pydantic import BaseModel


class Space(BaseModel):
    id: str | None = None
    key: str
    name: str | None = None
    type: str | None = None  # personal, global, etc.

    @property
    def is_personal(self) -> bool:
        return self.type == "personal" or self.key.startswith("~")


class Page(BaseModel):
    """Snapshot of one page as the content store reports it."""

    id: str
    space_key: str
    title: str
    url_path: str = ""  # relative to the render endpoint, e.g. /display/DEV/Home
    labels: list[str] = []
    space_type: str | None = None
    version: int | None = None

    def has_label(self, name: str) -> bool:
        return name in self.labels
