"""Cache directory layout.

Artifacts live at <root>/<spaceKey>/<title><ext>, where <root> comes from
WIKIMIRROR_ROOT_PATH.
"""

from pathlib import Path

from .config import SETTINGS, Settings
from .errors import NotConfiguredError, UnsafePathError


def cache_root(settings: Settings | None = None) -> Path:
    """Cache root directory (WIKIMIRROR_ROOT_PATH)"""
    root = (settings or SETTINGS).root_path
    if root is None:
        raise NotConfiguredError("WIKIMIRROR_ROOT_PATH is not set")
    return root


def space_dir(space_key: str, settings: Settings | None = None) -> Path:
    """Directory holding one space's artifacts"""
    return safe_join(cache_root(settings), space_key)


def neutralize(name: str) -> str:
    """Replace parent-directory sequences so a title cannot climb out of its space."""
    return name.replace("..", "_")


def safe_join(root: Path, relative: str) -> Path:
    """Join ``relative`` under ``root`` and refuse anything that lands outside it."""
    resolved_root = root.resolve()
    candidate = (resolved_root / relative.lstrip("/")).resolve()
    if candidate != resolved_root and not candidate.is_relative_to(resolved_root):
        raise UnsafePathError(f"{relative!r} escapes {root}")
    return candidate


def ensure_root(settings: Settings | None = None) -> Path:
    """Create the cache root if it doesn't exist."""
    root = cache_root(settings)
    root.mkdir(parents=True, exist_ok=True)
    return root
