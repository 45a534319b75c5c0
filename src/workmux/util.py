"""Small formatting and path helpers."""

from __future__ import annotations

from pathlib import Path


def canon_or_self(path: Path | str) -> Path:
    """Resolve symlinks when the path exists, else return it unchanged."""

    candidate = Path(path).expanduser()
    try:
        return candidate.resolve(strict=True)
    except (OSError, RuntimeError):
        return candidate


def format_elapsed_secs(secs: int) -> str:
    """Compact elapsed time: ``42s``, ``5m``, ``2h`` or ``2h 5m``."""

    if secs < 60:
        return f"{secs}s"
    if secs < 3600:
        return f"{secs // 60}m"
    hours, minutes = secs // 3600, (secs % 3600) // 60
    return f"{hours}h" if minutes == 0 else f"{hours}h {minutes}m"


def is_within(path: Path, root: Path) -> bool:
    return path == root or root in path.parents


__all__ = ["canon_or_self", "format_elapsed_secs", "is_within"]
