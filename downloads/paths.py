# downloads/paths.py
from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable, Optional
from urllib.parse import unquote

from django.conf import settings

from .exceptions import InvalidPath

DEFAULT_ALLOWED_EXTENSIONS = {"stl", "zip", "obj", "3mf"}

CONTENT_TYPES = {
    "stl": "application/sla",
    "zip": "application/zip",
    "obj": "model/obj",
    "3mf": "model/3mf",
}

# Enough rounds to peel "%252e%252e%252f"-style double encoding.
_MAX_UNQUOTE_ROUNDS = 3


def _normalize_exts(raw) -> set[str]:
    if isinstance(raw, str):
        raw = raw.split(",")
    return {str(x).strip().lower().lstrip(".") for x in raw if str(x).strip()}


def allowed_extensions() -> set[str]:
    raw = getattr(settings, "DOWNLOAD_ALLOWED_EXTENSIONS", None)
    if not raw:
        return set(DEFAULT_ALLOWED_EXTENSIONS)
    return _normalize_exts(raw) or set(DEFAULT_ALLOWED_EXTENSIONS)


def storage_root() -> Path:
    root = getattr(settings, "DOWNLOAD_STORAGE_ROOT", None) or (Path(settings.BASE_DIR) / "protected")
    return Path(root)


def content_type_for(path: Path) -> str:
    return CONTENT_TYPES.get(path.suffix.lower().lstrip("."), "application/octet-stream")


def _decode(candidate: str) -> str:
    for _ in range(_MAX_UNQUOTE_ROUNDS):
        decoded = unquote(candidate)
        if decoded == candidate:
            break
        candidate = decoded
    return candidate


def resolve_download_path(
    relative_path: str,
    *,
    root: Optional[os.PathLike | str] = None,
    allowed_exts: Optional[Iterable[str]] = None,
) -> Path:
    """
    Map a catalog file path onto the protected storage root.

    The stored path is decoded, concatenated onto the root (a leading "/"
    means "root-relative", as in the catalog), and fully resolved, symlinks
    included. The result must stay strictly inside the root and carry an
    allow-listed extension. Raises InvalidPath otherwise; the public message
    never mentions the path, the detail does (for the security log).

    Decoding repeats until the string stops changing, at most three rounds,
    so a file whose real name contains an escape such as "%25" cannot be
    addressed; catalog files must not have "%" in their names.
    """
    raw = relative_path or ""
    candidate = _decode(raw)

    if not candidate.strip() or "\x00" in candidate:
        raise InvalidPath(detail=f"empty or NUL path {raw!r}")

    candidate = candidate.replace("\\", "/").lstrip("/")

    root_abs = os.path.realpath(os.fspath(root if root is not None else storage_root()))
    resolved = os.path.realpath(os.path.join(root_abs, candidate))

    if resolved == root_abs or os.path.commonpath([root_abs, resolved]) != root_abs:
        raise InvalidPath(detail=f"path escapes storage root: {raw!r} -> {resolved!r}")

    exts = _normalize_exts(allowed_exts) if allowed_exts is not None else allowed_extensions()
    ext = os.path.splitext(resolved)[1].lower().lstrip(".")
    if ext not in exts:
        raise InvalidPath(detail=f"extension {ext or '-'!r} not allowed for {raw!r}")

    return Path(resolved)
