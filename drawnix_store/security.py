from __future__ import annotations

import logging
import secrets
from pathlib import Path

from .errors import InvalidPath, Unauthorized


logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


def is_path_inside(root: Path, candidate: Path) -> bool:
    """Return True if candidate resolves to a strict descendant of root.

    The root itself is not "inside" (the relative path would be empty).
    """
    try:
        root = Path(root).resolve()
        candidate = Path(candidate).resolve()
        rel = candidate.relative_to(root)
    except (ValueError, OSError):
        # relative_to() raises when candidate lies outside root; resolve()
        # raises on embedded NUL bytes.
        return False
    return bool(rel.parts)


def safe_join(root: Path, *parts: str) -> Path:
    """Join untrusted parts onto root and ensure the result stays within it.

    Must be called before any filesystem access on the returned path.
    """
    candidate = Path(root)
    for part in parts:
        if "\0" in part:
            raise InvalidPath()
        candidate = candidate / part
    resolved = candidate.resolve()
    if not is_path_inside(root, resolved):
        logger.warning("Rejected path outside storage root: %r", "/".join(parts))
        raise InvalidPath()
    return resolved


def is_authorized(access_token: str, authorization: str | None) -> bool:
    """Check an Authorization header against the shared secret.

    An unset token means open access.
    """
    if not access_token:
        return True
    expected = f"{BEARER_PREFIX}{access_token}"
    return secrets.compare_digest((authorization or "").encode("utf-8"), expected.encode("utf-8"))


def require_authorized(access_token: str, authorization: str | None) -> None:
    if not is_authorized(access_token, authorization):
        raise Unauthorized()
