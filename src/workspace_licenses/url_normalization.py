from __future__ import annotations

import re
from typing import Any

_GITHUB_SHORTHAND = re.compile(r"^([^/@:\s]+)/([^#\s]+)$")
_SCP_LIKE = re.compile(r"^git@([^:]+):(.+)$")
_NUMERIC_PORT = re.compile(r"^\d+/")
_GIT_SUFFIX = re.compile(r"\.git$", re.IGNORECASE)


def _extract_url(value: Any) -> str | None:
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        candidate = value.get("url")
        if isinstance(candidate, str):
            return candidate
        return None
    candidate = getattr(value, "url", None)
    if isinstance(candidate, str):
        return candidate
    return None


def _to_https(value: str) -> str:
    # Registry metadata sometimes stores "owner/repo" shorthand.
    shorthand = _GITHUB_SHORTHAND.match(value)
    if shorthand:
        return f"https://github.com/{shorthand.group(1)}/{shorthand.group(2)}"

    if value.startswith("github:"):
        return f"https://github.com/{value[len('github:'):]}"

    scp_like = _SCP_LIKE.match(value)
    if scp_like:
        return f"https://{scp_like.group(1)}/{scp_like.group(2)}"

    if value.startswith("ssh://git@"):
        rest = value[len("ssh://git@"):]
        slash = rest.find("/")
        colon = rest.find(":")
        if colon >= 0 and (slash == -1 or colon < slash):
            host = rest[:colon]
            remainder = rest[colon + 1:]
            # host:7999/path keeps its port; host:owner/repo becomes host/owner/repo
            if _NUMERIC_PORT.match(remainder):
                return f"https://{host}:{remainder}"
            return f"https://{host}/{remainder}"
        return f"https://{rest}"

    if value.startswith("git://"):
        return f"https://{value[len('git://'):]}"

    return value


def normalize_repository_url(value: Any) -> str | None:
    """Collapse the repository URL dialects found in package manifests.

    Accepts a raw string or a ``{"url": ...}`` mapping (the object form of
    ``repository``). Anything else, or a blank URL, yields ``None``.
    Unrecognized schemes pass through untouched apart from dropping a
    trailing ``.git`` and ``/``, so the result is stable rather than strict.
    """

    raw = _extract_url(value)
    if raw is None:
        return None

    trimmed = raw.strip()
    if not trimmed:
        return None

    base, sep, fragment = trimmed.partition("#")
    fragment = f"{sep}{fragment}"

    if base.startswith("git+"):
        base = base[len("git+"):]
    base = _to_https(base)
    base = _GIT_SUFFIX.sub("", base)
    if base.endswith("/"):
        base = base[:-1]

    return f"{base}{fragment}"


def select_package_url(repository: Any, homepage: Any) -> str:
    """Pick the URL reported for a package.

    The repository wins unless the homepage points at the same location with
    an anchor (``https://github.com/owner/repo#readme``), in which case the
    more specific homepage is kept.
    """

    repository_url = normalize_repository_url(repository)
    homepage_url = normalize_repository_url(homepage)

    if repository_url and homepage_url and "#" in homepage_url:
        if homepage_url.split("#", 1)[0] == repository_url.split("#", 1)[0]:
            return homepage_url

    return repository_url or homepage_url or ""
