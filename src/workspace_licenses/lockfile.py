from __future__ import annotations

"""Build a :class:`ProjectGraph` from an npm lockfile.

Only the ``packages`` map of lockfileVersion 2 and 3 is understood. Keys are
install paths relative to the project root (``""`` is the root,
``node_modules/a/node_modules/b`` a nested install, ``packages/app`` a
workspace folder), and they double as locator hashes.
"""

import json
import logging
from fnmatch import fnmatch
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from .errors import LockfileError
from .types import Descriptor, Locator, Package, ProjectGraph, Workspace

logger = logging.getLogger(__name__)

LOCKFILE_NAMES = ("npm-shrinkwrap.json", "package-lock.json")
SUPPORTED_LOCKFILE_VERSIONS = {2, 3}
ROOT_LOCATOR = "."

DEPENDENCY_SECTIONS = ("dependencies", "optionalDependencies")
DEV_SECTIONS = ("devDependencies",)


def find_lockfile(root: Path) -> Path:
    for name in LOCKFILE_NAMES:
        candidate = root / name
        if candidate.exists():
            return candidate
    raise LockfileError(
        f"No {' or '.join(LOCKFILE_NAMES)} found in {root}; run `npm install` first."
    )


def find_project_root(start: Path) -> Path:
    """Return the nearest ancestor of ``start`` (inclusive) holding a lockfile."""

    start = start.resolve()
    for candidate in (start, *start.parents):
        if any((candidate / name).exists() for name in LOCKFILE_NAMES):
            return candidate
    raise LockfileError(
        f"No {' or '.join(LOCKFILE_NAMES)} found in {start} or its parents; run `npm install` first."
    )


def _locator_for(key: str) -> Locator:
    return Locator(key or ROOT_LOCATOR)


def _name_from_key(key: str) -> str:
    if "node_modules/" in key:
        return key.rsplit("node_modules/", 1)[1]
    return key.rsplit("/", 1)[-1]


def _workspace_patterns(root_entry: dict) -> List[str]:
    raw = root_entry.get("workspaces") or []
    if isinstance(raw, dict):
        raw = raw.get("packages") or []
    return [str(pattern).rstrip("/").removeprefix("./") for pattern in raw]


def _is_installed_path(key: str) -> bool:
    return "node_modules" in key.split("/")


def _candidate_paths(origin: str, name: str) -> Iterator[str]:
    """Yield the folders Node would probe for ``name`` when required from ``origin``."""

    parts = origin.split("/") if origin else []
    while True:
        if not parts or parts[-1] != "node_modules":
            prefix = "/".join(parts)
            yield f"{prefix}/node_modules/{name}" if prefix else f"node_modules/{name}"
        if not parts:
            return
        parts.pop()


def _descriptors(entry: dict, origin: str, sections: tuple[str, ...]) -> List[Descriptor]:
    descriptors: List[Descriptor] = []
    for section in sections:
        block = entry.get(section) or {}
        if not isinstance(block, dict):
            continue
        for name, range_ in block.items():
            descriptors.append(Descriptor(name=name, range=str(range_), origin=origin))
    return descriptors


def _resolve(packages: Dict[str, dict], descriptor: Descriptor) -> Optional[str]:
    for candidate in _candidate_paths(descriptor.origin, descriptor.name):
        entry = packages.get(candidate)
        if entry is None:
            continue
        if entry.get("link"):
            target = entry.get("resolved")
            if isinstance(target, str) and target in packages:
                return target
            return None
        return candidate
    return None


def parse_lockfile(data: dict, root: Path) -> ProjectGraph:
    version = data.get("lockfileVersion")
    packages = data.get("packages")
    if version not in SUPPORTED_LOCKFILE_VERSIONS or not isinstance(packages, dict):
        raise LockfileError(
            f"Unsupported lockfile (lockfileVersion={version!r}); "
            "lockfileVersion 2 or 3 with a 'packages' map is required."
        )

    root_entry = packages.get("") or {}
    patterns = _workspace_patterns(root_entry)
    workspace_keys = [""] + sorted(
        key
        for key, entry in packages.items()
        if key
        and isinstance(entry, dict)
        and not entry.get("link")
        and not _is_installed_path(key)
        and any(fnmatch(key, pattern) for pattern in patterns)
    )

    store: Dict[str, Package] = {}
    resolutions: Dict[str, Locator] = {}
    workspaces: List[Workspace] = []

    def _register(descriptors: List[Descriptor]) -> None:
        for descriptor in descriptors:
            target = _resolve(packages, descriptor)
            if target is None:
                logger.debug("No installed package satisfies %s (from %r)", descriptor, descriptor.origin)
                continue
            resolutions[descriptor.descriptor_hash] = _locator_for(target)

    for key in workspace_keys:
        entry = packages.get(key) or {}
        locator = _locator_for(key)
        dependencies = _descriptors(entry, key, DEPENDENCY_SECTIONS)
        dev_dependencies = _descriptors(entry, key, DEV_SECTIONS)
        _register(dependencies)
        _register(dev_dependencies)
        name = entry.get("name") or (data.get("name") if not key else _name_from_key(key))
        workspaces.append(
            Workspace(
                cwd=(root / key).resolve() if key else root.resolve(),
                relative_cwd=key or ".",
                locator=locator,
                name=name,
                version=entry.get("version"),
                dependencies=dependencies,
                dev_dependencies=dev_dependencies,
            )
        )
        store[locator.locator_hash] = Package(
            locator=locator,
            name=name or key or ROOT_LOCATOR,
            version=entry.get("version"),
            dependencies=dependencies,
            raw=entry,
        )

    workspace_key_set = set(workspace_keys)
    for key, entry in packages.items():
        if key in workspace_key_set or not isinstance(entry, dict) or entry.get("link"):
            continue
        dependencies = _descriptors(entry, key, DEPENDENCY_SECTIONS)
        _register(dependencies)
        locator = _locator_for(key)
        store[locator.locator_hash] = Package(
            locator=locator,
            name=entry.get("name") or _name_from_key(key),
            version=entry.get("version"),
            dependencies=dependencies,
            raw=entry,
        )

    logger.debug(
        "Loaded %d packages (%d workspaces) from lockfile", len(store), len(workspaces)
    )
    return ProjectGraph(root=root.resolve(), workspaces=workspaces, packages=store, resolutions=resolutions)


def load_project(root: Path, lockfile: Path | None = None) -> ProjectGraph:
    path = lockfile or find_lockfile(root)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise LockfileError(f"Unable to parse {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise LockfileError(f"Unable to parse {path}: expected a JSON object")
    return parse_lockfile(data, root)
