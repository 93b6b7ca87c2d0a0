from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Set, Union

from .types import Descriptor, Locator, ProjectGraph, Workspace

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkspaceItem:
    workspace: Workspace


@dataclass(frozen=True)
class LocatorItem:
    locator: Locator


QueueItem = Union[WorkspaceItem, LocatorItem]


def workspace_dependency_descriptors(workspace: Workspace, include_dev: bool) -> List[Descriptor]:
    descriptors = list(workspace.dependencies)
    if include_dev:
        descriptors.extend(workspace.dev_dependencies)
    return descriptors


def collect_external_locators(
    project: ProjectGraph,
    workspaces: Iterable[Workspace],
    include_dev: bool,
    recursive_workspaces: bool,
    recursive_npm: bool,
) -> Set[str]:
    """Return the locator hashes of third-party packages reachable from ``workspaces``.

    Direct third-party dependencies of every visited workspace are always
    reported. Workspace-to-workspace edges are followed only with
    ``recursive_workspaces``; dependencies of third-party packages only with
    ``recursive_npm``. Descriptors that do not resolve, or resolve to a
    package missing from the store, are skipped.
    """

    external: Set[str] = set()
    # Workspaces are keyed by path and packages by locator: separate namespaces.
    visited_workspace_cwds: Set[Path] = set()
    visited_locators: Set[str] = set()
    queue: deque[QueueItem] = deque(WorkspaceItem(workspace) for workspace in workspaces)

    def _follow(descriptor: Descriptor) -> Locator | Workspace | None:
        resolution = project.resolve(descriptor)
        if resolution is None:
            logger.debug("Skipping unresolved dependency %s", descriptor)
            return None
        if project.package(resolution) is None:
            logger.debug("Skipping %s: no package record for %s", descriptor, resolution)
            return None
        resolved_workspace = project.workspace_by_locator(resolution)
        if resolved_workspace is not None:
            return resolved_workspace
        return resolution

    while queue:
        item = queue.popleft()

        if isinstance(item, WorkspaceItem):
            cwd = item.workspace.cwd
            if cwd in visited_workspace_cwds:
                continue
            visited_workspace_cwds.add(cwd)
            logger.debug("Visiting workspace %s", item.workspace.display_name)

            for descriptor in workspace_dependency_descriptors(item.workspace, include_dev):
                target = _follow(descriptor)
                if target is None:
                    continue
                if isinstance(target, Workspace):
                    if recursive_workspaces:
                        queue.append(WorkspaceItem(target))
                    continue
                external.add(target.locator_hash)
                if recursive_npm and target.locator_hash not in visited_locators:
                    queue.append(LocatorItem(target))
            continue

        locator_hash = item.locator.locator_hash
        if locator_hash in visited_locators:
            continue
        visited_locators.add(locator_hash)

        package = project.package(item.locator)
        if package is None:
            continue

        # LocatorItems are only ever enqueued under recursive_npm.
        if not recursive_npm:
            continue

        for descriptor in package.dependencies:
            target = _follow(descriptor)
            if target is None:
                continue
            if isinstance(target, Workspace):
                if recursive_workspaces:
                    queue.append(WorkspaceItem(target))
                continue
            external.add(target.locator_hash)
            if target.locator_hash not in visited_locators:
                queue.append(LocatorItem(target))

    return external


def count_direct_workspace_edges(
    project: ProjectGraph, workspaces: Iterable[Workspace], include_dev: bool
) -> int:
    """Count dependencies of ``workspaces`` that resolve to another workspace."""

    edges = 0
    for workspace in workspaces:
        for descriptor in workspace_dependency_descriptors(workspace, include_dev):
            resolution = project.resolve(descriptor)
            if resolution is None or project.package(resolution) is None:
                continue
            if project.workspace_by_locator(resolution) is not None:
                edges += 1
    return edges
