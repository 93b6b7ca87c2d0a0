from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

from .errors import WorkspaceSelectionError
from .types import ProjectGraph, Workspace


def matches_workspace(workspace: Workspace, value: str) -> bool:
    """Match by manifest name, path relative to the root, or folder name."""

    if workspace.name and workspace.name == value:
        return True
    if workspace.relative_cwd == value:
        return True
    return workspace.relative_cwd.rsplit("/", 1)[-1] == value


def select_workspaces(
    project: ProjectGraph,
    current: Optional[Workspace],
    all_workspaces: bool,
    requested: Sequence[str] | None,
) -> List[Workspace]:
    requested = list(requested or [])
    if all_workspaces and requested:
        raise WorkspaceSelectionError("Use either --all-workspaces or --workspace, not both.")

    if all_workspaces:
        return list(project.workspaces)

    if requested:
        selected = []
        for value in requested:
            match = next((ws for ws in project.workspaces if matches_workspace(ws, value)), None)
            if match is None:
                raise WorkspaceSelectionError(f"Workspace not found: {value}")
            selected.append(match)
        return selected

    if current is not None:
        return [current]

    raise WorkspaceSelectionError("No workspace selected. Use --all-workspaces or --workspace.")


def dedupe_workspaces(workspaces: Iterable[Workspace]) -> List[Workspace]:
    seen = set()
    unique: List[Workspace] = []
    for workspace in workspaces:
        if workspace.cwd in seen:
            continue
        seen.add(workspace.cwd)
        unique.append(workspace)
    return unique


def find_current_workspace(project: ProjectGraph, cwd) -> Optional[Workspace]:
    """Return the innermost workspace containing ``cwd``."""

    resolved = cwd.resolve()
    best: Optional[Workspace] = None
    for workspace in project.workspaces:
        if resolved == workspace.cwd or workspace.cwd in resolved.parents:
            if best is None or len(workspace.cwd.parts) > len(best.cwd.parts):
                best = workspace
    return best
