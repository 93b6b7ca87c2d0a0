from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional


@dataclass(frozen=True)
class Locator:
    """Identity of one resolved package inside a single lockfile snapshot."""

    locator_hash: str

    def __str__(self) -> str:
        return self.locator_hash


@dataclass(frozen=True)
class Descriptor:
    """A dependency request (name + range) prior to resolution.

    ``origin`` is the install path of the package that declares the request.
    npm resolves the same ``name@range`` to different folders depending on
    where it is requested from, so the origin is part of the request identity.
    """

    name: str
    range: str
    origin: str = ""

    @property
    def descriptor_hash(self) -> str:
        return f"{self.origin}>{self.name}@{self.range}"

    def __str__(self) -> str:
        return f"{self.name}@{self.range}"


@dataclass
class Workspace:
    cwd: Path
    relative_cwd: str
    locator: Locator
    name: Optional[str] = None
    version: Optional[str] = None
    dependencies: List[Descriptor] = field(default_factory=list)
    dev_dependencies: List[Descriptor] = field(default_factory=list)

    @property
    def display_name(self) -> str:
        return self.name or self.relative_cwd


@dataclass
class Package:
    locator: Locator
    name: str
    version: Optional[str] = None
    dependencies: List[Descriptor] = field(default_factory=list)
    raw: dict = field(default_factory=dict)

    @property
    def ident(self) -> str:
        return f"{self.name}@{self.version or ''}"


@dataclass
class ProjectGraph:
    """Read-only view over one resolution snapshot.

    Bundles the resolution table, the package store, and workspace
    membership. Nothing here is mutated once the graph has been built.
    """

    root: Path
    workspaces: List[Workspace]
    packages: Dict[str, Package] = field(default_factory=dict)
    resolutions: Dict[str, Locator] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self._workspaces_by_locator = {ws.locator.locator_hash: ws for ws in self.workspaces}

    @property
    def top_level_workspace(self) -> Workspace:
        for workspace in self.workspaces:
            if workspace.relative_cwd == ".":
                return workspace
        return self.workspaces[0]

    def resolve(self, descriptor: Descriptor) -> Locator | None:
        return self.resolutions.get(descriptor.descriptor_hash)

    def package(self, locator: Locator) -> Package | None:
        return self.packages.get(locator.locator_hash)

    def workspace_by_locator(self, locator: Locator) -> Workspace | None:
        return self._workspaces_by_locator.get(locator.locator_hash)
