from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from .collector import collect_external_locators
from .fanout import map_with_concurrency
from .metadata import MetadataSource
from .types import DebugEntry, DisclaimerEntry, LicenseEntry, Locator, ProjectGraph, Workspace

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 16


@dataclass
class CollectOptions:
    """Traversal policy and lookup settings for one invocation."""

    include_dev: bool = False
    recursive_workspaces: bool = False
    recursive_npm: bool = False
    concurrency: int = DEFAULT_CONCURRENCY
    debug_package: Optional[str] = None


def _sort_entries(entries: list) -> list:
    return sorted(entries, key=lambda entry: entry.sort_key)


async def collect_license_entries(
    project: ProjectGraph,
    workspaces: Sequence[Workspace],
    options: CollectOptions,
    source: MetadataSource,
    on_debug_entry: Callable[[DebugEntry], None] | None = None,
) -> List[LicenseEntry]:
    locator_hashes = collect_external_locators(
        project,
        workspaces,
        include_dev=options.include_dev,
        recursive_workspaces=options.recursive_workspaces,
        recursive_npm=options.recursive_npm,
    )
    logger.debug("Resolving metadata for %d packages", len(locator_hashes))

    async def _entry(locator_hash: str) -> LicenseEntry | None:
        package = project.package(Locator(locator_hash))
        if package is None:
            return None
        metadata = await source.lookup(package)
        if on_debug_entry is not None and options.debug_package == package.name:
            on_debug_entry(
                DebugEntry(
                    name=package.name,
                    version=package.version or "",
                    license_type=metadata.license_type,
                    raw_repository=metadata.raw_repository,
                    raw_homepage=metadata.raw_homepage,
                    normalized_url=metadata.url,
                )
            )
        return LicenseEntry(
            name=package.name,
            version=package.version or "",
            license_type=metadata.license_type,
            url=metadata.url,
        )

    entries = await map_with_concurrency(sorted(locator_hashes), options.concurrency, _entry)
    return _sort_entries(entries)


async def collect_disclaimer_entries(
    project: ProjectGraph,
    workspaces: Sequence[Workspace],
    options: CollectOptions,
    source: MetadataSource,
) -> List[DisclaimerEntry]:
    locator_hashes = collect_external_locators(
        project,
        workspaces,
        include_dev=options.include_dev,
        recursive_workspaces=options.recursive_workspaces,
        recursive_npm=options.recursive_npm,
    )

    async def _entry(locator_hash: str) -> DisclaimerEntry | None:
        package = project.package(Locator(locator_hash))
        if package is None:
            return None
        metadata = await source.lookup(package)
        return DisclaimerEntry(
            name=package.name,
            version=package.version or "",
            license_type=metadata.license_type,
            url=metadata.url,
            license_text=metadata.license_text,
        )

    entries = await map_with_concurrency(sorted(locator_hashes), options.concurrency, _entry)
    return _sort_entries(entries)
