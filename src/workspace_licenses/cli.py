from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Callable, List, Optional

import click

from .collector import count_direct_workspace_edges
from .errors import LockfileError, MetadataLookupError, PolicyError, WorkspaceSelectionError
from .license_audit import audit_license_entries, get_audit_violations, has_audit_violations, parse_allow_values
from .licenses_report import DEFAULT_CONCURRENCY, CollectOptions, collect_disclaimer_entries, collect_license_entries
from .lockfile import find_project_root, load_project
from .metadata import InstalledMetadataSource, RegistryMetadataSource
from .policy import load_policy
from .reporting import (
    render_disclaimer_report,
    render_json,
    render_license_audit_text,
    render_text_report,
    write_output,
)
from .types import DebugEntry, ProjectGraph, Workspace
from .workspaces import dedupe_workspaces, find_current_workspace, select_workspaces

RECURSIVE_WORKSPACES_WARNING = (
    "Warning: --recursive-workspaces is enabled, but no workspace dependencies were found "
    "from the selected workspace roots."
)


def _selection_options(func: Callable) -> Callable:
    options = [
        click.option("-A", "--all-workspaces", is_flag=True, help="Include all workspaces."),
        click.option("-w", "--workspace", "workspace_names", multiple=True, help="Workspace name (repeatable)."),
        click.option("-d", "--include-dev-deps", "include_dev", is_flag=True, help="Include dev dependencies."),
        click.option(
            "--include-root-deps",
            is_flag=True,
            help="Treat root workspace dependencies as additional seed dependencies.",
        ),
        click.option(
            "--recursive-workspaces",
            is_flag=True,
            help="Traverse workspace-to-workspace dependencies recursively.",
        ),
        click.option("-r", "--recursive-npm", is_flag=True, help="Traverse third-party npm dependencies recursively."),
        click.option(
            "-o",
            "--output",
            type=click.Path(dir_okay=False, writable=True, path_type=str),
            help="Write the report to a file instead of stdout.",
        ),
        click.option(
            "--cwd",
            type=click.Path(exists=True, file_okay=False, path_type=str),
            default=".",
            show_default=True,
            help="Directory to run from; the project root is the nearest folder with a lockfile.",
        ),
        click.option(
            "--concurrency",
            type=click.IntRange(min=1),
            default=DEFAULT_CONCURRENCY,
            show_default=True,
            envvar="WORKSPACE_LICENSES_CONCURRENCY",
            help="Maximum number of package metadata lookups in flight.",
        ),
        click.option(
            "--offline/--online",
            default=True,
            show_default=True,
            help="Read metadata from node_modules only; --online falls back to the npm registry.",
        ),
        click.option(
            "--registry",
            type=str,
            help="Registry URL for --online lookups (defaults to NPM_REGISTRY_URL or registry.npmjs.org).",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _load_seeds(
    cwd: str, all_workspaces: bool, workspace_names: tuple[str, ...], include_root_deps: bool
) -> tuple[ProjectGraph, List[Workspace]]:
    start = Path(cwd)
    try:
        project = load_project(find_project_root(start))
        selected = select_workspaces(
            project, find_current_workspace(project, start), all_workspaces, workspace_names
        )
    except (LockfileError, WorkspaceSelectionError) as exc:
        raise click.UsageError(str(exc)) from exc

    if include_root_deps:
        return project, dedupe_workspaces([*selected, project.top_level_workspace])
    return project, selected


def _metadata_source(project: ProjectGraph, offline: bool, registry: Optional[str], with_license_text: bool = False):
    fallback = None if offline else RegistryMetadataSource(registry)
    return InstalledMetadataSource(project.root, fallback=fallback, with_license_text=with_license_text)


def _emit(content: str, output: Optional[str]) -> None:
    if output:
        write_output(content, Path(output))
    else:
        click.echo(content, nl=False)


def _describe(value: object) -> str:
    if value is None:
        return "undefined"
    if isinstance(value, str):
        return value
    try:
        return json.dumps(value)
    except (TypeError, ValueError):
        return str(value)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Log traversal and lookup details to stderr.")
def main(verbose: bool) -> None:
    """Third-party license reports for npm workspaces."""

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@main.command(name="list")
@_selection_options
@click.option("--json", "json_output", is_flag=True, help="Emit JSON instead of text.")
@click.option("--debug-package", type=str, help="Print raw and normalized metadata for one package name.")
def list_licenses(
    all_workspaces: bool,
    workspace_names: tuple[str, ...],
    include_dev: bool,
    include_root_deps: bool,
    recursive_workspaces: bool,
    recursive_npm: bool,
    output: Optional[str],
    cwd: str,
    concurrency: int,
    offline: bool,
    registry: Optional[str],
    json_output: bool,
    debug_package: Optional[str],
) -> None:
    """Generate a third-party dependency license report."""

    project, seeds = _load_seeds(cwd, all_workspaces, workspace_names, include_root_deps)
    if recursive_workspaces and count_direct_workspace_edges(project, seeds, include_dev) == 0:
        click.echo(RECURSIVE_WORKSPACES_WARNING, err=True)

    def _on_debug(entry: DebugEntry) -> None:
        click.echo(f"debug-package: {entry.name}@{entry.version}", err=True)
        click.echo(f"  licenseType: {entry.license_type}", err=True)
        click.echo(f"  raw.repository: {_describe(entry.raw_repository)}", err=True)
        click.echo(f"  raw.homepage: {_describe(entry.raw_homepage)}", err=True)
        click.echo(f"  normalized.url: {entry.normalized_url}", err=True)

    options = CollectOptions(
        include_dev=include_dev,
        recursive_workspaces=recursive_workspaces,
        recursive_npm=recursive_npm,
        concurrency=concurrency,
        debug_package=debug_package,
    )
    try:
        entries = asyncio.run(
            collect_license_entries(
                project, seeds, options, _metadata_source(project, offline, registry), on_debug_entry=_on_debug
            )
        )
    except MetadataLookupError as exc:
        raise click.ClickException(str(exc)) from exc

    _emit(render_json(entries) if json_output else render_text_report(entries), output)


@main.command()
@_selection_options
@click.option("--allow", multiple=True, help="Allowed license type(s), repeatable or comma-separated.")
@click.option(
    "--policy",
    type=click.Path(exists=True, dir_okay=False, path_type=str),
    help="YAML policy file with an 'allow' list and optional traversal defaults.",
)
@click.option("--json", "json_output", is_flag=True, help="Emit JSON instead of text.")
def audit(
    all_workspaces: bool,
    workspace_names: tuple[str, ...],
    include_dev: bool,
    include_root_deps: bool,
    recursive_workspaces: bool,
    recursive_npm: bool,
    output: Optional[str],
    cwd: str,
    concurrency: int,
    offline: bool,
    registry: Optional[str],
    allow: tuple[str, ...],
    policy: Optional[str],
    json_output: bool,
) -> None:
    """Audit third-party licenses against an allow-list; exit 1 on violations."""

    allow_values = list(allow)
    if policy:
        try:
            license_policy = load_policy(Path(policy))
        except PolicyError as exc:
            raise click.UsageError(str(exc)) from exc
        allow_values.extend(license_policy.allow)
        include_dev = include_dev or bool(license_policy.include_dev)
        recursive_workspaces = recursive_workspaces or bool(license_policy.recursive_workspaces)
        recursive_npm = recursive_npm or bool(license_policy.recursive_npm)

    allow_rules = parse_allow_values(allow_values)
    if not allow_rules:
        raise click.UsageError("At least one --allow value is required.")

    project, seeds = _load_seeds(cwd, all_workspaces, workspace_names, include_root_deps)
    options = CollectOptions(
        include_dev=include_dev,
        recursive_workspaces=recursive_workspaces,
        recursive_npm=recursive_npm,
        concurrency=concurrency,
    )
    try:
        entries = asyncio.run(
            collect_license_entries(project, seeds, options, _metadata_source(project, offline, registry))
        )
    except MetadataLookupError as exc:
        raise click.ClickException(str(exc)) from exc

    audited = audit_license_entries(entries, allow_rules)
    violations = get_audit_violations(audited)
    _emit(render_json(violations) if json_output else render_license_audit_text(violations), output)

    if has_audit_violations(audited):
        raise SystemExit(1)


@main.command(name="generate-disclaimer")
@_selection_options
def generate_disclaimer(
    all_workspaces: bool,
    workspace_names: tuple[str, ...],
    include_dev: bool,
    include_root_deps: bool,
    recursive_workspaces: bool,
    recursive_npm: bool,
    output: Optional[str],
    cwd: str,
    concurrency: int,
    offline: bool,
    registry: Optional[str],
) -> None:
    """Generate third-party attribution text grouped by identical license notices."""

    project, seeds = _load_seeds(cwd, all_workspaces, workspace_names, include_root_deps)
    options = CollectOptions(
        include_dev=include_dev,
        recursive_workspaces=recursive_workspaces,
        recursive_npm=recursive_npm,
        concurrency=concurrency,
    )
    try:
        entries = asyncio.run(
            collect_disclaimer_entries(
                project, seeds, options, _metadata_source(project, offline, registry, with_license_text=True)
            )
        )
    except MetadataLookupError as exc:
        raise click.ClickException(str(exc)) from exc

    _emit(render_disclaimer_report(entries), output)


if __name__ == "__main__":
    main()
