from __future__ import annotations

"""Shared data structures for dependency graphs and license reports.

The definitions live in domain-focused modules; this module re-exports them
so callers have a single stable import path.
"""

from .types_graph import Descriptor, Locator, Package, ProjectGraph, Workspace
from .types_license import (
    ALLOWED,
    VIOLATION,
    AuditEntry,
    DebugEntry,
    DisclaimerEntry,
    LicenseEntry,
    PackageMetadata,
)

__all__ = [
    "ALLOWED",
    "VIOLATION",
    "AuditEntry",
    "DebugEntry",
    "Descriptor",
    "DisclaimerEntry",
    "LicenseEntry",
    "Locator",
    "Package",
    "PackageMetadata",
    "ProjectGraph",
    "Workspace",
]
