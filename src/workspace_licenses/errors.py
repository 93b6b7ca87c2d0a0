from __future__ import annotations


class WorkspaceLicensesError(Exception):
    """Base class for errors surfaced to the CLI."""


class LockfileError(WorkspaceLicensesError):
    pass


class MetadataLookupError(WorkspaceLicensesError):
    """A package's declared metadata could not be read; aborts the whole batch."""


class WorkspaceSelectionError(WorkspaceLicensesError):
    pass


class PolicyError(WorkspaceLicensesError):
    pass
