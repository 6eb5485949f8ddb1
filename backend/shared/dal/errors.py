"""Persistence-level failures surfaced by store implementations."""


class StoreError(Exception):
    """Base class for failures raised by a stats store."""


class ConflictError(StoreError):
    """A concurrent writer holds the data; the later committer loses."""


class StoreFailureError(StoreError):
    """The underlying store is unavailable or returned an unexpected error."""
