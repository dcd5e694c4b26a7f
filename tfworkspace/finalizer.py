"""A finalizer that clears a resource's workspace before releasing it."""

from __future__ import annotations

from typing import Any, Protocol


class Finalizer(Protocol):
    """Adds and removes finalizers on managed objects."""

    def add_finalizer(self, obj: Any) -> None:
        """Add a finalizer to the object."""

    def remove_finalizer(self, obj: Any) -> None:
        """Remove the finalizer from the object."""


class StoreCleaner(Protocol):
    """Something that can drop the workspace of an object."""

    def remove(self, obj: Any) -> None:
        """Remove the workspace belonging to the object."""


class WorkspaceRemovalError(Exception):
    """The workspace of an object could not be removed from the store."""


class WorkspaceFinalizer:
    """Removes the workspace from the store, then the underlying finalizer."""

    def __init__(self, store: StoreCleaner, finalizer: Finalizer) -> None:
        self.store = store
        self.finalizer = finalizer

    def add_finalizer(self, obj: Any) -> None:
        """Add the underlying finalizer to the object."""
        self.finalizer.add_finalizer(obj)

    def remove_finalizer(self, obj: Any) -> None:
        """Remove the object's workspace, then its finalizer."""
        try:
            self.store.remove(obj)
        except Exception as exc:
            raise WorkspaceRemovalError(f"cannot remove workspace from the store: {exc}") from exc
        self.finalizer.remove_finalizer(obj)