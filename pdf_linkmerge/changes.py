from __future__ import annotations

from typing import Iterable

from .document import MergedDocument
from .model import AddAnnotation, MergeError, PendingChange, RemoveAnnotation


class ChangeSet:
    """Queued annotation edits, applied removals first and then additions.

    Each record carries an ``applied`` flag so calling ``apply`` again (or
    queueing the same record twice) never repeats an edit.
    """

    def __init__(self, changes: Iterable[PendingChange] = ()) -> None:
        self.changes: list[PendingChange] = list(changes)

    def __len__(self) -> int:
        return len(self.changes)

    def extend(self, changes: Iterable[PendingChange]) -> None:
        self.changes.extend(changes)

    @property
    def removals(self) -> list[RemoveAnnotation]:
        return [c for c in self.changes if isinstance(c, RemoveAnnotation)]

    @property
    def additions(self) -> list[AddAnnotation]:
        return [c for c in self.changes if isinstance(c, AddAnnotation)]

    @property
    def pending(self) -> int:
        return sum(1 for c in self.changes if not c.applied)

    def apply(self, document: MergedDocument) -> tuple[int, int]:
        """Returns (annotations removed, annotations added) by this call."""

        page_count = document.page_count
        for change in self.changes:
            if change.applied:
                continue
            if not 0 <= change.page_index < page_count:
                raise MergeError(f"Change targets page {change.page_index} of a {page_count} page document")
            if isinstance(change, AddAnnotation) and not 0 <= change.target_page < page_count:
                raise MergeError(f"Link target page {change.target_page} does not exist")

        removed = 0
        for change in self.removals:
            if change.applied:
                continue
            if document.remove_annotation(change.page_index, change.handle):
                removed += 1
            change.applied = True

        added = 0
        for change in self.additions:
            if change.applied:
                continue
            document.add_annotation(change.page_index, change.annotation)
            change.applied = True
            added += 1

        return removed, added
