from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union


class MergeError(Exception):
    pass


class MergeConfigError(MergeError, ValueError):
    """Inputs are inconsistent (too few documents, URL count mismatch)."""


class MergeInputError(MergeError):
    """An input document cannot be used (unparseable or encrypted)."""


@dataclass(frozen=True)
class SourceBinding:
    url: str
    first_page: int
    page_count: int


@dataclass(frozen=True)
class LinkAnnotation:
    """A URI link annotation found on a merged page.

    ``handle`` is the entry from the page's /Annots array (normally an
    IndirectObject). Removal compares handles, never positions.
    """

    page_index: int
    handle: Any
    uri: str
    border: Any
    rect: Any

    def describe(self) -> str:
        rect = [float(v) for v in self.rect] if self.rect is not None else None
        return f"{self.uri} rect={rect}"


@dataclass(frozen=True)
class Diagnostic:
    kind: str  # "anchor", "link" or "destination"
    page_index: int
    uri: str
    detail: str = ""
    annotation: str = ""

    def message(self) -> str:
        text = f"Problem {self.kind} on page {self.page_index + 1}: {self.annotation or self.uri}"
        return f"{text} ({self.detail})" if self.detail else text


@dataclass(eq=False)
class RemoveAnnotation:
    page_index: int
    handle: Any
    applied: bool = False


@dataclass(eq=False)
class AddAnnotation:
    page_index: int
    annotation: Any  # pypdf.annotations.Link
    target_page: int
    applied: bool = False


PendingChange = Union[RemoveAnnotation, AddAnnotation]


@dataclass(frozen=True)
class MergeResult:
    data: bytes
    page_count: int
    bindings: tuple[SourceBinding, ...] = ()
    diagnostics: tuple[Diagnostic, ...] = ()
    rewritten: int = 0
    metadata: dict[str, str] = field(default_factory=dict)
