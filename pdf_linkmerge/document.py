from __future__ import annotations

from dataclasses import dataclass, field
from io import BytesIO
from pathlib import Path
from typing import IO, Any, Iterator, Union

from pypdf import PdfReader, PdfWriter
from pypdf.errors import PdfReadError
from pypdf.generic import (
    ArrayObject,
    ByteStringObject,
    Destination,
    DictionaryObject,
    IndirectObject,
    NumberObject,
)

from .model import LinkAnnotation, MergeInputError


DocumentSource = Union[bytes, bytearray, str, Path, IO[bytes], PdfReader]


def open_source(source: DocumentSource) -> PdfReader:
    """Parse one input document, refusing what the merge cannot handle."""

    name = _describe_source(source)
    if isinstance(source, PdfReader):
        reader = source
    else:
        if isinstance(source, (bytes, bytearray)):
            stream: Any = BytesIO(bytes(source))
        elif isinstance(source, Path):
            stream = str(source)
        else:
            stream = source
        try:
            reader = PdfReader(stream)
        except PdfReadError as exc:
            raise MergeInputError(f"Cannot read PDF {name}: {exc}") from exc

    if reader.is_encrypted:
        raise MergeInputError(f"Encrypted PDFs are not supported: {name}")

    try:
        # Touch the page tree so broken files fail here, not halfway through the merge.
        len(reader.pages)
    except PdfReadError as exc:
        raise MergeInputError(f"Cannot read pages of PDF {name}: {exc}") from exc
    return reader


def same_annotation(a: Any, b: Any) -> bool:
    if isinstance(a, IndirectObject) and isinstance(b, IndirectObject):
        return a.idnum == b.idnum and a.generation == b.generation
    return a is b


@dataclass
class AppendedSource:
    """One input document and the span of merged pages it occupies."""

    reader: PdfReader
    first_page: int
    page_count: int
    _destinations: dict[str, Destination] | None = field(default=None, repr=False)

    @property
    def named_destinations(self) -> dict[str, Destination]:
        if self._destinations is None:
            self._destinations = dict(self.reader.named_destinations)
        return self._destinations

    def destination_page(self, dest: Destination) -> int | None:
        local = self.reader.get_destination_page_number(dest)
        if local is None or not 0 <= local < self.page_count:
            return None
        return self.first_page + local


class MergedDocument:
    """Pages of several PDFs concatenated into one pypdf writer.

    Page indices are positions in ``writer.pages`` and are never cached,
    so they stay valid across appends.
    """

    def __init__(self) -> None:
        self.writer = PdfWriter()
        self.sources: list[AppendedSource] = []
        self._destinations: dict[str, Destination] | None = None

    def __enter__(self) -> MergedDocument:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self.writer.close()

    @property
    def page_count(self) -> int:
        return len(self.writer.pages)

    def append(self, reader: PdfReader) -> tuple[int, int]:
        """Append every page of ``reader``; returns (first page index, page count)."""

        first = self.page_count
        self.writer.append(reader)
        self._destinations = None
        count = self.page_count - first
        self.sources.append(AppendedSource(reader=reader, first_page=first, page_count=count))
        return first, count

    def source_at(self, first_page: int) -> AppendedSource | None:
        for source in self.sources:
            if source.first_page == first_page and source.page_count:
                return source
        return None

    def link_annotations(self) -> Iterator[LinkAnnotation]:
        for page_index, page in enumerate(self.writer.pages):
            if "/Annots" not in page:
                continue
            for handle in page["/Annots"]:
                annot = handle.get_object()
                if not isinstance(annot, DictionaryObject) or annot.get("/Subtype") != "/Link":
                    continue
                uri = _action_uri(annot)
                if uri is None:
                    continue
                yield LinkAnnotation(
                    page_index=page_index,
                    handle=handle,
                    uri=uri,
                    border=annot["/Border"] if "/Border" in annot else None,
                    rect=annot["/Rect"] if "/Rect" in annot else None,
                )

    @property
    def named_destinations(self) -> dict[str, Destination]:
        """The merged table; on name clashes the first appended document wins."""

        if self._destinations is None:
            self._destinations = dict(self.writer.named_destinations)
        return self._destinations

    def destination_page(self, dest: Destination) -> int | None:
        return self.writer.get_destination_page_number(dest)

    def annotation_handles(self, page_index: int) -> list[Any]:
        page = self.writer.pages[page_index]
        if "/Annots" not in page:
            return []
        return list(page["/Annots"])

    def remove_annotation(self, page_index: int, handle: Any) -> bool:
        page = self.writer.pages[page_index]
        if "/Annots" not in page:
            return False
        annots = page["/Annots"]
        for position, entry in enumerate(annots):
            if same_annotation(entry, handle):
                del annots[position]
                return True
        return False

    def add_annotation(self, page_index: int, annotation: Any) -> Any:
        added = self.writer.add_annotation(page_number=page_index, annotation=annotation)

        annot = self.annotation_handles(page_index)[-1].get_object()
        dest = annot["/Dest"] if "/Dest" in annot else None
        if isinstance(dest, ArrayObject) and dest and isinstance(dest[0], NumberObject):
            # Older pypdf releases store the target page number; a /Dest needs the page object.
            dest[0] = self.writer.pages[int(dest[0])].indirect_reference
        return added


def _action_uri(annot: DictionaryObject) -> str | None:
    if "/A" not in annot:
        return None
    action = annot["/A"]
    if not isinstance(action, DictionaryObject) or "/URI" not in action:
        return None
    uri = action["/URI"]
    if isinstance(uri, ByteStringObject):
        return bytes(uri).decode("latin-1")
    return str(uri)


def _describe_source(source: Any) -> str:
    if isinstance(source, (str, Path)):
        return str(source)
    if isinstance(source, (bytes, bytearray)):
        return f"<{len(source)} bytes>"
    return getattr(source, "name", None) or repr(source)
